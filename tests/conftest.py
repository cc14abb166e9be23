"""Shared test fixtures."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from flowdeploy.deployments.engine import SchedulerEngine
from flowdeploy.deployments.executor import WorkflowExecutor
from flowdeploy.deployments.lifecycle import DeploymentManager
from flowdeploy.deployments.registry import ScheduleRegistry
from flowdeploy.deployments.store import DeploymentStore
from flowdeploy.workflows.builtins import BuiltinWorkflows, HandlerResult
from flowdeploy.workflows.catalog import WorkflowCatalog

WORKFLOWS = [
    {
        "template_id": "email-to-slack",
        "run_url": "",
        "payload": {"settings": {"name": "Email attachments to Slack"}},
    },
    {
        "template_id": "remote-flow",
        "run_url": "https://en123abc.m.pipedream.net",
        "payload": {"settings": {"name": "Remote flow"}},
    },
]


@pytest.fixture
def catalog(tmp_path: Path) -> WorkflowCatalog:
    path = tmp_path / "workflows.json"
    path.write_text(json.dumps(WORKFLOWS))
    return WorkflowCatalog(path=path)


@pytest.fixture
def store(tmp_path: Path) -> DeploymentStore:
    return DeploymentStore(path=tmp_path / "deployments.json")


@pytest.fixture
def builtin_handler() -> AsyncMock:
    return AsyncMock(
        return_value=HandlerResult(success=True, processed_count=2, notification_sent=True)
    )


@pytest.fixture
def builtins(builtin_handler: AsyncMock) -> BuiltinWorkflows:
    table = BuiltinWorkflows()
    table.handler("email-to-slack")(builtin_handler)
    return table


@pytest.fixture
def client() -> AsyncMock:
    c = AsyncMock()
    c.invoke_workflow = AsyncMock(return_value={"ok": True})
    return c


@pytest.fixture
def executor(
    catalog: WorkflowCatalog,
    builtins: BuiltinWorkflows,
    client: AsyncMock,
    store: DeploymentStore,
) -> WorkflowExecutor:
    return WorkflowExecutor(catalog=catalog, builtins=builtins, client=client, store=store)


@pytest.fixture
def registry() -> ScheduleRegistry:
    return ScheduleRegistry()


@pytest.fixture
async def engine(registry: ScheduleRegistry, executor: WorkflowExecutor):
    e = SchedulerEngine(registry=registry, executor=executor, timezone="UTC")
    await e.start()
    yield e
    await e.stop()


@pytest.fixture
def manager(
    store: DeploymentStore, engine: SchedulerEngine, catalog: WorkflowCatalog
) -> DeploymentManager:
    return DeploymentManager(store=store, engine=engine, catalog=catalog)
