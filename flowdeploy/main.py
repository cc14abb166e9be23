"""flowdeploy entry point."""

import asyncio
import logging
import signal
from dataclasses import dataclass

from flowdeploy.api.server import ApiServer, create_web_app
from flowdeploy.config import settings
from flowdeploy.deployments.engine import SchedulerEngine
from flowdeploy.deployments.executor import WorkflowExecutor
from flowdeploy.deployments.lifecycle import DeploymentManager
from flowdeploy.deployments.recovery import recover_deployments
from flowdeploy.deployments.registry import ScheduleRegistry
from flowdeploy.deployments.store import DeploymentStore
from flowdeploy.workflows import AutomationClient, WorkflowCatalog, builtin_workflows

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the process wires together at startup."""

    store: DeploymentStore
    catalog: WorkflowCatalog
    executor: WorkflowExecutor
    engine: SchedulerEngine
    manager: DeploymentManager


def build_services() -> Services:
    """Construct the deployment subsystem from settings."""
    store = DeploymentStore()
    catalog = WorkflowCatalog()
    executor = WorkflowExecutor(
        catalog=catalog,
        builtins=builtin_workflows,
        client=AutomationClient(),
        store=store,
    )
    engine = SchedulerEngine(registry=ScheduleRegistry(), executor=executor)
    manager = DeploymentManager(store=store, engine=engine, catalog=catalog)
    return Services(
        store=store, catalog=catalog, executor=executor, engine=engine, manager=manager
    )


async def run() -> None:
    """Recover schedules, then serve the API until interrupted."""
    services = build_services()
    if not settings.pipedream_configured:
        logger.warning("Pipedream credentials not set, remote workflow runs will fail")

    recovered = await recover_deployments(services.store, services.engine)
    await services.engine.start()
    logger.info("Startup recovery scheduled %d deployment(s)", recovered)

    server = ApiServer(create_web_app(services.manager, services.catalog, services.executor))
    await server.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    try:
        await stop.wait()
    finally:
        await server.stop()
        await services.engine.stop()


def main() -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level),
    )
    logger.info("Starting flowdeploy...")
    asyncio.run(run())


if __name__ == "__main__":
    main()
