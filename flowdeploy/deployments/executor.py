"""WorkflowExecutor: runs a deployment's workflow and records the firing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flowdeploy.deployments.models import Deployment
    from flowdeploy.deployments.store import DeploymentStore
    from flowdeploy.workflows.builtins import BuiltinWorkflows
    from flowdeploy.workflows.catalog import WorkflowCatalog, WorkflowDefinition
    from flowdeploy.workflows.client import AutomationClient

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """Result of a single workflow run."""

    workflow_id: str
    builtin: bool
    success: bool
    processed_count: int = 0
    notification_sent: bool = False
    error: str | None = None
    response: Any = None


class WorkflowExecutor:
    """Dispatches workflow runs to a built-in handler or the automation platform.

    Args:
        catalog: WorkflowCatalog for resolving workflow ids.
        builtins: Handler table for in-process workflows.
        client: AutomationClient for remote invocation and account proxying.
        store: DeploymentStore for recording scheduled firings.
    """

    def __init__(
        self,
        catalog: WorkflowCatalog,
        builtins: BuiltinWorkflows,
        client: AutomationClient,
        store: DeploymentStore,
    ) -> None:
        self._catalog = catalog
        self._builtins = builtins
        self._client = client
        self._store = store

    async def run(
        self,
        workflow: WorkflowDefinition,
        user_id: str,
        user_accounts: list[dict[str, Any]] | None,
    ) -> RunOutcome:
        """Run *workflow* once for *user_id*. Errors propagate to the caller."""
        handler = self._builtins.get(workflow.workflow_id)
        if handler is not None:
            result = await handler(self._client, user_id, user_accounts)
            return RunOutcome(
                workflow_id=workflow.workflow_id,
                builtin=True,
                success=result.success,
                processed_count=result.processed_count,
                notification_sent=result.notification_sent,
                error=result.error,
            )

        response = await self._client.invoke_workflow(user_id, workflow.invocation_endpoint)
        return RunOutcome(
            workflow_id=workflow.workflow_id,
            builtin=False,
            success=True,
            response=response,
        )

    async def execute(self, deployment: Deployment) -> Deployment | None:
        """Run a scheduled firing of *deployment* and record it.

        Returns the deployment as stored after recording the run, or None if
        the run was not recorded. Never raises.
        """
        logger.info(
            "Executing workflow %s for user %s (deployment %s)",
            deployment.workflow_id,
            deployment.user_id,
            deployment.id,
        )
        try:
            workflow = await self._catalog.get(deployment.workflow_id)
            if workflow is None:
                logger.error(
                    "Workflow %s not found for deployment %s",
                    deployment.workflow_id,
                    deployment.id,
                )
                return None

            outcome = await self.run(workflow, deployment.user_id, deployment.user_accounts)
            if outcome.success:
                logger.info(
                    "Workflow %s executed (processed %d item(s))",
                    deployment.workflow_id,
                    outcome.processed_count,
                )
            else:
                logger.warning(
                    "Workflow %s reported failure: %s", deployment.workflow_id, outcome.error
                )

            return await self._store.record_run(deployment.id)
        except Exception:
            logger.exception(
                "Error executing workflow %s (deployment %s)",
                deployment.workflow_id,
                deployment.id,
            )
            return None
