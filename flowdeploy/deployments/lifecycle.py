"""DeploymentManager: create, list, update, and delete deployments.

Coordinates the store and the scheduler engine so that a live job exists for
a deployment exactly when its status is ``active``.

Each mutating call reloads, mutates, and saves the whole collection inside one
store transaction. Jobs are started or cancelled only once that save has
succeeded, so a failed write leaves the live jobs matching the file.
Two requests mutating the same deployment are serialized by the store but are
not merged: the later one wins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flowdeploy.deployments.models import Deployment, DeploymentStatus, utc_now
from flowdeploy.errors import ConflictError, NotFoundError, SchedulingError, ValidationError

if TYPE_CHECKING:
    from flowdeploy.deployments.engine import SchedulerEngine
    from flowdeploy.deployments.store import DeploymentStore
    from flowdeploy.workflows.catalog import WorkflowCatalog

logger = logging.getLogger(__name__)


def _find(deployments: list[Deployment], deployment_id: str) -> Deployment:
    for deployment in deployments:
        if deployment.id == deployment_id:
            return deployment
    msg = f"No deployment found with ID {deployment_id}"
    raise NotFoundError(msg, error="Deployment not found")


def _is_non_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value <= 0


class DeploymentManager:
    """API-facing orchestrator for the deployment lifecycle.

    Args:
        store: DeploymentStore holding the durable collection.
        engine: SchedulerEngine owning the live jobs.
        catalog: WorkflowCatalog used to resolve workflow ids.
    """

    def __init__(
        self,
        store: DeploymentStore,
        engine: SchedulerEngine,
        catalog: WorkflowCatalog,
    ) -> None:
        self._store = store
        self._engine = engine
        self._catalog = catalog

    def _check_interval(self, polling_interval: Any) -> None:
        try:
            self._engine.validate_interval(polling_interval)
        except SchedulingError as exc:
            raise ValidationError(exc.message, error="Invalid polling interval") from exc

    # -- Operations ------------------------------------------------------------

    async def deploy(
        self,
        user_id: str,
        workflow_id: str,
        polling_interval: int,
        user_accounts: list[dict[str, Any]] | None = None,
    ) -> Deployment:
        """Create an active deployment and start its job."""
        if not user_id or not workflow_id or not polling_interval:
            msg = "userId, workflowId, and pollingInterval are required"
            raise ValidationError(msg, error="Missing required parameters")
        self._check_interval(polling_interval)

        workflow = await self._catalog.get(workflow_id)
        if workflow is None:
            msg = f"No workflow found with ID {workflow_id}"
            raise NotFoundError(msg, error="Workflow not found")

        async with self._store.transaction() as deployments:
            for existing in deployments:
                if (
                    existing.user_id == user_id
                    and existing.workflow_id == workflow_id
                    and existing.is_active
                ):
                    msg = "This workflow is already deployed and active for this user"
                    raise ConflictError(msg, existing)

            deployment = Deployment(
                user_id=user_id,
                workflow_id=workflow_id,
                workflow_name=workflow.name,
                polling_interval=polling_interval,
                user_accounts=user_accounts,
            )
            deployments.append(deployment)

        if not self._engine.schedule(deployment):
            logger.error("Deployment %s persisted as active without a job", deployment.id)

        logger.info(
            "Workflow %s deployed for user %s with %d minute interval",
            workflow_id,
            user_id,
            polling_interval,
        )
        return deployment

    async def list(self, user_id: str) -> list[Deployment]:
        """Return every deployment owned by *user_id*."""
        return await self._store.list_for_user(user_id)

    async def update(
        self,
        deployment_id: str,
        polling_interval: int | None = None,
        status: str | None = None,
    ) -> Deployment:
        """Change the interval and/or status of a deployment."""
        if polling_interval is not None and not _is_non_positive_int(polling_interval):
            self._check_interval(polling_interval)

        reschedule = False
        async with self._store.transaction() as deployments:
            deployment = _find(deployments, deployment_id)

            if isinstance(polling_interval, int) and polling_interval > 0:
                deployment.polling_interval = polling_interval
                deployment.updated_at = utc_now()
                reschedule = True

            if status is not None:
                if status not in (DeploymentStatus.ACTIVE, DeploymentStatus.INACTIVE):
                    logger.warning("Ignoring unknown status %r for %s", status, deployment_id)
                elif status != deployment.status:
                    deployment.status = DeploymentStatus(status)
                    deployment.updated_at = utc_now()
                    if not deployment.is_active:
                        deployment.stopped_at = utc_now()
                    reschedule = True

        if reschedule:
            if deployment.is_active:
                if not self._engine.schedule(deployment):
                    logger.error("Deployment %s is active without a job", deployment_id)
            else:
                self._engine.cancel(deployment_id)

        logger.info("Deployment %s updated (status=%s)", deployment_id, deployment.status)
        return deployment

    async def delete(self, deployment_id: str) -> Deployment:
        """Remove a deployment permanently and cancel its job."""
        async with self._store.transaction() as deployments:
            deployment = _find(deployments, deployment_id)
            deployments.remove(deployment)

        if deployment.is_active:
            self._engine.cancel(deployment_id)
        logger.info("Deployment %s deleted permanently", deployment_id)
        return deployment

    def active_jobs(self) -> list[dict[str, Any]]:
        """Live jobs as reported by the scheduler registry."""
        return self._engine.list_jobs()
