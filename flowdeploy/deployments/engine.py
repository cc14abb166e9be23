"""SchedulerEngine: APScheduler lifecycle and deployment job management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from flowdeploy.config import settings
from flowdeploy.errors import SchedulingError

if TYPE_CHECKING:
    from flowdeploy.deployments.executor import WorkflowExecutor
    from flowdeploy.deployments.models import Deployment
    from flowdeploy.deployments.registry import ScheduleRegistry

logger = logging.getLogger(__name__)


class SchedulerEngine:
    """Maps deployments onto recurring APScheduler jobs.

    Each job fires with the deployment snapshot it was scheduled with. Changes
    to the stored record (accounts, workflow name) are only picked up by the
    next :meth:`schedule` call.

    Args:
        registry: ScheduleRegistry tracking live jobs.
        executor: WorkflowExecutor invoked on every fire.
        timezone: IANA timezone string (default from settings).
        max_instances: Concurrent runs allowed per job (default from settings).
            APScheduler skips a fire while this many runs are still in flight.
    """

    def __init__(
        self,
        registry: ScheduleRegistry,
        executor: WorkflowExecutor,
        timezone: str | None = None,
        max_instances: int | None = None,
    ) -> None:
        self._registry = registry
        self._executor = executor
        self._timezone = timezone or settings.scheduler_timezone
        self._max_instances = max_instances or settings.scheduler_max_instances
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def registry(self) -> ScheduleRegistry:
        return self._registry

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start firing scheduled jobs."""
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started with %d job(s) (tz=%s)", len(self._registry), self._timezone
        )

    async def stop(self) -> None:
        """Shut down the scheduler and forget every live job."""
        if self._running:
            self._registry.clear()
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    # -- Trigger building ------------------------------------------------------

    @staticmethod
    def cron_expression(polling_interval: int) -> str:
        """Return the 5-field crontab for "every *polling_interval* minutes"."""
        return f"*/{polling_interval} * * * *"

    def build_trigger(self, expression: str) -> CronTrigger:
        """Parse a crontab string. Raises SchedulingError if it is malformed."""
        try:
            return CronTrigger.from_crontab(expression, timezone=self._timezone)
        except ValueError as exc:
            msg = f"Invalid cron expression {expression!r}: {exc}"
            raise SchedulingError(msg) from exc

    def validate_interval(self, polling_interval: Any) -> str:
        """Check that *polling_interval* maps to a valid trigger.

        Returns the cron expression. Raises SchedulingError otherwise.
        """
        if isinstance(polling_interval, bool) or not isinstance(polling_interval, int):
            msg = f"pollingInterval must be an integer number of minutes, got {polling_interval!r}"
            raise SchedulingError(msg)
        if polling_interval < 1:
            msg = f"pollingInterval must be at least 1 minute, got {polling_interval}"
            raise SchedulingError(msg)
        expression = self.cron_expression(polling_interval)
        self.build_trigger(expression)
        return expression

    # -- Job management --------------------------------------------------------

    def schedule(self, deployment: Deployment) -> bool:
        """Start (or restart) the recurring job for *deployment*.

        Returns False, without registering anything, if the interval does not
        produce a valid trigger.
        """
        if deployment.id in self._registry:
            self.cancel(deployment.id)

        try:
            expression = self.validate_interval(deployment.polling_interval)
            trigger = self.build_trigger(expression)
        except SchedulingError as exc:
            logger.error("Not scheduling deployment %s: %s", deployment.id, exc.message)
            return False

        job = self._scheduler.add_job(
            self._fire,
            trigger=trigger,
            id=deployment.id,
            name=deployment.workflow_name or deployment.workflow_id,
            args=[deployment],
            max_instances=self._max_instances,
            misfire_grace_time=None,
            replace_existing=True,
        )
        self._registry.register(deployment.id, job, deployment, expression)
        logger.info("Scheduled deployment %s: %s", deployment.id, expression)
        return True

    def cancel(self, deployment_id: str) -> bool:
        """Stop the job for *deployment_id*. Returns True if one was live."""
        cancelled = self._registry.unregister(deployment_id)
        if cancelled:
            logger.info("Cancelled job for deployment %s", deployment_id)
        return cancelled

    def list_jobs(self) -> list[dict[str, Any]]:
        return self._registry.list()

    # -- Internal --------------------------------------------------------------

    async def _fire(self, deployment: Deployment) -> None:
        """Callback invoked by APScheduler. A failure never unschedules the job."""
        try:
            updated = await self._executor.execute(deployment)
        except Exception:
            logger.exception("Unhandled error firing deployment %s", deployment.id)
            return
        if updated is not None:
            self._registry.note_run(updated)
