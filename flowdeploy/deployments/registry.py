"""ScheduleRegistry: live job handles keyed by deployment id."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from apscheduler.jobstores.base import JobLookupError

from flowdeploy.deployments.models import utc_now

if TYPE_CHECKING:
    from apscheduler.job import Job

    from flowdeploy.deployments.models import Deployment

logger = logging.getLogger(__name__)


@dataclass
class ScheduleEntry:
    """A live recurring job and the deployment snapshot it fires with."""

    job: Job
    deployment: Deployment
    cron_expression: str
    created_at: str = field(default_factory=utc_now)
    last_run: str | None = None
    run_count: int = 0

    def __post_init__(self) -> None:
        self.last_run = self.deployment.last_run
        self.run_count = self.deployment.run_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "deploymentId": self.deployment.id,
            "workflowId": self.deployment.workflow_id,
            "workflowName": self.deployment.workflow_name,
            "userId": self.deployment.user_id,
            "cronExpression": self.cron_expression,
            "pollingInterval": self.deployment.polling_interval,
            "createdAt": self.created_at,
            "lastRun": self.last_run,
            "runCount": self.run_count,
        }


class ScheduleRegistry:
    """In-memory map of what is currently firing.

    Process-local and never persisted. It is rebuilt by startup recovery and
    is not the source of truth for a deployment's status.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ScheduleEntry] = {}

    def __contains__(self, deployment_id: object) -> bool:
        return deployment_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, deployment_id: str) -> ScheduleEntry | None:
        return self._entries.get(deployment_id)

    def ids(self) -> list[str]:
        return list(self._entries)

    def register(
        self,
        deployment_id: str,
        job: Job,
        deployment: Deployment,
        cron_expression: str,
    ) -> ScheduleEntry:
        """Track *job* as the live handle for *deployment_id*."""
        entry = ScheduleEntry(job=job, deployment=deployment, cron_expression=cron_expression)
        self._entries[deployment_id] = entry
        return entry

    def unregister(self, deployment_id: str) -> bool:
        """Stop and forget the job for *deployment_id*. Returns True if one existed."""
        entry = self._entries.pop(deployment_id, None)
        if entry is None:
            return False
        try:
            entry.job.remove()
        except JobLookupError:
            logger.debug("Job %s already gone from the scheduler", deployment_id)
        return True

    def clear(self) -> None:
        """Stop and forget every job."""
        for deployment_id in self.ids():
            self.unregister(deployment_id)

    def note_run(self, deployment: Deployment) -> None:
        """Refresh the run counters reported by :meth:`list`."""
        entry = self._entries.get(deployment.id)
        if entry is None:
            return
        entry.last_run = deployment.last_run
        entry.run_count = deployment.run_count

    def list(self) -> list[dict[str, Any]]:
        """Observability view of every live job."""
        return [entry.to_dict() for entry in self._entries.values()]
