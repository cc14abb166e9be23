"""Deployment data model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class DeploymentStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def make_deployment_id() -> str:
    """Generate a new deployment ID."""
    return str(uuid.uuid4())


@dataclass
class Deployment:
    """A workflow bound to a user, an account snapshot, and a recurring schedule.

    Attributes:
        id: Unique identifier (UUID4 string), never reused.
        user_id: External identifier of the owning user.
        workflow_id: Catalog ``template_id`` of the workflow.
        workflow_name: Workflow display name captured at creation.
        polling_interval: Minutes between runs (>= 1).
        user_accounts: Connected-account snapshot used when executing.
        status: ``active`` while a live timer should exist.
        created_at: ISO 8601 timestamp, None for legacy records without one.
        updated_at: ISO 8601 timestamp of the last interval/status change.
        stopped_at: ISO 8601 timestamp of the last deactivation.
        last_run: ISO 8601 timestamp of the last recorded firing.
        run_count: Number of recorded firings.
    """

    user_id: str
    workflow_id: str
    workflow_name: str
    polling_interval: int
    user_accounts: list[dict[str, Any]] | None = None
    status: DeploymentStatus = DeploymentStatus.ACTIVE
    id: str = ""
    created_at: str | None = field(default_factory=utc_now)
    updated_at: str | None = None
    stopped_at: str | None = None
    last_run: str | None = None
    run_count: int = 0

    def __post_init__(self) -> None:
        if not self.id:
            self.id = make_deployment_id()
        self.status = DeploymentStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status is DeploymentStatus.ACTIVE

    # -- Serialization ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted/JSON shape (camelCase keys)."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "workflowId": self.workflow_id,
            "workflowName": self.workflow_name,
            "pollingInterval": self.polling_interval,
            "userAccounts": self.user_accounts,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "stoppedAt": self.stopped_at,
            "lastRun": self.last_run,
            "runCount": self.run_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Deployment:
        """Deserialize from the persisted shape."""
        return cls(
            id=data["id"],
            user_id=data["userId"],
            workflow_id=data["workflowId"],
            workflow_name=data.get("workflowName") or "",
            polling_interval=int(data["pollingInterval"]),
            user_accounts=data.get("userAccounts"),
            status=data.get("status", DeploymentStatus.ACTIVE),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            stopped_at=data.get("stoppedAt"),
            last_run=data.get("lastRun"),
            # Records written before run counting existed have no runCount
            run_count=int(data.get("runCount") or 0),
        )
