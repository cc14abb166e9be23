"""Error taxonomy shared by the deployment subsystem and the HTTP API."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowdeploy.deployments.models import Deployment


class FlowDeployError(Exception):
    """Base class for errors that map onto an HTTP response.

    Attributes:
        status: HTTP status code the API answers with.
        error: Short error title.
        message: Human-readable text suitable for direct display.
    """

    status = 500
    error = "Internal error"

    def __init__(self, message: str, *, error: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error


class ValidationError(FlowDeployError):
    """Missing or invalid request fields."""

    status = 400
    error = "Invalid request"


class NotFoundError(FlowDeployError):
    """Unknown workflow or deployment id."""

    status = 404
    error = "Not found"


class ConflictError(FlowDeployError):
    """An active deployment already exists for the user and workflow."""

    status = 400
    error = "Workflow already deployed"

    def __init__(self, message: str, deployment: Deployment) -> None:
        super().__init__(message)
        self.deployment = deployment


class SchedulingError(FlowDeployError):
    """A polling interval cannot be turned into a valid recurrence."""

    status = 400
    error = "Invalid schedule"


class ExecutionError(FlowDeployError):
    """A workflow run failed."""

    status = 500
    error = "Workflow execution failed"


class AutomationError(ExecutionError):
    """The automation platform rejected a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
