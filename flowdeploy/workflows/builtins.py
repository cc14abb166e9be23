"""Built-in workflow handler table.

Workflows whose id is registered here run in-process instead of being invoked
on the automation platform.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class HandlerResult:
    """Outcome of a built-in workflow run."""

    success: bool
    processed_count: int = 0
    notification_sent: bool = False
    error: str | None = None


# Handler signature: async (client, external_user_id, user_accounts) -> HandlerResult
WorkflowHandler = Callable[..., Awaitable[HandlerResult]]


class BuiltinWorkflows:
    """Registry of in-process workflow handlers.

    Usage::

        builtin_workflows = BuiltinWorkflows()

        @builtin_workflows.handler("email-to-slack")
        async def email_to_slack(client, external_user_id, user_accounts):
            ...
    """

    def __init__(self) -> None:
        self._handlers: dict[str, WorkflowHandler] = {}

    def handler(self, workflow_id: str) -> Callable[[WorkflowHandler], WorkflowHandler]:
        """Decorator to register an async function as a built-in workflow."""

        def decorator(fn: WorkflowHandler) -> WorkflowHandler:
            self._handlers[workflow_id] = fn
            logger.info("Registered built-in workflow: %s", workflow_id)
            return fn

        return decorator

    def get(self, workflow_id: str) -> WorkflowHandler | None:
        return self._handlers.get(workflow_id)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._handlers

    @property
    def ids(self) -> list[str]:
        """All registered built-in workflow ids."""
        return list(self._handlers)


builtin_workflows = BuiltinWorkflows()
