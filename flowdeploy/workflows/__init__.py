"""Workflow templates, the automation platform client, and built-in handlers."""

# Importing the handler modules registers them with builtin_workflows.
from flowdeploy.workflows import email_to_slack  # noqa: F401
from flowdeploy.workflows.builtins import BuiltinWorkflows, HandlerResult, builtin_workflows
from flowdeploy.workflows.catalog import WorkflowCatalog, WorkflowDefinition
from flowdeploy.workflows.client import AutomationClient

__all__ = [
    "AutomationClient",
    "BuiltinWorkflows",
    "HandlerResult",
    "WorkflowCatalog",
    "WorkflowDefinition",
    "builtin_workflows",
]
