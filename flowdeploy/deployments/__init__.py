"""Deployment subsystem: models, persistence, scheduling, execution, lifecycle."""

from flowdeploy.deployments.engine import SchedulerEngine
from flowdeploy.deployments.executor import RunOutcome, WorkflowExecutor
from flowdeploy.deployments.lifecycle import DeploymentManager
from flowdeploy.deployments.models import Deployment, DeploymentStatus
from flowdeploy.deployments.recovery import recover_deployments
from flowdeploy.deployments.registry import ScheduleEntry, ScheduleRegistry
from flowdeploy.deployments.store import DeploymentStore

__all__ = [
    "Deployment",
    "DeploymentStatus",
    "DeploymentStore",
    "ScheduleEntry",
    "ScheduleRegistry",
    "SchedulerEngine",
    "WorkflowExecutor",
    "RunOutcome",
    "DeploymentManager",
    "recover_deployments",
]
