"""JSON HTTP API for deployments and workflow templates.

Runs in the same asyncio event loop as the scheduler. Uses aiohttp's
AppRunner/TCPSite for non-blocking start/stop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from flowdeploy.config import settings
from flowdeploy.deployments.executor import WorkflowExecutor
from flowdeploy.deployments.lifecycle import DeploymentManager
from flowdeploy.errors import ConflictError, FlowDeployError, NotFoundError, ValidationError
from flowdeploy.workflows.catalog import WorkflowCatalog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

MANAGER_KEY = web.AppKey("manager", DeploymentManager)
CATALOG_KEY = web.AppKey("catalog", WorkflowCatalog)
EXECUTOR_KEY = web.AppKey("executor", WorkflowExecutor)


# -- Helpers -----------------------------------------------------------------


async def _json_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        payload = await request.json()
    except ValueError as exc:
        msg = "Request body must be valid JSON"
        raise ValidationError(msg, error="Invalid JSON") from exc
    if not isinstance(payload, dict):
        msg = "Request body must be a JSON object"
        raise ValidationError(msg, error="Invalid JSON")
    return payload


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Convert exceptions into ``{success, error, message}`` JSON responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ConflictError as exc:
        return web.json_response(
            {
                "success": False,
                "error": exc.error,
                "message": exc.message,
                "deployment": exc.deployment.to_dict(),
            },
            status=exc.status,
        )
    except FlowDeployError as exc:
        if exc.status >= 500:
            logger.exception("%s %s failed", request.method, request.path)
        else:
            logger.warning("%s %s: %s", request.method, request.path, exc.message)
        return web.json_response(
            {"success": False, "error": exc.error, "message": exc.message},
            status=exc.status,
        )
    except Exception as exc:
        logger.exception("%s %s failed", request.method, request.path)
        return web.json_response(
            {"success": False, "error": "Internal server error", "message": str(exc)},
            status=500,
        )


# -- Deployments ---------------------------------------------------------------


async def _deploy(request: web.Request) -> web.Response:
    """POST /deployments/deploy"""
    body = await _json_body(request)
    polling_interval = body.get("pollingInterval")
    deployment = await request.app[MANAGER_KEY].deploy(
        user_id=body.get("userId"),
        workflow_id=body.get("workflowId"),
        polling_interval=polling_interval,
        user_accounts=body.get("userAccounts"),
    )
    plural = "" if polling_interval == 1 else "s"
    return web.json_response(
        {
            "success": True,
            "message": (
                "Workflow deployed successfully. "
                f"It will run every {polling_interval} minute{plural}."
            ),
            "deployment": deployment.to_dict(),
        }
    )


async def _list_deployments(request: web.Request) -> web.Response:
    """GET /deployments/list/{user_id}"""
    deployments = await request.app[MANAGER_KEY].list(request.match_info["user_id"])
    return web.json_response(
        {"success": True, "deployments": [d.to_dict() for d in deployments]}
    )


async def _update_deployment(request: web.Request) -> web.Response:
    """PUT /deployments/update/{deployment_id}"""
    body = await _json_body(request)
    deployment = await request.app[MANAGER_KEY].update(
        request.match_info["deployment_id"],
        polling_interval=body.get("pollingInterval"),
        status=body.get("status"),
    )
    return web.json_response(
        {
            "success": True,
            "message": "Deployment updated successfully",
            "deployment": deployment.to_dict(),
        }
    )


async def _delete_deployment(request: web.Request) -> web.Response:
    """DELETE /deployments/delete/{deployment_id}"""
    deployment = await request.app[MANAGER_KEY].delete(request.match_info["deployment_id"])
    return web.json_response(
        {
            "success": True,
            "message": "Deployment deleted successfully",
            "deployment": deployment.to_dict(),
        }
    )


async def _active_jobs(request: web.Request) -> web.Response:
    """GET /deployments/active"""
    jobs = request.app[MANAGER_KEY].active_jobs()
    return web.json_response({"success": True, "count": len(jobs), "jobs": jobs})


# -- Workflows -----------------------------------------------------------------


async def _list_workflows(request: web.Request) -> web.Response:
    """GET /workflows"""
    workflows = await request.app[CATALOG_KEY].list_all()
    return web.json_response({"workflows": [w.raw for w in workflows]})


async def _get_workflow(request: web.Request) -> web.Response:
    """GET /workflows/{workflow_id}"""
    workflow_id = request.match_info["workflow_id"]
    workflow = await request.app[CATALOG_KEY].get(workflow_id)
    if workflow is None:
        msg = f"No workflow found with ID {workflow_id}"
        raise NotFoundError(msg, error="Workflow not found")
    return web.json_response({"workflow": workflow.raw})


async def _run_workflow(request: web.Request) -> web.Response:
    """POST /workflows/run/{workflow_id}: run once, outside any deployment."""
    workflow_id = request.match_info["workflow_id"]
    body = await _json_body(request)
    user_id = body.get("userId")
    if not user_id:
        msg = "userId is required"
        raise ValidationError(msg, error="Missing required parameters")

    workflow = await request.app[CATALOG_KEY].get(workflow_id)
    if workflow is None:
        msg = f"No workflow found with ID {workflow_id}"
        raise NotFoundError(msg, error="Workflow not found")

    logger.info("Running workflow %s for user %s", workflow_id, user_id)
    outcome = await request.app[EXECUTOR_KEY].run(workflow, user_id, body.get("userAccounts"))

    if not outcome.builtin:
        return web.json_response(
            {"success": True, "message": "Workflow invoked", "response": outcome.response}
        )
    if not outcome.success:
        return web.json_response(
            {
                "success": False,
                "message": outcome.error or "Workflow failed",
                "processedCount": 0,
            },
            status=500,
        )
    message = (
        f"Successfully processed {outcome.processed_count} item(s)"
        if outcome.processed_count
        else "Nothing new to process"
    )
    return web.json_response(
        {
            "success": True,
            "message": message,
            "processedCount": outcome.processed_count,
            "notificationSent": outcome.notification_sent,
        }
    )


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


def create_web_app(
    manager: DeploymentManager,
    catalog: WorkflowCatalog,
    executor: WorkflowExecutor,
) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[error_middleware])
    app[MANAGER_KEY] = manager
    app[CATALOG_KEY] = catalog
    app[EXECUTOR_KEY] = executor

    app.router.add_get("/health", _health)

    app.router.add_post("/deployments/deploy", _deploy)
    app.router.add_get("/deployments/list/{user_id}", _list_deployments)
    app.router.add_put("/deployments/update/{deployment_id}", _update_deployment)
    app.router.add_delete("/deployments/delete/{deployment_id}", _delete_deployment)
    app.router.add_get("/deployments/active", _active_jobs)

    app.router.add_get("/workflows", _list_workflows)
    app.router.add_get("/workflows/{workflow_id}", _get_workflow)
    app.router.add_post("/workflows/run/{workflow_id}", _run_workflow)
    return app


class ApiServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        app: web.Application,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self._app = app
        self.host = host or settings.api_host
        self.port = port or settings.api_port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start accepting requests."""
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("API server listening on http://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")
