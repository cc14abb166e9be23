"""Startup recovery: re-create jobs for every persisted active deployment."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowdeploy.deployments.engine import SchedulerEngine
    from flowdeploy.deployments.store import DeploymentStore

logger = logging.getLogger(__name__)


async def recover_deployments(store: DeploymentStore, engine: SchedulerEngine) -> int:
    """Schedule all active deployments. Returns the number of jobs created.

    Must run before the API starts accepting requests.
    """
    if not store.exists():
        logger.info("No deployments file found, creating an empty one")
        await store.initialize()
        return 0

    active = await store.list_active()
    logger.info("Found %d active deployment(s)", len(active))

    recovered = 0
    for deployment in active:
        if engine.schedule(deployment):
            recovered += 1

    logger.info("Recovered %d scheduled deployment(s)", recovered)
    return recovered
