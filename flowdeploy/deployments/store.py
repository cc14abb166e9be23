"""DeploymentStore: JSON file persistence for the deployment collection.

Every mutation rewrites the whole collection. Writes go to a temp file in the
same directory and are renamed into place so a crash never leaves a partially
written file behind.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from flowdeploy.config import settings
from flowdeploy.deployments.models import Deployment, utc_now

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)


class DeploymentStore:
    """Persists deployments as a single JSON array.

    Pass an explicit *path* for test isolation (e.g. ``tmp_path / "d.json"``).

    Concurrent writers from other processes are not supported. Within one
    process, :meth:`transaction` serializes reload-mutate-save sequences.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings.deployments_path
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # -- Internal helpers ------------------------------------------------------

    def _read(self) -> list[Deployment]:
        if not self._path.exists():
            return []
        content = self._path.read_text(encoding="utf-8")
        if not content.strip():
            return []
        return [Deployment.from_dict(item) for item in json.loads(content)]

    def _write(self, deployments: list[Deployment]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([d.to_dict() for d in deployments], indent=2)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # -- Collection I/O --------------------------------------------------------

    def exists(self) -> bool:
        """True if durable state has been written at least once."""
        return self._path.exists()

    async def initialize(self) -> None:
        """Create an empty collection on disk."""
        await asyncio.to_thread(self._write, [])
        logger.info("Initialised empty deployment store at %s", self._path)

    async def load_all(self) -> list[Deployment]:
        """Return every persisted deployment (empty if nothing is stored yet)."""
        return await asyncio.to_thread(self._read)

    async def save_all(self, deployments: Iterable[Deployment]) -> None:
        """Replace the persisted collection with *deployments*."""
        items = list(deployments)
        await asyncio.to_thread(self._write, items)
        logger.debug("Saved %d deployment(s) to %s", len(items), self._path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[list[Deployment]]:
        """Load the collection, yield it for mutation, then save it.

        Raising inside the block skips the save. Only one transaction runs at
        a time per store instance.
        """
        async with self._lock:
            deployments = await self.load_all()
            yield deployments
            await self.save_all(deployments)

    # -- Queries ---------------------------------------------------------------

    async def get(self, deployment_id: str) -> Deployment | None:
        """Fetch a deployment by ID, or None if not found."""
        for deployment in await self.load_all():
            if deployment.id == deployment_id:
                return deployment
        return None

    async def list_for_user(self, user_id: str) -> list[Deployment]:
        return [d for d in await self.load_all() if d.user_id == user_id]

    async def list_active(self) -> list[Deployment]:
        return [d for d in await self.load_all() if d.is_active]

    # -- Run bookkeeping -------------------------------------------------------

    async def record_run(self, deployment_id: str) -> Deployment | None:
        """Stamp ``last_run`` and bump ``run_count``.

        Returns the updated deployment, or None if it was deleted meanwhile.
        """
        async with self.transaction() as deployments:
            for deployment in deployments:
                if deployment.id == deployment_id:
                    deployment.last_run = utc_now()
                    deployment.run_count += 1
                    return deployment
        logger.warning("Run recorded for missing deployment: %s", deployment_id)
        return None
