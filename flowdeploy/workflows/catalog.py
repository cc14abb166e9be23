"""WorkflowCatalog: read-only lookup of workflow templates."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from flowdeploy.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class WorkflowDefinition:
    """A workflow template as stored in the catalog file.

    Attributes:
        workflow_id: The template's ``template_id``.
        name: Display name from ``payload.settings.name``.
        invocation_endpoint: The template's ``run_url`` (HTTP endpoint or
            endpoint id on the automation platform).
        raw: The untouched catalog entry, returned by the API.
    """

    workflow_id: str
    name: str
    invocation_endpoint: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowDefinition:
        workflow_settings = (data.get("payload") or {}).get("settings") or {}
        return cls(
            workflow_id=data["template_id"],
            name=workflow_settings.get("name") or data.get("name") or data["template_id"],
            invocation_endpoint=data.get("run_url") or "",
            raw=data,
        )


class WorkflowCatalog:
    """Loads workflow templates from a JSON file.

    The file is re-read on every lookup, so edits take effect without a
    restart. Pass an explicit *path* for test isolation.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings.workflows_path

    def _read(self) -> dict[str, WorkflowDefinition]:
        if not self._path.exists():
            logger.warning("Workflow catalog not found at %s", self._path)
            return {}
        entries = json.loads(self._path.read_text(encoding="utf-8"))
        workflows = {}
        for entry in entries:
            definition = WorkflowDefinition.from_dict(entry)
            workflows[definition.workflow_id] = definition
        logger.debug("Read %d workflow template(s) from %s", len(workflows), self._path)
        return workflows

    async def _load(self) -> dict[str, WorkflowDefinition]:
        return await asyncio.to_thread(self._read)

    async def list_all(self) -> list[WorkflowDefinition]:
        return list((await self._load()).values())

    async def get(self, workflow_id: str) -> WorkflowDefinition | None:
        """Look up a template by id, or None if the catalog has no such entry."""
        return (await self._load()).get(workflow_id)
