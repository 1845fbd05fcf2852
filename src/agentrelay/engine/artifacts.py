"""Destinations for finished documents."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class ArtifactSink(ABC):
    """Somewhere to commit a finished document."""

    @abstractmethod
    async def write(self, workflow_id: str, filename: str, content: str) -> str:
        """Store ``content`` and return where it went."""


class FileArtifactSink(ArtifactSink):
    """Writes artifacts to ``<root>/<workflow_id>/<filename>``."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _target(self, workflow_id: str, filename: str) -> Path:
        relative = PurePosixPath(filename.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValueError(f"Artifact filename must be a relative path: {filename}")
        return self.root / workflow_id / Path(*relative.parts)

    async def write(self, workflow_id: str, filename: str, content: str) -> str:
        target = self._target(workflow_id, filename)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)
        logger.info(f"Wrote artifact {target}")
        return str(target)
