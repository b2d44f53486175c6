"""
roadmap-verifier: filesystem collaborator

File: src/roadmap_verifier/verification/filesystem.py
Last updated: 2026-10-19

Purpose
- ``exists(path) -> bool`` resolved relative to a caller-supplied project root.

Functional requirements
- Paths that escape the project root never exist.
- Paths with glob metacharacters exist when at least one entry under the root matches.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from roadmap_verifier.utils.fs import is_within, resolve_within

_GLOB_MAGIC: Final[re.Pattern[str]] = re.compile(r"[*?[]")


@runtime_checkable
class Filesystem(Protocol):
    async def exists(self, path: str) -> bool: ...


class LocalFilesystem(Filesystem):
    """Read-only view of a project directory on local disk."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._exists_sync, path)

    def _exists_sync(self, path: str) -> bool:
        if _GLOB_MAGIC.search(path):
            return self._glob_matches(path)
        target = resolve_within(path, self._root)
        if target is None:
            return False
        return target.exists()

    def _glob_matches(self, pattern: str) -> bool:
        relative = pattern.replace("\\", "/").strip().lstrip("/")
        if not relative or ".." in Path(relative).parts:
            return False
        for match in self._root.glob(relative):
            if is_within(match, self._root):
                return True
        return False


__all__ = ["Filesystem", "LocalFilesystem"]
