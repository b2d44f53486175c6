"""
roadmap-verifier: filesystem utilities

File: src/roadmap_verifier/utils/fs.py
Last updated: 2026-10-19

Purpose
- Write the status report so readers only ever see the old or the new file.
- Keep roadmap-declared paths inside the project root.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``data`` via a synced sibling temp file."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = data.encode(encoding) if isinstance(data, str) else data

    staging = tempfile.NamedTemporaryFile(
        "wb",
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp",
        delete=False,
    )
    staged = Path(staging.name)
    try:
        with staging:
            staging.write(payload)
            staging.flush()
            os.fsync(staging.fileno())
        os.replace(staged, target)
    except Exception:
        staged.unlink(missing_ok=True)
        raise


def is_within(child: PathLike, parent: PathLike) -> bool:
    """True when both paths exist and ``child`` resolves to somewhere under ``parent``."""

    try:
        resolved_parent = Path(parent).resolve(strict=True)
        resolved_child = Path(child).resolve(strict=True)
    except FileNotFoundError:
        return False
    return resolved_parent.is_dir() and resolved_child.is_relative_to(resolved_parent)


def resolve_within(relative: str, root: PathLike) -> Path | None:
    """Join a roadmap path onto ``root``; ``None`` for blanks and paths escaping the root."""

    cleaned = relative.replace("\\", "/").strip().lstrip("/")
    if not cleaned:
        return None
    base = Path(root).resolve()
    joined = (base / cleaned).resolve()
    return joined if joined.is_relative_to(base) else None


__all__ = ["PathLike", "atomic_write", "is_within", "resolve_within"]
