"""
roadmap-verifier: files_exist runner

File: src/roadmap_verifier/verification/checks/files_exist.py
Last updated: 2026-10-19

Purpose
- Confirm that every path listed by a ``files_exist`` check is present under the project root.

Functional requirements
- Path list merges ``files``, ``globs`` and comma-split ``detail``, de-duplicated in order.
- Empty path list is a vacuous pass with note ``"no files listed"``.
- ``missing`` lists absent paths exactly, in input order; the resolved list is echoed as ``files``.
"""

from __future__ import annotations

import asyncio

from roadmap_verifier.domain.models import Check, CheckType
from roadmap_verifier.verification.checks.base import (
    CheckContext,
    CheckResult,
    register_builtin_check,
)


def resolve_file_list(check: Check) -> tuple[str, ...]:
    """Merged path list for ``check``; detail tokens are taken literally."""

    detail_tokens: tuple[str, ...] = ()
    if check.detail:
        detail_tokens = tuple(token.strip() for token in check.detail.split(","))

    seen: set[str] = set()
    ordered: list[str] = []
    for raw in (*check.files, *check.globs, *detail_tokens):
        path = raw.strip()
        if not path or path in seen:
            continue
        seen.add(path)
        ordered.append(path)
    return tuple(ordered)


@register_builtin_check(CheckType.FILES_EXIST)
class FilesExistRunner:
    check_type = CheckType.FILES_EXIST.value

    async def run(self, check: Check, context: CheckContext) -> CheckResult:
        files = resolve_file_list(check)
        if not files:
            return CheckResult(ok=True, type=self.check_type, note="no files listed", files=())

        present = await asyncio.gather(*(context.filesystem.exists(path) for path in files))
        missing = tuple(path for path, exists in zip(files, present, strict=True) if not exists)
        if missing:
            return CheckResult(
                ok=False,
                type=self.check_type,
                note=f"missing: {', '.join(missing)}",
                missing=missing,
                files=files,
            )
        return CheckResult(
            ok=True,
            type=self.check_type,
            note=f"{len(files)} file(s) present",
            files=files,
        )


__all__ = ["FilesExistRunner", "resolve_file_list"]
