"""
roadmap-verifier: sql_exists runner

File: src/roadmap_verifier/verification/checks/sql_exists.py
Last updated: 2026-10-19

Purpose
- Delegate a ``sql_exists`` query to the probe negotiator and surface its outcome verbatim.
"""

from __future__ import annotations

from roadmap_verifier.domain.models import Check, CheckType
from roadmap_verifier.verification.checks.base import (
    CheckContext,
    CheckExecutionError,
    CheckResult,
    register_builtin_check,
)
from roadmap_verifier.verification.probe import probe_read_only_check


@register_builtin_check(CheckType.SQL_EXISTS)
class SqlExistsRunner:
    check_type = CheckType.SQL_EXISTS.value

    async def run(self, check: Check, context: CheckContext) -> CheckResult:
        query = (check.query or check.detail or "").strip()
        if not query:
            raise CheckExecutionError("sql_exists check requires a query", note="no query declared")

        outcome = await probe_read_only_check(
            query,
            url=context.probe.url,
            headers=context.probe.headers,
            request_headers=context.probe.request_headers,
            transport=context.transport,
        )
        return CheckResult(
            ok=outcome.ok,
            type=self.check_type,
            note=outcome.note,
            error=outcome.error,
            attempt=outcome.attempt,
            code=outcome.status,
        )


__all__ = ["SqlExistsRunner"]
