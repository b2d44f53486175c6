"""
roadmap-verifier: check executor

File: src/roadmap_verifier/verification/executor.py
Last updated: 2026-10-19

Purpose
- Dispatch one canonical ``Check`` to its registered runner and return exactly one
  ``CheckResult``.

Functional requirements
- Unknown types fail with ``unsupported check type: <type>`` (``unknown`` when blank).
- Any exception raised while running a check becomes ``{ok: false, error: <message>}``.
- Optional per-check timeout turns a hung check into an ordinary failure.
- Failures are logged at WARNING, passes at DEBUG.
"""

from __future__ import annotations

import logging

from roadmap_verifier.domain.models import Check
from roadmap_verifier.observability.logging import correlation_scope
from roadmap_verifier.utils.concurrency import run_with_timeout
from roadmap_verifier.verification.checks import DEFAULT_CHECK_REGISTRY
from roadmap_verifier.verification.checks.base import (
    CheckContext,
    CheckExecutionError,
    CheckResult,
    CheckRunnerRegistry,
)

logger = logging.getLogger(__name__)


def unsupported_type_message(check_type: str) -> str:
    return f"unsupported check type: {check_type.strip() or 'unknown'}"


async def execute_check(
    check: Check,
    context: CheckContext,
    *,
    registry: CheckRunnerRegistry | None = None,
    timeout_seconds: float | None = None,
) -> CheckResult:
    """Run ``check`` and return its result; never raises for check-level failures."""

    runners = registry if registry is not None else DEFAULT_CHECK_REGISTRY
    check_type = check.type.strip()

    with correlation_scope(check_type=check_type or "unknown"):
        result = await _execute(check, context, runners, timeout_seconds)
        if result.ok is True:
            logger.debug("check passed", extra={"note": result.note})
        else:
            logger.warning(
                "check did not pass",
                extra={"status": result.status.value, "error": result.error, "note": result.note},
            )
        return result


async def _execute(
    check: Check,
    context: CheckContext,
    runners: CheckRunnerRegistry,
    timeout_seconds: float | None,
) -> CheckResult:
    check_type = check.type.strip()
    try:
        runner = runners.create(check_type) if check_type else None
    except ValueError as exc:
        return CheckResult.failure(check_type, str(exc))
    if runner is None:
        return CheckResult.failure(check_type, unsupported_type_message(check_type))

    try:
        if timeout_seconds is not None and timeout_seconds > 0:
            return await run_with_timeout(runner.run(check, context), timeout_seconds)
        return await runner.run(check, context)
    except CheckExecutionError as exc:
        return CheckResult.failure(check_type, exc.message, note=exc.note)
    except TimeoutError:
        return CheckResult.failure(
            check_type,
            f"check timed out after {timeout_seconds} seconds",
            note="timed out",
        )
    except Exception as exc:
        logger.debug("check raised", exc_info=True)
        return CheckResult.failure(check_type, str(exc) or type(exc).__name__)


__all__ = ["execute_check", "unsupported_type_message"]
