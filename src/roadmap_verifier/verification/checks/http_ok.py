"""
roadmap-verifier: http_ok runner

File: src/roadmap_verifier/verification/checks/http_ok.py
Last updated: 2026-10-19

Purpose
- GET a URL and require a 2xx response whose body contains every ``must_match`` substring.

Functional requirements
- Non-2xx responses fail and echo the status code plus a short excerpt of the body.
- Missing substrings are listed in the note (and in ``missing``).
"""

from __future__ import annotations

from typing import Final

from roadmap_verifier.domain.models import Check, CheckType
from roadmap_verifier.verification.checks.base import (
    CheckContext,
    CheckExecutionError,
    CheckResult,
    register_builtin_check,
)

BODY_EXCERPT_CHARS: Final[int] = 200


@register_builtin_check(CheckType.HTTP_OK)
class HttpOkRunner:
    check_type = CheckType.HTTP_OK.value

    async def run(self, check: Check, context: CheckContext) -> CheckResult:
        url = (check.url or "").strip()
        if not url:
            raise CheckExecutionError("http_ok check requires a url", note="no url declared")

        response = await context.transport.request(url, method="GET")
        if not response.is_success:
            excerpt = _excerpt(response.text)
            error = f"HTTP {response.status}" + (f": {excerpt}" if excerpt else "")
            return CheckResult(
                ok=False,
                type=self.check_type,
                note=f"HTTP {response.status}",
                error=error,
                code=response.status,
            )

        missing = tuple(needle for needle in check.must_match if needle not in response.text)
        if missing:
            return CheckResult(
                ok=False,
                type=self.check_type,
                note=f"missing text: {', '.join(missing)}",
                code=response.status,
                missing=missing,
            )
        return CheckResult(
            ok=True,
            type=self.check_type,
            note=f"HTTP {response.status}",
            code=response.status,
        )


def _excerpt(text: str) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) <= BODY_EXCERPT_CHARS:
        return collapsed
    return collapsed[:BODY_EXCERPT_CHARS] + "..."


__all__ = ["BODY_EXCERPT_CHARS", "HttpOkRunner"]
