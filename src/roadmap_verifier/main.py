"""
roadmap-verifier: process entrypoint and exit-code contract.

File: src/roadmap_verifier/main.py
Last updated: 2026-10-19

Purpose
- Map whatever ``run_cli`` returns or raises onto one of four exit codes.

Functional requirements
- Document, config and missing-file problems anywhere in the exception chain exit 2
  with a one-line message on stderr.
- Anything else exits 4 with the traceback on stderr.
"""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from roadmap_verifier.config.loader import ConfigLoadError
from roadmap_verifier.config.schema import ConfigValidationError
from roadmap_verifier.ingestion.normalizer import DocumentError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    CHECKS_FAILED = 1
    INPUT_ERROR = 2
    INTERNAL_ERROR = 4


_INPUT_ERRORS: Final[tuple[type[BaseException], ...]] = (
    ConfigLoadError,
    ConfigValidationError,
    DocumentError,
    FileNotFoundError,
    NotADirectoryError,
    PermissionError,
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return its exit code; never raises."""

    from roadmap_verifier.cli import run_cli

    try:
        outcome: object = run_cli(argv)
    except SystemExit as exc:
        outcome = exc.code
    except BaseException as exc:  # noqa: BLE001 - process boundary
        if any(isinstance(link, _INPUT_ERRORS) for link in _causes(exc)):
            print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
            return ExitCode.INPUT_ERROR
        traceback.print_exception(exc, file=sys.stderr)
        return ExitCode.INTERNAL_ERROR

    if outcome is None:
        return ExitCode.SUCCESS
    if isinstance(outcome, int) and outcome in {code.value for code in ExitCode}:
        return outcome
    if isinstance(outcome, str) and outcome.strip():
        print(outcome.strip(), file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Walk ``__cause__``/implicit ``__context__`` links, stopping on cycles."""

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


__all__ = ["ExitCode", "cli_entrypoint"]
