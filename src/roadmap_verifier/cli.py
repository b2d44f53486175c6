"""Command-line interface router for roadmap-verifier."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from roadmap_verifier.config import dump_effective_config, load_config
from roadmap_verifier.config.loader import build_engine_config
from roadmap_verifier.ingestion.normalizer import DocumentError, coerce_done, normalize_roadmap_yaml
from roadmap_verifier.observability.logging import setup_logging, shutdown_logging
from roadmap_verifier.reporting import render_status_report, write_status_report
from roadmap_verifier.verification.engine import VerificationEngine


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="roadmap-verify",
        description=(
            "roadmap-verifier: check a roadmap's declared deliverables against reality.\n\n"
            "Common workflows:\n"
            "  roadmap-verify check                 Verify docs/roadmap.yml, write status JSON\n"
            "  roadmap-verify normalize FILE        Print the canonical form of a roadmap\n"
            "  roadmap-verify config                Show the effective (redacted) config\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to roadmap TOML config (default: ./roadmap.toml if present).",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help=(
            "Override a config value by dotted key (repeatable), "
            "e.g. execution.max_concurrency=4."
        ),
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Run every check in the roadmap and write the status report",
        description=(
            "Normalize the roadmap, execute its checks and write the status report.\n\n"
            "Exit codes: 0 all checks passed, 1 a check failed, 2 bad document or config.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    check_parser.add_argument(
        "roadmap_path",
        nargs="?",
        default=None,
        help="Roadmap document (default: project.roadmap_path).",
    )
    check_parser.add_argument(
        "--out",
        dest="status_path",
        default=None,
        help="Status report destination (default: project.status_path).",
    )
    check_parser.add_argument(
        "--manual-state",
        dest="manual_state_path",
        default=None,
        help="JSON object mapping manual item keys to completion state.",
    )
    check_parser.add_argument(
        "--no-write",
        action="store_true",
        default=False,
        help="Print the report to stdout instead of writing it.",
    )
    check_parser.add_argument(
        "--json", action="store_true", help="Emit the run summary as JSON on stdout"
    )
    check_parser.set_defaults(handler=_cmd_check)

    normalize_parser = subparsers.add_parser(
        "normalize",
        parents=[common],
        help="Print the canonical YAML form of a roadmap document",
    )
    normalize_parser.add_argument(
        "roadmap_path",
        nargs="?",
        default=None,
        help="Roadmap document (default: project.roadmap_path).",
    )
    normalize_parser.set_defaults(handler=_cmd_normalize)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective configuration with secrets redacted",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_check(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    engine_config = build_engine_config(config)
    roadmap_path = _resolve_path(args.roadmap_path, config["project"]["roadmap_path"])
    status_path = _resolve_path(args.status_path, config["project"]["status_path"])
    manual_state = _load_manual_state(args.manual_state_path)

    observability = config["observability"]
    run_id = uuid.uuid4().hex
    handle = setup_logging(
        observability,
        run_id=run_id,
        log_dir=observability["log_dir"] or None,
    )
    try:
        engine = VerificationEngine(engine_config)
        result = asyncio.run(
            engine.run_file(roadmap_path, manual_state=manual_state, run_id=run_id)
        )
    finally:
        shutdown_logging(handle)

    if args.no_write:
        sys.stdout.write(render_status_report(result.report))
    else:
        write_status_report(result.report, status_path)

    summary = result.summary
    if args.json:
        payload: dict[str, Any] = {
            "command": "check",
            "run_id": result.run_id,
            "roadmap_path": roadmap_path.as_posix(),
            "status_path": None if args.no_write else status_path.as_posix(),
            "summary": summary.to_dict(),
        }
        print(json.dumps(payload, sort_keys=True))
    elif not args.no_write:
        print(
            f"{summary.passed}/{summary.total} checks passed, {summary.failed} failed; "
            f"{summary.items_done}/{summary.items_total} items done -> {status_path.as_posix()}"
        )

    return 0 if summary.failed == 0 else 1


def _cmd_normalize(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    roadmap_path = _resolve_path(args.roadmap_path, config["project"]["roadmap_path"])
    try:
        text = roadmap_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CLIError(f"roadmap not found: {roadmap_path}") from exc
    try:
        sys.stdout.write(normalize_roadmap_yaml(text))
    except DocumentError as exc:
        raise CLIError(str(exc)) from exc
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    print(dump_effective_config(config))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    return load_config(args.config_path, cli_overrides=_parse_overrides(args.overrides))


def _parse_overrides(raw_overrides: Sequence[str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for raw in raw_overrides:
        key, separator, value = raw.partition("=")
        if not separator or not key.strip():
            raise CLIError(f"invalid --set value {raw!r}; expected KEY=VALUE")
        overrides[key.strip()] = value
    return overrides


def _resolve_path(explicit: str | None, configured: str) -> Path:
    if explicit is not None:
        return Path(explicit).expanduser().resolve()
    return Path(configured)


def _load_manual_state(path: str | None) -> dict[str, bool]:
    if path is None:
        return {}
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CLIError(f"manual state file not found: {path}") from exc
    except ValueError as exc:
        raise CLIError(f"manual state file is not valid JSON: {path}") from exc
    if not isinstance(payload, Mapping):
        raise CLIError("manual state must be a JSON object of key -> done")

    state: dict[str, bool] = {}
    for key, value in payload.items():
        done = coerce_done(value)
        if done is not None:
            state[str(key)] = done
    return state


__all__ = ["CLIError", "build_parser", "run_cli"]
