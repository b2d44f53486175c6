"""
roadmap-verifier: status report sink

File: src/roadmap_verifier/reporting.py
Last updated: 2026-10-19

Purpose
- Serialize a ``StatusReport`` to deterministic JSON and write it atomically.
"""

from __future__ import annotations

import json
from pathlib import Path

from roadmap_verifier.utils.fs import atomic_write
from roadmap_verifier.verification.aggregator import StatusReport


def render_status_report(report: StatusReport) -> str:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False) + "\n"


def write_status_report(report: StatusReport, path: str | Path) -> Path:
    """Atomically write ``report`` as JSON to ``path`` and return the resolved target."""

    target = Path(path)
    atomic_write(target, render_status_report(report))
    return target


__all__ = ["render_status_report", "write_status_report"]
