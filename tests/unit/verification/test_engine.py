"""
roadmap-verifier: unit tests for the verification engine

File: tests/unit/verification/test_engine.py
Last updated: 2026-10-19

Purpose
- Validate run phases, idempotence and fatal document handling end to end with fakes.

What this test file should cover
- Two runs over unchanged inputs differ only in ``generated_at``.
- A ``DocumentError`` aborts before any check executes.
- Engine config validation and probe header layering.

Functional requirements
- Offline; filesystem and transport are fakes.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from roadmap_verifier.ingestion.normalizer import DocumentError, normalize_document
from roadmap_verifier.verification import (
    EngineConfig,
    RunPhase,
    VerificationEngine,
    run_verification,
    verify_file,
)
from roadmap_verifier.verification.transport import HttpResponse

ROADMAP = {
    "weeks": [
        {
            "id": "w1",
            "title": "Foundations",
            "items": [
                {
                    "id": "readme",
                    "name": "README",
                    "checks": [{"type": "files_exist", "files": ["README.md"]}],
                },
                {"id": "health", "name": "Health", "checks": ["https://svc.test/health"]},
                {
                    "id": "users",
                    "name": "Users",
                    "checks": [{"type": "sql_exists", "query": "public.users"}],
                },
            ],
        },
        {"id": "w2", "title": "Later", "items": []},
    ]
}


class RecordingFilesystem:
    def __init__(self, existing: set[str]) -> None:
        self.existing = existing
        self.calls: list[str] = []

    async def exists(self, path: str) -> bool:
        self.calls.append(path)
        return path in self.existing


class RecordingTransport:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, str]]] = []

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> HttpResponse:
        self.calls.append((url, method, dict(headers or {})))
        if url == "https://svc.test/health":
            return HttpResponse(200, "healthy")
        return HttpResponse(200, '{"results": {"public.users": true}}')


def _ticking_clock() -> object:
    start = datetime(2026, 10, 19, tzinfo=UTC)
    counter = itertools.count()
    return lambda: start + timedelta(seconds=next(counter))


def _engine(**kwargs: object) -> tuple[VerificationEngine, RecordingFilesystem, RecordingTransport]:
    filesystem = RecordingFilesystem({"README.md"})
    transport = RecordingTransport()
    config = EngineConfig(probe_url="https://probe.test/check")
    engine = VerificationEngine(
        config,
        filesystem=filesystem,
        transport=transport,
        clock=_ticking_clock(),  # type: ignore[arg-type]
        **kwargs,  # type: ignore[arg-type]
    )
    return engine, filesystem, transport


@pytest.mark.asyncio
async def test_run_reports_every_check_and_advances_phases() -> None:
    phases: list[RunPhase] = []
    engine, _, _ = _engine(on_phase=phases.append)

    result = await engine.run(ROADMAP, run_id="run-1")

    assert result.run_id == "run-1"
    assert result.summary.passed == 3
    assert result.summary.all_passed is True
    assert [week.id for week in result.report.weeks] == ["w1"]
    assert result.report.weeks[0].items[2].checks[0].attempt == "queries"
    assert phases == [
        RunPhase.NORMALIZING,
        RunPhase.EXECUTING,
        RunPhase.AGGREGATING,
        RunPhase.REPORTED,
    ]
    assert result.phases == tuple(phases)


@pytest.mark.asyncio
async def test_aggregating_is_signalled_between_execution_and_report() -> None:
    seen: list[tuple[RunPhase, int]] = []
    filesystem = RecordingFilesystem({"README.md"})
    engine = VerificationEngine(
        EngineConfig(probe_url="https://probe.test/check"),
        filesystem=filesystem,
        transport=RecordingTransport(),
        on_phase=lambda phase: seen.append((phase, len(filesystem.calls))),
    )

    await engine.run(ROADMAP)

    assert seen[1:] == [
        (RunPhase.EXECUTING, 0),
        (RunPhase.AGGREGATING, 1),
        (RunPhase.REPORTED, 1),
    ]


@pytest.mark.asyncio
async def test_concurrent_runs_keep_their_own_phase_history() -> None:
    engine, _, _ = _engine()

    first, second = await asyncio.gather(
        engine.run(ROADMAP, run_id="run-a"),
        engine.run(ROADMAP, run_id="run-b"),
    )

    expected = (
        RunPhase.NORMALIZING,
        RunPhase.EXECUTING,
        RunPhase.AGGREGATING,
        RunPhase.REPORTED,
    )
    assert (first.run_id, second.run_id) == ("run-a", "run-b")
    assert first.phases == second.phases == expected


@pytest.mark.asyncio
async def test_runs_are_idempotent_apart_from_generated_at() -> None:
    engine, _, _ = _engine()

    first = (await engine.run(ROADMAP)).report.to_dict()
    second = (await engine.run(ROADMAP)).report.to_dict()

    assert first["generated_at"] != second["generated_at"]
    first.pop("generated_at")
    second.pop("generated_at")
    assert first == second


@pytest.mark.asyncio
async def test_document_error_aborts_before_any_check() -> None:
    phases: list[RunPhase] = []
    engine, filesystem, transport = _engine(on_phase=phases.append)

    with pytest.raises(DocumentError):
        await engine.run("just a sentence")

    assert filesystem.calls == []
    assert transport.calls == []
    assert phases == [RunPhase.NORMALIZING, RunPhase.IDLE]


@pytest.mark.asyncio
async def test_manual_item_declaring_checks_reports_their_results() -> None:
    engine, filesystem, _ = _engine()
    roadmap = {
        "weeks": [
            {
                "id": "w1",
                "title": "W",
                "items": [
                    {
                        "id": "a",
                        "name": "A",
                        "manual": True,
                        "checks": [{"type": "files_exist", "files": ["x.txt"]}],
                    }
                ],
            }
        ]
    }

    result = await engine.run(roadmap, manual_state={"a": True})

    (item,) = result.report.weeks[0].items
    assert len(item.checks) == 1
    assert item.checks[0].missing == ("x.txt",)
    assert item.manual is True
    assert item.done is True
    assert filesystem.calls == ["x.txt"]
    assert result.summary.failed == 1


@pytest.mark.asyncio
async def test_canonical_documents_are_accepted_as_is() -> None:
    engine, _, _ = _engine()
    document = normalize_document(ROADMAP)

    result = await engine.run(document)

    assert result.summary.total == 3


@pytest.mark.asyncio
async def test_per_run_probe_headers_override_config_headers() -> None:
    filesystem = RecordingFilesystem({"README.md"})
    transport = RecordingTransport()
    config = EngineConfig(
        probe_url="https://probe.test/check",
        probe_headers={"Authorization": "Bearer configured"},
    )

    await run_verification(
        ROADMAP,
        config=config,
        filesystem=filesystem,
        transport=transport,
        probe_headers={"authorization": "Bearer per-run"},
    )

    probe_calls = [call for call in transport.calls if call[0] == "https://probe.test/check"]
    assert probe_calls[0][2]["authorization"] == "Bearer per-run"
    assert "Authorization" not in probe_calls[0][2]


@pytest.mark.asyncio
async def test_verify_file_reads_yaml_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "roadmap.yml"
    path.write_text(
        "weeks:\n  - title: W\n    items:\n      - name: Docs\n        files: [README.md]\n",
        encoding="utf-8",
    )

    result = await verify_file(
        path,
        filesystem=RecordingFilesystem({"README.md"}),
        transport=RecordingTransport(),
    )

    assert result.summary.passed == 1


@pytest.mark.asyncio
async def test_verify_file_missing_path_is_a_document_error(tmp_path: Path) -> None:
    with pytest.raises(DocumentError, match="does not exist"):
        await verify_file(
            tmp_path / "missing.yml",
            filesystem=RecordingFilesystem(set()),
            transport=RecordingTransport(),
        )


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_concurrency": 0},
        {"http_timeout_seconds": 0},
        {"check_timeout_seconds": -1.0},
    ],
)
def test_engine_config_rejects_invalid_values(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)  # type: ignore[arg-type]
