"""
roadmap-verifier: verification engine

File: src/roadmap_verifier/verification/engine.py
Last updated: 2026-10-19

Purpose
- Drive one verification run: normalize the document, execute its checks, aggregate the
  results into a status report.

Functional requirements
- Run phases advance ``idle -> normalizing -> executing -> aggregating -> reported``;
  each run records its own history on ``VerificationResult.phases``.
- A ``DocumentError`` aborts the run before any check executes.
- Check-level failures never escape; they are carried on their own ``CheckResult``.
- Running twice against unchanged inputs yields identical output apart from ``generated_at``.

Non-functional requirements
- ``EngineConfig`` is an immutable snapshot read once at the call boundary.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType

from roadmap_verifier.domain.models import Document
from roadmap_verifier.ingestion.normalizer import load_document, normalize_document
from roadmap_verifier.observability.logging import correlation_scope
from roadmap_verifier.verification.aggregator import (
    Clock,
    ManualState,
    RunSummary,
    StatusAggregator,
    StatusReport,
)
from roadmap_verifier.verification.checks.base import (
    CheckContext,
    CheckRunnerRegistry,
    ProbeSettings,
)
from roadmap_verifier.verification.filesystem import Filesystem, LocalFilesystem
from roadmap_verifier.verification.transport import (
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    HttpTransport,
    HttpxTransport,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


class RunPhase(StrEnum):
    IDLE = "idle"
    NORMALIZING = "normalizing"
    EXECUTING = "executing"
    AGGREGATING = "aggregating"
    REPORTED = "reported"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Frozen run configuration; safe for concurrent reads."""

    project_root: Path = field(default_factory=Path.cwd)
    probe_url: str | None = None
    probe_headers: Mapping[str, str] = field(default_factory=dict)
    http_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    check_timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "project_root", Path(self.project_root))
        object.__setattr__(self, "probe_headers", MappingProxyType(dict(self.probe_headers)))
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if self.http_timeout_seconds <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        if self.check_timeout_seconds is not None and self.check_timeout_seconds <= 0:
            raise ValueError("check_timeout_seconds must be > 0 when set")


@dataclass(frozen=True, slots=True)
class VerificationResult:
    report: StatusReport
    summary: RunSummary
    run_id: str
    phases: tuple[RunPhase, ...] = ()


PhaseListener = Callable[[RunPhase], None]


@dataclass(slots=True)
class _RunTracker:
    """Phase history of one run; each ``run`` call owns its own tracker."""

    run_id: str
    listener: PhaseListener | None = None
    history: list[RunPhase] = field(default_factory=list)

    def advance(self, phase: RunPhase) -> None:
        self.history.append(phase)
        logger.debug("run phase", extra={"phase": phase.value})
        if self.listener is not None:
            self.listener(phase)


class VerificationEngine:
    """Owns collaborators for a run; builds defaults from ``EngineConfig`` when not given.

    The engine holds no per-run state, so concurrent ``run`` calls do not interfere.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        filesystem: Filesystem | None = None,
        transport: HttpTransport | None = None,
        registry: CheckRunnerRegistry | None = None,
        clock: Clock | None = None,
        on_phase: PhaseListener | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._filesystem = filesystem or LocalFilesystem(self._config.project_root)
        self._transport = transport or HttpxTransport(
            timeout_seconds=self._config.http_timeout_seconds,
            user_agent=self._config.user_agent,
        )
        self._registry = registry
        self._clock = clock
        self._on_phase = on_phase

    @property
    def config(self) -> EngineConfig:
        return self._config

    async def run(
        self,
        raw: object,
        *,
        source: str | None = None,
        manual_state: ManualState | None = None,
        probe_headers: Mapping[str, str] | None = None,
        run_id: str | None = None,
    ) -> VerificationResult:
        """Verify a parsed document (mapping/list) or an already canonical ``Document``."""

        tracker = _RunTracker(run_id or uuid.uuid4().hex, self._on_phase)
        with correlation_scope(run_id=tracker.run_id):
            tracker.advance(RunPhase.NORMALIZING)
            try:
                document = (
                    raw if isinstance(raw, Document) else normalize_document(raw, source=source)
                )
            except Exception:
                tracker.advance(RunPhase.IDLE)
                raise
            return await self._verify(document, manual_state, probe_headers, tracker)

    async def run_file(
        self,
        path: str | Path,
        *,
        manual_state: ManualState | None = None,
        probe_headers: Mapping[str, str] | None = None,
        run_id: str | None = None,
    ) -> VerificationResult:
        tracker = _RunTracker(run_id or uuid.uuid4().hex, self._on_phase)
        with correlation_scope(run_id=tracker.run_id):
            tracker.advance(RunPhase.NORMALIZING)
            try:
                document = load_document(path)
            except Exception:
                tracker.advance(RunPhase.IDLE)
                raise
            return await self._verify(document, manual_state, probe_headers, tracker)

    async def _verify(
        self,
        document: Document,
        manual_state: ManualState | None,
        probe_headers: Mapping[str, str] | None,
        tracker: _RunTracker,
    ) -> VerificationResult:
        context = CheckContext(
            filesystem=self._filesystem,
            transport=self._transport,
            probe=ProbeSettings(
                url=self._config.probe_url,
                headers=self._config.probe_headers,
                request_headers=probe_headers or {},
            ),
        )
        aggregator = StatusAggregator(
            context=context,
            max_concurrency=self._config.max_concurrency,
            check_timeout_seconds=self._config.check_timeout_seconds,
            registry=self._registry,
            manual_state=dict(manual_state or {}),
        )
        if self._clock is not None:
            aggregator.clock = self._clock

        logger.info(
            "verification started",
            extra={"weeks": len(document.weeks), "checks": len(document.iter_checks())},
        )
        tracker.advance(RunPhase.EXECUTING)
        executed = await aggregator.execute(document)
        tracker.advance(RunPhase.AGGREGATING)
        report, summary = aggregator.fold(executed)
        tracker.advance(RunPhase.REPORTED)
        logger.info("verification finished", extra={"summary": summary.to_dict()})
        return VerificationResult(
            report=report,
            summary=summary,
            run_id=tracker.run_id,
            phases=tuple(tracker.history),
        )


async def run_verification(
    raw: object,
    *,
    config: EngineConfig | None = None,
    filesystem: Filesystem | None = None,
    transport: HttpTransport | None = None,
    manual_state: ManualState | None = None,
    probe_headers: Mapping[str, str] | None = None,
) -> VerificationResult:
    """One-shot helper over ``VerificationEngine.run``."""

    engine = VerificationEngine(config, filesystem=filesystem, transport=transport)
    return await engine.run(raw, manual_state=manual_state, probe_headers=probe_headers)


async def verify_file(
    path: str | Path,
    *,
    config: EngineConfig | None = None,
    filesystem: Filesystem | None = None,
    transport: HttpTransport | None = None,
    manual_state: ManualState | None = None,
    probe_headers: Mapping[str, str] | None = None,
) -> VerificationResult:
    engine = VerificationEngine(config, filesystem=filesystem, transport=transport)
    return await engine.run_file(path, manual_state=manual_state, probe_headers=probe_headers)


__all__ = [
    "DEFAULT_MAX_CONCURRENCY",
    "EngineConfig",
    "PhaseListener",
    "RunPhase",
    "VerificationEngine",
    "VerificationResult",
    "run_verification",
    "verify_file",
]
