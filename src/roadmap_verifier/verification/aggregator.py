"""
roadmap-verifier: status aggregator

File: src/roadmap_verifier/verification/aggregator.py
Last updated: 2026-10-19

Purpose
- Execute every check of a canonical ``Document`` and fold the results into a
  ``StatusReport`` plus a ``RunSummary``.

Functional requirements
- Checks of an item run concurrently under a run-wide concurrency limit; results keep
  declared order.
- ``done`` is the AND over check results; an item without checks is done.
- Manual items still run their checks, but their ``done`` comes from the manual-state
  mapping (``manual_key`` then ``id``), then the document's ``done`` hint, else ``False``.
- Items and weeks carry passed/failed/pending progress tallies; the run carries a
  ``RunSummary``.
- Weeks with zero items are omitted; ``generated_at`` is stamped as ISO-8601 UTC.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from roadmap_verifier.domain.models import Check, Document, Item, JSONValue, Week
from roadmap_verifier.observability.logging import correlation_scope
from roadmap_verifier.utils.concurrency import ConcurrencyLimit, gather_ordered
from roadmap_verifier.verification.checks.base import (
    CheckContext,
    CheckResult,
    CheckRunnerRegistry,
    CheckStatus,
)
from roadmap_verifier.verification.executor import execute_check

ManualState = Mapping[str, bool]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class Progress:
    """Passed/failed/pending tallies with a percentage rounded to two places."""

    passed: int = 0
    failed: int = 0
    pending: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.pending

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.passed / self.total * 100, 2)

    def __add__(self, other: Progress) -> Progress:
        return Progress(
            passed=self.passed + other.passed,
            failed=self.failed + other.failed,
            pending=self.pending + other.pending,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "passed": self.passed,
            "failed": self.failed,
            "pending": self.pending,
            "total": self.total,
            "percent": self.percent,
        }


def item_progress(results: Sequence[CheckResult], *, done: bool, manual: bool) -> Progress:
    """Per-check tallies; manual or check-less items count as one unit of work."""

    if manual or not results:
        return Progress(passed=1) if done else Progress(failed=1)
    statuses = [result.status for result in results]
    return Progress(
        passed=statuses.count(CheckStatus.PASS),
        failed=statuses.count(CheckStatus.FAIL),
        pending=statuses.count(CheckStatus.UNKNOWN),
    )


@dataclass(frozen=True, slots=True)
class ItemStatus:
    id: str
    name: str
    done: bool
    checks: tuple[CheckResult, ...] = ()
    manual: bool = False
    progress: Progress = field(default_factory=Progress)

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "id": self.id,
            "name": self.name,
            "done": self.done,
            "checks": [result.to_dict() for result in self.checks],
            "progress": self.progress.to_dict(),
        }
        if self.manual:
            payload["manual"] = True
        return payload


@dataclass(frozen=True, slots=True)
class WeekStatus:
    id: str
    title: str
    items: tuple[ItemStatus, ...] = ()

    @property
    def progress(self) -> Progress:
        return sum((item.progress for item in self.items), Progress())

    @property
    def items_done(self) -> int:
        return sum(1 for item in self.items if item.done)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "title": self.title,
            "items": [item.to_dict() for item in self.items],
            "progress": self.progress.to_dict(),
            "items_done": self.items_done,
        }


@dataclass(frozen=True, slots=True)
class StatusReport:
    generated_at: str
    weeks: tuple[WeekStatus, ...] = ()

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "generated_at": self.generated_at,
            "weeks": [week.to_dict() for week in self.weeks],
        }

    def iter_results(self) -> tuple[CheckResult, ...]:
        return tuple(
            result for week in self.weeks for item in week.items for result in item.checks
        )


@dataclass(slots=True)
class RunSummary:
    """Run-wide tallies; ``failed`` increments once per failing check."""

    passed: int = 0
    failed: int = 0
    unknown: int = 0
    items_done: int = 0
    items_total: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.unknown

    @property
    def all_passed(self) -> bool:
        return self.failed == 0 and self.unknown == 0

    def record(self, result: CheckResult) -> None:
        status = result.status
        if status is CheckStatus.PASS:
            self.passed += 1
        elif status is CheckStatus.FAIL:
            self.failed += 1
        else:
            self.unknown += 1

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "passed": self.passed,
            "failed": self.failed,
            "unknown": self.unknown,
            "total": self.total,
            "items_done": self.items_done,
            "items_total": self.items_total,
        }


@dataclass(frozen=True, slots=True)
class ExecutedItem:
    item: Item
    results: tuple[CheckResult, ...] = ()


@dataclass(frozen=True, slots=True)
class ExecutedWeek:
    week: Week
    items: tuple[ExecutedItem, ...] = ()


@dataclass(slots=True)
class StatusAggregator:
    """Walks a document in order, running checks through the executor.

    ``execute`` runs every declared check (manual items included) and ``fold``
    turns the raw results into the report; ``aggregate`` does both.
    """

    context: CheckContext
    max_concurrency: int = 8
    check_timeout_seconds: float | None = None
    registry: CheckRunnerRegistry | None = None
    manual_state: ManualState = field(default_factory=dict)
    clock: Clock = field(default=_utc_now)

    async def aggregate(self, document: Document) -> tuple[StatusReport, RunSummary]:
        return self.fold(await self.execute(document))

    async def execute(self, document: Document) -> tuple[ExecutedWeek, ...]:
        limit = ConcurrencyLimit(self.max_concurrency)
        executed: list[ExecutedWeek] = []
        for week in document.weeks:
            items: list[ExecutedItem] = []
            with correlation_scope(week_id=week.id):
                for item in week.items:
                    with correlation_scope(item_id=item.id):
                        results = await gather_ordered(
                            (self._run(check) for check in item.checks),
                            limit=limit,
                        )
                    items.append(ExecutedItem(item=item, results=tuple(results)))
            executed.append(ExecutedWeek(week=week, items=tuple(items)))
        return tuple(executed)

    def fold(self, executed: Sequence[ExecutedWeek]) -> tuple[StatusReport, RunSummary]:
        summary = RunSummary()
        weeks: list[WeekStatus] = []
        for entry in executed:
            items = tuple(self._fold_item(executed_item, summary) for executed_item in entry.items)
            if items:
                weeks.append(WeekStatus(id=entry.week.id, title=entry.week.title, items=items))
        report = StatusReport(generated_at=_iso_utc(self.clock()), weeks=tuple(weeks))
        return report, summary

    def _fold_item(self, executed: ExecutedItem, summary: RunSummary) -> ItemStatus:
        item, results = executed.item, executed.results
        for result in results:
            summary.record(result)
        if item.manual:
            done = resolve_manual_done(item, self.manual_state)
        else:
            done = item_done(results)
        summary.items_total += 1
        if done:
            summary.items_done += 1
        return ItemStatus(
            id=item.id,
            name=item.name,
            done=done,
            checks=results,
            manual=item.manual,
            progress=item_progress(results, done=done, manual=item.manual),
        )

    async def _run(self, check: Check) -> CheckResult:
        return await execute_check(
            check,
            self.context,
            registry=self.registry,
            timeout_seconds=self.check_timeout_seconds,
        )


def item_done(results: Sequence[CheckResult]) -> bool:
    """AND over ``ok``; vacuously true for an empty result list."""

    return all(result.ok is True for result in results)


def resolve_manual_done(item: Item, manual_state: ManualState) -> bool:
    for key in dict.fromkeys((item.state_key, item.id)):
        if key in manual_state:
            return manual_state[key] is True
    if item.done is not None:
        return item.done
    return False


def _iso_utc(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "ExecutedItem",
    "ExecutedWeek",
    "ItemStatus",
    "ManualState",
    "Progress",
    "RunSummary",
    "StatusAggregator",
    "StatusReport",
    "WeekStatus",
    "item_done",
    "item_progress",
    "resolve_manual_done",
]
