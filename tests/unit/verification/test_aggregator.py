"""
roadmap-verifier: unit tests for status aggregation

File: tests/unit/verification/test_aggregator.py
Last updated: 2026-10-19

Purpose
- Validate item completion, manual state resolution, summary counters and report layout.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta, timezone

import pytest

from roadmap_verifier.domain.models import Check, Document, Item, Week
from roadmap_verifier.verification.aggregator import (
    Progress,
    RunSummary,
    StatusAggregator,
    item_done,
    resolve_manual_done,
)
from roadmap_verifier.verification.checks import (
    DEFAULT_CHECK_REGISTRY,
    CheckContext,
    CheckResult,
    CheckRunnerRegistry,
)
from roadmap_verifier.verification.transport import HttpResponse

FIXED_NOW = datetime(2026, 10, 19, 12, 30, 45, 123456, tzinfo=UTC)


class FakeFilesystem:
    def __init__(self, existing: set[str]) -> None:
        self.existing = existing

    async def exists(self, path: str) -> bool:
        return path in self.existing


class UnusedTransport:
    async def request(self, url: str, **kwargs: object) -> HttpResponse:
        raise AssertionError(f"unexpected request to {url}")


class _DelayedRunner:
    """Finishes in reverse declaration order to exercise ordering."""

    check_type = "delayed"

    async def run(self, check: Check, context: CheckContext) -> CheckResult:
        delay = float(check.detail or "0")
        await asyncio.sleep(delay)
        return CheckResult(ok=True, type=self.check_type, note=check.detail)


class _UndecidedRunner:
    check_type = "undecided"

    async def run(self, check: Check, context: CheckContext) -> CheckResult:
        return CheckResult(ok=None, type=self.check_type, note="no verdict")


def _aggregator(existing: set[str], **kwargs: object) -> StatusAggregator:
    context = CheckContext(filesystem=FakeFilesystem(existing), transport=UnusedTransport())
    return StatusAggregator(
        context=context,
        clock=lambda: FIXED_NOW,
        **kwargs,  # type: ignore[arg-type]
    )


def _files(*paths: str) -> Check:
    return Check(type="files_exist", files=paths)


def _document(*items: Item, extra_weeks: tuple[Week, ...] = ()) -> Document:
    return Document(weeks=(Week(id="w1", title="Week 1", items=items), *extra_weeks))


@pytest.mark.asyncio
async def test_item_with_all_passing_checks_is_done() -> None:
    document = _document(Item(id="a", name="A", checks=(_files("x"), _files("y"))))

    report, summary = await _aggregator({"x", "y"}).aggregate(document)

    item = report.weeks[0].items[0]
    assert item.done is True
    assert [result.ok for result in item.checks] == [True, True]
    assert summary.passed == 2
    assert summary.failed == 0


@pytest.mark.asyncio
async def test_one_failing_check_makes_the_item_not_done() -> None:
    document = _document(Item(id="a", name="A", checks=(_files("x"), _files("missing"))))

    report, summary = await _aggregator({"x"}).aggregate(document)

    item = report.weeks[0].items[0]
    assert item.done is False
    assert item.checks[1].missing == ("missing",)
    assert summary.failed == 1
    assert summary.all_passed is False


@pytest.mark.asyncio
async def test_item_without_checks_is_done() -> None:
    report, summary = await _aggregator(set()).aggregate(_document(Item(id="a", name="A")))

    assert report.weeks[0].items[0].done is True
    assert report.weeks[0].items[0].checks == ()
    assert summary.items_done == 1
    assert summary.total == 0


@pytest.mark.asyncio
async def test_manual_items_take_done_from_manual_state() -> None:
    document = _document(
        Item(id="hire", name="Hire", manual=True),
        Item(id="brief", name="Brief", manual=True, manual_key="brief-key", done=True),
        Item(id="launch", name="Launch", manual=True),
    )

    report, summary = await _aggregator(set(), manual_state={"hire": True}).aggregate(document)

    hire, brief, launch = report.weeks[0].items
    assert (hire.done, brief.done, launch.done) == (True, True, False)
    assert all(item.manual and item.checks == () for item in (hire, brief, launch))
    assert hire.to_dict()["manual"] is True
    assert summary.items_done == 2
    assert summary.total == 0
    assert (hire.progress.passed, launch.progress.failed) == (1, 1)


@pytest.mark.asyncio
async def test_manual_items_still_run_their_checks() -> None:
    document = _document(
        Item(id="a", name="A", manual=True, checks=(_files("x.txt"),)),
        Item(id="b", name="B", manual=True, checks=(_files("present"), _files("gone"))),
    )

    report, summary = await _aggregator({"present"}, manual_state={"b": True}).aggregate(
        document
    )

    first, second = report.weeks[0].items
    assert [result.ok for result in first.checks] == [False]
    assert first.done is False
    assert [result.ok for result in second.checks] == [True, False]
    assert second.done is True
    assert (summary.passed, summary.failed, summary.total) == (1, 2, 3)
    assert summary.items_done == 1
    assert second.progress == Progress(passed=1, failed=1)


@pytest.mark.asyncio
async def test_item_and_week_progress_tallies() -> None:
    document = _document(
        Item(id="a", name="A", checks=(_files("x"), _files("y"), _files("z"))),
        Item(id="b", name="B"),
        Item(id="c", name="C", checks=(Check(type="undecided"),)),
    )
    registry = DEFAULT_CHECK_REGISTRY.copy()
    registry.register_external("undecided", _UndecidedRunner)

    report, _ = await _aggregator({"x", "y"}, registry=registry).aggregate(document)

    week = report.weeks[0]
    a, b, c = week.items
    assert a.progress.to_dict() == {
        "passed": 2,
        "failed": 1,
        "pending": 0,
        "total": 3,
        "percent": 66.67,
    }
    assert b.progress == Progress(passed=1)
    assert c.progress == Progress(pending=1)
    assert week.progress == Progress(passed=3, failed=1, pending=1)
    assert week.to_dict()["progress"] == {
        "passed": 3,
        "failed": 1,
        "pending": 1,
        "total": 5,
        "percent": 60.0,
    }
    assert week.to_dict()["items_done"] == 1


@pytest.mark.asyncio
async def test_empty_weeks_are_omitted() -> None:
    document = _document(
        Item(id="a", name="A"),
        extra_weeks=(Week(id="w2", title="Empty week"),),
    )

    report, _ = await _aggregator(set()).aggregate(document)

    assert [week.id for week in report.weeks] == ["w1"]


@pytest.mark.asyncio
async def test_results_keep_declared_order_under_concurrency() -> None:
    registry = DEFAULT_CHECK_REGISTRY.copy()
    registry.register_external("delayed", _DelayedRunner)
    checks = tuple(Check(type="delayed", detail=delay) for delay in ("0.03", "0.02", "0.01", "0"))
    document = _document(Item(id="a", name="A", checks=checks))

    report, _ = await _aggregator(set(), registry=registry, max_concurrency=2).aggregate(document)

    assert [result.note for result in report.weeks[0].items[0].checks] == [
        "0.03",
        "0.02",
        "0.01",
        "0",
    ]


@pytest.mark.asyncio
async def test_report_layout_and_generated_at() -> None:
    document = _document(Item(id="a", name="A", checks=(_files("x"),)))

    report, summary = await _aggregator({"x"}).aggregate(document)

    assert report.to_dict() == {
        "generated_at": "2026-10-19T12:30:45.123Z",
        "weeks": [
            {
                "id": "w1",
                "title": "Week 1",
                "items": [
                    {
                        "id": "a",
                        "name": "A",
                        "done": True,
                        "checks": [
                            {
                                "type": "files_exist",
                                "ok": True,
                                "status": "pass",
                                "note": "1 file(s) present",
                                "files": ["x"],
                            }
                        ],
                        "progress": {
                            "passed": 1,
                            "failed": 0,
                            "pending": 0,
                            "total": 1,
                            "percent": 100.0,
                        },
                    }
                ],
                "progress": {
                    "passed": 1,
                    "failed": 0,
                    "pending": 0,
                    "total": 1,
                    "percent": 100.0,
                },
                "items_done": 1,
            }
        ],
    }
    assert summary.to_dict() == {
        "passed": 1,
        "failed": 0,
        "unknown": 0,
        "total": 1,
        "items_done": 1,
        "items_total": 1,
    }


@pytest.mark.asyncio
async def test_generated_at_is_normalized_to_utc() -> None:
    offset_now = datetime(2026, 10, 19, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    context = CheckContext(filesystem=FakeFilesystem(set()), transport=UnusedTransport())

    report, _ = await StatusAggregator(context=context, clock=lambda: offset_now).aggregate(
        Document()
    )

    assert report.generated_at == "2026-10-19T12:00:00.000Z"


def test_item_done_is_vacuously_true_and_strict_about_unknown() -> None:
    assert item_done([]) is True
    assert item_done([CheckResult(ok=True), CheckResult(ok=None)]) is False


def test_resolve_manual_done_prefers_manual_key_then_id_then_hint() -> None:
    item = Item(id="a", name="A", manual=True, manual_key="k", done=True)

    assert resolve_manual_done(item, {"k": False, "a": True}) is False
    assert resolve_manual_done(item, {"a": False}) is False
    assert resolve_manual_done(item, {}) is True
    assert resolve_manual_done(Item(id="b", name="B", manual=True), {}) is False


def test_run_summary_counts_each_status_once() -> None:
    summary = RunSummary()
    for ok in (True, False, False, None):
        summary.record(CheckResult(ok=ok))

    assert (summary.passed, summary.failed, summary.unknown, summary.total) == (1, 2, 1, 4)


def test_custom_registry_is_isolated_from_default() -> None:
    registry: CheckRunnerRegistry = DEFAULT_CHECK_REGISTRY.copy()
    registry.register_external("delayed", _DelayedRunner)

    assert not DEFAULT_CHECK_REGISTRY.contains("delayed")
