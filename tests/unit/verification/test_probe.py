"""
roadmap-verifier: unit tests for the read-only probe negotiator

File: tests/unit/verification/test_probe.py
Last updated: 2026-10-19

Purpose
- Validate request-shape negotiation and response interpretation against scripted services.

What this test file should cover
- A service that only understands one encoding is still answered.
- Determinism for a fixed service.
- Vocabulary, numeric, record and array-of-records interpretation.
- Not-configured and exhausted outcomes.
- Header parsing and case-insensitive merging.

Functional requirements
- Offline; the transport is an in-memory fake.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping

import pytest
from hypothesis import given
from hypothesis import strategies as st

from roadmap_verifier.verification.probe import (
    NOT_CONFIGURED_MESSAGE,
    PROBE_ATTEMPTS,
    interpret_payload,
    interpret_value,
    match_numeric,
    match_vocabulary,
    merge_probe_headers,
    parse_probe_headers,
    probe_read_only_check,
)
from roadmap_verifier.verification.transport import HttpResponse

PROBE_URL = "https://probe.test/read-only-checks"

Handler = Callable[[object], HttpResponse]


class ScriptedService:
    """Fake transport that hands the decoded request body to ``handler``."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.bodies: list[str | None] = []
        self.headers: list[dict[str, str]] = []

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> HttpResponse:
        assert url == PROBE_URL
        assert method == "POST"
        self.bodies.append(body)
        self.headers.append(dict(headers or {}))
        decoded = json.loads(body) if body is not None else None
        return self.handler(decoded)


def _symbol_only(decoded: object) -> HttpResponse:
    if isinstance(decoded, dict) and isinstance(decoded.get("symbol"), str):
        query = decoded["symbol"]
        return HttpResponse(200, json.dumps({"results": {query: {"ok": True}}}))
    return HttpResponse(400, json.dumps({"error": "unsupported request shape"}))


def _always(payload: object, status: int = 200) -> Handler:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return lambda decoded: HttpResponse(status, text)


@pytest.mark.asyncio
async def test_symbol_only_service_is_answered_via_symbol_attempt() -> None:
    service = ScriptedService(_symbol_only)

    outcome = await probe_read_only_check("public.users", url=PROBE_URL, transport=service)

    assert outcome.ok is True
    assert outcome.attempt == "symbol"
    assert outcome.note == "confirmed via symbol"
    assert [json.loads(body) for body in service.bodies if body is not None] == [
        {"queries": ["public.users"]},
        {"query": "public.users"},
        {"symbols": ["public.users"]},
        {"symbol": "public.users"},
    ]


@pytest.mark.asyncio
async def test_negotiation_is_deterministic() -> None:
    first = await probe_read_only_check(
        "public.users", url=PROBE_URL, transport=ScriptedService(_symbol_only)
    )
    second = await probe_read_only_check(
        "public.users", url=PROBE_URL, transport=ScriptedService(_symbol_only)
    )

    assert first == second


@pytest.mark.asyncio
async def test_missing_url_makes_no_requests() -> None:
    service = ScriptedService(_always({"ok": True}))

    outcome = await probe_read_only_check("public.users", url="  ", transport=service)

    assert outcome.ok is False
    assert outcome.error == NOT_CONFIGURED_MESSAGE
    assert outcome.attempt is None
    assert service.bodies == []


@pytest.mark.asyncio
async def test_negative_verdict_stops_negotiation() -> None:
    service = ScriptedService(_always({"checks": [{"query": "public.ghost", "status": "fail"}]}))

    outcome = await probe_read_only_check("public.ghost", url=PROBE_URL, transport=service)

    assert outcome.ok is False
    assert outcome.attempt == "queries"
    assert outcome.note == "not found via queries"
    assert len(service.bodies) == 1


@pytest.mark.asyncio
async def test_exhaustion_reports_last_status_and_diagnostic() -> None:
    service = ScriptedService(_always({"message": "bad shape"}, status=422))

    outcome = await probe_read_only_check("public.users", url=PROBE_URL, transport=service)

    assert outcome.ok is False
    assert outcome.status == 422
    assert outcome.error == "422 bad shape"
    assert outcome.attempt == PROBE_ATTEMPTS[-1].label
    assert len(service.bodies) == len(PROBE_ATTEMPTS)


@pytest.mark.asyncio
async def test_transport_errors_move_on_to_the_next_encoding() -> None:
    calls: list[object] = []

    def flaky(decoded: object) -> HttpResponse:
        calls.append(decoded)
        if len(calls) == 1:
            raise ConnectionError("connection reset")
        return HttpResponse(200, "OK")

    outcome = await probe_read_only_check(
        "public.users", url=PROBE_URL, transport=ScriptedService(flaky)
    )

    assert outcome.ok is True
    assert outcome.attempt == "query"


@pytest.mark.asyncio
async def test_plain_text_success_is_accepted() -> None:
    outcome = await probe_read_only_check(
        "public.users", url=PROBE_URL, transport=ScriptedService(_always("ok:true"))
    )

    assert outcome.ok is True
    assert outcome.attempt == "queries"


@pytest.mark.asyncio
async def test_headers_are_merged_over_content_type() -> None:
    service = ScriptedService(_always({"ok": True}))

    await probe_read_only_check(
        "q",
        url=PROBE_URL,
        transport=service,
        headers={"Authorization": "Bearer configured", "X-Team": "core"},
        request_headers={"authorization": "Bearer per-call"},
    )

    sent = service.headers[0]
    assert sent["content-type"] == "application/json"
    assert sent["authorization"] == "Bearer per-call"
    assert "Authorization" not in sent
    assert sent["X-Team"] == "core"


# ---------------------------------------------------------------------------
# Response interpretation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        (True, True),
        ({"ok": False}, False),
        ({"results": {"q": True}}, True),
        ({"results": {"q": "allowed"}}, True),
        ({"result": {"q": 0}}, False),
        ({"data": {"results": {"q": {"status": "passed"}}}}, True),
        ({"payload": {"q": "denied"}}, False),
        ({"checks": [{"symbol": "other", "ok": False}, {"symbol": "q", "ok": True}]}, True),
        ([{"name": "q", "status": "success"}], True),
        ([{"name": "other", "ok": True}], None),
        ({"results": {"other": True}}, None),
        ({"results": {"q": "pending"}}, None),
        ("true", None),
        (None, None),
    ],
)
def test_interpret_payload(payload: object, expected: bool | None) -> None:
    assert interpret_payload("q", payload) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1, True),
        (0, False),
        (1.0, True),
        (2, None),
        (True, None),
        (float("inf"), None),
    ],
)
def test_match_numeric(value: object, expected: bool | None) -> None:
    assert match_numeric(value) is expected


@pytest.mark.parametrize(
    ("word", "expected"),
    [
        (" PASS ", True),
        ("Successful", True),
        ("allow", True),
        ("error", False),
        ("Denied", False),
        ("maybe", None),
    ],
)
def test_match_vocabulary(word: str, expected: bool | None) -> None:
    assert match_vocabulary(word) is expected


@given(st.text(max_size=30))
def test_interpret_value_on_text_agrees_with_vocabulary(word: str) -> None:
    assert interpret_value(word) is match_vocabulary(word)


@given(st.booleans())
def test_interpret_value_on_booleans_is_identity(flag: bool) -> None:
    assert interpret_value(flag) is flag
    assert interpret_value({"ok": flag}) is flag


# ---------------------------------------------------------------------------
# Header helpers
# ---------------------------------------------------------------------------


def test_parse_probe_headers_accepts_json_and_pairs() -> None:
    assert parse_probe_headers('{"Authorization": "Bearer t", "X-Empty": " "}') == {
        "Authorization": "Bearer t"
    }
    assert parse_probe_headers("Authorization: Bearer t; X-Team: core\nbroken") == {
        "Authorization": "Bearer t",
        "X-Team": "core",
    }
    assert parse_probe_headers("[1, 2]") == {}
    assert parse_probe_headers(None) == {}
    assert parse_probe_headers(42) == {}


def test_merge_probe_headers_later_layers_win_case_insensitively() -> None:
    merged = merge_probe_headers(
        {"Content-Type": "text/plain", "X-A": "1"},
        None,
        {"content-type": "application/json"},
    )

    assert merged == {"content-type": "application/json", "X-A": "1"}
