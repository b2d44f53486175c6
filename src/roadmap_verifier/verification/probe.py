"""
roadmap-verifier: read-only probe negotiator

File: src/roadmap_verifier/verification/probe.py
Last updated: 2026-10-19

Purpose
- Ask a read-only service whether a named database/infrastructure symbol exists, without
  knowing which request shape the service accepts.

Functional requirements
- Request shapes are tried in a fixed order (``queries``, ``query``, ``symbols``, ``symbol``,
  ``symbols_single``, ``raw``) until a response yields a definitive boolean.
- Response bodies are interpreted by an ordered list of typed matchers; the first definitive
  answer wins.
- Exhaustion produces an ``ok=False`` outcome carrying the last HTTP status and diagnostic.
- No probe URL means no network attempts and the ``READ_ONLY_CHECKS_URL not configured``
  diagnostic.

Non-functional requirements
- Stateless: attempts and matchers are pure functions; only the transport performs IO.
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Final, TypeGuard

from roadmap_verifier.domain.models import JSONValue
from roadmap_verifier.verification.transport import HttpTransport

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE: Final[str] = "READ_ONLY_CHECKS_URL not configured"
EXHAUSTED_MESSAGE: Final[str] = "unexpected read_only_checks response"
BASE_HEADERS: Final[Mapping[str, str]] = {"content-type": "application/json"}

POSITIVE_WORDS: Final[frozenset[str]] = frozenset(
    {"true", "ok", "pass", "passed", "success", "successful", "allow", "allowed"}
)
NEGATIVE_WORDS: Final[frozenset[str]] = frozenset({"false", "fail", "failed", "error", "denied"})
PLAIN_TEXT_SUCCESS: Final[frozenset[str]] = frozenset({"ok", "true", "ok:true"})

CONTAINER_KEYS: Final[tuple[str, ...]] = ("checks", "results", "result", "data")
IDENTIFYING_FIELDS: Final[tuple[str, ...]] = ("q", "query", "symbol", "id", "identifier", "name")
RECORD_STATUS_FIELDS: Final[tuple[str, ...]] = ("ok", "status", "allowed", "result")

_HEADER_SPLIT: Final[re.Pattern[str]] = re.compile(r"[\n;,]+")


# --- request negotiation ------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProbeAttempt:
    """One request-body encoding of the query."""

    label: str
    build: Callable[[str], JSONValue]

    def body(self, query: str) -> str:
        return json.dumps(self.build(query))


PROBE_ATTEMPTS: Final[tuple[ProbeAttempt, ...]] = (
    ProbeAttempt("queries", lambda query: {"queries": [query]}),
    ProbeAttempt("query", lambda query: {"query": query}),
    ProbeAttempt("symbols", lambda query: {"symbols": [query]}),
    ProbeAttempt("symbol", lambda query: {"symbol": query}),
    ProbeAttempt("symbols_single", lambda query: {"symbols": query}),
    ProbeAttempt("raw", lambda query: query),
)


@dataclass(frozen=True, slots=True)
class ProbeOutcome:
    ok: bool
    attempt: str | None = None
    status: int | None = None
    error: str | None = None
    note: str | None = None


class ProbeNegotiationFailure(Exception):
    """Every attempt encoding was tried without a definitive answer."""

    def __init__(self, reason: str, *, attempt: str | None, status: int | None) -> None:
        self.reason = reason
        self.attempt = attempt
        self.status = status
        super().__init__(reason)

    def to_outcome(self) -> ProbeOutcome:
        return ProbeOutcome(
            ok=False,
            attempt=self.attempt,
            status=self.status,
            error=self.reason,
            note=self.reason,
        )


async def probe_read_only_check(
    query: str,
    *,
    url: str | None,
    transport: HttpTransport,
    headers: Mapping[str, str] | None = None,
    request_headers: Mapping[str, str] | None = None,
) -> ProbeOutcome:
    """Negotiate ``query`` against the probe service; never raises for service failures.

    ``headers`` carries configured defaults (environment or config file);
    ``request_headers`` carries per-request overrides and wins on conflicts.
    """

    try:
        return await negotiate_probe(
            query,
            url=url,
            transport=transport,
            headers=merge_probe_headers(headers, request_headers),
        )
    except ProbeNegotiationFailure as failure:
        logger.debug(
            "probe exhausted",
            extra={"query": query, "attempt": failure.attempt, "status": failure.status},
        )
        return failure.to_outcome()


async def negotiate_probe(
    query: str,
    *,
    url: str | None,
    transport: HttpTransport,
    headers: Mapping[str, str] | None = None,
) -> ProbeOutcome:
    """Try each attempt encoding in order; raise ``ProbeNegotiationFailure`` on exhaustion."""

    target = (url or "").strip()
    if not target:
        raise ProbeNegotiationFailure(NOT_CONFIGURED_MESSAGE, attempt=None, status=None)

    merged = merge_probe_headers(BASE_HEADERS, headers)
    last_reason = ""
    last_status: int | None = None
    last_label: str | None = None

    for attempt in PROBE_ATTEMPTS:
        last_label = attempt.label
        try:
            response = await transport.request(
                target,
                method="POST",
                headers=merged,
                body=attempt.body(query),
            )
        except Exception as exc:  # transport failure: move on to the next encoding
            last_reason = str(exc) or type(exc).__name__
            continue

        parsed, is_json = _parse_body(response.text)
        if not is_json and response.text.strip().lower() in PLAIN_TEXT_SUCCESS:
            return _success(attempt.label, response.status)

        verdict = interpret_payload(query, parsed) if is_json else None
        if verdict is not None:
            if verdict:
                return _success(attempt.label, response.status)
            return ProbeOutcome(
                ok=False,
                attempt=attempt.label,
                status=response.status,
                note=f"not found via {attempt.label}",
            )

        detail = _diagnostic(parsed, response.text, attempt.label)
        if response.is_success:
            last_reason = detail
        else:
            last_status = response.status
            last_reason = f"{response.status} {detail}".strip()

    raise ProbeNegotiationFailure(
        last_reason or EXHAUSTED_MESSAGE,
        attempt=last_label,
        status=last_status,
    )


def _success(label: str, status: int) -> ProbeOutcome:
    return ProbeOutcome(ok=True, attempt=label, status=status, note=f"confirmed via {label}")


def _parse_body(text: str) -> tuple[object, bool]:
    if not text.strip():
        return None, False
    try:
        return json.loads(text), True
    except ValueError:
        return None, False


def _diagnostic(parsed: object, text: str, label: str) -> str:
    if isinstance(parsed, Mapping):
        for key in ("error", "message"):
            value = parsed.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    trimmed = text.strip()
    if trimmed:
        return trimmed
    return f"unexpected response via {label}"


# --- response interpretation --------------------------------------------------

Matcher = Callable[[object], bool | None]


def match_boolean(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def match_numeric(value: object) -> bool | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value == 1:
        return True
    if value == 0:
        return False
    return None


def match_vocabulary(value: object) -> bool | None:
    if not isinstance(value, str):
        return None
    word = value.strip().lower()
    if word in POSITIVE_WORDS:
        return True
    if word in NEGATIVE_WORDS:
        return False
    return None


SCALAR_MATCHERS: Final[tuple[Matcher, ...]] = (match_boolean, match_numeric, match_vocabulary)


def _match_scalar(value: object) -> bool | None:
    for matcher in SCALAR_MATCHERS:
        verdict = matcher(value)
        if verdict is not None:
            return verdict
    return None


def match_record(value: object) -> bool | None:
    """One level deep: a record's status fields, each read with the scalar matchers."""

    if not isinstance(value, Mapping):
        return None
    for field_name in RECORD_STATUS_FIELDS:
        if field_name in value:
            verdict = _match_scalar(value[field_name])
            if verdict is not None:
                return verdict
    return None


VALUE_MATCHERS: Final[tuple[Matcher, ...]] = (*SCALAR_MATCHERS, match_record)


def interpret_value(value: object) -> bool | None:
    """Definitive boolean for ``value``, or ``None`` when no matcher applies."""

    for matcher in VALUE_MATCHERS:
        verdict = matcher(value)
        if verdict is not None:
            return verdict
    return None


def interpret_payload(query: str, payload: object) -> bool | None:
    """Locate the verdict for ``query`` inside a parsed JSON response body."""

    if isinstance(payload, bool):
        return payload
    if _is_array(payload):
        return _from_array(query, payload)
    if not isinstance(payload, Mapping):
        return None

    own = payload.get("ok")
    if isinstance(own, bool):
        return own

    for container in _containers(payload):
        verdict = _from_container(query, container)
        if verdict is not None:
            return verdict
    return None


def _containers(payload: Mapping[str, object]) -> list[object]:
    found: list[object] = [payload.get(key) for key in CONTAINER_KEYS]
    data = payload.get("data")
    found.append(data.get("results") if isinstance(data, Mapping) else None)
    found.append(payload.get("payload"))
    return found


def _from_container(query: str, container: object) -> bool | None:
    if _is_array(container):
        return _from_array(query, container)
    if isinstance(container, Mapping):
        own = container.get("ok")
        if isinstance(own, bool):
            return own
        if query in container:
            return interpret_value(container[query])
    return None


def _from_array(query: str, entries: Sequence[object]) -> bool | None:
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        if not any(entry.get(name) == query for name in IDENTIFYING_FIELDS):
            continue
        own = entry.get("ok")
        if isinstance(own, bool):
            return own
        if query in entry:
            verdict = interpret_value(entry[query])
            if verdict is not None:
                return verdict
        verdict = match_record(entry)
        if verdict is not None:
            return verdict
    return None


def _is_array(value: object) -> TypeGuard[Sequence[object]]:
    return isinstance(value, list | tuple)


# --- headers --------------------------------------------------------------------


def parse_probe_headers(raw: object) -> dict[str, str]:
    """Parse headers from a mapping, a JSON object string, or ``Key: value`` pairs.

    Pairs may be separated by newlines, semicolons or commas. Blank keys and values are
    dropped; anything unparseable yields an empty mapping.
    """

    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        headers: dict[str, str] = {}
        for key, value in raw.items():
            if isinstance(key, str) and isinstance(value, str) and key.strip() and value.strip():
                headers[key.strip()] = value.strip()
        return headers
    if not isinstance(raw, str):
        return {}

    trimmed = raw.strip()
    if not trimmed:
        return {}
    try:
        decoded = json.loads(trimmed)
    except ValueError:
        decoded = None
    else:
        if isinstance(decoded, str):
            return parse_probe_headers(decoded)
        return parse_probe_headers(decoded) if isinstance(decoded, Mapping) else {}

    headers = {}
    for chunk in _HEADER_SPLIT.split(trimmed):
        key, separator, value = chunk.partition(":")
        if not separator:
            continue
        key = key.strip()
        value = value.strip()
        if key and value:
            headers[key] = value
    return headers


def merge_probe_headers(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """Merge header layers left to right; later layers win, names compared case-insensitively."""

    merged: dict[str, tuple[str, str]] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            merged[key.lower()] = (key, value)
    return {key: value for key, value in merged.values()}


__all__ = [
    "BASE_HEADERS",
    "NOT_CONFIGURED_MESSAGE",
    "PROBE_ATTEMPTS",
    "ProbeAttempt",
    "ProbeNegotiationFailure",
    "ProbeOutcome",
    "interpret_payload",
    "interpret_value",
    "match_boolean",
    "match_numeric",
    "match_record",
    "match_vocabulary",
    "merge_probe_headers",
    "negotiate_probe",
    "parse_probe_headers",
    "probe_read_only_check",
]
