"""
roadmap-verifier: document normalizer

File: src/roadmap_verifier/ingestion/normalizer.py
Last updated: 2026-10-19

Purpose
- Convert a roadmap document in any supported dialect into the canonical ``Document``.

Dialects
- Canonical: ``weeks[] -> items[] -> checks[]``.
- Phase: ``roadmap[]`` (or ``phases[]``) of phases, each with ``milestones[]`` holding ``tasks[]``.
  Every phase/milestone pair becomes one week.

Functional requirements
- Empty, absent or structurally unparseable input raises a single ``DocumentError``.
- A parseable document without weeks is valid and yields zero weeks.
- Declared order of weeks, items and checks is preserved.

Non-functional requirements
- Deterministic: the same input always yields the same canonical document.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Final, TypeGuard

import yaml

from roadmap_verifier.domain.models import Check, CheckType, Document, Item, Week

_CAMEL_CASE_BOUNDARY: Final[re.Pattern[str]] = re.compile(r"([a-z0-9])([A-Z])")
_NON_SLUG_CHARS: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]+")
_LIST_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"[\n,]+")
_TYPE_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"[-\s]+")
_URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^https?://", re.IGNORECASE)

_MAX_SLUG_LENGTH: Final[int] = 64
_SLUG_HASH_LENGTH: Final[int] = 6
_BASE36_DIGITS: Final[str] = "0123456789abcdefghijklmnopqrstuvwxyz"

_WEEK_ITEM_KEYS: Final[tuple[str, ...]] = ("items", "tasks", "entries", "deliverables", "goals")
_ITEM_CHECK_KEYS: Final[tuple[str, ...]] = ("checks", "verifications", "validation")
_ITEM_NAME_KEYS: Final[tuple[str, ...]] = (
    "name",
    "title",
    "task",
    "summary",
    "goal",
    "description",
)
_WEEK_TITLE_KEYS: Final[tuple[str, ...]] = ("title", "name", "label", "summary", "heading", "week")
_PHASE_LABEL_KEYS: Final[tuple[str, ...]] = ("phase", "title", "name", "label")
_PHASE_MILESTONE_KEYS: Final[tuple[str, ...]] = ("milestones", "weeks", "items")
_DONE_KEYS: Final[tuple[str, ...]] = (
    "done",
    "complete",
    "completed",
    "finished",
    "status",
    "state",
)

_FILE_KEYS: Final[tuple[str, ...]] = ("files", "file", "paths", "path")
_GLOB_KEYS: Final[tuple[str, ...]] = ("globs", "glob", "patterns")
_URL_KEYS: Final[tuple[str, ...]] = ("url", "endpoint", "href", "link", "target")
_QUERY_KEYS: Final[tuple[str, ...]] = ("query", "sql", "statement")
_MUST_MATCH_KEYS: Final[tuple[str, ...]] = ("must_match", "contains", "expect", "matches")
_DETAIL_KEYS: Final[tuple[str, ...]] = ("detail", "note", "description")

_DONE_TRUE: Final[frozenset[str]] = frozenset(
    {"true", "yes", "y", "done", "complete", "completed", "finished", "launched", "live"}
)
_DONE_FALSE: Final[frozenset[str]] = frozenset(
    {"false", "no", "n", "todo", "pending", "blocked", "tbd", "hold", "paused", "stalled"}
)


class DocumentError(ValueError):
    """Fatal normalization failure: the roadmap cannot be turned into a canonical document."""

    def __init__(self, message: str, *, source: str | None = None, hint: str | None = None) -> None:
        self.message = message
        self.source = source
        self.hint = hint
        rendered = message if source is None else f"{source}: {message}"
        if hint:
            rendered = f"{rendered} (hint: {hint})"
        super().__init__(rendered)


def load_document(path: str | Path) -> Document:
    """Read and normalize the roadmap file at ``path``."""

    target = Path(path)
    if not target.is_file():
        raise DocumentError(
            "roadmap file does not exist or is not a file",
            source=str(target),
            hint="pass the path of a readable YAML or JSON roadmap",
        )
    try:
        text = target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentError(f"unable to read roadmap: {exc}", source=str(target)) from exc
    return normalize_text(text, source=str(target))


def normalize_text(text: str | None, *, source: str | None = None) -> Document:
    """Parse YAML (or JSON) text and normalize it."""

    return normalize_document(parse_document_text(text, source=source), source=source)


def parse_document_text(text: str | None, *, source: str | None = None) -> object:
    if text is None or not text.strip():
        raise DocumentError("roadmap document is empty", source=source)
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DocumentError(f"invalid roadmap YAML: {exc}", source=source) from exc
    if parsed is None:
        raise DocumentError("roadmap document is empty", source=source)
    return parsed


def normalize_document(raw: object, *, source: str | None = None) -> Document:
    """Normalize an already-parsed roadmap payload into the canonical model."""

    if raw is None:
        raise DocumentError("roadmap document is absent", source=source)

    if _is_list(raw):
        week_candidates: list[Mapping[str, object]] = _mappings(raw)
    elif isinstance(raw, Mapping):
        week_candidates = _extract_week_candidates(_canonical_record(raw), source=source)
    else:
        raise DocumentError(
            f"roadmap must parse into an object, got {type(raw).__name__}",
            source=source,
            hint="top level needs a 'weeks' list or a 'roadmap' list of phases",
        )

    try:
        weeks = tuple(
            _canonicalize_week(candidate, index) for index, candidate in enumerate(week_candidates)
        )
    except DocumentError as exc:
        if exc.source is not None or source is None:
            raise
        raise DocumentError(exc.message, source=source, hint=exc.hint) from exc
    except RecursionError as exc:
        raise DocumentError("roadmap is nested too deeply to normalize", source=source) from exc
    return Document(weeks=weeks)


def normalize_roadmap_yaml(text: str) -> str:
    """Return the canonical document rendered back to YAML."""

    document = normalize_text(text)
    rendered = yaml.safe_dump(
        document.to_dict(),
        sort_keys=False,
        allow_unicode=True,
        width=1000,
    )
    return f"{rendered.rstrip()}\n"


def slugify(value: str, fallback: str) -> str:
    """Lowercase hyphenated slug capped at 64 chars with a stable hash suffix."""

    normalized = _NON_SLUG_CHARS.sub("-", value.lower()).strip("-")
    if not normalized:
        return fallback
    if len(normalized) <= _MAX_SLUG_LENGTH:
        return normalized

    suffix = _hash_suffix(normalized)
    max_base = max(0, _MAX_SLUG_LENGTH - len(suffix) - 1)
    trimmed = normalized[:max_base].rstrip("-")
    slug = "-".join(part for part in (trimmed, suffix) if part)
    return slug or fallback


def coerce_done(value: object) -> bool | None:
    """Interpret a declared completion marker; ``None`` when it is not decisive."""

    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if value <= 0:
            return False
        if value >= 1:
            return True
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _DONE_TRUE:
            return True
        if lowered in _DONE_FALSE:
            return False
    return None


# ---------------------------------------------------------------------------
# Dialect detection
# ---------------------------------------------------------------------------


def _extract_week_candidates(
    record: Mapping[str, object],
    *,
    source: str | None,
) -> list[Mapping[str, object]]:
    if "weeks" in record and record["weeks"] is not None:
        return _mappings(_expect_list(record["weeks"], "weeks", source))

    for key in ("roadmap", "phases"):
        if key in record and record[key] is not None:
            return _flatten_phases(_expect_list(record[key], key, source))

    return []


def _flatten_phases(phases: Sequence[object]) -> list[Mapping[str, object]]:
    weeks: list[Mapping[str, object]] = []
    for phase_index, phase_entry in enumerate(phases):
        if not isinstance(phase_entry, Mapping):
            continue
        phase = _canonical_record(phase_entry)
        phase_label = _pick_key(phase, _PHASE_LABEL_KEYS) or f"Phase {phase_index + 1}"
        milestones = _first_present(phase, _PHASE_MILESTONE_KEYS)
        for milestone in _mappings(_as_list(milestones)):
            flattened = dict(_canonical_record(milestone))
            flattened["__phase_label"] = phase_label
            flattened["__phase_dialect"] = True
            weeks.append(flattened)
    return weeks


# ---------------------------------------------------------------------------
# Weeks and items
# ---------------------------------------------------------------------------


def _canonicalize_week(entry: Mapping[str, object], index: int) -> Week:
    record = _canonical_record(entry)
    phase_dialect = record.get("__phase_dialect") is True
    phase_label = _pick_string(record.get("__phase_label"))
    week_label = _pick_key(record, _WEEK_TITLE_KEYS)

    if phase_label and week_label:
        title = f"{phase_label} / {week_label}"
    else:
        title = week_label or phase_label or f"Week {index + 1}"

    fallback_id = f"week-{index + 1}"
    explicit_id = _pick_key(record, ("id", "slug", "key"))
    week_id = explicit_id or slugify(_pick_key(record, ("week",)) or title, fallback_id)

    raw_items: list[object] = []
    for key in _WEEK_ITEM_KEYS:
        raw_items.extend(_as_list(record.get(key)))

    items: list[Item] = []
    for item_index, raw_item in enumerate(raw_items):
        item = _canonicalize_item(
            raw_item,
            week_id=week_id,
            week_index=index,
            item_index=item_index,
            phase_dialect=phase_dialect,
        )
        if item is not None:
            items.append(item)

    return Week(id=week_id, title=title, items=tuple(items))


def _canonicalize_item(
    entry: object,
    *,
    week_id: str,
    week_index: int,
    item_index: int,
    phase_dialect: bool,
) -> Item | None:
    fallback_id = f"item-{week_index + 1}-{item_index + 1}"

    if isinstance(entry, str):
        name = entry.strip()
        if not name:
            return None
        return Item(
            id=slugify(f"{week_id}-{name}", fallback_id),
            name=name,
            checks=(),
            manual=True,
        )

    if not isinstance(entry, Mapping):
        return None

    record = _canonical_record(entry)
    name = _pick_key(record, _ITEM_NAME_KEYS) or _pick_key(record, ("id",))
    if not name:
        return None

    explicit_id = _pick_key(record, ("id", "key", "slug", "manual_key"))
    item_id = explicit_id or slugify(f"{week_id}-{name}", fallback_id)
    checks = _normalize_checks(record)

    declared_manual = record.get("manual")
    if phase_dialect:
        manual = declared_manual is True or (declared_manual is not False and not checks)
    else:
        manual = declared_manual is True

    return Item(
        id=item_id,
        name=name,
        checks=checks,
        manual=manual,
        done=coerce_done(_first_present(record, _DONE_KEYS)),
        note=_pick_key(record, ("note", "notes", "description", "detail")),
        manual_key=_pick_key(record, ("manual_key", "key")),
    )


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def _normalize_checks(record: Mapping[str, object]) -> tuple[Check, ...]:
    provided = _first_present(record, _ITEM_CHECK_KEYS)
    raw_checks: list[object] = list(_as_list(provided))

    if provided is None:
        files = _dedupe(_collect_keys(record, _FILE_KEYS))
        globs = _dedupe(_collect_keys(record, _GLOB_KEYS))
        url = _pick_key(record, _URL_KEYS)
        if files or globs:
            raw_checks.append({"type": CheckType.FILES_EXIST.value, "files": files, "globs": globs})
        elif url:
            raw_checks.append({"type": CheckType.HTTP_OK.value, "url": url})

    checks: list[Check] = []
    for raw in raw_checks:
        check = _normalize_check(raw)
        if check is not None:
            checks.append(check)
    return tuple(checks)


def _normalize_check(entry: object) -> Check | None:
    if isinstance(entry, str):
        text = entry.strip()
        if not text:
            return None
        if _URL_PATTERN.match(text):
            return Check(type=CheckType.HTTP_OK.value, url=text)
        return Check(type=CheckType.FILES_EXIST.value, files=(text,))

    if not isinstance(entry, Mapping):
        return None

    record = _canonical_record(entry)
    check_type = _detect_check_type(record)
    detail = _pick_key(record, _DETAIL_KEYS)

    if check_type == CheckType.FILES_EXIST.value:
        return Check(
            type=check_type,
            files=_dedupe(_collect_keys(record, _FILE_KEYS)),
            globs=_dedupe(_collect_keys(record, _GLOB_KEYS)),
            detail=detail,
        )
    if check_type == CheckType.HTTP_OK.value:
        return Check(
            type=check_type,
            url=_pick_key(record, _URL_KEYS),
            must_match=_dedupe(_collect_keys(record, _MUST_MATCH_KEYS)),
            detail=detail,
        )
    if check_type == CheckType.SQL_EXISTS.value:
        return Check(type=check_type, query=_pick_key(record, _QUERY_KEYS), detail=detail)

    return Check(type=check_type, detail=detail)


def _detect_check_type(record: Mapping[str, object]) -> str:
    raw_type = _pick_key(record, ("type", "kind", "check"))
    if raw_type:
        return _TYPE_SEPARATORS.sub("_", raw_type.lower())

    if _pick_key(record, ("url", "endpoint", "href", "link")):
        return CheckType.HTTP_OK.value
    if _pick_key(record, _QUERY_KEYS):
        return CheckType.SQL_EXISTS.value
    if _collect_keys(record, _FILE_KEYS + _GLOB_KEYS):
        return CheckType.FILES_EXIST.value
    return ""


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _canonical_record(value: Mapping[object, object]) -> dict[str, object]:
    """Re-key a mapping in snake case; an explicit snake-case key wins over its camel twin."""

    out: dict[str, object] = {}
    explicit: set[str] = set()
    for key, item in value.items():
        if not isinstance(key, str):
            continue
        snake = _snake_key(key)
        if snake == key:
            out[snake] = item
            explicit.add(snake)
        elif snake not in explicit:
            out[snake] = item
    return out


def _snake_key(key: str) -> str:
    if key.startswith("__"):
        return key
    return _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip()).lower()


def _pick_string(*candidates: object) -> str | None:
    for candidate in candidates:
        if isinstance(candidate, str):
            stripped = candidate.strip()
            if stripped:
                return stripped
        elif _is_list(candidate):
            for entry in candidate:
                if isinstance(entry, str) and entry.strip():
                    return entry.strip()
    return None


def _pick_key(record: Mapping[str, object], keys: Sequence[str]) -> str | None:
    return _pick_string(*(record.get(key) for key in keys))


def _first_present(record: Mapping[str, object], keys: Sequence[str]) -> object:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _collect_strings(value: object, _ancestors: frozenset[int] = frozenset()) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in _LIST_SEPARATORS.split(value) if part.strip()]
    if isinstance(value, Mapping):
        entries: Iterable[object] = value.values()
    elif _is_list(value):
        entries = value
    else:
        return []
    if id(value) in _ancestors:
        raise DocumentError(
            "string list contains itself",
            hint="remove the YAML alias that points back into its own list",
        )
    nested = _ancestors | {id(value)}
    collected: list[str] = []
    for entry in entries:
        collected.extend(_collect_strings(entry, nested))
    return collected


def _collect_keys(record: Mapping[str, object], keys: Sequence[str]) -> list[str]:
    collected: list[str] = []
    for key in keys:
        collected.extend(_collect_strings(record.get(key)))
    return collected


def _dedupe(values: Sequence[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        stripped = value.strip()
        if not stripped or stripped in seen:
            continue
        seen.add(stripped)
        out.append(stripped)
    return tuple(out)


def _is_list(value: object) -> TypeGuard[Sequence[object]]:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _as_list(value: object) -> list[object]:
    if value is None:
        return []
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return list(value)
    return [value]


def _mappings(values: object) -> list[Mapping[str, object]]:
    return [entry for entry in _as_list(values) if isinstance(entry, Mapping)]


def _expect_list(value: object, key: str, source: str | None) -> list[object]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        raise DocumentError(
            f"'{key}' must be a list, got {type(value).__name__}",
            source=source,
        )
    return list(value)


def _hash_suffix(value: str) -> str:
    digest = 0
    for char in value:
        digest = (digest * 33 + ord(char)) & 0xFFFFFFFF
    encoded = _to_base36(digest)
    if len(encoded) >= _SLUG_HASH_LENGTH:
        return encoded[-_SLUG_HASH_LENGTH:]
    return encoded.rjust(_SLUG_HASH_LENGTH, "0")


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


__all__ = [
    "DocumentError",
    "coerce_done",
    "load_document",
    "normalize_document",
    "normalize_roadmap_yaml",
    "normalize_text",
    "parse_document_text",
    "slugify",
]
