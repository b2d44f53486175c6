"""
roadmap-verifier: configuration schema and validation.

File: src/roadmap_verifier/config/schema.py
Last updated: 2026-10-19

Purpose
- Declare every config field once (section, key, kind, bounds) in ``CONFIG_SCHEMA``;
  defaults, validation, env bindings and path normalization all read that table.

Functional requirements
- Validation returns every issue at once as ``(dotted path, message)`` pairs.
- Unknown keys are rejected; secret-looking keys get a dedicated message pointing at
  ``probe.headers``.
- Effective-config dumps mask probe header values and other secret-looking strings.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final, Literal, TypedDict

REDACTED_PLACEHOLDER: Final[str] = "<redacted>"
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

_SECRET_WORDS: Final[frozenset[str]] = frozenset(
    {
        "apikey",
        "auth",
        "credential",
        "credentials",
        "passwd",
        "password",
        "private",
        "secret",
        "token",
    }
)
_SECRET_PHRASES: Final[tuple[str, ...]] = (
    "access_token",
    "api_key",
    "client_secret",
    "private_key",
)
_WORD_SPLIT = re.compile(r"[^a-z0-9]+")
_CAMEL_HUMP = re.compile(r"([a-z0-9])([A-Z])")

_Reporter = Callable[[str, str], None]


class FieldKind(StrEnum):
    TEXT = "text"
    PATH = "path"
    OPTIONAL_PATH = "optional_path"
    URL = "url"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    LEVEL = "level"
    HEADERS = "headers"


@dataclass(frozen=True, slots=True)
class FieldRule:
    """How one ``section.key`` is typed, bounded and defaulted."""

    section: str
    key: str
    kind: FieldKind
    default: Any
    minimum: float | None = None

    @property
    def path(self) -> tuple[str, str]:
        return (self.section, self.key)

    @property
    def is_path(self) -> bool:
        return self.kind in (FieldKind.PATH, FieldKind.OPTIONAL_PATH)


# Empty ``probe.url`` and ``observability.log_dir`` mean "not configured";
# ``check_timeout_seconds = 0`` disables the per-check deadline.
CONFIG_SCHEMA: Final[tuple[FieldRule, ...]] = (
    FieldRule("project", "root", FieldKind.PATH, "."),
    FieldRule("project", "roadmap_path", FieldKind.PATH, "docs/roadmap.yml"),
    FieldRule("project", "status_path", FieldKind.PATH, "docs/roadmap-status.json"),
    FieldRule("probe", "url", FieldKind.URL, ""),
    FieldRule("probe", "headers", FieldKind.HEADERS, {}),
    FieldRule("http", "timeout_seconds", FieldKind.FLOAT, 10.0, minimum=0.001),
    FieldRule("http", "user_agent", FieldKind.TEXT, "roadmap-verifier/0.1"),
    FieldRule("execution", "max_concurrency", FieldKind.INT, 8, minimum=1),
    FieldRule("execution", "check_timeout_seconds", FieldKind.FLOAT, 0.0, minimum=0.0),
    FieldRule("observability", "log_level", FieldKind.LEVEL, "INFO"),
    FieldRule("observability", "log_dir", FieldKind.OPTIONAL_PATH, ""),
    FieldRule("observability", "log_to_stdout", FieldKind.BOOL, True),
    FieldRule("observability", "redact_secrets", FieldKind.BOOL, True),
)

SECTIONS: Final[tuple[str, ...]] = tuple(dict.fromkeys(rule.section for rule in CONFIG_SCHEMA))
PATH_FIELDS: Final[tuple[tuple[str, str], ...]] = tuple(
    rule.path for rule in CONFIG_SCHEMA if rule.is_path
)


class ProjectConfig(TypedDict):
    root: str
    roadmap_path: str
    status_path: str


class ProbeConfig(TypedDict):
    url: str
    headers: dict[str, str]


class HttpConfig(TypedDict):
    timeout_seconds: float
    user_agent: str


class ExecutionConfig(TypedDict):
    max_concurrency: int
    check_timeout_seconds: float


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class VerifierConfig(TypedDict):
    project: ProjectConfig
    probe: ProbeConfig
    http: HttpConfig
    execution: ExecutionConfig
    observability: ObservabilityConfig


def _build_defaults() -> dict[str, dict[str, Any]]:
    defaults: dict[str, dict[str, Any]] = {section: {} for section in SECTIONS}
    for rule in CONFIG_SCHEMA:
        defaults[rule.section][rule.key] = copy.deepcopy(rule.default)
    return defaults


DEFAULT_CONFIG: Final[VerifierConfig] = _build_defaults()  # type: ignore[assignment]


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Normalized config, or ``None`` together with every issue found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised by ``assert_valid_config``; ``issues`` keeps the structured detail."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "unknown validation failure"))


class _ValueProblem(ValueError):
    """Internal: a single field failed its rule."""


def default_config() -> VerifierConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; neither input is mutated."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        existing = merged.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            merged[key] = merge_config(existing, value)
        elif isinstance(value, Mapping):
            merged[key] = merge_config({}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    issues: list[ConfigValidationIssue] = []

    def report(path: str, message: str) -> None:
        issues.append(ConfigValidationIssue(path=path, message=message))

    if not isinstance(config, Mapping):
        report("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=tuple(issues))

    _report_unknown_keys(config, SECTIONS, "", report)
    normalized: dict[str, Any] = {}
    for section in SECTIONS:
        raw_section = config.get(section)
        if raw_section is None:
            report(section, "missing required section")
            continue
        if not isinstance(raw_section, Mapping):
            report(section, f"expected object, got {type(raw_section).__name__}")
            continue

        rules = [rule for rule in CONFIG_SCHEMA if rule.section == section]
        _report_unknown_keys(raw_section, tuple(rule.key for rule in rules), section, report)
        values: dict[str, Any] = {}
        for rule in rules:
            dotted = f"{section}.{rule.key}"
            if rule.key not in raw_section:
                report(dotted, "missing required field")
                continue
            raw_value = raw_section[rule.key]
            if rule.kind is FieldKind.HEADERS:
                values[rule.key] = _normalize_headers(raw_value, dotted, report)
                continue
            try:
                values[rule.key] = _normalize_value(rule, raw_value)
            except _ValueProblem as problem:
                report(dotted, str(problem))
        normalized[section] = values

    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def dump_redacted(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Sorted deep copy with every probe header and secret-looking string masked."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact(config)
    probe = redacted.get("probe")
    if isinstance(probe, dict) and isinstance(probe.get("headers"), dict):
        probe["headers"] = {name: REDACTED_PLACEHOLDER for name in probe["headers"]}
    return redacted


def looks_sensitive_key(key: str) -> bool:
    spaced = _CAMEL_HUMP.sub(r"\1_\2", key.strip()).lower()
    normalized = _WORD_SPLIT.sub("_", spaced).strip("_")
    if any(phrase in normalized for phrase in _SECRET_PHRASES):
        return True
    return any(word in _SECRET_WORDS for word in normalized.split("_"))


def _normalize_value(rule: FieldRule, value: object) -> Any:
    kind = rule.kind
    if kind is FieldKind.BOOL:
        if not isinstance(value, bool):
            raise _ValueProblem(f"expected boolean, got {type(value).__name__}")
        return value

    if kind in (FieldKind.INT, FieldKind.FLOAT):
        if isinstance(value, bool) or not isinstance(value, int | float):
            expected = "integer" if kind is FieldKind.INT else "number"
            raise _ValueProblem(f"expected {expected}, got {type(value).__name__}")
        if kind is FieldKind.INT and not isinstance(value, int):
            raise _ValueProblem(f"expected integer, got {type(value).__name__}")
        number = value if kind is FieldKind.INT else float(value)
        if not math.isfinite(number):
            raise _ValueProblem("must be finite")
        if rule.minimum is not None and number < rule.minimum:
            bound = int(rule.minimum) if kind is FieldKind.INT else rule.minimum
            raise _ValueProblem(f"must be >= {bound}")
        return number

    if not isinstance(value, str):
        raise _ValueProblem(f"expected string, got {type(value).__name__}")
    text = value.strip()
    if kind is FieldKind.URL:
        if text and not text.lower().startswith(("http://", "https://")):
            raise _ValueProblem("must be an http(s) URL")
        return text
    if kind is FieldKind.OPTIONAL_PATH and not text:
        return ""
    if not text:
        raise _ValueProblem("must not be empty")
    if rule.is_path and "\x00" in text:
        raise _ValueProblem("must not contain NUL bytes")
    if kind is FieldKind.LEVEL:
        level = text.upper()
        if level not in LOG_LEVELS:
            raise _ValueProblem(
                f"invalid value {text!r}; expected one of: {', '.join(sorted(LOG_LEVELS))}"
            )
        return level
    return text


def _normalize_headers(value: object, dotted: str, report: _Reporter) -> dict[str, str]:
    if not isinstance(value, Mapping):
        report(dotted, f"expected object, got {type(value).__name__}")
        return {}
    headers: dict[str, str] = {}
    for name in sorted(value, key=str):
        header_value = value[name]
        if not isinstance(header_value, str):
            report(f"{dotted}.{name}", f"expected string, got {type(header_value).__name__}")
        elif str(name).strip() and header_value.strip():
            headers[str(name).strip()] = header_value.strip()
    return headers


def _report_unknown_keys(
    payload: Mapping[Any, object],
    allowed: Sequence[str],
    prefix: str,
    report: _Reporter,
) -> None:
    for key in sorted(payload, key=str):
        if key in allowed:
            continue
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(key, str) and looks_sensitive_key(key):
            report(
                dotted,
                "embedded secret values are forbidden; pass credentials via probe.headers "
                "or READ_ONLY_CHECKS_HEADERS",
            )
        else:
            report(dotted, "unknown field")


def _redact(value: Mapping[Any, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value, key=str):
        item = value[key]
        if isinstance(item, Mapping):
            out[str(key)] = _redact(item)
        elif isinstance(item, str) and looks_sensitive_key(str(key)):
            out[str(key)] = REDACTED_PLACEHOLDER
        elif isinstance(item, list | tuple):
            out[str(key)] = [
                _redact(entry) if isinstance(entry, Mapping) else entry for entry in item
            ]
        else:
            out[str(key)] = copy.deepcopy(item)
    return out


__all__ = [
    "CONFIG_SCHEMA",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "FieldKind",
    "FieldRule",
    "VerifierConfig",
    "assert_valid_config",
    "default_config",
    "dump_redacted",
    "looks_sensitive_key",
    "merge_config",
    "validate_config",
]
