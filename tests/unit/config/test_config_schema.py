"""
roadmap-verifier: unit tests for config schema validation

File: tests/unit/config/test_config_schema.py
Last updated: 2026-10-19

Purpose
- Validate defaults, strict validation failures, and redaction of effective config dumps.
"""

from __future__ import annotations

import pytest

from roadmap_verifier.config.schema import (
    CONFIG_SCHEMA,
    PATH_FIELDS,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    dump_redacted,
    looks_sensitive_key,
    merge_config,
    validate_config,
)


def _with(overlay: dict[str, object]) -> dict[str, object]:
    return merge_config(default_config(), overlay)


def test_defaults_are_valid_and_copies_are_independent() -> None:
    first = default_config()
    first["execution"]["max_concurrency"] = 99

    assert validate_config(default_config()).is_valid
    assert default_config()["execution"]["max_concurrency"] == 8


@pytest.mark.parametrize(
    ("overlay", "path", "message"),
    [
        ({"probe": {"url": "ftp://probe.test"}}, "probe.url", "http(s) URL"),
        ({"execution": {"max_concurrency": 0}}, "execution.max_concurrency", ">= 1"),
        ({"execution": {"check_timeout_seconds": -1}}, "execution.check_timeout_seconds", ">= 0"),
        ({"http": {"timeout_seconds": True}}, "http.timeout_seconds", "expected number"),
        ({"observability": {"log_level": "LOUD"}}, "observability.log_level", "invalid value"),
        ({"observability": {"log_to_stdout": "yes"}}, "observability.log_to_stdout", "boolean"),
        ({"project": {"root": "  "}}, "project.root", "must not be empty"),
        ({"probe": {"headers": {"X-Count": 3}}}, "probe.headers.X-Count", "expected string"),
        ({"extras": {}}, "extras", "unknown field"),
    ],
)
def test_invalid_values_are_reported_with_paths(
    overlay: dict[str, object], path: str, message: str
) -> None:
    result = validate_config(_with(overlay))

    assert not result.is_valid
    assert any(issue.path == path and message in issue.message for issue in result.issues)


def test_embedded_secret_keys_get_a_dedicated_message() -> None:
    result = validate_config(_with({"probe": {"api_token": "abc"}}))

    assert [issue.path for issue in result.issues] == ["probe.api_token"]
    assert "embedded secret values are forbidden" in result.issues[0].message


def test_missing_section_is_reported() -> None:
    config = default_config()
    del config["http"]  # type: ignore[misc]

    with pytest.raises(ConfigValidationError, match="http: missing required section"):
        assert_valid_config(config)


def test_validation_normalizes_values() -> None:
    validated = assert_valid_config(
        _with(
            {
                "probe": {
                    "url": "  https://probe.test/x  ",
                    "headers": {" X-A ": " 1 ", "X-B": " "},
                },
                "observability": {"log_level": "warning"},
            }
        )
    )

    assert validated["probe"]["url"] == "https://probe.test/x"
    assert validated["probe"]["headers"] == {"X-A": "1"}
    assert validated["observability"]["log_level"] == "WARNING"


def test_dump_redacted_masks_headers_and_sensitive_strings_only() -> None:
    config = _with({"probe": {"headers": {"Authorization": "Bearer t", "X-Team": "core"}}})
    config["custom"] = {"client_secret": "hidden", "retries": 3}

    dumped = dump_redacted(config)

    assert dumped["probe"]["headers"] == {"Authorization": "<redacted>", "X-Team": "<redacted>"}
    assert dumped["custom"] == {"client_secret": "<redacted>", "retries": 3}
    assert dumped["observability"]["redact_secrets"] is True
    assert config["probe"]["headers"]["Authorization"] == "Bearer t"


def test_merge_config_is_deep_and_non_mutating() -> None:
    base = {"a": {"b": 1, "c": 2}}

    merged = merge_config(base, {"a": {"c": 3}, "d": [1]})

    assert merged == {"a": {"b": 1, "c": 3}, "d": [1]}
    assert base == {"a": {"b": 1, "c": 2}}


def test_defaults_come_from_the_field_table() -> None:
    defaults = default_config()

    for rule in CONFIG_SCHEMA:
        assert defaults[rule.section][rule.key] == rule.default  # type: ignore[literal-required]
    assert PATH_FIELDS == (
        ("project", "root"),
        ("project", "roadmap_path"),
        ("project", "status_path"),
        ("observability", "log_dir"),
    )


@pytest.mark.parametrize(
    ("key", "sensitive"),
    [
        ("apiKey", True),
        ("client_secret", True),
        ("db-password", True),
        ("retries", False),
        ("author", False),
    ],
)
def test_sensitive_key_detection(key: str, sensitive: bool) -> None:
    assert looks_sensitive_key(key) is sensitive
