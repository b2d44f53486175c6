"""
roadmap-verifier: runtime config loader.

File: src/roadmap_verifier/config/loader.py
Last updated: 2026-10-19

Purpose
- Produce the effective config for one invocation from five layers, lowest first:
  built-in defaults, ``roadmap.toml``, legacy ``READ_ONLY_CHECKS_*`` env,
  ``ROADMAP_<SECTION>_<KEY>`` env, and ``--set section.key=value`` CLI overrides.

Functional requirements
- Env names and value coercion derive from ``CONFIG_SCHEMA``; there is no second table.
- Relative path fields resolve against the directory holding the config file.
- ``build_engine_config`` freezes the result into the ``EngineConfig`` a run reads.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from roadmap_verifier.config.schema import (
    CONFIG_SCHEMA,
    PATH_FIELDS,
    FieldKind,
    assert_valid_config,
    default_config,
    dump_redacted,
    merge_config,
)
from roadmap_verifier.verification.engine import EngineConfig
from roadmap_verifier.verification.probe import parse_probe_headers

DEFAULT_CONFIG_FILE: Final[str] = "roadmap.toml"
ENV_PREFIX: Final[str] = "ROADMAP_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Config file unreadable, or an env/CLI string could not be coerced."""


@dataclass(frozen=True, slots=True)
class EnvBinding:
    name: str
    path: tuple[str, ...]
    kind: FieldKind

    @property
    def dotted(self) -> str:
        return ".".join(self.path)


def _env_name(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


ENV_BINDINGS: Final[Mapping[str, EnvBinding]] = {
    _env_name(rule.path): EnvBinding(_env_name(rule.path), rule.path, rule.kind)
    for rule in CONFIG_SCHEMA
}

# Names understood by earlier deployments of the read-only probe.
LEGACY_ENV_BINDINGS: Final[Mapping[str, EnvBinding]] = {
    "READ_ONLY_CHECKS_URL": EnvBinding("READ_ONLY_CHECKS_URL", ("probe", "url"), FieldKind.URL),
    "READ_ONLY_CHECKS_HEADERS": EnvBinding(
        "READ_ONLY_CHECKS_HEADERS", ("probe", "headers"), FieldKind.HEADERS
    ),
}

_BINDINGS_BY_PATH: Final[Mapping[tuple[str, ...], EnvBinding]] = {
    binding.path: binding for binding in ENV_BINDINGS.values()
}


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    Without ``config_path`` a ``roadmap.toml`` in the working directory is used if
    present; an explicit path that does not exist is an error.
    """

    if config_path is None:
        resolved = (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    else:
        resolved = Path(config_path).expanduser().resolve()
    env = os.environ if environ is None else environ

    effective = assert_valid_config(
        merge_config(default_config(), _read_toml(resolved, required=config_path is not None))
    )
    for layer in (
        _env_layer(LEGACY_ENV_BINDINGS, env),
        _env_layer(ENV_BINDINGS, env),
        _cli_layer(cli_overrides or {}),
    ):
        effective = merge_config(effective, layer)
    effective = assert_valid_config(effective)
    return assert_valid_config(normalize_paths(effective, base_dir=resolved.parent))


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Anchor relative path fields at ``base_dir``; blank values stay blank."""

    normalized = merge_config({}, config)
    for section, key in PATH_FIELDS:
        table = normalized.get(section)
        if not isinstance(table, dict):
            continue
        raw = table.get(key)
        if isinstance(raw, str) and raw.strip():
            candidate = Path(os.path.expandvars(raw)).expanduser()
            if not candidate.is_absolute():
                candidate = base_dir / candidate
            table[key] = Path(os.path.normpath(candidate)).as_posix()
    return normalized


def build_engine_config(config: Mapping[str, Any]) -> EngineConfig:
    execution = config["execution"]
    check_timeout = float(execution["check_timeout_seconds"])
    return EngineConfig(
        project_root=Path(config["project"]["root"]),
        probe_url=config["probe"]["url"] or None,
        probe_headers=dict(config["probe"]["headers"]),
        http_timeout_seconds=float(config["http"]["timeout_seconds"]),
        user_agent=str(config["http"]["user_agent"]),
        max_concurrency=int(execution["max_concurrency"]),
        check_timeout_seconds=check_timeout or None,
    )


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    return dump_redacted(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Sorted, compact JSON of the redacted config."""

    return json.dumps(
        effective_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(bindings: Mapping[str, EnvBinding], env: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for name in sorted(bindings):
        if name in env:
            binding = bindings[name]
            _assign(layer, binding.path, _coerce(env[name], binding.kind, name, binding.dotted))
    return layer


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    """Dotted keys; string values are coerced like the matching env variable."""

    layer: dict[str, Any] = {}
    for key in sorted(overrides):
        path = tuple(part.strip() for part in key.split(".") if part.strip())
        if not path:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        value = overrides[key]
        binding = _BINDINGS_BY_PATH.get(path)
        if isinstance(value, str) and binding is not None:
            value = _coerce(value, binding.kind, f"--set {key}", binding.dotted)
        _assign(layer, path, value)
    return layer


def _coerce_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(text)


_COERCERS: Final[Mapping[FieldKind, tuple[Callable[[str], object], str]]] = {
    FieldKind.INT: (int, "an integer"),
    FieldKind.FLOAT: (float, "a number"),
    FieldKind.BOOL: (_coerce_bool, "a boolean (true/false/1/0/yes/no/on/off)"),
    FieldKind.HEADERS: (parse_probe_headers, "a header list"),
}


def _coerce(raw: str, kind: FieldKind, source: str, dotted: str) -> object:
    text = raw.strip()
    if kind not in _COERCERS:
        return text
    convert, expected = _COERCERS[kind]
    try:
        return convert(text)
    except ValueError as exc:
        raise ConfigLoadError(f"{source} -> {dotted} must be {expected}") from exc


def _assign(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    *parents, leaf = path
    for part in parents:
        child = target.get(part)
        if not isinstance(child, dict):
            child = target[part] = {}
        target = child
    target[leaf] = value


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_BINDINGS",
    "ENV_PREFIX",
    "LEGACY_ENV_BINDINGS",
    "ConfigLoadError",
    "EnvBinding",
    "build_engine_config",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "normalize_paths",
]
