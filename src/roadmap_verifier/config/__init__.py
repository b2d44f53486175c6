"""
roadmap-verifier: configuration package

File: src/roadmap_verifier/config/__init__.py
Last updated: 2026-10-19

Purpose
- Layered configuration (defaults, ``roadmap.toml``, environment, CLI) with strict validation.
"""

from roadmap_verifier.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    build_engine_config,
    dump_effective_config,
    effective_config,
    load_config,
    normalize_paths,
)
from roadmap_verifier.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    dump_redacted,
    merge_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "build_engine_config",
    "default_config",
    "dump_effective_config",
    "dump_redacted",
    "effective_config",
    "load_config",
    "merge_config",
    "normalize_paths",
    "validate_config",
]
