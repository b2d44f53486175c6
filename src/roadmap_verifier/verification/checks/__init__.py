"""
roadmap-verifier: check runners

File: src/roadmap_verifier/verification/checks/__init__.py
Last updated: 2026-10-19

Purpose
- Import the built-in runners so their registration decorators populate
  ``DEFAULT_CHECK_REGISTRY``.
"""

from roadmap_verifier.verification.checks.base import (
    DEFAULT_CHECK_REGISTRY,
    CheckContext,
    CheckExecutionError,
    CheckResult,
    CheckRunner,
    CheckRunnerRegistry,
    CheckStatus,
    ProbeSettings,
    register_builtin_check,
    register_external_check,
)
from roadmap_verifier.verification.checks.files_exist import FilesExistRunner, resolve_file_list
from roadmap_verifier.verification.checks.http_ok import HttpOkRunner
from roadmap_verifier.verification.checks.sql_exists import SqlExistsRunner

__all__ = [
    "DEFAULT_CHECK_REGISTRY",
    "CheckContext",
    "CheckExecutionError",
    "CheckResult",
    "CheckRunner",
    "CheckRunnerRegistry",
    "CheckStatus",
    "FilesExistRunner",
    "HttpOkRunner",
    "ProbeSettings",
    "SqlExistsRunner",
    "register_builtin_check",
    "register_external_check",
    "resolve_file_list",
]
