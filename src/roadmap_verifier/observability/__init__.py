"""
roadmap-verifier: observability package

File: src/roadmap_verifier/observability/__init__.py
Last updated: 2026-10-19

Purpose
- Structured JSON-lines logging with correlation fields and secret redaction.
"""

from roadmap_verifier.observability.logging import (
    JsonLinesFormatter,
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "JsonLinesFormatter",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
