"""
roadmap-verifier: verification package

File: src/roadmap_verifier/verification/__init__.py
Last updated: 2026-10-19

Purpose
- Check execution, probe negotiation and status aggregation over a canonical Document.
"""

from roadmap_verifier.verification.aggregator import (
    ItemStatus,
    Progress,
    RunSummary,
    StatusAggregator,
    StatusReport,
    WeekStatus,
)
from roadmap_verifier.verification.checks import (
    DEFAULT_CHECK_REGISTRY,
    CheckContext,
    CheckExecutionError,
    CheckResult,
    CheckRunnerRegistry,
    CheckStatus,
    ProbeSettings,
)
from roadmap_verifier.verification.engine import (
    EngineConfig,
    RunPhase,
    VerificationEngine,
    VerificationResult,
    run_verification,
    verify_file,
)
from roadmap_verifier.verification.executor import execute_check
from roadmap_verifier.verification.filesystem import Filesystem, LocalFilesystem
from roadmap_verifier.verification.probe import (
    ProbeNegotiationFailure,
    ProbeOutcome,
    parse_probe_headers,
    probe_read_only_check,
)
from roadmap_verifier.verification.transport import HttpResponse, HttpTransport, HttpxTransport

__all__ = [
    "DEFAULT_CHECK_REGISTRY",
    "CheckContext",
    "CheckExecutionError",
    "CheckResult",
    "CheckRunnerRegistry",
    "CheckStatus",
    "EngineConfig",
    "Filesystem",
    "HttpResponse",
    "HttpTransport",
    "HttpxTransport",
    "ItemStatus",
    "LocalFilesystem",
    "ProbeNegotiationFailure",
    "ProbeOutcome",
    "ProbeSettings",
    "Progress",
    "RunPhase",
    "RunSummary",
    "StatusAggregator",
    "StatusReport",
    "VerificationEngine",
    "VerificationResult",
    "WeekStatus",
    "execute_check",
    "parse_probe_headers",
    "probe_read_only_check",
    "run_verification",
    "verify_file",
]
