"""
roadmap-verifier: check runner interface

File: src/roadmap_verifier/verification/checks/base.py
Last updated: 2026-10-19

Purpose
- Define the check runner contract: inputs (a canonical ``Check`` plus a read-only
  ``CheckContext``) and output (exactly one ``CheckResult``).
- Deterministic registry mapping check types to runner factories.

Functional requirements
- Built-in runners register through ``register_builtin_check``; external runners may be
  added for new check types without touching the executor.
- ``CheckResult.to_dict`` yields a stable, JSON-safe export for the status report.

Non-functional requirements
- ``CheckContext`` is immutable so runners may execute concurrently.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Literal, NoReturn, Protocol, TypeVar, runtime_checkable

from roadmap_verifier.domain.models import JSONValue

if TYPE_CHECKING:
    from roadmap_verifier.domain.models import Check
    from roadmap_verifier.verification.filesystem import Filesystem
    from roadmap_verifier.verification.transport import HttpTransport

CheckRunnerSource = Literal["builtin", "external"]
CheckRunnerFactory = Callable[[], "CheckRunner"]


class CheckStatus(StrEnum):
    """Derived status tag carried by every check result."""

    PASS = "pass"
    FAIL = "fail"
    UNKNOWN = "unknown"

    @classmethod
    def from_ok(cls, ok: object) -> CheckStatus:
        if ok is True:
            return cls.PASS
        if ok is False:
            return cls.FAIL
        return cls.UNKNOWN


class CheckExecutionError(Exception):
    """A single check could not be evaluated (bad definition, IO or network failure)."""

    def __init__(self, message: str, *, note: str | None = None) -> None:
        self.message = message
        self.note = note
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Result envelope; exactly one per declared check."""

    ok: bool | None
    type: str = ""
    note: str | None = None
    error: str | None = None
    attempt: str | None = None
    code: int | None = None
    missing: tuple[str, ...] | None = None
    files: tuple[str, ...] | None = None

    @property
    def status(self) -> CheckStatus:
        return CheckStatus.from_ok(self.ok)

    @property
    def passed(self) -> bool:
        return self.ok is True

    @property
    def failed(self) -> bool:
        return self.ok is False

    @classmethod
    def failure(
        cls,
        check_type: str,
        error: str,
        *,
        note: str | None = None,
        code: int | None = None,
    ) -> CheckResult:
        return cls(ok=False, type=check_type, error=error, note=note or error, code=code)

    def to_dict(self) -> dict[str, JSONValue]:
        """Stable-key JSON-safe export; optional fields are omitted when unset."""

        payload: dict[str, JSONValue] = {
            "type": self.type,
            "ok": self.ok,
            "status": self.status.value,
        }
        if self.note is not None:
            payload["note"] = self.note
        if self.error is not None:
            payload["error"] = self.error
        if self.attempt is not None:
            payload["attempt"] = self.attempt
        if self.code is not None:
            payload["code"] = self.code
        if self.missing is not None:
            payload["missing"] = list(self.missing)
        if self.files is not None:
            payload["files"] = list(self.files)
        return payload


@dataclass(frozen=True, slots=True)
class ProbeSettings:
    """Probe target resolved once at the call boundary.

    ``headers`` come from config or environment; ``request_headers`` are per-run
    overrides layered on top when a query is sent.
    """

    url: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    request_headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        url = self.url.strip() if isinstance(self.url, str) else None
        object.__setattr__(self, "url", url or None)
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "request_headers", MappingProxyType(dict(self.request_headers)))


@dataclass(frozen=True, slots=True)
class CheckContext:
    """Read-only collaborators shared by every runner during one run."""

    filesystem: Filesystem
    transport: HttpTransport
    probe: ProbeSettings = field(default_factory=ProbeSettings)


@runtime_checkable
class CheckRunner(Protocol):
    """Runner protocol implemented by built-ins and external plugins."""

    check_type: str

    async def run(self, check: Check, context: CheckContext) -> CheckResult: ...


@dataclass(frozen=True, slots=True)
class CheckRunnerRegistration:
    check_type: str
    source: CheckRunnerSource
    factory: CheckRunnerFactory


class CheckRunnerRegistry:
    """Deterministic check-type -> runner factory registry."""

    def __init__(self) -> None:
        self._registrations: dict[str, CheckRunnerRegistration] = {}

    def register(
        self,
        check_type: str,
        factory: CheckRunnerFactory,
        *,
        source: CheckRunnerSource,
    ) -> None:
        normalized = _as_check_type(check_type)
        if not callable(factory):
            _fail("factory", "must be callable")

        existing = self._registrations.get(normalized)
        if existing is not None:
            _fail(
                "check_type",
                f"already registered by {existing.source} runner for {existing.check_type!r}",
            )

        self._registrations[normalized] = CheckRunnerRegistration(
            check_type=normalized,
            source=source,
            factory=factory,
        )

    def register_builtin(self, check_type: str, factory: CheckRunnerFactory) -> None:
        self.register(check_type, factory, source="builtin")

    def register_external(self, check_type: str, factory: CheckRunnerFactory) -> None:
        self.register(check_type, factory, source="external")

    def contains(self, check_type: str) -> bool:
        return check_type.strip() in self._registrations

    def create(self, check_type: str) -> CheckRunner | None:
        """Instantiate the runner for ``check_type``; ``None`` when nothing handles it."""

        registration = self._registrations.get(check_type.strip())
        if registration is None:
            return None
        runner = registration.factory()
        if not isinstance(runner, CheckRunner):
            _fail("factory", f"{check_type!r} factory did not return a CheckRunner")
        return runner

    def registered_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._registrations))

    def copy(self) -> CheckRunnerRegistry:
        clone = CheckRunnerRegistry()
        clone._registrations = dict(self._registrations)
        return clone


RunnerType = TypeVar("RunnerType", bound=CheckRunner)

DEFAULT_CHECK_REGISTRY = CheckRunnerRegistry()


def register_builtin_check(
    check_type: str,
    *,
    registry: CheckRunnerRegistry | None = None,
) -> Callable[[type[RunnerType]], type[RunnerType]]:
    """Decorator that registers built-in runner classes."""

    target = registry if registry is not None else DEFAULT_CHECK_REGISTRY
    normalized = _as_check_type(check_type)

    def decorator(runner_cls: type[RunnerType]) -> type[RunnerType]:
        _validate_zero_arg_constructor(runner_cls, check_type=normalized)
        target.register_builtin(normalized, factory=lambda: runner_cls())
        return runner_cls

    return decorator


def register_external_check(
    check_type: str,
    factory: CheckRunnerFactory,
    *,
    registry: CheckRunnerRegistry | None = None,
) -> None:
    """Plugin surface for check types beyond the built-in three."""

    target = registry if registry is not None else DEFAULT_CHECK_REGISTRY
    target.register_external(check_type, factory)


def _validate_zero_arg_constructor(runner_cls: type[object], *, check_type: str) -> None:
    signature = inspect.signature(runner_cls)
    for parameter in signature.parameters.values():
        if (
            parameter.kind
            in {
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                inspect.Parameter.KEYWORD_ONLY,
            }
            and parameter.default is inspect.Signature.empty
        ):
            _fail(
                "runner_cls",
                (
                    f"{check_type!r} runner decorator requires a zero-arg constructor; "
                    f"parameter '{parameter.name}' is required"
                ),
            )


def _as_check_type(value: object) -> str:
    if not isinstance(value, str):
        _fail("check_type", f"expected string, got {type(value).__name__}")
    parsed = value.strip()
    if not parsed:
        _fail("check_type", "must not be empty")
    return parsed


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "DEFAULT_CHECK_REGISTRY",
    "CheckContext",
    "CheckExecutionError",
    "CheckResult",
    "CheckRunner",
    "CheckRunnerFactory",
    "CheckRunnerRegistration",
    "CheckRunnerRegistry",
    "CheckRunnerSource",
    "CheckStatus",
    "ProbeSettings",
    "register_builtin_check",
    "register_external_check",
]
