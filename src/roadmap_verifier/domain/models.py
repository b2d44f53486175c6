"""Frozen dataclass models for the canonical roadmap document."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import NoReturn

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

DOCUMENT_VERSION = 1


class CheckType(StrEnum):
    FILES_EXIST = "files_exist"
    HTTP_OK = "http_ok"
    SQL_EXISTS = "sql_exists"


@dataclass(frozen=True, slots=True)
class Check:
    """One declarative verification unit.

    ``type`` keeps the raw declared type so unsupported checks survive
    normalization and are reported by the executor instead of vanishing.
    """

    type: str
    files: tuple[str, ...] = ()
    globs: tuple[str, ...] = ()
    detail: str | None = None
    url: str | None = None
    must_match: tuple[str, ...] = ()
    query: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, str):
            _fail("Check.type", f"expected string, got {type(self.type).__name__}")
        for name in ("files", "globs", "must_match"):
            value = getattr(self, name)
            if not isinstance(value, tuple) or not all(isinstance(item, str) for item in value):
                _fail(f"Check.{name}", "expected a tuple of strings")

    @property
    def check_type(self) -> CheckType | None:
        try:
            return CheckType(self.type)
        except ValueError:
            return None

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {"type": self.type}
        if self.files:
            payload["files"] = list(self.files)
        if self.globs:
            payload["globs"] = list(self.globs)
        if self.url is not None:
            payload["url"] = self.url
        if self.must_match:
            payload["must_match"] = list(self.must_match)
        if self.query is not None:
            payload["query"] = self.query
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


@dataclass(frozen=True, slots=True)
class Item:
    id: str
    name: str
    checks: tuple[Check, ...] = ()
    manual: bool = False
    done: bool | None = None
    note: str | None = None
    manual_key: str | None = None

    def __post_init__(self) -> None:
        _require_text(self.id, "Item.id")
        _require_text(self.name, "Item.name")
        if not all(isinstance(check, Check) for check in self.checks):
            _fail("Item.checks", "expected a tuple of Check")

    @property
    def state_key(self) -> str:
        """Key used to look up externally owned manual completion state."""

        return self.manual_key or self.id

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "id": self.id,
            "name": self.name,
            "checks": [check.to_dict() for check in self.checks],
        }
        if self.manual:
            payload["manual"] = True
        if self.done is not None:
            payload["done"] = self.done
        if self.note is not None:
            payload["note"] = self.note
        if self.manual_key is not None:
            payload["manual_key"] = self.manual_key
        return payload


@dataclass(frozen=True, slots=True)
class Week:
    id: str
    title: str
    items: tuple[Item, ...] = ()

    def __post_init__(self) -> None:
        _require_text(self.id, "Week.id")
        _require_text(self.title, "Week.title")
        if not all(isinstance(item, Item) for item in self.items):
            _fail("Week.items", "expected a tuple of Item")

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "title": self.title,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True, slots=True)
class Document:
    """Canonical roadmap. Produced only by the normalizer."""

    weeks: tuple[Week, ...] = ()
    version: int = DOCUMENT_VERSION

    def __post_init__(self) -> None:
        if self.version != DOCUMENT_VERSION:
            _fail("Document.version", f"unsupported version {self.version!r}")
        if not all(isinstance(week, Week) for week in self.weeks):
            _fail("Document.weeks", "expected a tuple of Week")

    def iter_checks(self) -> tuple[Check, ...]:
        return tuple(check for week in self.weeks for item in week.items for check in item.checks)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "version": self.version,
            "weeks": [week.to_dict() for week in self.weeks],
        }


def _require_text(value: object, path: str) -> None:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if not value.strip():
        _fail(path, "must not be empty")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "DOCUMENT_VERSION",
    "Check",
    "CheckType",
    "Document",
    "Item",
    "JSONScalar",
    "JSONValue",
    "Week",
]
