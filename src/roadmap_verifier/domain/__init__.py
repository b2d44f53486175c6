"""
roadmap-verifier: domain package

File: src/roadmap_verifier/domain/__init__.py
Last updated: 2026-10-19

Purpose
- Canonical roadmap types shared by ingestion and verification: Document, Week, Item, Check.

Non-functional requirements
- Domain layer stays free of IO side effects.
"""

from roadmap_verifier.domain.models import (
    DOCUMENT_VERSION,
    Check,
    CheckType,
    Document,
    Item,
    JSONScalar,
    JSONValue,
    Week,
)

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
