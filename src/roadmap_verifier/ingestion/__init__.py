"""
roadmap-verifier: ingestion package

File: src/roadmap_verifier/ingestion/__init__.py
Last updated: 2026-10-19

Purpose
- Turn roadmap documents (canonical or phase dialect, YAML or JSON) into the canonical model.

Non-functional requirements
- Must be deterministic; same input yields the same Document.
"""

from roadmap_verifier.ingestion.normalizer import (
    DocumentError,
    coerce_done,
    load_document,
    normalize_document,
    normalize_roadmap_yaml,
    normalize_text,
    parse_document_text,
    slugify,
)

__all__ = [
    "DocumentError",
    "coerce_done",
    "load_document",
    "normalize_document",
    "normalize_roadmap_yaml",
    "normalize_text",
    "parse_document_text",
    "slugify",
]
