"""
roadmap-verifier: package root

File: src/roadmap_verifier/__init__.py
Last updated: 2026-10-19

Purpose
- Package root. Normalizes declarative roadmaps and verifies their checks against
  the filesystem, HTTP endpoints and read-only probe services.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
