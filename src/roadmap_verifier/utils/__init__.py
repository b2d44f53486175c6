"""Utility exports for filesystem and concurrency helpers."""

from roadmap_verifier.utils.concurrency import ConcurrencyLimit, gather_ordered, run_with_timeout
from roadmap_verifier.utils.fs import atomic_write, is_within, resolve_within

__all__ = [
    "ConcurrencyLimit",
    "atomic_write",
    "gather_ordered",
    "is_within",
    "resolve_within",
    "run_with_timeout",
]
