"""Module entrypoint for ``python -m roadmap_verifier``."""

from __future__ import annotations

from roadmap_verifier.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
