"""Bundled data directory resolution."""

from __future__ import annotations

from pathlib import Path

# src/dns_switcher/core/paths.py → src/dns_switcher/data/
DATA_DIR = Path(__file__).resolve().parent.parent / "data"

RESOLVER_DIR = Path("/etc/resolver")
RESOLVER_ZONE_FILE = RESOLVER_DIR / "custom"
