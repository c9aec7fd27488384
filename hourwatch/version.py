"""
Single source of truth for the package version.

Reads from pyproject.toml at import time and caches.
"""

from __future__ import annotations

from pathlib import Path

__all__ = ["VERSION", "APP_NAME"]

APP_NAME = "hourwatch"


def _read_version() -> str:
    """Read version directly from pyproject.toml (avoids stale pip cache)."""
    try:
        toml_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if toml_path.exists():
            for line in toml_path.read_text().splitlines():
                if line.strip().startswith("version"):
                    return line.split("=", 1)[1].strip().strip('"').strip("'")
    except OSError:
        pass
    return "1.2.0"


VERSION = _read_version()
