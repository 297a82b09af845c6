from __future__ import annotations

import os
import sys
from pathlib import Path


def platform_default_data_dir() -> Path:
    home = Path.home()
    if sys.platform.startswith("win"):
        root = Path(os.environ.get("LOCALAPPDATA", home / "AppData" / "Local"))
        return root / "frigate-simpleui"
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "frigate-simpleui"
    return Path(os.environ.get("XDG_DATA_HOME", home / ".local" / "share")) / "frigate-simpleui"


def resolve_log_dir(configured: str | None) -> Path | None:
    """Returns None when file logging is disabled (empty string)."""
    if configured is None:
        return platform_default_data_dir().resolve() / "logs"
    if not configured.strip():
        return None
    return Path(configured).expanduser().resolve()
