"""Locate the directory the script editor uses for external editing."""
from __future__ import annotations

import sys
import tempfile
from pathlib import Path

from scriptlink import config
from scriptlink.errors import UnsupportedPlatformError


def external_script_dir(platform: str | None = None) -> Path:
    if config.EXTERNAL_DIR:
        return Path(config.EXTERNAL_DIR).expanduser().resolve()

    platform = platform or sys.platform
    if platform == "darwin":
        return (Path(tempfile.gettempdir()) / ".." / "TemporaryItems" / "SecondLife").resolve()
    raise UnsupportedPlatformError(
        f"Don't know where external scripts live on {platform}; set SCRIPTLINK_EXTERNAL_DIR"
    )
