"""Filesystem locations for PK Offload."""
from __future__ import annotations

import sys
from pathlib import Path

from platformdirs import PlatformDirs

_APP_NAME = "PK Offload"
_LINUX_APP_NAME = "pk-offload"


def runtime_config_dir() -> Path:
    """Return the per-user configuration directory."""
    if sys.platform in ("win32", "darwin"):
        dirs = PlatformDirs(appname=_APP_NAME, appauthor=None, roaming=True)
    else:
        dirs = PlatformDirs(appname=_LINUX_APP_NAME, appauthor=None, roaming=False)
    return Path(dirs.user_config_path)


def default_key_file() -> Path:
    """Where ``keygen`` writes and ``sign``/``serve`` look for the server key."""
    return runtime_config_dir() / "certs" / "ecc-key.pem"


def public_key_for(key_file: Path) -> Path:
    return key_file.with_name(key_file.stem + "-pub.pem")
