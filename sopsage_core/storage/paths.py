"""Default location of the sops age key file."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from sopsage_core.errors import KeyFilePathError

KEY_FILE_ENV = "SOPS_AGE_KEY_FILE"


def default_key_file_path(env: Optional[Mapping[str, str]] = None, platform: Optional[str] = None) -> Path:
    """OS convention used by sops when SOPS_AGE_KEY_FILE is unset."""
    env = os.environ if env is None else env
    platform = platform or sys.platform
    home = Path(env.get("HOME") or Path.home())

    if platform == "darwin":
        return home / "Library" / "Application Support" / "sops" / "age" / "keys.txt"
    if platform.startswith("win"):
        app_data = env.get("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(app_data) / "sops" / "age" / "keys.txt"
    xdg_config_home = env.get("XDG_CONFIG_HOME") or str(home / ".config")
    return Path(xdg_config_home) / "sops" / "age" / "keys.txt"


def resolve_key_file_path(
    override: Optional[str | os.PathLike] = None,
    env: Optional[Mapping[str, str]] = None,
    platform: Optional[str] = None,
) -> Path:
    """
    Resolution order: explicit override, SOPS_AGE_KEY_FILE, OS default.

    A SOPS_AGE_KEY_FILE value must name an existing file.
    """
    if override:
        return Path(override).expanduser()

    env = os.environ if env is None else env
    from_env = (env.get(KEY_FILE_ENV) or "").strip()
    if from_env:
        path = Path(from_env).expanduser()
        if not path.is_file():
            raise KeyFilePathError(
                f"The {KEY_FILE_ENV} environment variable points to a file that does not exist: {from_env}"
            )
        return path

    return default_key_file_path(env, platform)
