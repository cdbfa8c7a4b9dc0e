from pathlib import Path

import pytest

from sopsage_core.errors import KeyFilePathError
from sopsage_core.storage import default_key_file_path, resolve_key_file_path


def test_linux_default_uses_xdg_config_home():
    env = {"HOME": "/home/dev", "XDG_CONFIG_HOME": "/xdg"}
    assert default_key_file_path(env, "linux") == Path("/xdg/sops/age/keys.txt")


def test_linux_default_falls_back_to_dot_config():
    env = {"HOME": "/home/dev"}
    assert default_key_file_path(env, "linux") == Path("/home/dev/.config/sops/age/keys.txt")


def test_macos_default():
    env = {"HOME": "/Users/dev"}
    assert default_key_file_path(env, "darwin") == Path(
        "/Users/dev/Library/Application Support/sops/age/keys.txt"
    )


def test_windows_default_uses_appdata():
    env = {"HOME": "/home/dev", "APPDATA": "/appdata"}
    assert default_key_file_path(env, "win32") == Path("/appdata/sops/age/keys.txt")


def test_override_wins(tmp_path):
    env = {"SOPS_AGE_KEY_FILE": "/does/not/matter"}
    assert resolve_key_file_path(tmp_path / "k.txt", env=env) == tmp_path / "k.txt"


def test_env_var_must_point_to_existing_file(tmp_path):
    existing = tmp_path / "keys.txt"
    existing.write_text("")
    assert resolve_key_file_path(env={"SOPS_AGE_KEY_FILE": str(existing)}) == existing

    with pytest.raises(KeyFilePathError):
        resolve_key_file_path(env={"SOPS_AGE_KEY_FILE": str(tmp_path / "missing.txt")})


def test_blank_env_var_uses_default():
    env = {"SOPS_AGE_KEY_FILE": "  ", "HOME": "/home/dev", "XDG_CONFIG_HOME": "/xdg"}
    assert resolve_key_file_path(env=env, platform="linux") == Path("/xdg/sops/age/keys.txt")
