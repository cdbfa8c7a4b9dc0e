# sopsage_core/storage/__init__.py

from .arbiter import FileAccessArbiter
from .keyring_file import KeyringDocument, KeyringFile
from .paths import default_key_file_path, resolve_key_file_path
import os


def load_arbiter(config: dict | None = None) -> FileAccessArbiter:
    """Build the lock policy from a config dict, falling back to env vars."""
    config = config or {}
    attempts = config.get("lock_attempts") or os.getenv("SOPSAGE_LOCK_ATTEMPTS", "3")
    delay = config.get("lock_retry_delay") or os.getenv("SOPSAGE_LOCK_RETRY_DELAY", "0.1")
    return FileAccessArbiter(attempts=int(attempts), retry_delay=float(delay))


def load_keyring(config: dict | None = None, keygen=None) -> KeyringFile:
    """
    Factory resolver for the keyring store.

    key_file: explicit path, else SOPS_AGE_KEY_FILE, else the OS default.
    """
    config = config or {}
    path = resolve_key_file_path(config.get("key_file"))
    return KeyringFile(path, arbiter=load_arbiter(config), keygen=keygen)


__all__ = [
    "FileAccessArbiter",
    "KeyringDocument",
    "KeyringFile",
    "default_key_file_path",
    "resolve_key_file_path",
    "load_arbiter",
    "load_keyring",
]
