"""
sopsage_core.errors
-------------------
Error taxonomy for keyring, config and external tool operations.

Transient errors are retried locally (see storage.arbiter) and only escape
as FileAccessError once the retry budget is spent. Everything else
propagates to the caller immediately with its context attached.
"""

from __future__ import annotations
from typing import Optional, Sequence


class SecretManagerError(Exception):
    pass


class SecretManagerTransientError(SecretManagerError):
    pass


class FileLockedError(SecretManagerTransientError):
    def __init__(self, path: str):
        self.path = str(path)
        super().__init__(f"file is locked by another process: {self.path}")


class FileAccessError(SecretManagerError):
    def __init__(self, path: str, attempts: int):
        self.path = str(path)
        self.attempts = attempts
        super().__init__(f"could not acquire exclusive access to {self.path} after {attempts} attempts")


class KeyNotFoundError(SecretManagerError):
    def __init__(self, public_key: str, path: str):
        self.public_key = public_key
        self.path = str(path)
        super().__init__(f"the key {public_key} does not exist in the key file {self.path}")


class AmbiguousKeySourceError(SecretManagerError):
    def __init__(self, path: str, count: int):
        self.path = str(path)
        self.count = count
        super().__init__(
            f"{self.path} contains {count} keys; a public key must be given to choose which one to import"
        )


class DuplicateKeyError(SecretManagerError):
    def __init__(self, public_key: str, path: str):
        self.public_key = public_key
        self.path = str(path)
        super().__init__(f"a different key with public key {public_key} already exists in {self.path}")


class MalformedKeyError(SecretManagerError, ValueError):
    pass


class ConfigExistsError(SecretManagerError):
    def __init__(self, path: str):
        self.path = str(path)
        super().__init__(f"the file {self.path} already exists and overwrite is set to false")


class SOPSConfigError(SecretManagerError, ValueError):
    pass


class KeyFilePathError(SecretManagerError, ValueError):
    pass


class ExternalToolError(SecretManagerError):
    """Non-zero exit from age-keygen or sops. `output` is the captured text, verbatim."""

    def __init__(self, argv: Sequence[str], exit_code: Optional[int], output: str):
        self.argv = list(argv)
        self.exit_code = exit_code
        self.output = output
        super().__init__(output or f"{self.argv[0]} exited with code {exit_code}")


class ToolNotFoundError(ExternalToolError):
    def __init__(self, argv: Sequence[str]):
        super().__init__(argv, None, f"executable not found: {argv[0]}")
