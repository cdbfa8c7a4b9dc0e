"""
SOPSAge Core Package
====================
Local age keyring and sops configuration management.

Provides:
- AgeKey record and its three-line key file format
- Keyring store with exclusive file access and bounded lock retry
- .sops.yaml creation rule codec
- SOPSLocalAgeSecretManager facade over the keyring, age-keygen and sops
"""

from .errors import (
    AmbiguousKeySourceError,
    ConfigExistsError,
    DuplicateKeyError,
    ExternalToolError,
    FileAccessError,
    KeyFilePathError,
    KeyNotFoundError,
    MalformedKeyError,
    SecretManagerError,
    SOPSConfigError,
    ToolNotFoundError,
)
from .keys import AgeKey
from .manager import SOPSLocalAgeSecretManager
from .sops import CreationRule, SOPSConfig, read_sops_config, write_sops_config

__all__ = [
    "AgeKey",
    "AmbiguousKeySourceError",
    "ConfigExistsError",
    "CreationRule",
    "DuplicateKeyError",
    "ExternalToolError",
    "FileAccessError",
    "KeyFilePathError",
    "KeyNotFoundError",
    "MalformedKeyError",
    "SOPSConfig",
    "SOPSConfigError",
    "SOPSLocalAgeSecretManager",
    "SecretManagerError",
    "ToolNotFoundError",
    "read_sops_config",
    "write_sops_config",
]
