from .config import (
    DEFAULT_ENCRYPTED_REGEX,
    CreationRule,
    SOPSConfig,
    read_sops_config,
    write_sops_config,
)

__all__ = [
    "DEFAULT_ENCRYPTED_REGEX",
    "CreationRule",
    "SOPSConfig",
    "read_sops_config",
    "write_sops_config",
]
