# sopsage_core/tools/__init__.py
import os
from sopsage_core.tools.tool_base import BaseTool, CommandResult, CommandRunner
from sopsage_core.tools.age_keygen import AgeKeygen
from sopsage_core.tools.sops_cli import SOPSCLI


def keygen_factory(config: dict | None = None, runner: CommandRunner | None = None):
    """
    keygen:
      - "age-keygen" → run the age-keygen executable (default)
      - "native"     → generate X25519 identities in-process
    """
    config = config or {}
    mode = (config.get("keygen") or os.getenv("SOPSAGE_KEYGEN", "age-keygen")).lower()

    if mode == "native":
        from sopsage_core.crypto import NativeAgeKeygen
        return NativeAgeKeygen()

    if mode == "age-keygen":
        binary = config.get("age_keygen_bin") or os.getenv("SOPSAGE_AGE_KEYGEN_BIN", "age-keygen")
        return AgeKeygen(binary, runner=runner)

    raise ValueError(f"Unknown key generator: {mode}")


def sops_factory(config: dict | None = None, key_file=None, runner: CommandRunner | None = None) -> SOPSCLI:
    config = config or {}
    binary = config.get("sops_bin") or os.getenv("SOPSAGE_SOPS_BIN", "sops")
    return SOPSCLI(binary, runner=runner, key_file=key_file)


__all__ = [
    "AgeKeygen",
    "BaseTool",
    "CommandResult",
    "CommandRunner",
    "SOPSCLI",
    "keygen_factory",
    "sops_factory",
]
