# sopsage_core/sops/config.py

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional
import os
import re

import yaml

from sopsage_core.errors import ConfigExistsError, SOPSConfigError
from sopsage_core.logger import get_logger
from sopsage_core.storage.arbiter import FileAccessArbiter, read_text, replace_text

log = get_logger("SOPSAge.Config")

DEFAULT_ENCRYPTED_REGEX = "^(data|stringData)$"
_RULE_FIELDS = ("path_regex", "encrypted_regex", "age")
# sops accepts at most one of these per rule
_SELECTOR_FIELDS = (
    "encrypted_regex",
    "unencrypted_regex",
    "encrypted_suffix",
    "unencrypted_suffix",
    "encrypted_comment_regex",
    "unencrypted_comment_regex",
)


@dataclass
class CreationRule:
    """
    One entry of `creation_rules` in a .sops.yaml file.

    `age` is the recipient list exactly as written: one public key per line,
    usually comma separated. Keys sops knows but this model does not
    (key_groups, pgp, kms, unencrypted_regex, ...) ride along in `extra`.
    `encrypted_regex` is None when the rule selects fields another way.
    """
    path_regex: str
    age: str
    encrypted_regex: Optional[str] = DEFAULT_ENCRYPTED_REGEX
    extra: Dict[str, Any] = field(default_factory=dict)

    def recipients(self) -> List[str]:
        return [r for r in re.split(r"[,\s]+", self.age or "") if r]

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"path_regex": self.path_regex}
        if self.encrypted_regex is not None:
            d["encrypted_regex"] = self.encrypted_regex
        d["age"] = _LiteralStr(self.age)
        d.update(self.extra)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreationRule":
        if not isinstance(data, dict):
            raise SOPSConfigError(f"creation rule must be a mapping, got {type(data).__name__}")
        if not data.get("path_regex"):
            raise SOPSConfigError("creation rule is missing path_regex")
        return cls(
            path_regex=str(data["path_regex"]),
            age=str(data.get("age") or ""),
            encrypted_regex=_encrypted_regex(data),
            extra={k: v for k, v in data.items() if k not in _RULE_FIELDS},
        )


def _encrypted_regex(data: Dict[str, Any]) -> Optional[str]:
    if data.get("encrypted_regex"):
        return str(data["encrypted_regex"])
    if any(data.get(k) for k in _SELECTOR_FIELDS):
        return None
    return DEFAULT_ENCRYPTED_REGEX


@dataclass
class SOPSConfig:
    creation_rules: List[CreationRule] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def recipients(self) -> List[str]:
        """Every public key named by any rule, first occurrence order."""
        seen: Dict[str, None] = {}
        for rule in self.creation_rules:
            for r in rule.recipients():
                seen.setdefault(r, None)
        return list(seen)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"creation_rules": [r.to_dict() for r in self.creation_rules]}
        d.update(self.extra)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "SOPSConfig":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise SOPSConfigError(f"sops config must be a mapping, got {type(data).__name__}")
        rules = data.get("creation_rules") or []
        if not isinstance(rules, list):
            raise SOPSConfigError("creation_rules must be a list")
        return cls(
            creation_rules=[CreationRule.from_dict(r) for r in rules],
            extra={k: v for k, v in data.items() if k != "creation_rules"},
        )

    def to_yaml(self) -> str:
        return yaml.dump(
            self.to_dict(),
            Dumper=_SOPSDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    @classmethod
    def from_yaml(cls, text: str) -> "SOPSConfig":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SOPSConfigError(f"invalid YAML: {exc}") from exc
        return cls.from_dict(data)


class _LiteralStr(str):
    pass


class _SOPSDumper(yaml.SafeDumper):
    pass


def _literal_representer(dumper: yaml.SafeDumper, data: _LiteralStr):
    return dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style="|")


_SOPSDumper.add_representer(_LiteralStr, _literal_representer)


async def read_sops_config(path: str | os.PathLike, arbiter: FileAccessArbiter | None = None) -> SOPSConfig:
    arbiter = arbiter or FileAccessArbiter()
    text = await arbiter.run(Path(path), read_text)
    config = SOPSConfig.from_yaml(text)
    log.debug(f"[CONFIG] read {len(config.creation_rules)} creation rules from {path}")
    return config


async def write_sops_config(
    path: str | os.PathLike,
    config: SOPSConfig,
    overwrite: bool = False,
    arbiter: FileAccessArbiter | None = None,
) -> None:
    """Write the whole config. Without `overwrite` an existing file is left untouched."""
    arbiter = arbiter or FileAccessArbiter()
    target = Path(path)
    if not overwrite and target.exists():
        raise ConfigExistsError(str(target))

    document = config.to_yaml()

    def work(handle: BinaryIO) -> None:
        replace_text(handle, document)

    try:
        await arbiter.run(target, work, create=overwrite, exclusive_create=not overwrite)
    except FileExistsError as exc:
        raise ConfigExistsError(str(target)) from exc
    log.info(f"[CONFIG] wrote {len(config.creation_rules)} creation rules to {target}")
