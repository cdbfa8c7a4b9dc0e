"""
sopsage_core.manager
--------------------
SOPSLocalAgeSecretManager: the public entry point.

Key lifecycle calls go to the keyring store (every file touch under an
exclusive lock); encrypt/decrypt/edit are delegated to the sops executable
with the manager's keyring exported as SOPS_AGE_KEY_FILE.

Usage:
    manager = SOPSLocalAgeSecretManager.from_config()

    key = await manager.create_key()
    cipher_text = await manager.encrypt("secret.enc.yaml", key.public_key)
    plain_text = await manager.decrypt("secret.enc.yaml")
    await manager.delete_key(key)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Union

from sopsage_core.keys import AgeKey
from sopsage_core.logger import get_logger
from sopsage_core.storage import FileAccessArbiter, KeyringFile, load_arbiter, resolve_key_file_path
from sopsage_core.storage.keyring_file import KeyGenerator
from sopsage_core.tools import SOPSCLI, keygen_factory, sops_factory

log = get_logger("SOPSAge.Manager")


class SOPSLocalAgeSecretManager:
    """
    Local secret manager for sops with age keys.

    The keyring path is fixed at construction: `key_file` if given, else
    SOPS_AGE_KEY_FILE, else the OS default sops uses. Every sops call is
    pointed at that keyring; injected collaborators are never modified.
    """

    def __init__(
        self,
        key_file: Optional[Union[str, os.PathLike]] = None,
        *,
        keygen: Optional[KeyGenerator] = None,
        sops: Optional[SOPSCLI] = None,
        arbiter: Optional[FileAccessArbiter] = None,
    ) -> None:
        self._key_file = resolve_key_file_path(key_file)
        self._keygen = keygen or keygen_factory()
        self._arbiter = arbiter or FileAccessArbiter()
        self._keyring = KeyringFile(self._key_file, arbiter=self._arbiter, keygen=self._keygen)
        self._sops = sops or sops_factory()

    @property
    def key_file(self) -> Path:
        return self._key_file

    @property
    def keyring(self) -> KeyringFile:
        return self._keyring

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------
    @classmethod
    def from_config(cls, config: dict | None = None) -> "SOPSLocalAgeSecretManager":
        """Build a manager from a config dict, with env var fallbacks for every setting."""
        config = config or {}
        return cls(
            config.get("key_file"),
            keygen=keygen_factory(config),
            sops=sops_factory(config),
            arbiter=load_arbiter(config),
        )

    def with_key_file(self, key_file: Union[str, os.PathLike]) -> "SOPSLocalAgeSecretManager":
        """Same collaborators, different keyring."""
        return type(self)(key_file, keygen=self._keygen, sops=self._sops, arbiter=self._arbiter)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    async def create_key(self) -> AgeKey:
        return await self._keyring.create()

    async def import_key(self, key: AgeKey) -> AgeKey:
        return await self._keyring.add(key)

    async def import_key_file(self, path: Union[str, os.PathLike], public_key: Optional[str] = None) -> AgeKey:
        return await self._keyring.import_file(path, public_key)

    async def delete_key(self, key: Union[AgeKey, str]) -> AgeKey:
        return await self._keyring.remove(key)

    async def get_key(self, public_key: str) -> AgeKey:
        return await self._keyring.get(public_key)

    async def list_keys(self) -> List[AgeKey]:
        return await self._keyring.list()

    async def key_exists(self, public_key: str) -> bool:
        return await self._keyring.exists(public_key)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------
    async def encrypt(self, file_path: Union[str, os.PathLike], public_key: Optional[str] = None) -> str:
        log.info(f"[MANAGER] encrypt {file_path} recipient={public_key or '<.sops.yaml>'}")
        return await self._sops.encrypt(file_path, public_key, key_file=self._key_file)

    async def decrypt(self, file_path: Union[str, os.PathLike]) -> str:
        log.info(f"[MANAGER] decrypt {file_path}")
        return await self._sops.decrypt(file_path, key_file=self._key_file)

    async def edit(self, file_path: Union[str, os.PathLike]) -> None:
        log.info(f"[MANAGER] edit {file_path}")
        await self._sops.edit(file_path, key_file=self._key_file)
