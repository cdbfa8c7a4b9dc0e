# sopsage_core/tools/sops_cli.py
from __future__ import annotations
from typing import Optional
import asyncio
import os

from sopsage_core.errors import ExternalToolError
from sopsage_core.logger import get_logger
from sopsage_core.storage.paths import KEY_FILE_ENV
from sopsage_core.tools.tool_base import BaseTool, CommandResult, CommandRunner

log = get_logger("SOPSAge.Tools.SOPS")

# sops exits with this code when `sops edit` saw no changes
EXIT_FILE_NOT_MODIFIED = 200

LOCKED_MARKERS = ("process cannot access the file",)


def _is_locked(result: CommandResult) -> bool:
    text = result.output.lower()
    return result.exit_code == 1 and any(m in text for m in LOCKED_MARKERS)


class SOPSCLI(BaseTool):
    """
    Thin adapter over the sops executable.

    The keyring is exported as SOPS_AGE_KEY_FILE so decrypt and edit find
    its private keys. A per-call `key_file` wins over the one given here.
    """

    name = "sops"

    def __init__(
        self,
        binary: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
        key_file: Optional[str | os.PathLike] = None,
        decrypt_attempts: int = 3,
        decrypt_retry_delay: float = 0.1,
    ):
        super().__init__(binary, runner)
        self.key_file = str(key_file) if key_file else None
        self.decrypt_attempts = decrypt_attempts
        self.decrypt_retry_delay = decrypt_retry_delay

    def _env(self, key_file: Optional[str | os.PathLike] = None) -> Optional[dict]:
        target = key_file or self.key_file
        return {KEY_FILE_ENV: str(target)} if target else None

    async def encrypt(
        self,
        file_path: str | os.PathLike,
        public_key: Optional[str] = None,
        *,
        key_file: Optional[str | os.PathLike] = None,
    ) -> str:
        args = ["encrypt"]
        if public_key:
            args += ["--age", public_key]
        args.append(str(file_path))
        result = await self.runner.run(self.argv(*args), env=self._env(key_file))
        return result.raise_for_status().stdout

    async def decrypt(self, file_path: str | os.PathLike, *, key_file: Optional[str | os.PathLike] = None) -> str:
        argv = self.argv("decrypt", str(file_path))
        env = self._env(key_file)
        attempt = 1
        while True:
            result = await self.runner.run(argv, env=env)
            if not _is_locked(result) or attempt >= self.decrypt_attempts:
                break
            log.warning(f"[SOPS] {file_path} is locked, retrying decrypt ({attempt}/{self.decrypt_attempts})")
            attempt += 1
            await asyncio.sleep(self.decrypt_retry_delay)
        return result.raise_for_status().stdout

    async def edit(self, file_path: str | os.PathLike, *, key_file: Optional[str | os.PathLike] = None) -> None:
        argv = self.argv("edit", str(file_path))
        result = await self.runner.run(argv, env=self._env(key_file), interactive=True)
        if result.exit_code not in (0, EXIT_FILE_NOT_MODIFIED):
            raise ExternalToolError(result.argv, result.exit_code, result.output)
