from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence
import asyncio
import os

from sopsage_core.errors import ExternalToolError, ToolNotFoundError
from sopsage_core.logger import get_logger

log = get_logger("SOPSAge.Tools")


@dataclass
class CommandResult:
    argv: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Diagnostic text: stdout and stderr as the tool printed them."""
        return "\n".join(part for part in (self.stdout.rstrip("\n"), self.stderr.rstrip("\n")) if part)

    def raise_for_status(self) -> "CommandResult":
        if not self.ok:
            raise ExternalToolError(self.argv, self.exit_code, self.output)
        return self


class CommandRunner:
    """
    Runs an external executable and captures what it prints.

    Interactive runs (sops edit) inherit the terminal and capture nothing.
    Cancelling the awaiting task kills the child process.
    """

    async def run(
        self,
        argv: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        interactive: bool = False,
    ) -> CommandResult:
        argv = [str(a) for a in argv]
        full_env = {**os.environ, **env} if env else None
        pipe = None if interactive else asyncio.subprocess.PIPE

        log.debug(f"[RUN] {argv[0]} {' '.join(argv[1:2])}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=None if interactive else asyncio.subprocess.DEVNULL,
                stdout=pipe,
                stderr=pipe,
                env=full_env,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(argv) from exc

        try:
            out, err = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        result = CommandResult(
            argv=argv,
            exit_code=proc.returncode,
            stdout=(out or b"").decode("utf-8", errors="replace"),
            stderr=(err or b"").decode("utf-8", errors="replace"),
        )
        if not result.ok:
            log.error(f"[RUN] {argv[0]} exited with {result.exit_code}")
        return result


class BaseTool:
    """A named executable driven through a CommandRunner."""
    name: str = "base"

    def __init__(self, binary: Optional[str] = None, runner: Optional[CommandRunner] = None):
        self.binary = binary or self.name
        self.runner = runner or CommandRunner()

    def argv(self, *args: str) -> list[str]:
        return [self.binary, *args]
