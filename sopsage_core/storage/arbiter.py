"""Exclusive file access with bounded retry on lock contention.

Every keyring and config touch goes through FileAccessArbiter.run(): the file
is opened, locked exclusively (non-blocking), handed to a synchronous unit of
work in a worker thread, then unlocked and closed. If another handle holds
the lock the attempt is retried after a short sleep.
"""

from __future__ import annotations

import asyncio
import errno
import os
from pathlib import Path
from typing import BinaryIO, Callable, TypeVar

from sopsage_core.errors import FileAccessError, FileLockedError
from sopsage_core.logger import get_logger

log = get_logger("SOPSAge.Arbiter")

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 0.1

# errno values the OS uses for "someone else holds the lock"
_CONTENTION_ERRNOS = {errno.EACCES, errno.EAGAIN, errno.EWOULDBLOCK, getattr(errno, "EDEADLK", -1)}
# Windows ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
_SHARING_WINERRORS = {32, 33}


def _is_contention(exc: OSError) -> bool:
    if isinstance(exc, BlockingIOError):
        return True
    if getattr(exc, "winerror", None) in _SHARING_WINERRORS:
        return True
    return exc.errno in _CONTENTION_ERRNOS


def _lock_file(handle: BinaryIO, path: Path) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)  # type: ignore[attr-defined]
        except OSError as exc:
            if _is_contention(exc):
                raise FileLockedError(str(path)) from exc
            raise
        return
    import fcntl

    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as exc:
        if _is_contention(exc):
            raise FileLockedError(str(path)) from exc
        raise


def _unlock_file(handle: BinaryIO) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        except OSError:
            pass
        return
    import fcntl

    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    except OSError:
        return


def _open_handle(path: Path, create: bool, exclusive_create: bool) -> BinaryIO:
    flags = os.O_RDWR | getattr(os, "O_BINARY", 0)
    if exclusive_create:
        flags |= os.O_CREAT | os.O_EXCL
    elif create:
        flags |= os.O_CREAT
    if create or exclusive_create:
        path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(path, flags, 0o600)
    except PermissionError as exc:
        # Windows reports a handle held without sharing as a permission error
        if getattr(exc, "winerror", None) in _SHARING_WINERRORS:
            raise FileLockedError(str(path)) from exc
        raise
    return os.fdopen(fd, "r+b")


def read_text(handle: BinaryIO) -> str:
    handle.seek(0)
    return handle.read().decode("utf-8")


def replace_text(handle: BinaryIO, text: str) -> None:
    """Rewrite the whole file in a single write call."""
    handle.seek(0)
    handle.truncate()
    handle.write(text.encode("utf-8"))
    handle.flush()
    os.fsync(handle.fileno())


class FileAccessArbiter:
    def __init__(self, attempts: int = DEFAULT_ATTEMPTS, retry_delay: float = DEFAULT_RETRY_DELAY):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.attempts = attempts
        self.retry_delay = retry_delay

    def _locked_call(self, path: Path, work: Callable[[BinaryIO], T], create: bool, exclusive_create: bool) -> T:
        handle = _open_handle(path, create, exclusive_create)
        try:
            _lock_file(handle, path)
            try:
                return work(handle)
            finally:
                _unlock_file(handle)
        finally:
            handle.close()

    async def run(
        self,
        path: str | os.PathLike,
        work: Callable[[BinaryIO], T],
        *,
        create: bool = False,
        exclusive_create: bool = False,
    ) -> T:
        """Run `work(handle)` while holding an exclusive lock on `path`.

        Raises FileAccessError once all attempts hit lock contention.
        FileNotFoundError / FileExistsError from opening propagate as-is.
        """
        target = Path(path)
        last_exc: FileLockedError | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                return await asyncio.to_thread(self._locked_call, target, work, create, exclusive_create)
            except FileLockedError as exc:
                last_exc = exc
                log.warning(f"[LOCK] {target} busy (attempt {attempt}/{self.attempts})")
                if attempt < self.attempts:
                    await asyncio.sleep(self.retry_delay)
        log.error(f"[LOCK] giving up on {target} after {self.attempts} attempts")
        raise FileAccessError(str(target), self.attempts) from last_exc
