"""
sopsage_core.storage.keyring_file
---------------------------------
The local keyring: a plain text file of three-line age key records.

Every operation reads the whole file under an exclusive lock, parses it into
located records, computes the new contents in memory and (for mutations)
rewrites the whole file in one write. Lines that are not part of a record
are kept verbatim.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Protocol, Tuple, Union

from sopsage_core.errors import (
    AmbiguousKeySourceError,
    DuplicateKeyError,
    KeyNotFoundError,
)
from sopsage_core.keys import AgeKey, parse_records
from sopsage_core.logger import get_logger
from sopsage_core.storage.arbiter import FileAccessArbiter, read_text, replace_text

log = get_logger("SOPSAge.Keyring")


class KeyGenerator(Protocol):
    async def generate(self) -> AgeKey: ...


def _split_lines(text: str) -> Tuple[List[str], List[str]]:
    r"""Split on "\n" only, keeping each line's own terminator ("\r\n", "\n" or "")."""
    lines: List[str] = []
    endings: List[str] = []
    chunks = text.split("\n")
    for chunk in chunks[:-1]:
        if chunk.endswith("\r"):
            lines.append(chunk[:-1])
            endings.append("\r\n")
        else:
            lines.append(chunk)
            endings.append("\n")
    if chunks[-1]:
        lines.append(chunks[-1])
        endings.append("")
    return lines, endings


@dataclass
class KeyringDocument:
    """Parsed view of a keyring file.

    `endings[i]` is the terminator that followed `lines[i]` in the file, so
    untouched lines render back byte for byte. New lines use `newline`.
    """
    lines: List[str] = field(default_factory=list)
    endings: List[str] = field(default_factory=list)
    newline: str = os.linesep
    records: List[Tuple[int, AgeKey]] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "KeyringDocument":
        if not text:
            return cls()
        lines, endings = _split_lines(text)
        return cls(
            lines=lines,
            endings=endings,
            newline=next((e for e in endings if e), "\n"),
            records=parse_records(lines),
        )

    def keys(self) -> List[AgeKey]:
        return [key for _, key in self.records]

    def find(self, public_key: str) -> Optional[Tuple[int, AgeKey]]:
        return next(((i, k) for i, k in self.records if k.public_key == public_key), None)

    def render(self) -> str:
        return "".join(line + end for line, end in zip(self.lines, self.endings))

    def append(self, key: AgeKey) -> None:
        if self.endings and not self.endings[-1]:
            self.endings[-1] = self.newline
        self.records.append((len(self.lines), key))
        for line in key.lines():
            self.lines.append(line)
            self.endings.append(self.newline)

    def remove(self, start: int) -> None:
        last_ending = self.endings[start + 2]
        del self.lines[start:start + 3]
        del self.endings[start:start + 3]
        # a record removed from the end hands its terminator (or lack of one) to the new last line
        if start == len(self.lines) and self.lines:
            self.endings[-1] = last_ending
        self.records = parse_records(self.lines)


KeyRef = Union[AgeKey, str]


class KeyringFile:
    """CRUD over one keyring file. All methods are coroutines."""

    def __init__(
        self,
        path: Union[str, os.PathLike],
        arbiter: Optional[FileAccessArbiter] = None,
        keygen: Optional[KeyGenerator] = None,
    ):
        self.path = Path(path)
        self.arbiter = arbiter or FileAccessArbiter()
        self.keygen = keygen

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def create(self) -> AgeKey:
        if self.keygen is None:
            raise RuntimeError("no key generator configured for this keyring")
        key = await self.keygen.generate()
        log.info(f"[KEYRING] generated key fp={key.fingerprint}")
        return await self.add(key)

    async def add(self, key: AgeKey) -> AgeKey:
        """Append `key` unless an identical record is already present."""

        def work(handle: BinaryIO) -> bool:
            doc = KeyringDocument.parse(read_text(handle))
            found = doc.find(key.public_key)
            if found is not None:
                if found[1] != key:
                    raise DuplicateKeyError(key.public_key, str(self.path))
                return False
            doc.append(key)
            replace_text(handle, doc.render())
            return True

        added = await self.arbiter.run(self.path, work, create=True)
        if added:
            log.info(f"[KEYRING] added fp={key.fingerprint} to {self.path}")
        else:
            log.debug(f"[KEYRING] fp={key.fingerprint} already present in {self.path}")
        return key

    async def import_file(self, source: Union[str, os.PathLike], public_key: Optional[str] = None) -> AgeKey:
        """Copy one record from another key file into this keyring."""
        source = Path(source)

        def pick(handle: BinaryIO) -> AgeKey:
            doc = KeyringDocument.parse(read_text(handle))
            if not public_key:
                if len(doc.records) > 1:
                    raise AmbiguousKeySourceError(str(source), len(doc.records))
                if not doc.records:
                    raise KeyNotFoundError("<any>", str(source))
                return doc.records[0][1]
            found = doc.find(public_key)
            if found is None:
                raise KeyNotFoundError(public_key, str(source))
            return found[1]

        key = await self.arbiter.run(source, pick)
        log.info(f"[KEYRING] importing fp={key.fingerprint} from {source}")
        return await self.add(key)

    async def remove(self, ref: KeyRef) -> AgeKey:
        """Remove a record by AgeKey (exact match) or by public key."""
        public_key = ref.public_key if isinstance(ref, AgeKey) else ref

        def work(handle: BinaryIO) -> AgeKey:
            doc = KeyringDocument.parse(read_text(handle))
            found = doc.find(public_key)
            if found is None or (isinstance(ref, AgeKey) and found[1] != ref):
                raise KeyNotFoundError(public_key, str(self.path))
            start, key = found
            doc.remove(start)
            replace_text(handle, doc.render())
            return key

        try:
            removed = await self.arbiter.run(self.path, work)
        except FileNotFoundError as exc:
            raise KeyNotFoundError(public_key, str(self.path)) from exc
        log.info(f"[KEYRING] removed fp={removed.fingerprint} from {self.path}")
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def _read(self) -> Optional[KeyringDocument]:
        try:
            return await self.arbiter.run(self.path, lambda h: KeyringDocument.parse(read_text(h)))
        except FileNotFoundError:
            return None

    async def get(self, public_key: str) -> AgeKey:
        doc = await self._read()
        found = doc.find(public_key) if doc else None
        if found is None:
            raise KeyNotFoundError(public_key, str(self.path))
        return found[1]

    async def exists(self, public_key: str) -> bool:
        doc = await self._read()
        return bool(doc and doc.find(public_key))

    async def list(self) -> List[AgeKey]:
        doc = await self._read()
        return doc.keys() if doc else []
