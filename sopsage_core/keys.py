"""
sopsage_core.keys
-----------------
The AgeKey record and its canonical three-line text form:

    # created: 2024-05-01T12:00:00Z
    # public key: age1...
    AGE-SECRET-KEY-1...

This is the exact layout age-keygen prints and sops reads from its key file.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from .errors import MalformedKeyError
from .utils import format_ts, parse_ts, fingerprint

CREATED_PREFIX = "# created: "
PUBLIC_KEY_PREFIX = "# public key: "
PRIVATE_KEY_PREFIX = "AGE-SECRET-KEY-"


def public_key_marker(public_key: str) -> str:
    return PUBLIC_KEY_PREFIX + public_key


@dataclass(frozen=True)
class AgeKey:
    public_key: str
    private_key: str
    created_at: datetime

    def __post_init__(self):
        if not self.public_key or any(c.isspace() for c in self.public_key):
            raise MalformedKeyError(f"invalid public key: {self.public_key!r}")
        if not self.private_key.startswith(PRIVATE_KEY_PREFIX):
            raise MalformedKeyError(f"private key for {self.public_key} lacks the {PRIVATE_KEY_PREFIX} prefix")

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.public_key)

    def lines(self) -> list[str]:
        return [
            CREATED_PREFIX + format_ts(self.created_at),
            public_key_marker(self.public_key),
            self.private_key,
        ]

    def to_text(self, newline: str = "\n") -> str:
        return newline.join(self.lines())

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        # never leak the private key through repr()
        return f"AgeKey(public_key={self.public_key!r}, created_at={format_ts(self.created_at)!r})"

    @classmethod
    def from_lines(cls, created_line: str, public_key_line: str, private_key_line: str) -> "AgeKey":
        """Build a key from its three located lines, validating each prefix."""
        if not created_line.startswith(CREATED_PREFIX):
            raise MalformedKeyError(f"expected a '{CREATED_PREFIX.strip()}' line, got {created_line!r}")
        if not public_key_line.startswith(PUBLIC_KEY_PREFIX):
            raise MalformedKeyError(f"expected a '{PUBLIC_KEY_PREFIX.strip()}' line, got {public_key_line!r}")

        raw_ts = created_line[len(CREATED_PREFIX):].strip()
        try:
            created_at = parse_ts(raw_ts)
        except ValueError as exc:
            raise MalformedKeyError(f"invalid creation timestamp {raw_ts!r}") from exc

        return cls(
            public_key=public_key_line[len(PUBLIC_KEY_PREFIX):].strip(),
            private_key=private_key_line.strip(),
            created_at=created_at,
        )

    @classmethod
    def from_text(cls, raw: str) -> "AgeKey":
        lines = [line for line in raw.splitlines() if line.strip()]
        if len(lines) < 3:
            raise MalformedKeyError(f"a key needs 3 lines, got {len(lines)}")
        return cls.from_lines(*lines[:3])


def parse_records(lines: Sequence[str]) -> list[tuple[int, AgeKey]]:
    """Locate every record in a keyring's lines.

    Returns (start line index, key) pairs in file order. A creation line not
    followed by two well-formed lines raises MalformedKeyError.
    """
    records: list[tuple[int, AgeKey]] = []
    for i, line in enumerate(lines):
        if not line.startswith(CREATED_PREFIX):
            continue
        if i + 2 >= len(lines):
            raise MalformedKeyError(f"truncated key record at line {i + 1}")
        try:
            key = AgeKey.from_lines(lines[i], lines[i + 1], lines[i + 2])
        except MalformedKeyError as exc:
            raise MalformedKeyError(f"malformed key record at line {i + 1}: {exc}") from exc
        records.append((i, key))
    return records
