"""
sopsage_core.utils
------------------
Small helpers for timestamps and key fingerprints.
Timestamps follow the age-keygen convention (RFC3339, second precision).
"""

from __future__ import annotations
import hashlib
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_ts(dt: datetime) -> str:
    # RFC3339; a zero offset is written as "Z" like age-keygen does
    text = dt.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def parse_ts(text: str) -> datetime:
    value = text.strip()
    if value.endswith("Z") or value.endswith("z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def fingerprint(public_key: str) -> str:
    """Short, stable SHA-256 digest of a public key for log lines."""
    return hashlib.sha256(public_key.encode("utf-8")).hexdigest()[:16]
