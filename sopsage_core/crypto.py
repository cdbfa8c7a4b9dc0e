"""
sopsage_core.crypto
-------------------
In-process age identity generation:

- X25519 key pair from `cryptography`
- Bech32 encoding with the age human-readable parts
  ("age" for recipients, "AGE-SECRET-KEY-" for identities)

NativeAgeKeygen has the same interface as tools.AgeKeygen, so it can stand
in where the age-keygen binary is not installed.
"""

from __future__ import annotations
from typing import Iterable, List, Tuple
from cryptography.hazmat.primitives.asymmetric import x25519
from .keys import AgeKey
from .utils import utc_now

AGE_PUBLIC_HRP = "age"
AGE_SECRET_HRP = "age-secret-key-"

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GEN = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


# --------- X25519 ----------
def x25519_generate() -> Tuple[bytes, bytes]:
    sk = x25519.X25519PrivateKey.generate()
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()


def x25519_public_from_private(priv_raw: bytes) -> bytes:
    return x25519.X25519PrivateKey.from_private_bytes(priv_raw).public_key().public_bytes_raw()


# --------- Bech32 (BIP-173) ----------
def _polymod(values: Iterable[int]) -> int:
    chk = 1
    for v in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= _BECH32_GEN[i] if ((top >> i) & 1) else 0
    return chk


def _hrp_expand(hrp: str) -> List[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convertbits(data: bytes, frombits: int, tobits: int) -> List[int]:
    acc, bits, out = 0, 0, []
    maxv = (1 << tobits) - 1
    for value in data:
        acc = (acc << frombits) | value
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            out.append((acc >> bits) & maxv)
    if bits:
        out.append((acc << (tobits - bits)) & maxv)
    return out


def bech32_encode(hrp: str, payload: bytes) -> str:
    hrp = hrp.lower()
    data = _convertbits(payload, 8, 5)
    mod = _polymod(_hrp_expand(hrp) + data + [0] * 6) ^ 1
    checksum = [(mod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_BECH32_CHARSET[d] for d in data + checksum)


def bech32_decode(text: str) -> Tuple[str, bytes]:
    """Inverse of bech32_encode; raises ValueError on a bad checksum."""
    lowered = text.lower()
    pos = lowered.rfind("1")
    if pos < 1 or pos + 7 > len(lowered):
        raise ValueError("not a bech32 string")
    hrp = lowered[:pos]
    try:
        data = [_BECH32_CHARSET.index(c) for c in lowered[pos + 1:]]
    except ValueError as exc:
        raise ValueError("invalid bech32 character") from exc
    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise ValueError("bech32 checksum mismatch")
    acc, bits, out = 0, 0, bytearray()
    for value in data[:-6]:
        acc = (acc << 5) | value
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((acc >> bits) & 0xFF)
    return hrp, bytes(out)


# --------- age identities ----------
def encode_age_key_pair(priv_raw: bytes, pub_raw: bytes) -> Tuple[str, str]:
    public_key = bech32_encode(AGE_PUBLIC_HRP, pub_raw)
    private_key = bech32_encode(AGE_SECRET_HRP, priv_raw).upper()
    return public_key, private_key


def public_key_for(private_key: str) -> str:
    """Derive the age recipient string from an AGE-SECRET-KEY-1... identity."""
    hrp, priv_raw = bech32_decode(private_key)
    if hrp != AGE_SECRET_HRP:
        raise ValueError(f"unexpected identity prefix {hrp!r}")
    return bech32_encode(AGE_PUBLIC_HRP, x25519_public_from_private(priv_raw))


class NativeAgeKeygen:
    name = "native"

    async def generate(self) -> AgeKey:
        priv_raw, pub_raw = x25519_generate()
        public_key, private_key = encode_age_key_pair(priv_raw, pub_raw)
        return AgeKey(public_key=public_key, private_key=private_key, created_at=utc_now())
