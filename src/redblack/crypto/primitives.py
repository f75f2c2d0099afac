from __future__ import annotations
import hashlib
import re
from redblack.protocol.constants import MAX_HEX_LENGTH

_HEX_RE = re.compile(r"\A(?:[0-9a-fA-F]{2})*\Z")


def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


def hexe(b: bytes) -> str:
    return b.hex()


def hexd(s: str) -> bytes:
    # bytes.fromhex() tolerates whitespace, the wire format does not
    if not isinstance(s, str):
        raise ValueError(f"Hex value must be a string, not {type(s).__name__}")
    if len(s) > MAX_HEX_LENGTH:
        raise ValueError(f"Hex too long: {len(s)} > {MAX_HEX_LENGTH}")
    if not _HEX_RE.match(s):
        raise ValueError("Invalid hex string")
    return bytes.fromhex(s)
