from __future__ import annotations
import secrets
from dataclasses import dataclass
from typing import Any, Dict

from redblack.crypto.primitives import hexd, hexe
from redblack.errors import KeyFormatError, MissingDependency
from redblack.protocol.constants import (
    COMPRESSED_PUBLIC_KEY_BYTES, PRIVATE_KEY_BYTES, UNCOMPRESSED_PUBLIC_KEY_BYTES
)


def require_crypto():
    try:
        from cryptography.hazmat.primitives.asymmetric import ec
        from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
        return ec, Encoding, PublicFormat
    except ImportError as e:
        raise MissingDependency("Missing dependency 'cryptography'") from e


@dataclass(frozen=True)
class KeyPair:
    private_key: str
    public_key: str

    def to_dict(self) -> Dict[str, str]:
        return {"prv": self.private_key, "pub": self.public_key}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "KeyPair":
        prv = d.get("prv", d.get("private_key"))
        if prv is None:
            raise KeyFormatError("Key pair has no private key")
        pub = public_key_hex(prv)
        claimed = d.get("pub", d.get("public_key"))
        if claimed is not None and load_public_key(claimed).public_numbers() != load_public_key(pub).public_numbers():
            raise KeyFormatError("Public key does not match private key")
        return cls(private_key=prv, public_key=pub)


def load_private_key(private_hex: str):
    ec, _, _ = require_crypto()
    try:
        raw = hexd(private_hex)
    except ValueError as e:
        raise KeyFormatError(f"Private key is not valid hex: {e}") from e
    if len(raw) != PRIVATE_KEY_BYTES:
        raise KeyFormatError(f"Private key must be {PRIVATE_KEY_BYTES} bytes, got {len(raw)}")
    try:
        return ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256K1())
    except ValueError as e:
        raise KeyFormatError(f"Private key out of range for curve: {e}") from e


def load_public_key(public_hex: str):
    ec, _, _ = require_crypto()
    try:
        raw = hexd(public_hex)
    except ValueError as e:
        raise KeyFormatError(f"Public key is not valid hex: {e}") from e
    if len(raw) not in (COMPRESSED_PUBLIC_KEY_BYTES, UNCOMPRESSED_PUBLIC_KEY_BYTES):
        raise KeyFormatError(f"Public key has unexpected length {len(raw)}")
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), raw)
    except ValueError as e:
        raise KeyFormatError(f"Public key is not a point on the curve: {e}") from e


def encode_public_key(public_key, compressed: bool = True) -> bytes:
    _, Encoding, PublicFormat = require_crypto()
    fmt = PublicFormat.CompressedPoint if compressed else PublicFormat.UncompressedPoint
    return public_key.public_bytes(Encoding.X962, fmt)


def public_key_hex(private_hex: str) -> str:
    return hexe(encode_public_key(load_private_key(private_hex).public_key()))


def generate_keypair() -> KeyPair:
    """Create a fresh secp256k1 identity or session key pair."""
    ec, _, _ = require_crypto()
    while True:
        raw = secrets.token_bytes(PRIVATE_KEY_BYTES)
        try:
            priv = ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256K1())
            break
        except ValueError:
            # zero or not below the group order; redraw
            continue
    return KeyPair(private_key=hexe(raw), public_key=hexe(encode_public_key(priv.public_key())))
