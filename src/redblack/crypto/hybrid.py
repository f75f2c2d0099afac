"""Hybrid encryption on secp256k1, delegated to ``eciespy``.

A fresh ephemeral key pair is generated for every message and the payload is
sealed with AES-256-GCM. The output is byte-compatible with eciesjs::

    ephemeral_pub (65, uncompressed) || nonce (16) || tag (16) || ciphertext
"""
from __future__ import annotations

from redblack.crypto.keys import load_private_key, load_public_key
from redblack.errors import DecryptionFailure, MissingDependency
from redblack.protocol.constants import (
    ECIES_NONCE_BYTES, ECIES_TAG_BYTES, UNCOMPRESSED_PUBLIC_KEY_BYTES
)

HEADER_BYTES = UNCOMPRESSED_PUBLIC_KEY_BYTES + ECIES_NONCE_BYTES + ECIES_TAG_BYTES


def require_ecies():
    try:
        import ecies
        return ecies
    except ImportError as e:
        raise MissingDependency("Missing dependency 'eciespy'") from e


def encrypt(receiver_public_hex: str, data: bytes) -> bytes:
    ecies = require_ecies()
    load_public_key(receiver_public_hex)
    return ecies.encrypt(receiver_public_hex, data)


def decrypt(receiver_private_hex: str, data: bytes) -> bytes:
    ecies = require_ecies()
    load_private_key(receiver_private_hex)

    if len(data) < HEADER_BYTES:
        raise DecryptionFailure(f"Ciphertext too short: {len(data)} < {HEADER_BYTES}")
    try:
        return ecies.decrypt(receiver_private_hex, data)
    except (ValueError, TypeError) as e:
        raise DecryptionFailure(f"Hybrid decryption failed: {e}") from e
