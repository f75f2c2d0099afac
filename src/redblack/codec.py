"""Red/black transform.

``red_to_black`` serializes a red message, encrypts it to the recipient,
signs the SHA-256 of the *ciphertext* with the sender key and packages the
result as a :class:`BlackMessage`. ``black_to_red`` verifies that signature
before it lets the recipient key anywhere near the ciphertext.

Signing the ciphertext rather than the plaintext proves "this key produced
this ciphertext"; it does not prove the signer knew the plaintext. The
ordering is part of the wire format and is kept as is.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from redblack.crypto import hybrid
from redblack.crypto.keys import encode_public_key, load_private_key, load_public_key
from redblack.crypto.primitives import hexd, hexe, sha256
from redblack.errors import (
    DeserializationError, MalformedEnvelope, MissingDependency, RedBlackError,
    SerializationError, SignatureVerificationFailure,
)
from redblack.protocol.constants import MAX_MSG_BYTES, ErrorKind
from redblack.protocol.messages import RED_TYPES, BlackMessage, RedMessage, parse_red_message
from redblack.protocol.validation import check_json_limits, fuzz_resistant_json_loads, json_dumps_compact

logger = structlog.get_logger(__name__)


def require_signing():
    try:
        from cryptography.exceptions import InvalidSignature
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.asymmetric import ec
        from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
        return ec.ECDSA(Prehashed(hashes.SHA256())), InvalidSignature
    except ImportError as e:
        raise MissingDependency("Missing dependency 'cryptography'") from e


def serialize_red(message: Any) -> bytes:
    if isinstance(message, RED_TYPES):
        message = message.to_wire()
    try:
        check_json_limits(message)
        data = json_dumps_compact(message).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Message is not serializable: {e}") from e
    if len(data) > MAX_MSG_BYTES:
        raise SerializationError(f"Message too large: {len(data)} > {MAX_MSG_BYTES} bytes")
    return data


def red_to_black(sender_private_key: str, recipient_public_key: str, message: Any) -> BlackMessage:
    signer = load_private_key(sender_private_key)
    load_public_key(recipient_public_key)
    algorithm, _ = require_signing()

    red = serialize_red(message)
    ct = hybrid.encrypt(recipient_public_key, red)
    sig = signer.sign(sha256(ct), algorithm)
    spkhex = hexe(encode_public_key(signer.public_key()))

    logger.debug("envelope_sealed", spk=spkhex, ct_bytes=len(ct))
    return BlackMessage(msghex=hexe(ct), sighex=hexe(sig), spkhex=spkhex)


def _decode_field(envelope: BlackMessage, name: str) -> bytes:
    try:
        data = hexd(getattr(envelope, name))
    except ValueError as e:
        raise MalformedEnvelope(f"{name}: {e}") from e
    if not data:
        raise MalformedEnvelope(f"{name} is empty")
    return data


def black_to_red(recipient_private_key: str, envelope: Any) -> Any:
    envelope = BlackMessage.from_wire(envelope)
    ct = _decode_field(envelope, "msghex")
    sig = _decode_field(envelope, "sighex")
    digest = sha256(ct)

    sender = load_public_key(envelope.spkhex)
    algorithm, InvalidSignature = require_signing()
    try:
        sender.verify(sig, digest, algorithm)
    except InvalidSignature as e:
        raise SignatureVerificationFailure("Sender verification failure") from e

    red = hybrid.decrypt(recipient_private_key, ct)
    try:
        obj = fuzz_resistant_json_loads(red.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise DeserializationError(f"Decrypted payload is not valid JSON: {e}") from e

    logger.debug("envelope_opened", spk=envelope.spkhex, ct_bytes=len(ct))
    return obj


def open_black(recipient_private_key: str, envelope: Any) -> RedMessage:
    """Decode an envelope and classify the plaintext as a red message."""
    return parse_red_message(black_to_red(recipient_private_key, envelope))


@dataclass(frozen=True)
class Decoded:
    message: Optional[Any] = None
    error: Optional[RedBlackError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return None if self.error is None else self.error.kind


def try_black_to_red(recipient_private_key: str, envelope: Any) -> Decoded:
    try:
        return Decoded(message=black_to_red(recipient_private_key, envelope))
    except RedBlackError as e:
        return Decoded(error=e)
