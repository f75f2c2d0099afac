from __future__ import annotations
from typing import ClassVar

from redblack.protocol.constants import ErrorKind


class RedBlackError(Exception):
    """Base class for every failure raised by the red/black transform."""

    kind: ClassVar[ErrorKind]


class KeyFormatError(RedBlackError, ValueError):
    kind = ErrorKind.KEY_FORMAT


class SerializationError(RedBlackError, ValueError):
    kind = ErrorKind.SERIALIZATION


class MalformedEnvelope(RedBlackError, ValueError):
    kind = ErrorKind.MALFORMED_ENVELOPE


class SecurityEvent(RedBlackError):
    """An envelope that is not authentic or not decryptable by us.

    These are never transient; callers should log them and drop the peer.
    """


class SignatureVerificationFailure(SecurityEvent):
    kind = ErrorKind.SIGNATURE_VERIFICATION


class DecryptionFailure(SecurityEvent):
    kind = ErrorKind.DECRYPTION


class DeserializationError(RedBlackError, ValueError):
    kind = ErrorKind.DESERIALIZATION


class InvalidProtocolEnvelope(RedBlackError, ValueError):
    kind = ErrorKind.INVALID_PROTOCOL_ENVELOPE


class SessionAborted(RedBlackError):
    kind = ErrorKind.SESSION_ABORTED


class MissingDependency(RedBlackError, RuntimeError):
    kind = ErrorKind.MISSING_DEPENDENCY


class ProtocolStateError(RedBlackError, RuntimeError):
    kind = ErrorKind.PROTOCOL_STATE
