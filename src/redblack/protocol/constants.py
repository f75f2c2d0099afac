from __future__ import annotations
from enum import Enum
from typing import Literal

ROLE = Literal["client", "service"]

JSONRPC_VERSION = "2.0"
HELLO_METHOD = "hello"
HELLO_ID = 0

BLACK_FIELDS = ("msghex", "sighex", "spkhex")
RED_BODY_FIELDS = ("method", "error", "result")

PRIVATE_KEY_BYTES = 32
COMPRESSED_PUBLIC_KEY_BYTES = 33
UNCOMPRESSED_PUBLIC_KEY_BYTES = 65

ECIES_NONCE_BYTES = 16
ECIES_TAG_BYTES = 16

MAX_MSG_BYTES = 256 * 1024
MAX_JSON_DEPTH = 32
MAX_JSON_KEYS = 1000
MAX_HEX_LENGTH = 2 * (MAX_MSG_BYTES + 256)
MAX_SECURITY_FAILURES = 3


class ErrorKind(str, Enum):
    KEY_FORMAT = "KeyFormatError"
    SERIALIZATION = "SerializationError"
    MALFORMED_ENVELOPE = "MalformedEnvelope"
    SIGNATURE_VERIFICATION = "SignatureVerificationFailure"
    DECRYPTION = "DecryptionFailure"
    DESERIALIZATION = "DeserializationError"
    INVALID_PROTOCOL_ENVELOPE = "InvalidProtocolEnvelope"
    SESSION_ABORTED = "SessionAborted"
    MISSING_DEPENDENCY = "MissingDependency"
    PROTOCOL_STATE = "ProtocolStateError"


class ErrorCode:
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
