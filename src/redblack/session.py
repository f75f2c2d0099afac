from __future__ import annotations
from enum import Enum, auto
from typing import Any, Optional, Set, Tuple, Union

import structlog

from redblack.codec import open_black, red_to_black
from redblack.crypto.keys import KeyPair, generate_keypair, load_public_key
from redblack.errors import (
    InvalidProtocolEnvelope, MalformedEnvelope, ProtocolStateError, SecurityEvent,
    SessionAborted, SignatureVerificationFailure,
)
from redblack.protocol.constants import HELLO_METHOD, MAX_SECURITY_FAILURES, ROLE
from redblack.protocol.messages import (
    BlackMessage, ErrorResponse, Hello, RedMessage, Request, Response,
    make_error, make_hello, make_request, parse_red_message,
)
from redblack.protocol.validation import fuzz_resistant_json_loads, is_black_msg, is_jsonrpc

logger = structlog.get_logger(__name__)

Frame = Union[BlackMessage, Hello]


class Phase(Enum):
    INIT = auto()
    ESTABLISHED = auto()
    ABORTED = auto()


def classify_frame(frame: Union[str, bytes]) -> Frame:
    """Parse one transport frame.

    Only two things travel in the clear: the service hello and black
    envelopes. Anything else is rejected.
    """
    try:
        obj = fuzz_resistant_json_loads(frame)
    except (ValueError, RecursionError) as e:
        raise MalformedEnvelope(f"Frame is not valid JSON: {e}") from e

    if is_black_msg(obj):
        return BlackMessage.from_wire(obj)
    if is_jsonrpc(obj):
        if obj.get("method") != HELLO_METHOD:
            raise InvalidProtocolEnvelope("Only hello may be sent unencrypted")
        return parse_red_message(obj)
    raise MalformedEnvelope("Frame is neither an envelope nor a hello")


def _same_key(a: str, b: str) -> bool:
    return load_public_key(a).public_numbers() == load_public_key(b).public_numbers()


class Session:
    def __init__(self, role: ROLE, keys: KeyPair):
        self.role = role
        self.keys: Optional[KeyPair] = keys
        self.peer_public_key: Optional[str] = None
        self.phase = Phase.INIT
        self.security_failures = 0

    def _require(self, phase: Phase):
        if self.phase is Phase.ABORTED:
            raise SessionAborted("Session aborted")
        if self.phase is not phase:
            raise ProtocolStateError(f"Operation invalid in phase {self.phase.name}")

    def _open(self, frame: Union[str, bytes], sender: Optional[str] = None) -> Tuple[BlackMessage, RedMessage]:
        envelope = classify_frame(frame)
        if not isinstance(envelope, BlackMessage):
            raise InvalidProtocolEnvelope("Expected an encrypted envelope")
        try:
            if sender is not None and not _same_key(envelope.spkhex, sender):
                raise SignatureVerificationFailure("Envelope not signed by the expected key")
            message = open_black(self.keys.private_key, envelope)
        except SecurityEvent as e:
            self._security_event(e)
            raise
        self.security_failures = 0
        return envelope, message

    def _security_event(self, e: SecurityEvent):
        self.security_failures += 1
        logger.warning("security_event", role=self.role, kind=e.kind.value,
                       error=str(e), failures=self.security_failures)
        if self.security_failures >= MAX_SECURITY_FAILURES:
            self.cleanup()
            raise SessionAborted(f"Too many security failures ({self.security_failures})") from e

    def seal(self, message: Any, to: Optional[str] = None) -> str:
        if self.phase is Phase.ABORTED:
            raise SessionAborted("Session aborted")
        recipient = to or self.peer_public_key
        if recipient is None:
            raise ProtocolStateError("No peer public key")
        return red_to_black(self.keys.private_key, recipient, message).to_json()

    def cleanup(self):
        self.keys = None
        self.peer_public_key = None
        self.phase = Phase.ABORTED


class ServiceSession(Session):
    """Service side of one connection, holding a fresh session key pair."""

    def __init__(self):
        super().__init__("service", generate_keypair())

    def hello_frame(self) -> str:
        self._require(Phase.INIT)
        self.phase = Phase.ESTABLISHED
        logger.info("hello_sent", role=self.role, session_key=self.keys.public_key)
        return make_hello(self.keys.public_key).to_json()

    def receive(self, frame: Union[str, bytes]) -> Request:
        self._require(Phase.ESTABLISHED)
        envelope, message = self._open(frame)
        if not isinstance(message, Request):
            raise InvalidProtocolEnvelope(f"Service expected a request, got {message.kind}")
        self.peer_public_key = envelope.spkhex
        logger.debug("request_received", role=self.role, method=message.method, id=message.id)
        return message

    def reply(self, message: Union[Response, ErrorResponse], to: Optional[str] = None) -> str:
        self._require(Phase.ESTABLISHED)
        return self.seal(message, to)

    def reply_error(self, code: int, message: str, id: int, to: Optional[str] = None) -> str:
        return self.reply(make_error(code, message, id), to)


class ClientSession(Session):
    """Client side of one connection.

    ``identity`` may be a long-lived key pair; a throwaway one is generated
    when it is omitted.
    """

    def __init__(self, identity: Optional[KeyPair] = None):
        super().__init__("client", identity or generate_keypair())
        self._next_id = 1
        self._pending: Set[int] = set()

    def accept_hello(self, frame: Union[str, bytes]) -> Hello:
        self._require(Phase.INIT)
        hello = classify_frame(frame)
        if not isinstance(hello, Hello):
            raise InvalidProtocolEnvelope("Expected hello as the first frame")
        load_public_key(hello.session_public_key)
        self.peer_public_key = hello.session_public_key
        self.phase = Phase.ESTABLISHED
        logger.info("session_established", role=self.role, session_key=self.peer_public_key)
        return hello

    def request(self, method: str, params: Any = ()) -> Tuple[int, str]:
        self._require(Phase.ESTABLISHED)
        req_id = self._next_id
        self._next_id += 1
        frame = self.seal(make_request(method, params, req_id))
        self._pending.add(req_id)
        logger.debug("request_sent", role=self.role, method=method, id=req_id)
        return req_id, frame

    @property
    def pending(self) -> Set[int]:
        return set(self._pending)

    def receive(self, frame: Union[str, bytes]) -> Union[Response, ErrorResponse]:
        self._require(Phase.ESTABLISHED)
        _, message = self._open(frame, sender=self.peer_public_key)
        if not isinstance(message, (Response, ErrorResponse)):
            raise InvalidProtocolEnvelope(f"Client expected a response, got {message.kind}")
        if message.id not in self._pending:
            raise InvalidProtocolEnvelope(f"Response id {message.id} matches no pending request")
        self._pending.discard(message.id)
        return message

