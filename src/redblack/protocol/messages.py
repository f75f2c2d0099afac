"""Red (plaintext JSON-RPC 2.0) and black (encrypted wire) message types.

A red message is exactly one of four kinds: :class:`Hello`, :class:`Request`,
:class:`Response` or :class:`ErrorResponse`. Instances are immutable; every
factory returns a fresh value and ``to_wire()`` returns a fresh plain dict.
"""
from collections.abc import Mapping
from typing import Any, ClassVar, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from redblack.errors import InvalidProtocolEnvelope, MalformedEnvelope
from .constants import HELLO_ID, HELLO_METHOD, JSONRPC_VERSION, RED_BODY_FIELDS
from .validation import is_black_msg, is_jsonrpc, json_dumps_compact


class _Wire(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        return json_dumps_compact(self.to_wire())


class Hello(_Wire):
    kind: ClassVar[str] = "hello"
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: Literal["hello"] = HELLO_METHOD
    params: Tuple[StrictStr]
    id: StrictInt = HELLO_ID

    @property
    def session_public_key(self) -> str:
        return self.params[0]


class Request(_Wire):
    kind: ClassVar[str] = "request"
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: StrictStr
    params: Tuple[Any, ...] = ()
    id: StrictInt


class Response(_Wire):
    kind: ClassVar[str] = "response"
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    result: Dict[str, Any]
    id: StrictInt


class ErrorObject(_Wire):
    code: StrictInt
    message: StrictStr
    data: Optional[Any] = None


class ErrorResponse(_Wire):
    kind: ClassVar[str] = "error"
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    error: ErrorObject
    id: StrictInt

    def to_wire(self) -> Dict[str, Any]:
        wire = super().to_wire()
        if self.error.data is None:
            del wire["error"]["data"]
        return wire


RedMessage = Union[Hello, Request, Response, ErrorResponse]
RED_TYPES = (Hello, Request, Response, ErrorResponse)


class BlackMessage(_Wire):
    msghex: StrictStr
    sighex: StrictStr
    spkhex: StrictStr

    @classmethod
    def from_wire(cls, obj: Any) -> "BlackMessage":
        if isinstance(obj, BlackMessage):
            return obj
        if not isinstance(obj, Mapping) or not is_black_msg(obj):
            raise MalformedEnvelope("Not an encrypted envelope (need msghex, sighex, spkhex)")
        try:
            return cls.model_validate({k: obj[k] for k in ("msghex", "sighex", "spkhex")})
        except ValidationError as e:
            raise MalformedEnvelope(f"Envelope fields must be strings: {e.error_count()} error(s)") from e


def make_hello(session_public_key_hex: str) -> Hello:
    return Hello(params=(session_public_key_hex,))


def make_request(method: str, params: Any, id: int) -> Request:
    return Request(method=method, params=tuple(params), id=id)


def make_response(result: Dict[str, Any], id: int) -> Response:
    return Response(result=result, id=id)


def make_error(code: int, message: str, id: int) -> ErrorResponse:
    return ErrorResponse(error=ErrorObject(code=code, message=message), id=id)


def parse_red_message(obj: Any) -> RedMessage:
    """Classify a decoded JSON value as one of the four red message kinds.

    Acceptance follows :func:`is_jsonrpc`; beyond that exactly one of
    ``method``, ``result`` and ``error`` must be present, and the body must
    match the shape of its kind.
    """
    if isinstance(obj, RED_TYPES):
        return obj
    if not isinstance(obj, Mapping) or not is_jsonrpc(obj):
        raise InvalidProtocolEnvelope("Not a JSON-RPC 2.0 envelope")

    present = [name for name in RED_BODY_FIELDS if obj.get(name) is not None]
    if len(present) != 1:
        raise InvalidProtocolEnvelope(f"Expected exactly one of method/result/error, got {present}")

    body = present[0]
    if body == "method":
        cls = Hello if obj["method"] == HELLO_METHOD else Request
    elif body == "result":
        cls = Response
    else:
        cls = ErrorResponse

    try:
        return cls.model_validate(dict(obj))
    except ValidationError as e:
        raise InvalidProtocolEnvelope(f"Malformed {cls.kind} message: {e.error_count()} error(s)") from e
