from __future__ import annotations
import json
from collections.abc import Mapping
from typing import Any
from .constants import (
    BLACK_FIELDS, JSONRPC_VERSION, MAX_JSON_DEPTH, MAX_JSON_KEYS, MAX_MSG_BYTES, RED_BODY_FIELDS
)

def check_json_limits(obj: Any, depth: int = 0) -> None:
    if depth > MAX_JSON_DEPTH:
        raise ValueError("JSON nesting too deep")
    if isinstance(obj, dict):
        if len(obj) > MAX_JSON_KEYS:
            raise ValueError("Too many JSON keys")
        for v in obj.values():
            check_json_limits(v, depth + 1)
    elif isinstance(obj, (list, tuple)):
        for v in obj:
            check_json_limits(v, depth + 1)

def fuzz_resistant_json_loads(s: str | bytes) -> Any:
    if len(s) > MAX_MSG_BYTES * 2:
        raise ValueError("Message too large")

    def object_hook(obj):
        if len(obj) > MAX_JSON_KEYS:
            raise ValueError("Too many JSON keys")
        return obj

    parsed = json.loads(s, object_hook=object_hook)
    check_json_limits(parsed)
    return parsed

def json_dumps_compact(o: Any) -> str:
    return json.dumps(o, ensure_ascii=False, separators=(",", ":"), allow_nan=False)

def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)

def is_black_msg(obj: Any) -> bool:
    if obj is None:
        return False
    return all(_field(obj, name) is not None for name in BLACK_FIELDS)

def is_jsonrpc(obj: Any) -> bool:
    return (
        obj is not None
        and _field(obj, "jsonrpc") == JSONRPC_VERSION
        and _field(obj, "id") is not None
        and any(_field(obj, name) is not None for name in RED_BODY_FIELDS)
    )
