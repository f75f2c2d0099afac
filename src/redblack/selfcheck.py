from __future__ import annotations
import sys

import structlog

from redblack.codec import black_to_red, red_to_black, try_black_to_red
from redblack.crypto.keys import generate_keypair
from redblack.crypto.primitives import hexd
from redblack.errors import DecryptionFailure, SignatureVerificationFailure
from redblack.protocol.constants import ErrorKind
from redblack.protocol.messages import make_hello, make_request, make_response
from redblack.protocol.validation import is_black_msg, is_jsonrpc
from redblack.session import ClientSession, ServiceSession

logger = structlog.get_logger(__name__)


def _flip_first(hexstr: str) -> str:
    return ("1" if hexstr[0] == "0" else "0") + hexstr[1:]


def smoke_test() -> bool:
    """Run one hello/request/response exchange through the whole stack."""
    client_key = generate_keypair()
    service_key = generate_keypair()

    hello = make_hello(service_key.public_key)
    logger.info("smoke_hello", hello=hello.to_wire())

    request = make_request("doSomething", ["testing", 123], 5)
    black = red_to_black(client_key.private_key, hello.session_public_key, request)
    logger.info("smoke_request_sealed", is_jsonrpc=is_jsonrpc(request), is_black=is_black_msg(black))

    red = black_to_red(service_key.private_key, black)
    response = make_response({"answer": 42}, red["id"])
    reply = black_to_red(client_key.private_key, red_to_black(service_key.private_key, client_key.public_key, response))
    logger.info("smoke_reply_opened", reply=reply)

    return red == request.to_wire() and reply == response.to_wire()


def session_test() -> bool:
    service = ServiceSession()
    client = ClientSession()
    client.accept_hello(service.hello_frame())
    req_id, frame = client.request("ping", [])
    request = service.receive(frame)
    answer = client.receive(service.reply(make_response({"pong": True}, request.id)))
    return answer.id == req_id and answer.result == {"pong": True} and not client.pending


def security_self_check():
    checks = []

    checks.append(("Python >= 3.10", sys.version_info >= (3, 10)))

    try:
        keys = generate_keypair()
        checks.append(("Key generation", len(hexd(keys.private_key)) == 32 and keys.public_key[:2] in ("02", "03")))
    except Exception:
        checks.append(("Key generation", False))

    try:
        checks.append(("Round trip", smoke_test()))
    except Exception:
        checks.append(("Round trip", False))

    try:
        checks.append(("Session exchange", session_test()))
    except Exception:
        checks.append(("Session exchange", False))

    a, b, c = generate_keypair(), generate_keypair(), generate_keypair()
    black = red_to_black(a.private_key, b.public_key, {"ping": True})

    tampered = black.model_copy(update={"msghex": _flip_first(black.msghex)})
    try:
        black_to_red(b.private_key, tampered)
        checks.append(("Tamper detection", False))
    except SignatureVerificationFailure:
        checks.append(("Tamper detection", True))
    except Exception:
        checks.append(("Tamper detection", False))

    try:
        black_to_red(c.private_key, black)
        checks.append(("Wrong-key rejection", False))
    except DecryptionFailure:
        checks.append(("Wrong-key rejection", True))
    except Exception:
        checks.append(("Wrong-key rejection", False))

    checks.append(("Error kinds", try_black_to_red(c.private_key, black).error_kind is ErrorKind.DECRYPTION))

    all_ok = all(ok for _, ok in checks)
    for name, ok in checks:
        (logger.info if ok else logger.error)("security_check", check=name, status=("OK" if ok else "FAILED"))

    if not all_ok:
        raise RuntimeError("Security self-check failed")
    logger.info("security_self_check_passed")
    return True
