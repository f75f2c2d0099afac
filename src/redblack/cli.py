# redblack: encrypted, signed JSON-RPC 2.0 envelopes over an untrusted transport
# secp256k1 ECDSA + ECIES (eciespy, AES-256-GCM)

from __future__ import annotations

import argparse
import json
import sys

from redblack.util.deps import check_dependencies


def _read_json(value: str):
    text = sys.stdin.read() if value == "-" else value
    return json.loads(text)


def main(argv=None) -> int:
    ok, missing = check_dependencies()
    if not ok:
        print("ERROR: Missing dependencies:")
        for dep in missing:
            print(f"  - {dep}")
        print("\nInstall with:")
        print(f"pip install {' '.join(missing)}")
        return 1

    import structlog
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
    logger = structlog.get_logger("redblack")

    from redblack.codec import open_black, red_to_black
    from redblack.crypto.keys import generate_keypair
    from redblack.errors import RedBlackError
    from redblack.selfcheck import security_self_check

    parser = argparse.ArgumentParser(prog="redblack", description="Secure JSON-RPC envelopes")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("keygen", help="Generate a secp256k1 key pair")
    subparsers.add_parser("check", help="Run security self-check")

    seal_parser = subparsers.add_parser("seal", help="Encrypt and sign a red message")
    seal_parser.add_argument("--from-key", required=True, help="Sender private key (hex)")
    seal_parser.add_argument("--to-key", required=True, help="Recipient public key (hex)")
    seal_parser.add_argument("--message", default="-", help="JSON-RPC message, or - for stdin")

    open_parser = subparsers.add_parser("open", help="Verify and decrypt a black message")
    open_parser.add_argument("--key", required=True, help="Recipient private key (hex)")
    open_parser.add_argument("--envelope", default="-", help="Envelope JSON, or - for stdin")

    args = parser.parse_args(argv)

    if args.command == "keygen":
        print(json.dumps(generate_keypair().to_dict(), indent=2))
        return 0

    if args.command == "check":
        try:
            security_self_check()
        except RuntimeError as e:
            logger.error("self_check_failed", error=str(e))
            return 1
        print("✓ Security self-check passed")
        return 0

    try:
        if args.command == "seal":
            black = red_to_black(args.from_key, args.to_key, _read_json(args.message))
            print(black.to_json())
        elif args.command == "open":
            red = open_black(args.key, _read_json(args.envelope))
            print(json.dumps(red.to_wire(), indent=2))
    except json.JSONDecodeError as e:
        logger.error("invalid_json_input", error=str(e))
        return 1
    except RedBlackError as e:
        logger.error("protocol_error", kind=e.kind.value, error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
