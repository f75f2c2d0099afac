from __future__ import annotations

def check_dependencies() -> tuple[bool, list[str]]:
    missing = []
    for mod, pipname in [
        ("cryptography", "cryptography"),
        ("structlog", "structlog"),
        ("pydantic", "pydantic"),
        ("ecies", "eciespy"),
    ]:
        try:
            __import__(mod)
        except ImportError:
            missing.append(pipname)
    return (len(missing) == 0, missing)
