"""
Record identifiers of the form `{prefix}_{epoch_ms}_{random}`.
"""

import secrets
import time

ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def make_id(prefix: str, length: int = 9, upper: bool = False) -> str:
    suffix = random_suffix(length)
    return f"{prefix}_{int(time.time() * 1000)}_{suffix.upper() if upper else suffix}"
