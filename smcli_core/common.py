"""
Constants and small helpers shared across the wallet core.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from smcli_core.errors import MalformedField

# Upper bound on accounts derived into a single wallet
MAX_ACCOUNTS_PER_WALLET = 100

# Human-readable address prefixes
HRP_MAINNET = "sm"
HRP_TESTNET = "stest"

# Ed25519 sizes
PUBLIC_KEY_SIZE = 32
PRIVATE_KEY_SIZE = 64
SEED_SIZE = 32


def now_time_string() -> str:
    """UTC timestamp safe for use in file names, e.g. ``2024-01-31T09-15-02.123Z``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S.%f")[:-3] + "Z"


def encode_hex(data: bytes) -> str:
    return bytes(data).hex()


def decode_hex(value: Any, field_name: str) -> bytes:
    """Decode a hex string (either case); anything else raises MalformedField."""
    if not isinstance(value, str):
        raise MalformedField(f"{field_name}: expected hex string, got {type(value).__name__}")
    # bytes.fromhex skips spaces between byte pairs
    if any(c.isspace() for c in value):
        raise MalformedField(f"{field_name}: malformed hex")
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise MalformedField(f"{field_name}: malformed hex") from exc
