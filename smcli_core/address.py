"""
Principal (template) addresses.

An account address is known before the account ever appears on chain: it
is the hash of the template that will spawn it together with the spawn
arguments.

    address = 0x00000000 || BLAKE2b-256(template || encode(args))[12:]

Addresses render as bech32 with a network prefix (HRP).  The prefix is a
plain argument of every call here; nothing in this module keeps state.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol

import bech32

from smcli_core.common import PUBLIC_KEY_SIZE
from smcli_core.errors import MalformedField

ADDRESS_LENGTH = 24
ADDRESS_RESERVED = 4


@dataclass(frozen=True)
class Address:
    """A 24-byte account or template address."""
    raw: bytes

    def __post_init__(self):
        if len(self.raw) != ADDRESS_LENGTH:
            raise MalformedField(f"Address must be {ADDRESS_LENGTH} bytes, got {len(self.raw)}")

    def __bytes__(self) -> bytes:
        return self.raw

    def hex(self) -> str:
        return self.raw.hex()

    def to_string(self, hrp: str) -> str:
        """Bech32 form, e.g. ``sm1qqqqqq...``."""
        if not hrp or hrp != hrp.lower() or any(ord(c) < 33 or ord(c) > 126 for c in hrp):
            raise MalformedField(f"Invalid address prefix {hrp!r}")
        return bech32.bech32_encode(hrp, bech32.convertbits(self.raw, 8, 5))

    @classmethod
    def from_string(cls, text: str, hrp: str | None = None) -> Address:
        """Parse a bech32 address; if *hrp* is given the prefix must match."""
        found_hrp, data = bech32.bech32_decode(text)
        if found_hrp is None or data is None:
            raise MalformedField(f"Invalid bech32 address: {text!r}")
        if hrp is not None and found_hrp != hrp:
            raise MalformedField(f"Address prefix {found_hrp!r} does not match {hrp!r}")
        raw = bech32.convertbits(data, 5, 8, False)
        if raw is None:
            raise MalformedField(f"Invalid bech32 payload: {text!r}")
        return cls(bytes(raw))


def template_address(code: int) -> Address:
    """Built-in template addresses are all zeros except the last byte."""
    return Address(bytes(ADDRESS_LENGTH - 1) + bytes([code]))


WALLET_TEMPLATE = template_address(1)
MULTISIG_TEMPLATE = template_address(2)


class SpawnArguments(Protocol):
    def encode(self) -> bytes:
        ...


def encode_compact(n: int) -> bytes:
    """SCALE compact integer encoding (used for collection lengths)."""
    if n < 0:
        raise ValueError("compact integers are unsigned")
    if n < 1 << 6:
        return bytes([n << 2])
    if n < 1 << 14:
        return ((n << 2) | 0b01).to_bytes(2, "little")
    if n < 1 << 30:
        return ((n << 2) | 0b10).to_bytes(4, "little")
    body = n.to_bytes((n.bit_length() + 7) // 8, "little")
    return bytes([((len(body) - 4) << 2) | 0b11]) + body


def check_public_key(public_key: bytes, field_name: str = "public key") -> bytes:
    if not isinstance(public_key, (bytes, bytearray)) or len(public_key) != PUBLIC_KEY_SIZE:
        raise MalformedField(f"{field_name} must be {PUBLIC_KEY_SIZE} bytes")
    return bytes(public_key)


@dataclass(frozen=True)
class WalletSpawnArguments:
    """Spawn arguments of the single-key wallet template."""
    public_key: bytes

    def __post_init__(self):
        check_public_key(self.public_key)

    def encode(self) -> bytes:
        return bytes(self.public_key)


def compute_principal(template: Address, args: SpawnArguments) -> Address:
    h = hashlib.blake2b(digest_size=32)
    h.update(bytes(template))
    h.update(args.encode())
    digest = h.digest()
    return Address(bytes(ADDRESS_RESERVED) + digest[12:])


def wallet_principal(public_key: bytes) -> Address:
    return compute_principal(WALLET_TEMPLATE, WalletSpawnArguments(check_public_key(public_key)))


def pubkey_to_address(public_key: bytes, hrp: str) -> str:
    """Bech32 address of the single-key wallet owned by *public_key*."""
    return wallet_principal(public_key).to_string(hrp)
