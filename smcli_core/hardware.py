"""
Hardware signer capability for smcli wallets.

Provides:
- ``HardwareSigner`` protocol the wallet core talks to
- ``MockHardwareSigner`` for testing with real Ed25519 keys

The device transport (USB HID, APDU framing, ...) lives outside this package;
any object with ``get_public_key`` and ``sign`` can stand in for a device.
Adapters should raise ``TimeoutError`` / ``ConnectionError`` (or the wallet
``SignerError`` types directly) when the device stalls or goes away.

Security Note:
    MockHardwareSigner is for TESTING ONLY.  It keeps a seed in memory,
    which defeats the purpose of a hardware signer.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from smcli_core.keys import ed25519_sign, node_for_path, path_to_string
from smcli_core.secret_buffer import SecretBuffer

logger = logging.getLogger("smcli_hardware")


@runtime_checkable
class HardwareSigner(Protocol):
    """
    Interface every hardware signer adapter implements.

    The device performs its own HD derivation: callers pass the full path
    and only ever receive public keys and signatures back.
    """

    def get_public_key(self, path: list[int]) -> bytes:
        """Return the 32-byte Ed25519 public key at *path*."""
        ...

    def sign(self, path: list[int], message: bytes) -> bytes:
        """Sign *message* with the key at *path*; returns a 64-byte signature."""
        ...


class MockHardwareSigner:
    """
    In-memory signer deriving keys from a seed exactly as a device would.

    ``disconnect()`` makes every later call fail with ``ConnectionError``.
    """

    def __init__(self, seed: bytes):
        self._seed = SecretBuffer.copy_of(seed)
        self.connected = True
        self.calls = 0

    def _check(self) -> None:
        self.calls += 1
        if not self.connected:
            raise ConnectionError("device not connected")

    def disconnect(self) -> None:
        self.connected = False

    def get_public_key(self, path: list[int]) -> bytes:
        self._check()
        node = node_for_path(self._seed, path)
        try:
            return node.public_key()
        finally:
            node.wipe()

    def sign(self, path: list[int], message: bytes) -> bytes:
        self._check()
        logger.debug(f"Mock signer signing at {path_to_string(path)}")
        node = node_for_path(self._seed, path)
        try:
            return ed25519_sign(node.private_key.view(), message)
        finally:
            node.wipe()

    def wipe(self) -> None:
        self._seed.wipe()
