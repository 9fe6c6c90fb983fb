"""
Hierarchical deterministic Ed25519 keys for smcli wallets.

Implements SLIP-10 derivation over Ed25519 with HMAC-SHA512.  Ed25519 only
supports hardened children, so every path component is hardened.

Paths:
  master   m/44'/540'
  account  m/44'/540'/0'/0'/index'
(540 is the Spacemesh SLIP-44 coin type.)

Two keypair kinds share one surface (``sign``, ``verify``, ``derive_child``):
  - ``SeedKeyPair``     – private key held locally in a SecretBuffer
  - ``HardwareKeyPair`` – no private key; the signer derives and signs
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import struct
from typing import TYPE_CHECKING, Any

from ecdsa import BadSignatureError, MalformedPointError, SigningKey, VerifyingKey
from ecdsa.curves import Ed25519

from smcli_core.common import (
    MAX_ACCOUNTS_PER_WALLET,
    PRIVATE_KEY_SIZE,
    PUBLIC_KEY_SIZE,
    SEED_SIZE,
    decode_hex,
    encode_hex,
    now_time_string,
)
from smcli_core.errors import (
    InvalidAccountCount,
    MalformedField,
    SignerDisconnected,
    SignerError,
    SignerTimeout,
)
from smcli_core.secret_buffer import SecretBuffer

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from smcli_core.hardware import HardwareSigner

logger = logging.getLogger("smcli_keys")

HARDENED = 0x80000000
BIP44_PURPOSE = 44
SPACEMESH_COIN_TYPE = 540

_SLIP10_CURVE_KEY = b"ed25519 seed"


# ===================================================================
#  Paths
# ===================================================================

def harden(index: int) -> int:
    return index | HARDENED


def master_path() -> list[int]:
    return [harden(BIP44_PURPOSE), harden(SPACEMESH_COIN_TYPE)]


def child_path(parent: list[int], index: int) -> list[int]:
    """Account path under *parent*: account 0', external chain 0', then index'."""
    return list(parent) + [harden(0), harden(0), harden(index)]


def path_to_string(path: list[int]) -> str:
    parts = ["m"]
    for component in path:
        if component >= HARDENED:
            parts.append(f"{component - HARDENED}'")
        else:
            parts.append(str(component))
    return "/".join(parts)


def string_to_path(text: str) -> list[int]:
    """Parse ``m/44'/540'/...``; malformed input raises MalformedField."""
    if not isinstance(text, str) or not (text == "m" or text.startswith("m/")):
        raise MalformedField(f"Invalid HD path: {text!r}")
    path: list[int] = []
    for component in text.split("/")[1:]:
        hardened = component.endswith("'")
        digits = component[:-1] if hardened else component
        if not digits.isdigit():
            raise MalformedField(f"Invalid HD path component: {component!r}")
        value = int(digits)
        if value >= HARDENED:
            raise MalformedField(f"HD path component out of range: {component!r}")
        path.append(harden(value) if hardened else value)
    return path


def check_account_count(n: Any, max_accounts: int = MAX_ACCOUNTS_PER_WALLET) -> int:
    if isinstance(n, bool) or not isinstance(n, int) or not 0 <= n <= max_accounts:
        raise InvalidAccountCount(
            f"Invalid number of accounts: {n!r} (max {max_accounts})",
            details={"requested": n, "max": max_accounts},
        )
    return n


def _check_index(index: Any) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < HARDENED:
        raise InvalidAccountCount(f"Invalid derivation index: {index!r}")
    return index


# ===================================================================
#  Ed25519 primitives
# ===================================================================

def ed25519_public_key(private_seed: bytes | memoryview) -> bytes:
    """32-byte public key for a 32-byte Ed25519 private seed."""
    sk = SigningKey.from_string(private_seed, curve=Ed25519)
    return sk.get_verifying_key().to_string()


def ed25519_sign(private_seed: bytes | memoryview, message: bytes) -> bytes:
    sk = SigningKey.from_string(private_seed, curve=Ed25519)
    return sk.sign(message)


def ed25519_verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
    try:
        vk = VerifyingKey.from_string(bytes(public_key), curve=Ed25519)
        return vk.verify(signature, message)
    except (BadSignatureError, MalformedPointError, ValueError):
        return False


# ===================================================================
#  SLIP-10 node
# ===================================================================

class HDNode:
    """
    SLIP-10 Ed25519 derivation node.

    Holds the 32-byte private seed and chain code in SecretBuffers.
    """

    def __init__(self, private_key: SecretBuffer, chain_code: SecretBuffer,
                 depth: int = 0, index: int = 0):
        self.private_key = private_key
        self.chain_code = chain_code
        self.depth = depth
        self.index = index

    @classmethod
    def from_seed(cls, seed: SecretBuffer | bytes) -> HDNode:
        """Create the root node from a BIP-39 seed."""
        msg = seed.view() if isinstance(seed, SecretBuffer) else seed
        I = bytearray(hmac.new(_SLIP10_CURVE_KEY, msg, hashlib.sha512).digest())
        node = cls(
            private_key=SecretBuffer(I[:32]),
            chain_code=SecretBuffer(I[32:]),
        )
        I[:] = bytes(len(I))
        return node

    def derive_child(self, index: int) -> HDNode:
        """Derive the hardened child at *index* (must already be hardened)."""
        if index < HARDENED:
            raise MalformedField("Ed25519 supports hardened derivation only")
        data = bytearray(b"\x00")
        data += self.private_key.view()
        data += struct.pack(">I", index)
        chain_code = bytearray(self.chain_code.view())
        I = bytearray(hmac.new(chain_code, data, hashlib.sha512).digest())
        data[:] = bytes(len(data))
        chain_code[:] = bytes(len(chain_code))
        child = HDNode(
            private_key=SecretBuffer(I[:32]),
            chain_code=SecretBuffer(I[32:]),
            depth=self.depth + 1,
            index=index,
        )
        I[:] = bytes(len(I))
        return child

    def derive_path(self, path: list[int]) -> HDNode:
        """Walk *path* from this node, wiping every intermediate node."""
        node = self
        for index in path:
            child = node.derive_child(index)
            if node is not self:
                node.wipe()
            node = child
        return node

    def public_key(self) -> bytes:
        return ed25519_public_key(self.private_key.view())

    def to_keypair(self, path: list[int], display_name: str = "") -> SeedKeyPair:
        pub = self.public_key()
        private = bytearray(self.private_key.view())
        private += pub
        return SeedKeyPair(pub, SecretBuffer(private), path, display_name=display_name)

    def wipe(self) -> None:
        self.private_key.wipe()
        self.chain_code.wipe()


def node_for_path(seed: SecretBuffer | bytes, path: list[int]) -> HDNode:
    """Derive the node at *path* from *seed*; the root is wiped unless it is the result."""
    root = HDNode.from_seed(seed)
    node = root.derive_path(path)
    if node is not root:
        root.wipe()
    return node


# ===================================================================
#  Keypairs
# ===================================================================

class EDKeyPair:
    """Ed25519 keypair with its HD path and display metadata."""

    provenance = ""

    def __init__(self, public_key: bytes, path: list[int],
                 display_name: str = "", created: str | None = None):
        if len(public_key) != PUBLIC_KEY_SIZE:
            raise MalformedField(f"Public key must be {PUBLIC_KEY_SIZE} bytes")
        self.public_key = bytes(public_key)
        self.path = list(path)
        self.display_name = display_name
        self.created = created or now_time_string()

    @property
    def private_key(self) -> SecretBuffer | None:
        return None

    @property
    def path_string(self) -> str:
        return path_to_string(self.path)

    def sign(self, message: bytes) -> bytes:
        raise NotImplementedError

    def verify(self, message: bytes, signature: bytes) -> bool:
        return ed25519_verify(self.public_key, message, signature)

    def derive_child(self, seed: SecretBuffer | bytes | None, index: int) -> EDKeyPair:
        raise NotImplementedError

    def wipe(self) -> None:
        pass

    def __enter__(self) -> EDKeyPair:
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    # ---- serialisation ----

    def to_dict(self, include_private: bool = True) -> dict:
        return {
            "displayName": self.display_name,
            "created": self.created,
            "path": self.path_string,
            "provenance": self.provenance,
            "publicKey": encode_hex(self.public_key),
        }

    @classmethod
    def from_dict(cls, data: Any) -> EDKeyPair:
        """Rebuild a keypair of the right provenance from ``to_dict`` output."""
        if not isinstance(data, dict):
            raise MalformedField("Keypair must be a JSON object")
        for key in ("displayName", "created"):
            if not isinstance(data.get(key, ""), str):
                raise MalformedField(f"Keypair {key} must be a string")
        path = string_to_path(data.get("path"))
        pub = decode_hex(data.get("publicKey"), "publicKey")
        if len(pub) != PUBLIC_KEY_SIZE:
            raise MalformedField(f"publicKey must be {PUBLIC_KEY_SIZE} bytes")
        kwargs = {"display_name": data.get("displayName", ""), "created": data.get("created")}
        provenance = data.get("provenance", SeedKeyPair.provenance)
        if provenance == HardwareKeyPair.provenance:
            return HardwareKeyPair(pub, path, **kwargs)
        if provenance != SeedKeyPair.provenance:
            raise MalformedField(f"Unknown keypair provenance: {provenance!r}")
        secret = bytearray(decode_hex(data.get("secretKey"), "secretKey"))
        if len(secret) != PRIVATE_KEY_SIZE:
            raise MalformedField(f"secretKey must be {PRIVATE_KEY_SIZE} bytes")
        return SeedKeyPair(pub, SecretBuffer(secret), path, **kwargs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EDKeyPair):
            return NotImplemented
        if self.provenance != other.provenance:
            return False
        if self.path != other.path or self.public_key != other.public_key:
            return False
        mine, theirs = self.private_key, other.private_key
        if mine is None or theirs is None:
            return mine is None and theirs is None
        return mine == theirs

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path_string}, {self.public_key.hex()[:16]}...)"


class SeedKeyPair(EDKeyPair):
    """Keypair derived locally from a BIP-39 seed."""

    provenance = "seed"

    def __init__(self, public_key: bytes, private_key: SecretBuffer, path: list[int],
                 display_name: str = "", created: str | None = None):
        super().__init__(public_key, path, display_name, created)
        if len(private_key) != PRIVATE_KEY_SIZE:
            raise MalformedField(f"Private key must be {PRIVATE_KEY_SIZE} bytes")
        self._private_key = private_key

    @property
    def private_key(self) -> SecretBuffer:
        return self._private_key

    def sign(self, message: bytes) -> bytes:
        return ed25519_sign(self._private_key.view()[:SEED_SIZE], message)

    def derive_child(self, seed: SecretBuffer | bytes | None, index: int) -> SeedKeyPair:
        index = _check_index(index)
        if seed is None or len(seed) == 0:
            raise MalformedField("A seed is required to derive from a seed-backed key")
        path = child_path(self.path, index)
        node = node_for_path(seed, path)
        try:
            return node.to_keypair(path, display_name=f"Child Key {index}")
        finally:
            node.wipe()

    def wipe(self) -> None:
        self._private_key.wipe()

    def to_dict(self, include_private: bool = True) -> dict:
        d = super().to_dict(include_private)
        if include_private:
            d["secretKey"] = self._private_key.hex()
        return d


class HardwareKeyPair(EDKeyPair):
    """Keypair whose private half never leaves the hardware signer."""

    provenance = "hardware"

    def __init__(self, public_key: bytes, path: list[int], signer: HardwareSigner | None = None,
                 display_name: str = "", created: str | None = None):
        super().__init__(public_key, path, display_name, created)
        self.signer = signer

    def attach_signer(self, signer: HardwareSigner) -> None:
        """Reconnect a keypair loaded from disk to its device."""
        self.signer = signer

    def _require_signer(self) -> HardwareSigner:
        if self.signer is None:
            raise SignerDisconnected("No hardware signer attached")
        return self.signer

    def sign(self, message: bytes) -> bytes:
        signer = self._require_signer()
        return _call_signer(signer.sign, self.path, message)

    def derive_child(self, seed: SecretBuffer | bytes | None, index: int) -> HardwareKeyPair:
        index = _check_index(index)
        if seed is not None and len(seed) != 0:
            raise MalformedField("Hardware-backed keys do not take a seed")
        signer = self._require_signer()
        path = child_path(self.path, index)
        pub = _signer_public_key(signer, path)
        return HardwareKeyPair(pub, path, signer, display_name=f"Child Key {index}")


def _call_signer(fn, *args):
    try:
        return fn(*args)
    except SignerError:
        raise
    except TimeoutError as exc:
        raise SignerTimeout(f"Hardware signer timed out: {exc}") from exc
    except ConnectionError as exc:
        raise SignerDisconnected(f"Hardware signer disconnected: {exc}") from exc


def _signer_public_key(signer: HardwareSigner, path: list[int]) -> bytes:
    pub = _call_signer(signer.get_public_key, list(path))
    if not isinstance(pub, (bytes, bytearray)) or len(pub) != PUBLIC_KEY_SIZE:
        raise MalformedField("Hardware signer returned a malformed public key")
    return bytes(pub)


# ===================================================================
#  Derivation entry points
# ===================================================================

def master_from_seed(seed: SecretBuffer | bytes) -> SeedKeyPair:
    """Deterministic master keypair at ``m/44'/540'``."""
    if len(seed) == 0:
        raise MalformedField("Seed must not be empty")
    path = master_path()
    node = node_for_path(seed, path)
    try:
        return node.to_keypair(path, display_name="Master Key")
    finally:
        node.wipe()


def master_from_hardware_signer(signer: HardwareSigner) -> HardwareKeyPair:
    """Master keypair whose public key comes from the signer."""
    path = master_path()
    pub = _signer_public_key(signer, path)
    logger.debug(f"Hardware master key at {path_to_string(path)}")
    return HardwareKeyPair(pub, path, signer, display_name="Master Key")


def derive_child(master: EDKeyPair, seed: SecretBuffer | bytes | None, index: int) -> EDKeyPair:
    """The *index*-th account keypair under *master*."""
    return master.derive_child(seed, index)


def derive_accounts(master: EDKeyPair, seed: SecretBuffer | bytes | None, n: int,
                    max_accounts: int = MAX_ACCOUNTS_PER_WALLET) -> list[EDKeyPair]:
    """
    Derive accounts ``0..n-1`` in order.

    Fails fast: on the first error every account derived so far is wiped
    and the error propagates.
    """
    check_account_count(n, max_accounts)
    accounts: list[EDKeyPair] = []
    try:
        for i in range(n):
            accounts.append(master.derive_child(seed, i))
    except Exception:
        for acct in accounts:
            acct.wipe()
        raise
    logger.debug(f"Derived {n} account(s) under {master.path_string}")
    return accounts
