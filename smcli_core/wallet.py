"""
Wallet management for smcli.

A wallet is plaintext metadata plus secrets:
  - the BIP-39 mnemonic (or ``"(none)"`` for hardware-backed wallets)
  - the master keypair at m/44'/540'
  - an ordered list of account keypairs, index i at m/44'/540'/0'/0'/i'

Wallets are built from a fresh random mnemonic, a user-supplied mnemonic or
a hardware signer.  Encryption to disk lives in ``smcli_core.keystore``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from smcli_core.address import pubkey_to_address
from smcli_core.bip39 import generate_random_mnemonic, mnemonic_to_seed, validate_mnemonic
from smcli_core.common import MAX_ACCOUNTS_PER_WALLET, now_time_string
from smcli_core.errors import MalformedField
from smcli_core.hardware import HardwareSigner
from smcli_core.keys import (
    EDKeyPair,
    HardwareKeyPair,
    check_account_count,
    derive_accounts,
    master_from_hardware_signer,
    master_from_seed,
)

logger = logging.getLogger("smcli_wallet")

MNEMONIC_NONE = "(none)"
DEFAULT_DISPLAY_NAME = "Main Wallet"


@dataclass
class WalletMetadata:
    """Plaintext wallet header."""
    display_name: str = DEFAULT_DISPLAY_NAME
    created: str = field(default_factory=now_time_string)
    genesis_id: str = ""

    def to_dict(self) -> dict:
        return {
            "displayName": self.display_name,
            "created": self.created,
            "genesisID": self.genesis_id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> WalletMetadata:
        if not isinstance(data, dict):
            raise MalformedField("meta must be a JSON object")
        values = {}
        for key in ("displayName", "created", "genesisID"):
            value = data.get(key, "")
            if not isinstance(value, str):
                raise MalformedField(f"meta.{key} must be a string")
            values[key] = value
        return cls(values["displayName"], values["created"], values["genesisID"])


@dataclass
class WalletSecrets:
    """Everything that only ever leaves memory encrypted."""
    mnemonic: str
    master_keypair: EDKeyPair
    accounts: list[EDKeyPair] = field(default_factory=list)

    def to_dict(self, include_private: bool = True) -> dict:
        return {
            "mnemonic": self.mnemonic,
            "masterKeypair": self.master_keypair.to_dict(include_private),
            "accounts": [a.to_dict(include_private) for a in self.accounts],
        }

    @classmethod
    def from_dict(cls, data: Any) -> WalletSecrets:
        if not isinstance(data, dict):
            raise MalformedField("secrets must be a JSON object")
        mnemonic = data.get("mnemonic")
        if not isinstance(mnemonic, str):
            raise MalformedField("mnemonic must be a string")
        if "masterKeypair" not in data:
            raise MalformedField("masterKeypair missing")
        accounts = data.get("accounts", [])
        if not isinstance(accounts, list):
            raise MalformedField("accounts must be a list")
        return cls(
            mnemonic=mnemonic,
            master_keypair=EDKeyPair.from_dict(data["masterKeypair"]),
            accounts=[EDKeyPair.from_dict(a) for a in accounts],
        )

    def to_json_bytes(self) -> bytes:
        """Compact JSON used as the encryption plaintext."""
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, blob: bytes | bytearray) -> WalletSecrets:
        try:
            data = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedField("Decrypted secrets are not valid JSON") from exc
        return cls.from_dict(data)

    def wipe(self) -> None:
        self.master_keypair.wipe()
        for acct in self.accounts:
            acct.wipe()


class Wallet:
    """Metadata plus secrets; the unit that is encrypted to one file."""

    def __init__(self, meta: WalletMetadata, secrets: WalletSecrets):
        self.meta = meta
        self.secrets = secrets

    # ---- factory methods ----

    @classmethod
    def from_random_mnemonic(cls, n: int, *, display_name: str = DEFAULT_DISPLAY_NAME,
                             genesis_id: str = "",
                             max_accounts: int = MAX_ACCOUNTS_PER_WALLET) -> Wallet:
        """Generate a new 24-word mnemonic and derive *n* accounts from it."""
        check_account_count(n, max_accounts)
        mnemonic = generate_random_mnemonic()
        return cls.from_mnemonic(mnemonic, n, display_name=display_name,
                                 genesis_id=genesis_id, max_accounts=max_accounts)

    @classmethod
    def from_mnemonic(cls, mnemonic: str, n: int, *, display_name: str = DEFAULT_DISPLAY_NAME,
                      genesis_id: str = "",
                      max_accounts: int = MAX_ACCOUNTS_PER_WALLET) -> Wallet:
        """Recover a wallet from *mnemonic*, deriving accounts ``0..n-1``."""
        check_account_count(n, max_accounts)
        validate_mnemonic(mnemonic)
        # TODO: let the user supply a BIP-39 passphrase; seeds use "" for now
        with mnemonic_to_seed(mnemonic) as seed:
            master = master_from_seed(seed)
            try:
                accounts = derive_accounts(master, seed, n, max_accounts)
            except Exception:
                master.wipe()
                raise
        logger.info(f"Wallet derived from mnemonic with {n} account(s)")
        return cls._assemble(mnemonic, master, accounts, display_name, genesis_id)

    @classmethod
    def from_hardware_signer(cls, signer: HardwareSigner, n: int, *,
                             display_name: str = DEFAULT_DISPLAY_NAME, genesis_id: str = "",
                             max_accounts: int = MAX_ACCOUNTS_PER_WALLET) -> Wallet:
        """Wallet whose keys live on *signer*; there is no seed or mnemonic."""
        check_account_count(n, max_accounts)
        master = master_from_hardware_signer(signer)
        accounts = derive_accounts(master, None, n, max_accounts)
        logger.info(f"Wallet derived from hardware signer with {n} account(s)")
        return cls._assemble(MNEMONIC_NONE, master, accounts, display_name, genesis_id)

    @classmethod
    def _assemble(cls, mnemonic: str, master: EDKeyPair, accounts: list[EDKeyPair],
                  display_name: str, genesis_id: str) -> Wallet:
        meta = WalletMetadata(display_name=display_name, genesis_id=genesis_id)
        return cls(meta, WalletSecrets(mnemonic, master, accounts))

    # ---- accessors ----

    @property
    def mnemonic(self) -> str:
        return self.secrets.mnemonic

    @property
    def master_keypair(self) -> EDKeyPair:
        return self.secrets.master_keypair

    @property
    def accounts(self) -> list[EDKeyPair]:
        return self.secrets.accounts

    @property
    def is_hardware(self) -> bool:
        return isinstance(self.secrets.master_keypair, HardwareKeyPair)

    def attach_signer(self, signer: HardwareSigner) -> None:
        """Reconnect a decrypted hardware-backed wallet to its device."""
        for kp in [self.master_keypair, *self.accounts]:
            if isinstance(kp, HardwareKeyPair):
                kp.attach_signer(signer)

    def addresses(self, hrp: str) -> list[str]:
        return [pubkey_to_address(a.public_key, hrp) for a in self.accounts]

    # ---- serialisation ----

    def to_dict(self, include_private: bool = False) -> dict:
        """
        Plain dict view.

        With ``include_private=False`` (the default) the mnemonic, master
        keypair and secret keys are left out, so the result is safe to print
        or send.
        """
        if include_private:
            return {"meta": self.meta.to_dict(), "crypto": self.secrets.to_dict()}
        return {
            "meta": self.meta.to_dict(),
            "accounts": [a.to_dict(include_private=False) for a in self.accounts],
        }

    # ---- memory hygiene ----

    def wipe(self) -> None:
        self.secrets.wipe()

    def __enter__(self) -> Wallet:
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self.meta == other.meta and self.secrets == other.secrets

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Wallet({self.meta.display_name!r}, {len(self.accounts)} account(s))"
