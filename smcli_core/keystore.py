"""
Encrypted-at-rest wallet files.

File layout (all binary fields hex-encoded):

    {
      "meta":   {"displayName": ..., "created": ..., "genesisID": ...},
      "crypto": {
        "cipher": "AES-GCM",
        "cipherText": "<ciphertext || 16-byte GCM tag>",
        "cipherParams": {"iv": "<12-byte nonce>"},
        "kdf": "scrypt" | "PBKDF2",
        "kdfparams": {"dklen": 32, "hash": "SHA-256", "salt": "...", "iterations": N}
      }
    }

Every parameter needed to decrypt is stored in the file, so files written
with today's defaults stay readable when the defaults change.  For scrypt,
``iterations`` is the CPU/memory cost N (a power of two) with r=8, p=1.

Encryption uses AES-256-GCM (pycryptodome); a failed tag check means the
passphrase is wrong or the file was modified, and nothing is returned.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from Crypto.Cipher import AES
from Crypto.Protocol.KDF import scrypt

from smcli_core.common import decode_hex, encode_hex
from smcli_core.config import KDFConfig
from smcli_core.errors import (
    DecryptionFailed,
    EntropySourceError,
    MalformedField,
    UnsupportedCipher,
    UnsupportedKDF,
)
from smcli_core.secret_buffer import SecretBuffer
from smcli_core.wallet import Wallet, WalletMetadata, WalletSecrets

logger = logging.getLogger("smcli_keystore")

CIPHER_AES_GCM = "AES-GCM"
KDF_SCRYPT = "scrypt"
KDF_PBKDF2 = "PBKDF2"

SUPPORTED_CIPHERS = (CIPHER_AES_GCM,)
SUPPORTED_KDFS = (KDF_SCRYPT, KDF_PBKDF2)

_PBKDF2_HASHES = {"SHA-256": "sha256", "SHA-512": "sha512"}
SCRYPT_HASH = "SHA-256"
SCRYPT_R = 8
SCRYPT_P = 1

# scrypt needs 128 * r * N bytes: 1 GiB at N = 2**20
MAX_SCRYPT_COST = 1 << 20
MAX_PBKDF2_ITERATIONS = 10_000_000

AES_KEY_SIZES = (16, 24, 32)
IV_SIZE = 12
TAG_SIZE = 16


# ===================================================================
#  File structures
# ===================================================================

def _require_int(data: dict, key: str, where: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedField(f"{where}.{key} must be an integer")
    return value


def _require_str(data: dict, key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedField(f"{where}.{key} must be a string")
    return value


def _require_dict(data: dict, key: str, where: str) -> dict:
    value = data.get(key)
    if not isinstance(value, dict):
        raise MalformedField(f"{where}.{key} must be a JSON object")
    return value


@dataclass
class KDFParams:
    """Stored key-derivation parameters."""
    dklen: int = 32
    hash: str = SCRYPT_HASH
    salt: bytes = b""
    iterations: int = 1 << 17

    def to_dict(self) -> dict:
        return {
            "dklen": self.dklen,
            "hash": self.hash,
            "salt": encode_hex(self.salt),
            "iterations": self.iterations,
        }

    @classmethod
    def from_dict(cls, data: dict) -> KDFParams:
        return cls(
            dklen=_require_int(data, "dklen", "kdfparams"),
            hash=_require_str(data, "hash", "kdfparams"),
            salt=decode_hex(data.get("salt"), "kdfparams.salt"),
            iterations=_require_int(data, "iterations", "kdfparams"),
        )


@dataclass
class EncryptedSecrets:
    """The ``crypto`` envelope."""
    cipher: str
    cipher_text: bytes
    iv: bytes
    kdf: str
    kdf_params: KDFParams = field(default_factory=KDFParams)

    def to_dict(self) -> dict:
        return {
            "cipher": self.cipher,
            "cipherText": encode_hex(self.cipher_text),
            "cipherParams": {"iv": encode_hex(self.iv)},
            "kdf": self.kdf,
            "kdfparams": self.kdf_params.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> EncryptedSecrets:
        if not isinstance(data, dict):
            raise MalformedField("crypto must be a JSON object")
        cipher_params = _require_dict(data, "cipherParams", "crypto")
        return cls(
            cipher=_require_str(data, "cipher", "crypto"),
            cipher_text=decode_hex(data.get("cipherText"), "crypto.cipherText"),
            iv=decode_hex(cipher_params.get("iv"), "crypto.cipherParams.iv"),
            kdf=_require_str(data, "kdf", "crypto"),
            kdf_params=KDFParams.from_dict(_require_dict(data, "kdfparams", "crypto")),
        )


@dataclass
class EncryptedWalletFile:
    """On-disk wallet: plaintext metadata plus the encrypted envelope."""
    meta: WalletMetadata
    crypto: EncryptedSecrets

    def to_dict(self) -> dict:
        return {"meta": self.meta.to_dict(), "crypto": self.crypto.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> EncryptedWalletFile:
        if not isinstance(data, dict):
            raise MalformedField("Wallet file must be a JSON object")
        if "meta" not in data or "crypto" not in data:
            raise MalformedField("Wallet file needs 'meta' and 'crypto'")
        return cls(
            meta=WalletMetadata.from_dict(data["meta"]),
            crypto=EncryptedSecrets.from_dict(data["crypto"]),
        )

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str | bytes) -> EncryptedWalletFile:
        try:
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedField("Wallet file is not valid JSON") from exc
        return cls.from_dict(data)


# ===================================================================
#  Key derivation
# ===================================================================

def _check_supported(kdf: str, cipher: str, params: KDFParams) -> None:
    if cipher not in SUPPORTED_CIPHERS:
        raise UnsupportedCipher(f"Unsupported cipher: {cipher!r}", details={"cipher": cipher})
    if kdf not in SUPPORTED_KDFS:
        raise UnsupportedKDF(f"Unsupported KDF: {kdf!r}", details={"kdf": kdf})
    if kdf == KDF_PBKDF2 and params.hash not in _PBKDF2_HASHES:
        raise UnsupportedKDF(f"Unsupported PBKDF2 hash: {params.hash!r}", details={"hash": params.hash})


def _check_params(kdf: str, params: KDFParams) -> None:
    if params.dklen not in AES_KEY_SIZES:
        raise MalformedField(f"dklen must be one of {AES_KEY_SIZES}")
    if not params.salt:
        raise MalformedField("KDF salt must not be empty")
    if params.iterations < 1:
        raise MalformedField("KDF iterations must be positive")
    if kdf == KDF_SCRYPT:
        n = params.iterations
        if n < 2 or n & (n - 1):
            raise MalformedField("scrypt cost must be a power of two")
        if n > MAX_SCRYPT_COST:
            raise MalformedField(
                f"scrypt cost too large (max {MAX_SCRYPT_COST})",
                details={"iterations": n},
            )
    elif params.iterations > MAX_PBKDF2_ITERATIONS:
        raise MalformedField(
            f"PBKDF2 iterations too large (max {MAX_PBKDF2_ITERATIONS})",
            details={"iterations": params.iterations},
        )


def derive_key(passphrase: str, kdf: str, params: KDFParams) -> SecretBuffer:
    """Stretch *passphrase* into a symmetric key as described by *params*."""
    _check_params(kdf, params)
    secret = passphrase.encode("utf-8")
    if kdf == KDF_SCRYPT:
        key = scrypt(secret, params.salt, params.dklen, params.iterations, SCRYPT_R, SCRYPT_P)
    elif kdf == KDF_PBKDF2:
        key = hashlib.pbkdf2_hmac(
            _PBKDF2_HASHES[params.hash], secret, params.salt, params.iterations,
            dklen=params.dklen,
        )
    else:
        raise UnsupportedKDF(f"Unsupported KDF: {kdf!r}", details={"kdf": kdf})
    return SecretBuffer(bytearray(key))


def _random_bytes(n: int) -> bytes:
    try:
        return os.urandom(n)
    except (OSError, NotImplementedError) as exc:
        raise EntropySourceError(f"System randomness source unavailable: {exc}") from exc


# ===================================================================
#  Encrypt / decrypt
# ===================================================================

def encrypt_secrets(plaintext: bytes | bytearray, passphrase: str,
                    kdf_config: KDFConfig | None = None) -> EncryptedSecrets:
    """Encrypt *plaintext* under a key stretched from *passphrase*."""
    cfg = kdf_config or KDFConfig()
    hash_name = SCRYPT_HASH if cfg.kdf == KDF_SCRYPT else cfg.hash
    params = KDFParams(
        dklen=cfg.dklen,
        hash=hash_name,
        salt=_random_bytes(cfg.salt_bytes),
        iterations=cfg.iterations,
    )
    _check_supported(cfg.kdf, CIPHER_AES_GCM, params)
    iv = _random_bytes(IV_SIZE)
    with derive_key(passphrase, cfg.kdf, params) as key:
        cipher = AES.new(key.view(), AES.MODE_GCM, nonce=iv)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
    logger.debug(f"Encrypted {len(plaintext)} bytes with {CIPHER_AES_GCM}/{cfg.kdf}")
    return EncryptedSecrets(
        cipher=CIPHER_AES_GCM,
        cipher_text=ciphertext + tag,
        iv=iv,
        kdf=cfg.kdf,
        kdf_params=params,
    )


def decrypt_secrets(envelope: EncryptedSecrets, passphrase: str) -> bytearray:
    """
    Decrypt and authenticate *envelope*.

    Returns a bytearray the caller should zero when done.

    Raises:
        UnsupportedCipher / UnsupportedKDF: unknown algorithm names.
        DecryptionFailed: wrong passphrase or modified ciphertext.
    """
    _check_supported(envelope.kdf, envelope.cipher, envelope.kdf_params)
    if not envelope.iv:
        raise MalformedField("cipherParams.iv must not be empty")
    if len(envelope.cipher_text) < TAG_SIZE:
        raise DecryptionFailed("Ciphertext too short")
    body = envelope.cipher_text[:-TAG_SIZE]
    tag = envelope.cipher_text[-TAG_SIZE:]
    plaintext = bytearray(len(body))
    with derive_key(passphrase, envelope.kdf, envelope.kdf_params) as key:
        cipher = AES.new(key.view(), AES.MODE_GCM, nonce=envelope.iv)
        try:
            cipher.decrypt_and_verify(body, tag, output=plaintext)
        except ValueError as exc:
            plaintext[:] = bytes(len(plaintext))
            logger.warning("Wallet decryption failed: authentication tag mismatch")
            raise DecryptionFailed("Wrong passphrase or corrupted wallet file") from exc
    return plaintext


def encrypt_wallet(wallet: Wallet, passphrase: str,
                   kdf_config: KDFConfig | None = None) -> EncryptedWalletFile:
    plaintext = bytearray(wallet.secrets.to_json_bytes())
    try:
        crypto = encrypt_secrets(plaintext, passphrase, kdf_config)
    finally:
        plaintext[:] = bytes(len(plaintext))
    return EncryptedWalletFile(meta=wallet.meta, crypto=crypto)


def decrypt_wallet(enc_file: EncryptedWalletFile, passphrase: str) -> Wallet:
    """Recover the wallet; the metadata comes from the plaintext header."""
    plaintext = decrypt_secrets(enc_file.crypto, passphrase)
    try:
        secrets = WalletSecrets.from_json_bytes(plaintext)
    finally:
        plaintext[:] = bytes(len(plaintext))
    logger.info(f"Decrypted wallet {enc_file.meta.display_name!r} ({len(secrets.accounts)} account(s))")
    return Wallet(enc_file.meta, secrets)
