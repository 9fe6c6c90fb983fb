"""
Exception hierarchy for the smcli wallet core.

Every failure the core can report is a subclass of ``WalletError`` so the
command-line boundary can catch one type and still tell the cases apart.

  - ``WalletValidationError`` – bad caller input (also a ``ValueError``)
  - ``WalletCryptoError``     – randomness / decryption / algorithm support
  - ``SignerError``           – hardware signer timed out or went away
"""

from __future__ import annotations

from typing import Any


class WalletError(Exception):
    """Base exception for all wallet-core errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error (never secret material)
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ==================== Validation Errors ====================


class WalletValidationError(WalletError, ValueError):
    """Raised when caller-supplied input fails validation."""


class WhitespaceViolation(WalletValidationError):
    """Mnemonic words are not separated by exactly one ASCII space."""


class InvalidMnemonic(WalletValidationError):
    """Mnemonic fails word-count, wordlist or checksum validation."""


class InvalidAccountCount(WalletValidationError):
    """Account count or derivation index is out of range."""


class InvalidThreshold(WalletValidationError):
    """Multisig threshold is not within 1..len(participants)."""


class InvalidParticipantCount(WalletValidationError):
    """Multisig needs at least two participants."""


class MalformedField(WalletValidationError):
    """A serialised field (hex, path, JSON member, key length) is malformed."""


# ==================== Crypto Errors ====================


class WalletCryptoError(WalletError):
    """Raised for cryptographic or environment failures."""


class EntropySourceError(WalletCryptoError):
    """The system randomness source is unavailable."""


class DecryptionFailed(WalletCryptoError):
    """Wrong passphrase or corrupted ciphertext."""


class UnsupportedKDF(WalletCryptoError):
    """The key-derivation function named in a file is not implemented."""


class UnsupportedCipher(WalletCryptoError):
    """The cipher named in a file is not implemented."""


# ==================== Signer Errors ====================


class SignerError(WalletError):
    """Raised when the hardware signer capability fails."""


class SignerTimeout(SignerError):
    """The hardware signer did not answer in time."""


class SignerDisconnected(SignerError):
    """The hardware signer is not connected."""
