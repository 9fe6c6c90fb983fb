"""
BIP-39 mnemonic support.

Generation, validation and seed derivation on top of the reference
``mnemonic`` package.  The package's own checker tolerates sloppy spacing
(it splits on any whitespace), so the exact single-space form is enforced
here before the checksum is checked.
"""

from __future__ import annotations

import logging
import os

from mnemonic import Mnemonic

from smcli_core.common import SEED_SIZE
from smcli_core.errors import EntropySourceError, InvalidMnemonic, WhitespaceViolation
from smcli_core.secret_buffer import SecretBuffer

logger = logging.getLogger("smcli_bip39")

LANGUAGE = "english"

_CODEC: Mnemonic | None = None


def _get_codec() -> Mnemonic:
    global _CODEC
    if _CODEC is None:
        _CODEC = Mnemonic(LANGUAGE)
    return _CODEC


def _generate_entropy(size: int = SEED_SIZE) -> bytes:
    """Read *size* bytes from the OS CSPRNG."""
    try:
        return os.urandom(size)
    except (OSError, NotImplementedError) as exc:
        raise EntropySourceError(f"System randomness source unavailable: {exc}") from exc


def entropy_to_mnemonic(entropy: bytes) -> str:
    """Encode 16/20/24/28/32 bytes of entropy as a mnemonic phrase."""
    return _get_codec().to_mnemonic(entropy)


def generate_random_mnemonic() -> str:
    """
    Generate a fresh 24-word phrase.

    Entropy is sized to the Ed25519 private-key seed (256 bits).
    """
    entropy = bytearray(_generate_entropy())
    try:
        return entropy_to_mnemonic(bytes(entropy))
    finally:
        entropy[:] = bytes(len(entropy))


def validate_mnemonic(phrase: str) -> str:
    """
    Return *phrase* unchanged if it is a valid, canonically spaced mnemonic.

    Raises:
        WhitespaceViolation: words not joined by exactly one ASCII space,
            including leading / trailing whitespace.
        InvalidMnemonic: bad word count, unknown word or checksum mismatch.
    """
    if not isinstance(phrase, str):
        raise InvalidMnemonic("Mnemonic must be a string")
    if " ".join(phrase.split()) != phrase:
        raise WhitespaceViolation("Whitespace violation in mnemonic phrase")
    if not _get_codec().check(phrase):
        raise InvalidMnemonic(
            "Invalid mnemonic",
            details={"word_count": len(phrase.split())},
        )
    return phrase


def is_valid_mnemonic(phrase: str) -> bool:
    try:
        validate_mnemonic(phrase)
    except (WhitespaceViolation, InvalidMnemonic):
        return False
    return True


def mnemonic_to_seed(phrase: str, passphrase: str = "") -> SecretBuffer:
    """
    Derive the 64-byte BIP-39 seed.

    The phrase is not validated here; callers go through ``validate_mnemonic``
    first.  The returned buffer belongs to the caller and should be used in a
    ``with`` block.
    """
    return SecretBuffer(bytearray(Mnemonic.to_seed(phrase, passphrase)))
