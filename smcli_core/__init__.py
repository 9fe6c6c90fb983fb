"""
smcli core - key material and keystore files for Spacemesh wallets.

Key features:
- BIP-39 mnemonic generation and validation
- SLIP-10 Ed25519 HD derivation (seed-backed or hardware signer)
- Template-hash principal addresses, bech32-encoded per network
- K-of-N multisig spawn arguments and addresses
- scrypt / PBKDF2 + AES-256-GCM encrypted wallet files
"""

__version__ = "0.1.0"
__all__ = [
    "errors",
    "secret_buffer",
    "bip39",
    "keys",
    "hardware",
    "address",
    "multisig",
    "wallet",
    "keystore",
    "store",
    "config",
    "logging_config",
]
