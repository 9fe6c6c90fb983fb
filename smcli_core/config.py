"""
TOML-based configuration for smcli.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from smcli_core.config import load_config
    cfg = load_config("smcli.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib  # type: ignore[import]
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[import,no-redef]

from smcli_core.common import HRP_MAINNET, MAX_ACCOUNTS_PER_WALLET


@dataclass
class WalletConfig:
    """Wallet creation defaults and where wallet files live."""
    wallet_dir: str = "~/.spacemesh"
    display_name: str = "Main Wallet"
    accounts: int = 1
    max_accounts: int = MAX_ACCOUNTS_PER_WALLET


@dataclass
class KDFConfig:
    """Key derivation used when *writing* wallet files.

    Reading never consults this section: every file records its own KDF
    name and parameters.  For ``scrypt`` the ``iterations`` value is the
    cost N and ``hash`` is ignored (scrypt is fixed to SHA-256).
    """
    kdf: str = "scrypt"
    iterations: int = 1 << 17
    hash: str = "SHA-512"       # PBKDF2 only
    dklen: int = 32
    salt_bytes: int = 16


@dataclass
class NetworkConfig:
    """Network identity used for addresses and new wallet metadata."""
    hrp: str = HRP_MAINNET
    genesis_id: str = ""


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "WARNING"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class SmcliConfig:
    """Top-level configuration container."""
    wallet: WalletConfig = field(default_factory=WalletConfig)
    kdf: KDFConfig = field(default_factory=KDFConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> SmcliConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        SMCLI_WALLET_DIR     -> wallet.wallet_dir
        SMCLI_MAX_ACCOUNTS   -> wallet.max_accounts
        SMCLI_KDF            -> kdf.kdf
        SMCLI_KDF_ITERATIONS -> kdf.iterations
        SMCLI_HRP            -> network.hrp
        SMCLI_GENESIS_ID     -> network.genesis_id
        SMCLI_LOG_LEVEL      -> logging.level
        SMCLI_LOG_FMT        -> logging.format
    """
    cfg = SmcliConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("wallet", cfg.wallet),
                ("kdf", cfg.kdf),
                ("network", cfg.network),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("SMCLI_WALLET_DIR"):
        cfg.wallet.wallet_dir = v
    if v := os.environ.get("SMCLI_MAX_ACCOUNTS"):
        cfg.wallet.max_accounts = int(v)
    if v := os.environ.get("SMCLI_KDF"):
        cfg.kdf.kdf = v
    if v := os.environ.get("SMCLI_KDF_ITERATIONS"):
        cfg.kdf.iterations = int(v)
    if v := os.environ.get("SMCLI_HRP"):
        cfg.network.hrp = v
    if v := os.environ.get("SMCLI_GENESIS_ID"):
        cfg.network.genesis_id = v
    if v := os.environ.get("SMCLI_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("SMCLI_LOG_FMT"):
        cfg.logging.format = v

    return cfg
