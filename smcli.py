#!/usr/bin/env python3
"""
smcli — command-line front end for smcli wallets.

Usage:
    python smcli.py wallet create --accounts 3
    python smcli.py wallet create --recover
    python smcli.py wallet read ~/.spacemesh/wallet_2024-01-31T09-15-02.123Z.json
    python smcli.py wallet list
    python smcli.py wallet address <pubkey-hex>
    python smcli.py multisig address --threshold 2 <pubkey-hex> <pubkey-hex> ...

Environment variables (alternative to a config file):
    SMCLI_WALLET_DIR, SMCLI_HRP, SMCLI_GENESIS_ID, SMCLI_LOG_LEVEL, ...
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from smcli_core.address import pubkey_to_address  # noqa: E402
from smcli_core.common import decode_hex  # noqa: E402
from smcli_core.config import SmcliConfig, load_config  # noqa: E402
from smcli_core.errors import WalletError  # noqa: E402
from smcli_core.keystore import decrypt_wallet, encrypt_wallet  # noqa: E402
from smcli_core.logging_config import setup_logging  # noqa: E402
from smcli_core.multisig import build_spawn  # noqa: E402
from smcli_core.store import (  # noqa: E402
    list_wallet_files,
    load_wallet_file,
    save_wallet_file,
    wallet_filename,
)
from smcli_core.wallet import Wallet  # noqa: E402

logger = logging.getLogger("smcli")


# ===================================================================
#  Prompts
# ===================================================================

def prompt_new_passphrase() -> str | None:
    """Ask twice; returns None (after printing why) if unusable."""
    first = getpass.getpass("Enter a passphrase to encrypt the wallet: ")
    if not first:
        print("  Error: passphrase must not be empty", file=sys.stderr)
        return None
    second = getpass.getpass("Repeat passphrase: ")
    if first != second:
        print("  Error: passphrases do not match", file=sys.stderr)
        return None
    return first


# ===================================================================
#  Commands
# ===================================================================

def cmd_wallet_create(cfg: SmcliConfig, args: argparse.Namespace) -> int:
    n = args.accounts if args.accounts is not None else cfg.wallet.accounts
    options = dict(
        display_name=args.name or cfg.wallet.display_name,
        genesis_id=cfg.network.genesis_id,
        max_accounts=cfg.wallet.max_accounts,
    )
    if args.recover:
        phrase = input("Enter mnemonic phrase: ")
        wallet = Wallet.from_mnemonic(phrase, n, **options)
    else:
        wallet = Wallet.from_random_mnemonic(n, **options)

    with wallet:
        passphrase = prompt_new_passphrase()
        if passphrase is None:
            return 1
        enc_file = encrypt_wallet(wallet, passphrase, cfg.kdf)
        target = args.output or os.path.join(cfg.wallet.wallet_dir, wallet_filename(wallet.meta))
        path = save_wallet_file(enc_file, target)

        if not args.recover:
            print("\n  Write down this recovery phrase and keep it offline:\n")
            print(f"    {wallet.mnemonic}\n")
        print(f"  Wallet saved to {path}")
        for i, address in enumerate(wallet.addresses(cfg.network.hrp)):
            print(f"  [{i}] {address}")
    return 0


def cmd_wallet_read(cfg: SmcliConfig, args: argparse.Namespace) -> int:
    enc_file = load_wallet_file(args.file)
    passphrase = getpass.getpass("Enter wallet passphrase: ")
    with decrypt_wallet(enc_file, passphrase) as wallet:
        meta = wallet.meta
        print(f"  Name:    {meta.display_name}")
        print(f"  Created: {meta.created}")
        if meta.genesis_id:
            print(f"  Genesis: {meta.genesis_id}")
        if args.show_private:
            print(f"  Mnemonic: {wallet.mnemonic}")
        for i, acct in enumerate(wallet.accounts):
            address = pubkey_to_address(acct.public_key, cfg.network.hrp)
            print(f"  [{i}] {address}  {acct.path_string}  {acct.public_key.hex()}")
            if args.show_private and acct.private_key is not None:
                print(f"      secret: {acct.private_key.hex()}")
    return 0


def cmd_wallet_list(cfg: SmcliConfig, args: argparse.Namespace) -> int:
    paths = list_wallet_files(cfg.wallet.wallet_dir)
    if not paths:
        print(f"  No wallet files in {cfg.wallet.wallet_dir}")
        return 0
    for path in paths:
        try:
            meta = load_wallet_file(path).meta
        except WalletError as exc:
            print(f"  {path.name}  (unreadable: {exc.message})")
            continue
        except OSError as exc:
            print(f"  {path.name}  (unreadable: {exc.strerror or exc})")
            continue
        print(f"  {path.name}  {meta.display_name}  {meta.created}")
    return 0


def cmd_wallet_address(cfg: SmcliConfig, args: argparse.Namespace) -> int:
    pub = decode_hex(args.pubkey, "public key")
    print(pubkey_to_address(pub, args.hrp or cfg.network.hrp))
    return 0


def cmd_multisig_address(cfg: SmcliConfig, args: argparse.Namespace) -> int:
    keys = [decode_hex(k, f"participant {i}") for i, k in enumerate(args.pubkeys)]
    spawn = build_spawn(args.threshold, keys)
    print(spawn.address_string(args.hrp or cfg.network.hrp))
    return 0


# ===================================================================
#  Main entry point
# ===================================================================

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="smcli", description="Spacemesh wallet tool")
    p.add_argument("--config", default=None, help="Path to smcli.toml config file")
    p.add_argument("--log-level", default=None, help="Override logging level")
    sub = p.add_subparsers(dest="group", required=True)

    wallet = sub.add_parser("wallet", help="Create and inspect wallet files")
    wsub = wallet.add_subparsers(dest="command", required=True)

    create = wsub.add_parser("create", help="Create a new wallet file")
    create.add_argument("--accounts", type=int, default=None, help="Number of accounts to derive")
    create.add_argument("--recover", action="store_true", help="Recover from an existing mnemonic")
    create.add_argument("--name", default=None, help="Wallet display name")
    create.add_argument("--output", default=None, help="Wallet file path")
    create.set_defaults(func=cmd_wallet_create)

    read = wsub.add_parser("read", help="Decrypt a wallet file and list its accounts")
    read.add_argument("file", help="Wallet file")
    read.add_argument("--show-private", action="store_true", help="Also print secrets")
    read.set_defaults(func=cmd_wallet_read)

    listing = wsub.add_parser("list", help="List wallet files in the wallet directory")
    listing.set_defaults(func=cmd_wallet_list)

    address = wsub.add_parser("address", help="Wallet address of a public key")
    address.add_argument("pubkey", help="32-byte Ed25519 public key, hex")
    address.add_argument("--hrp", default=None, help="Network prefix")
    address.set_defaults(func=cmd_wallet_address)

    multisig = sub.add_parser("multisig", help="Multi-signature accounts")
    msub = multisig.add_subparsers(dest="command", required=True)
    maddr = msub.add_parser("address", help="Principal address of a multisig account")
    maddr.add_argument("--threshold", type=int, required=True, help="Required signatures")
    maddr.add_argument("pubkeys", nargs="+", help="Participant public keys, hex, in order")
    maddr.add_argument("--hrp", default=None, help="Network prefix")
    maddr.set_defaults(func=cmd_multisig_address)
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    if args.log_level:
        cfg.logging.level = args.log_level.upper()
    setup_logging(cfg.logging.level, cfg.logging.format, cfg.logging.file)

    try:
        return args.func(cfg, args)
    except WalletError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"  Error: {exc.message}", file=sys.stderr)
        return 1
    except OSError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"  Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
