"""
Filesystem persistence for encrypted wallet files.

Files are written to a temporary sibling first and hard-linked into place, so
a crash never leaves a half-written wallet behind and an existing wallet is
never overwritten, even one created while the write was in progress.  On
POSIX the file is made owner read/write only.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from smcli_core.keystore import EncryptedWalletFile
from smcli_core.wallet import WalletMetadata

logger = logging.getLogger("smcli_store")

SECURE_FILE_MODE = 0o600
WALLET_SUFFIX = ".json"


def set_secure_permissions(filepath: Path) -> None:
    """Owner read/write only; no-op where POSIX modes do not apply."""
    if os.name == "posix":
        os.chmod(filepath, SECURE_FILE_MODE)


def wallet_filename(meta: WalletMetadata) -> str:
    """``wallet_<created>.json``; ``created`` is already file-name safe."""
    stamp = "".join(c if c.isalnum() or c in "-_." else "-" for c in meta.created)
    return f"wallet_{stamp}{WALLET_SUFFIX}"


def save_wallet_file(enc_file: EncryptedWalletFile, path: str | Path) -> Path:
    """
    Write *enc_file* to *path*.

    Raises:
        FileExistsError: a file already exists at *path*.
    """
    path = Path(path).expanduser()
    if path.exists():
        raise FileExistsError(f"Refusing to overwrite existing wallet file: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = path.with_suffix(path.suffix + ".tmp")
    fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECURE_FILE_MODE)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(enc_file.to_json())
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        # link() fails if the target appeared after the check above
        try:
            os.link(temp_path, path)
        except FileExistsError:
            raise FileExistsError(f"Refusing to overwrite existing wallet file: {path}") from None
    finally:
        temp_path.unlink(missing_ok=True)
    set_secure_permissions(path)
    logger.info(f"Wallet file written: {path}")
    return path


def load_wallet_file(path: str | Path) -> EncryptedWalletFile:
    """
    Read and parse a wallet file (does not decrypt).

    Undecodable or malformed content raises MalformedField; filesystem
    problems propagate as OSError.
    """
    path = Path(path).expanduser()
    enc_file = EncryptedWalletFile.from_json(path.read_bytes())
    logger.debug(f"Wallet file loaded: {path}")
    return enc_file


def list_wallet_files(directory: str | Path) -> list[Path]:
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.glob(f"*{WALLET_SUFFIX}") if p.is_file())
