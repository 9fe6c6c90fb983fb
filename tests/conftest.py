"""
Shared pytest fixtures for the smcli test suite.
"""

import logging
import os
import sys

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from smcli_core.bip39 import mnemonic_to_seed  # noqa: E402
from smcli_core.config import KDFConfig  # noqa: E402
from smcli_core.hardware import MockHardwareSigner  # noqa: E402
from smcli_core.wallet import Wallet  # noqa: E402

ABANDON_MNEMONIC = "abandon " * 11 + "about"


@pytest.fixture
def fast_kdf():
    """Cheap PBKDF2 settings so tests do not pay the production cost."""
    return KDFConfig(kdf="PBKDF2", iterations=1000, hash="SHA-256")


@pytest.fixture
def fast_scrypt():
    """Cheap scrypt settings."""
    return KDFConfig(kdf="scrypt", iterations=1 << 10)


@pytest.fixture
def seed():
    """BIP-39 seed of the all-'abandon' test mnemonic."""
    with mnemonic_to_seed(ABANDON_MNEMONIC) as buf:
        yield buf


@pytest.fixture
def wallet():
    """Deterministic three-account wallet."""
    with Wallet.from_mnemonic(ABANDON_MNEMONIC, 3) as w:
        yield w


@pytest.fixture
def signer():
    """Mock hardware signer holding the same seed as ``wallet``."""
    with mnemonic_to_seed(ABANDON_MNEMONIC) as buf:
        s = MockHardwareSigner(bytes(buf))
    yield s
    s.wipe()


@pytest.fixture
def restore_root_logging():
    """Undo ``setup_logging`` changes to the root logger after a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
