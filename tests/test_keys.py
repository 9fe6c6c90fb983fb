"""
Test suite for smcli_core.keys — SLIP-10 derivation and keypairs.

Covers:
  - SLIP-10 Ed25519 reference vector
  - Path helpers
  - Master / child determinism and index separation
  - Account count bounds and fail-fast derivation
  - Keypair serialisation round-trip
  - Hardware-backed keys: parity with seed keys, disconnect, timeout
"""

from unittest.mock import MagicMock, patch

import pytest

from smcli_core.errors import (
    InvalidAccountCount,
    MalformedField,
    SignerDisconnected,
    SignerTimeout,
)
from smcli_core.hardware import HardwareSigner, MockHardwareSigner
from smcli_core.keys import (
    HARDENED,
    EDKeyPair,
    HardwareKeyPair,
    HDNode,
    SeedKeyPair,
    check_account_count,
    child_path,
    derive_accounts,
    derive_child,
    master_from_hardware_signer,
    master_from_seed,
    master_path,
    path_to_string,
    string_to_path,
)
from smcli_core.secret_buffer import SecretBuffer

SLIP10_SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")


def _no_secret_copies():
    """Fail if anything copies a SecretBuffer out through bytes() or slicing."""
    copied = AssertionError("secret copied out of its buffer")
    return patch.multiple(
        SecretBuffer,
        __bytes__=MagicMock(side_effect=copied),
        __getitem__=MagicMock(side_effect=copied),
    )


# ═══════════════════════════════════════════════════════════════════
#  SLIP-10
# ═══════════════════════════════════════════════════════════════════

class TestSlip10Vector:

    def test_master_node(self):
        node = HDNode.from_seed(SLIP10_SEED)
        assert node.private_key.hex() == (
            "2b4be7f19ee27bbf30c667b642d5f4aa69fd169872f8fc3059c08ebae2eb19e7"
        )
        assert node.chain_code.hex() == (
            "90046a93de5380a72b5e45010748567d5ea02bbf6522f979e05c0d8d8ca9fffb"
        )
        assert node.public_key().hex() == (
            "a4b2856bfec510abab89753fac1ac0e1112364e7d250545963f135f2a33188ed"
        )

    def test_first_hardened_child(self):
        node = HDNode.from_seed(SLIP10_SEED).derive_child(HARDENED)
        assert node.private_key.hex() == (
            "68e0fe46dfb67e368c75379acec591dad19df3cde26e63b93a8e704f1dade7a3"
        )
        assert node.depth == 1

    def test_non_hardened_rejected(self):
        node = HDNode.from_seed(SLIP10_SEED)
        with pytest.raises(MalformedField):
            node.derive_child(0)

    def test_derive_path_matches_stepwise(self):
        root = HDNode.from_seed(SLIP10_SEED)
        direct = root.derive_path([HARDENED, HARDENED + 1])
        stepwise = HDNode.from_seed(SLIP10_SEED).derive_child(HARDENED).derive_child(HARDENED + 1)
        assert direct.private_key == stepwise.private_key
        assert not root.private_key.wiped


class TestPaths:

    def test_master_path(self):
        assert path_to_string(master_path()) == "m/44'/540'"

    def test_child_path(self):
        assert path_to_string(child_path(master_path(), 7)) == "m/44'/540'/0'/0'/7'"

    def test_parse_round_trip(self):
        text = "m/44'/540'/0'/0'/3'"
        assert path_to_string(string_to_path(text)) == text

    def test_parse_unhardened(self):
        assert string_to_path("m/1/2'") == [1, HARDENED + 2]

    @pytest.mark.parametrize("bad", ["", "44'/540'", "m/abc", "m/-1", "m/2147483648'", None])
    def test_parse_rejects(self, bad):
        with pytest.raises(MalformedField):
            string_to_path(bad)


# ═══════════════════════════════════════════════════════════════════
#  Seed-backed keys
# ═══════════════════════════════════════════════════════════════════

class TestSeedKeys:

    def test_master_deterministic(self, seed):
        with master_from_seed(seed) as a, master_from_seed(seed) as b:
            assert a == b
            assert a.path == master_path()
            assert len(a.public_key) == 32
            assert len(a.private_key) == 64

    def test_private_key_layout(self, seed):
        with master_from_seed(seed) as master:
            assert master.private_key[32:] == master.public_key

    def test_empty_seed_rejected(self):
        with pytest.raises(MalformedField):
            master_from_seed(b"")

    def test_child_deterministic(self, seed):
        with master_from_seed(seed) as master:
            a = derive_child(master, seed, 0)
            b = derive_child(master, seed, 0)
            assert a == b
            assert a.path_string == "m/44'/540'/0'/0'/0'"
            assert a.display_name == "Child Key 0"

    def test_distinct_indices(self, seed):
        with master_from_seed(seed) as master:
            keys = {derive_child(master, seed, i).public_key for i in range(5)}
            assert len(keys) == 5

    def test_child_needs_seed(self, seed):
        with master_from_seed(seed) as master:
            with pytest.raises(MalformedField):
                derive_child(master, None, 0)
            with pytest.raises(MalformedField):
                derive_child(master, b"", 0)

    @pytest.mark.parametrize("index", [-1, HARDENED, True, "1"])
    def test_bad_index(self, seed, index):
        with master_from_seed(seed) as master:
            with pytest.raises(InvalidAccountCount):
                derive_child(master, seed, index)

    def test_sign_verify(self, seed):
        with master_from_seed(seed) as master:
            child = derive_child(master, seed, 1)
            sig = child.sign(b"hello")
            assert len(sig) == 64
            assert child.verify(b"hello", sig)
            assert not child.verify(b"hellO", sig)
            assert not master.verify(b"hello", sig)

    def test_sign_reads_key_in_place(self, seed):
        with master_from_seed(seed) as master:
            child = derive_child(master, seed, 2)
            with _no_secret_copies():
                sig = child.sign(b"tx")
                again = derive_child(master, seed, 2)
            assert child.verify(b"tx", sig)
            assert again == child

    def test_wipe(self, seed):
        kp = master_from_seed(seed)
        kp.wipe()
        assert kp.private_key.wiped


class TestDeriveAccounts:

    def test_zero_accounts(self, seed):
        with master_from_seed(seed) as master:
            assert derive_accounts(master, seed, 0) == []

    def test_in_order(self, seed):
        with master_from_seed(seed) as master:
            accounts = derive_accounts(master, seed, 3)
            assert [a.path[-1] - HARDENED for a in accounts] == [0, 1, 2]
            assert accounts[2] == derive_child(master, seed, 2)

    @pytest.mark.parametrize("n", [-1, 101, 1.5, None, True])
    def test_bad_count(self, seed, n):
        with master_from_seed(seed) as master:
            with pytest.raises(InvalidAccountCount):
                derive_accounts(master, seed, n)

    def test_custom_maximum(self, seed):
        with master_from_seed(seed) as master:
            assert len(derive_accounts(master, seed, 2, max_accounts=2)) == 2
            with pytest.raises(InvalidAccountCount):
                derive_accounts(master, seed, 3, max_accounts=2)

    def test_check_account_count(self):
        assert check_account_count(100) == 100
        with pytest.raises(InvalidAccountCount):
            check_account_count(101)

    def test_partial_results_wiped_on_failure(self, seed):
        with master_from_seed(seed) as master:
            first = derive_child(master, seed, 0)
            second = derive_child(master, seed, 1)
            failing = [first, second, MalformedField("boom")]
            with patch.object(SeedKeyPair, "derive_child", side_effect=failing):
                with pytest.raises(MalformedField):
                    derive_accounts(master, seed, 5)
            assert first.private_key.wiped
            assert second.private_key.wiped


# ═══════════════════════════════════════════════════════════════════
#  Serialisation
# ═══════════════════════════════════════════════════════════════════

class TestKeyPairDict:

    def test_round_trip(self, seed):
        with master_from_seed(seed) as master:
            d = master.to_dict()
            assert set(d) == {
                "displayName", "created", "path", "provenance", "publicKey", "secretKey",
            }
            back = EDKeyPair.from_dict(d)
            assert isinstance(back, SeedKeyPair)
            assert back == master
            assert back.created == master.created

    def test_public_only(self, seed):
        with master_from_seed(seed) as master:
            assert "secretKey" not in master.to_dict(include_private=False)

    def test_uppercase_hex_accepted(self, seed):
        with master_from_seed(seed) as master:
            d = master.to_dict()
            d["publicKey"] = d["publicKey"].upper()
            d["secretKey"] = d["secretKey"].upper()
            assert EDKeyPair.from_dict(d) == master

    @pytest.mark.parametrize("field,value", [
        ("publicKey", "zz"),
        ("publicKey", "00" * 31),
        ("secretKey", "00" * 63),
        ("secretKey", None),
        ("path", "x/1"),
        ("provenance", "paper"),
        ("displayName", 5),
    ])
    def test_malformed(self, seed, field, value):
        with master_from_seed(seed) as master:
            d = master.to_dict()
            d[field] = value
            with pytest.raises(MalformedField):
                EDKeyPair.from_dict(d)

    def test_not_a_dict(self):
        with pytest.raises(MalformedField):
            EDKeyPair.from_dict(["publicKey"])

    def test_hardware_round_trip(self, signer):
        master = master_from_hardware_signer(signer)
        d = master.to_dict()
        assert d["provenance"] == "hardware"
        assert "secretKey" not in d
        back = EDKeyPair.from_dict(d)
        assert isinstance(back, HardwareKeyPair)
        assert back == master
        assert back.signer is None


# ═══════════════════════════════════════════════════════════════════
#  Hardware-backed keys
# ═══════════════════════════════════════════════════════════════════

class _FlakySigner(MockHardwareSigner):
    """Raises *error* once *fail_after* calls have succeeded."""

    def __init__(self, seed, error, fail_after):
        super().__init__(seed)
        self.error = error
        self.fail_after = fail_after

    def get_public_key(self, path):
        if self.calls >= self.fail_after:
            self.calls += 1
            raise self.error
        return super().get_public_key(path)


class TestHardwareKeys:

    def test_mock_satisfies_protocol(self, signer):
        assert isinstance(signer, HardwareSigner)

    def test_matches_seed_derivation(self, seed, signer):
        with master_from_seed(seed) as soft:
            hard = master_from_hardware_signer(signer)
            assert hard.public_key == soft.public_key
            assert hard.private_key is None
            for i in range(3):
                assert derive_child(hard, None, i).public_key == derive_child(soft, seed, i).public_key

    def test_signature_verifies(self, seed, signer):
        hard = master_from_hardware_signer(signer)
        child = derive_child(hard, None, 0)
        sig = child.sign(b"tx")
        assert child.verify(b"tx", sig)
        with master_from_seed(seed) as soft:
            assert derive_child(soft, seed, 0).verify(b"tx", sig)

    def test_mock_signer_reads_key_in_place(self, signer):
        hard = master_from_hardware_signer(signer)
        child = derive_child(hard, None, 0)
        with _no_secret_copies():
            sig = child.sign(b"tx")
        assert child.verify(b"tx", sig)

    def test_seed_rejected(self, signer):
        hard = master_from_hardware_signer(signer)
        with pytest.raises(MalformedField):
            derive_child(hard, b"\x01" * 64, 0)

    def test_empty_seed_allowed(self, signer):
        hard = master_from_hardware_signer(signer)
        assert derive_child(hard, b"", 0).path_string == "m/44'/540'/0'/0'/0'"

    def test_disconnected(self, signer):
        hard = master_from_hardware_signer(signer)
        signer.disconnect()
        with pytest.raises(SignerDisconnected):
            derive_child(hard, None, 0)
        with pytest.raises(SignerDisconnected):
            hard.sign(b"tx")

    def test_no_signer_attached(self, signer):
        detached = EDKeyPair.from_dict(master_from_hardware_signer(signer).to_dict())
        with pytest.raises(SignerDisconnected):
            detached.sign(b"tx")
        detached.attach_signer(signer)
        assert detached.verify(b"tx", detached.sign(b"tx"))

    def test_timeout_yields_no_accounts(self, seed):
        flaky = _FlakySigner(bytes(seed), TimeoutError("device busy"), fail_after=2)
        hard = master_from_hardware_signer(flaky)
        with pytest.raises(SignerTimeout):
            derive_accounts(hard, None, 3)
        flaky.wipe()

    def test_connection_error_mapped(self, seed):
        flaky = _FlakySigner(bytes(seed), ConnectionError("unplugged"), fail_after=1)
        hard = master_from_hardware_signer(flaky)
        with pytest.raises(SignerDisconnected):
            derive_accounts(hard, None, 2)
        flaky.wipe()

    def test_malformed_public_key(self):
        class _BadSigner:
            def get_public_key(self, path):
                return b"\x00" * 31

            def sign(self, path, message):
                return b""

        with pytest.raises(MalformedField):
            master_from_hardware_signer(_BadSigner())

    def test_secret_buffer_seed(self, seed):
        assert isinstance(seed, SecretBuffer)
        signer = MockHardwareSigner(bytes(seed))
        signer.wipe()
        with pytest.raises(ValueError):
            signer.get_public_key(master_path())
