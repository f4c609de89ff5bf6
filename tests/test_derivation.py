"""
Test suite for starksign.derivation — wallet signature to STARK key pair.

Covers:
  - EIP-2645 account path layout
  - Key grinding range, retries, zero rejection and exhaustion
  - Determinism and dependence on the signature's ``s`` word only
  - End-to-end derivation cross-checked step by step
  - Wallet failures surfacing as DerivationUnavailable
  - KeyPair never leaks its private scalar
"""

import asyncio
import hashlib
import os
import pickle
import unittest
from unittest.mock import patch

import pytest

from starksign.crypto_utils import EC_ORDER, get_public_key
from starksign.derivation import (
    ACCOUNT_INDEX,
    GRIND_MAX_ATTEMPTS,
    STARK_PURPOSE,
    DerivationContext,
    KeyPair,
    derive_key_pair,
    get_account_path,
    grind_key,
    private_key_from_signature,
)
from starksign.errors import DerivationExhausted, DerivationUnavailable
from starksign.hd import HDNode
from tests.conftest import ETH_ADDRESS, TEST_CONTEXT

FIXED_SIGNATURE = b"\xab" * 32 + b"\xab" * 32 + bytes([27])

# Stark key for FIXED_SIGNATURE, ETH_ADDRESS and TEST_CONTEXT
FIXED_SIGNATURE_STARK_KEY = 0x41934A1B0CEE9D00B5A61DDD7BF3F0325AB467B1126F93EC7BB2A324CCF585E


class _FixedWallet:
    """Wallet returning a canned signature and address."""

    def __init__(self, signature=FIXED_SIGNATURE, address=ETH_ADDRESS):
        self.signature = signature
        self.address = address
        self.challenges = []

    async def sign_challenge(self, text):
        self.challenges.append(text)
        return self.signature

    async def get_address(self):
        return self.address


class _RefusingWallet:

    def __init__(self, exc):
        self.exc = exc

    async def sign_challenge(self, text):
        raise self.exc

    async def get_address(self):
        return ETH_ADDRESS


def _low31(text):
    return int.from_bytes(hashlib.sha256(text.encode()).digest(), "big") & 0x7FFFFFFF


# ═══════════════════════════════════════════════════════════════════
#  Account path
# ═══════════════════════════════════════════════════════════════════

class TestAccountPath(unittest.TestCase):

    def test_layout(self):
        address_int = int(ETH_ADDRESS, 16)
        expected = "m/{}'/{}'/{}'/{}'/{}'/{}".format(
            STARK_PURPOSE,
            _low31("starkex"),
            _low31("test"),
            address_int & 0x7FFFFFFF,
            (address_int >> 31) & 0x7FFFFFFF,
            ACCOUNT_INDEX,
        )
        self.assertEqual(get_account_path("starkex", "test", ETH_ADDRESS), expected)

    def test_known_path(self):
        self.assertEqual(
            get_account_path("starkex", "test", ETH_ADDRESS),
            "m/2645'/579218131'/821037576'/380001315'/320644391'/1",
        )

    def test_eip2645_layer_and_application_components(self):
        path = get_account_path("starkex", "immutablex", ETH_ADDRESS)
        self.assertTrue(path.startswith("m/2645'/579218131'/211006541'/"))

    def test_address_case_insensitive(self):
        self.assertEqual(
            get_account_path("starkex", "test", ETH_ADDRESS),
            get_account_path("starkex", "test", ETH_ADDRESS.lower()),
        )

    def test_application_changes_path(self):
        self.assertNotEqual(
            get_account_path("starkex", "a", ETH_ADDRESS),
            get_account_path("starkex", "b", ETH_ADDRESS),
        )

    def test_custom_index(self):
        self.assertTrue(get_account_path("starkex", "test", ETH_ADDRESS, index=7).endswith("/7"))

    def test_path_parses(self):
        path = get_account_path("starkex", "test", ETH_ADDRESS)
        node = HDNode.from_seed(b"\x01" * 32).derive_path(path)
        self.assertEqual(node.depth, 6)

    def test_malformed_address(self):
        with self.assertRaises(DerivationUnavailable):
            get_account_path("starkex", "test", "0xnotanaddress")


# ═══════════════════════════════════════════════════════════════════
#  Key grinding
# ═══════════════════════════════════════════════════════════════════

class TestGrindKey(unittest.TestCase):

    def test_in_range(self):
        key = grind_key(b"\x00" * 32)
        self.assertTrue(1 <= key < EC_ORDER)

    def test_deterministic(self):
        self.assertEqual(grind_key(b"seed"), grind_key(b"seed"))
        self.assertNotEqual(grind_key(b"seed"), grind_key(b"seee"))

    def test_first_attempt_uses_index_zero(self):
        digest = int.from_bytes(hashlib.sha256(b"seed" + b"\x00").digest(), "big")
        limit = 2 ** 256 - (2 ** 256 % EC_ORDER)
        # The vast majority of seeds converge on the first try
        if digest < limit:
            self.assertEqual(grind_key(b"seed"), digest % EC_ORDER)

    def test_retries_past_biased_values(self):
        with patch("starksign.derivation._indexed_sha256", side_effect=[2 ** 256 - 1, 5]) as m:
            self.assertEqual(grind_key(b"seed"), 5)
        self.assertEqual(m.call_count, 2)
        self.assertEqual(m.call_args_list[1].args, (b"seed", 1))

    def test_zero_key_keeps_grinding(self):
        with patch("starksign.derivation._indexed_sha256", side_effect=[0, EC_ORDER, 9]):
            self.assertEqual(grind_key(b"seed"), 9)

    def test_exhaustion(self):
        with patch("starksign.derivation._indexed_sha256", return_value=2 ** 256 - 1) as m:
            with self.assertRaises(DerivationExhausted):
                grind_key(b"seed")
        self.assertEqual(m.call_count, GRIND_MAX_ATTEMPTS)

    def test_small_limit(self):
        for i in range(20):
            key = grind_key(bytes([i]) * 32, key_value_limit=1000)
            self.assertTrue(1 <= key < 1000)


@pytest.mark.slow
def test_grind_key_range_property():
    for _ in range(10_000):
        key = grind_key(os.urandom(32))
        assert 1 <= key < EC_ORDER


# ═══════════════════════════════════════════════════════════════════
#  Private key from signature
# ═══════════════════════════════════════════════════════════════════

class TestPrivateKeyFromSignature(unittest.TestCase):

    def test_composition(self):
        path = get_account_path("starkex", "test", ETH_ADDRESS)
        node = HDNode.from_seed(b"\xab" * 32).derive_path(path)
        expected = grind_key(node.private_key)
        self.assertEqual(private_key_from_signature(FIXED_SIGNATURE, ETH_ADDRESS, TEST_CONTEXT), expected)

    def test_hex_and_bytes_agree(self):
        self.assertEqual(
            private_key_from_signature(FIXED_SIGNATURE, ETH_ADDRESS, TEST_CONTEXT),
            private_key_from_signature("0x" + FIXED_SIGNATURE.hex(), ETH_ADDRESS, TEST_CONTEXT),
        )

    def test_only_s_matters(self):
        other_r = b"\x01" * 32 + b"\xab" * 32 + bytes([28])
        self.assertEqual(
            private_key_from_signature(FIXED_SIGNATURE, ETH_ADDRESS, TEST_CONTEXT),
            private_key_from_signature(other_r, ETH_ADDRESS, TEST_CONTEXT),
        )

    def test_s_changes_key(self):
        other_s = b"\xab" * 32 + b"\xac" * 32 + bytes([27])
        self.assertNotEqual(
            private_key_from_signature(FIXED_SIGNATURE, ETH_ADDRESS, TEST_CONTEXT),
            private_key_from_signature(other_s, ETH_ADDRESS, TEST_CONTEXT),
        )

    def test_context_changes_key(self):
        other = DerivationContext("starkex", "other-app", "Test")
        self.assertNotEqual(
            private_key_from_signature(FIXED_SIGNATURE, ETH_ADDRESS, TEST_CONTEXT),
            private_key_from_signature(FIXED_SIGNATURE, ETH_ADDRESS, other),
        )

    def test_unusable_signature(self):
        with self.assertRaises(DerivationUnavailable):
            private_key_from_signature(b"\x00" * 10, ETH_ADDRESS, TEST_CONTEXT)


# ═══════════════════════════════════════════════════════════════════
#  derive_key_pair
# ═══════════════════════════════════════════════════════════════════

class TestDeriveKeyPair(unittest.TestCase):

    def test_fixed_signature_known_stark_key(self):
        wallet = _FixedWallet()
        pair = asyncio.run(derive_key_pair(wallet, TEST_CONTEXT))
        self.assertEqual(pair.stark_key, FIXED_SIGNATURE_STARK_KEY)
        self.assertEqual(get_public_key(pair.private_key), FIXED_SIGNATURE_STARK_KEY)
        self.assertTrue(1 <= pair.private_key < EC_ORDER)

    def test_fixed_signature(self):
        wallet = _FixedWallet()
        pair = asyncio.run(derive_key_pair(wallet, TEST_CONTEXT))

        path = get_account_path("starkex", "test", ETH_ADDRESS)
        node = HDNode.from_seed(b"\xab" * 32).derive_path(path)
        expected_private = grind_key(node.private_key)
        self.assertEqual(pair.private_key, expected_private)
        self.assertEqual(pair.stark_key, get_public_key(expected_private))
        self.assertEqual(wallet.challenges, ["Test"])

    def test_repeatable(self):
        wallet = _FixedWallet()
        first = asyncio.run(derive_key_pair(wallet, TEST_CONTEXT))
        second = asyncio.run(derive_key_pair(wallet, TEST_CONTEXT))
        self.assertEqual(first, second)
        self.assertEqual(len(wallet.challenges), 2)

    def test_local_account(self):
        from starksign.eth import LocalEthAccount
        from tests.conftest import ETH_PRIVATE_KEY

        account = LocalEthAccount(ETH_PRIVATE_KEY)
        pair = asyncio.run(derive_key_pair(account, TEST_CONTEXT))
        signature = account.sign_message("Test").to_bytes()
        self.assertEqual(
            pair.private_key,
            private_key_from_signature(signature, ETH_ADDRESS, TEST_CONTEXT),
        )

    def test_refusal_is_unavailable(self):
        with self.assertRaises(DerivationUnavailable):
            asyncio.run(derive_key_pair(_RefusingWallet(RuntimeError("user said no")), TEST_CONTEXT))

    def test_unavailable_passes_through(self):
        exc = DerivationUnavailable("rejected")
        with self.assertRaises(DerivationUnavailable) as ctx:
            asyncio.run(derive_key_pair(_RefusingWallet(exc), TEST_CONTEXT))
        self.assertIs(ctx.exception, exc)

    def test_cancellation_propagates(self):
        with self.assertRaises(asyncio.CancelledError):
            asyncio.run(derive_key_pair(_RefusingWallet(asyncio.CancelledError()), TEST_CONTEXT))

    def test_garbage_signature_is_unavailable(self):
        with self.assertRaises(DerivationUnavailable):
            asyncio.run(derive_key_pair(_FixedWallet(signature="0x1234"), TEST_CONTEXT))


class TestKeyPair(unittest.TestCase):

    def test_repr_hides_private_key(self):
        pair = KeyPair(private_key=0x1234567890ABCDEF, stark_key=42)
        self.assertNotIn(str(0x1234567890ABCDEF), repr(pair))
        self.assertNotIn("private_key", repr(pair))
        self.assertIn("42", repr(pair))

    def test_not_picklable(self):
        with self.assertRaises(TypeError):
            pickle.dumps(KeyPair(private_key=1, stark_key=2))


if __name__ == "__main__":
    unittest.main()
