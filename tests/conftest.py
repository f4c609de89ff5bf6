"""
Shared pytest fixtures for the starksign test suite.
"""

import pytest

from starksign.derivation import DerivationContext
from starksign.eth import LocalEthAccount
from starksign.nonce import CounterNonce
from starksign.signer import StaticKeySigner, Web3StarkSigner
from starksign.wallet import StarkWallet

# Well-known throwaway key used across Ethereum tooling docs
ETH_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
ETH_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"

STARK_PRIVATE_KEY = 0x3C1E9550E66958296D11B60F8E8E7A7AD990D07FA65D5F7652C4A6C87D4E3CC

TEST_CONTEXT = DerivationContext(layer="starkex", application="test", message="Test")


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long-running property tests")


@pytest.fixture
def context():
    return TEST_CONTEXT


@pytest.fixture
def eth_account():
    """Deterministic local Ethereum account."""
    return LocalEthAccount(ETH_PRIVATE_KEY)


@pytest.fixture
def web3_signer(eth_account, context):
    return Web3StarkSigner(eth_account, context)


@pytest.fixture
def static_signer():
    """Signer with a fixed STARK scalar (no wallet round-trip)."""
    return StaticKeySigner(STARK_PRIVATE_KEY)


@pytest.fixture
def stark_wallet(static_signer):
    """Wallet with a deterministic counter nonce."""
    return StarkWallet(static_signer, CounterNonce(start=100))
