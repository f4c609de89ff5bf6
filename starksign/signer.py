"""
STARK signers.

A signer is anything with two coroutines:

    derive_stark_key() -> int
    sign(message) -> (stark_key, StarkSignature)

``Web3StarkSigner`` re-derives its key from an Ethereum wallet on every
call; ``StaticKeySigner`` holds a known STARK scalar for fixtures and
offline tooling.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from starksign import crypto_utils
from starksign.crypto_utils import StarkSignature
from starksign.derivation import DerivationContext, derive_key_pair
from starksign.eth import WalletCapability
from starksign.field import FieldLike
from starksign.hash_chain import fold

logger = logging.getLogger("starksign.signer")


class StarkSigner(Protocol):

    async def derive_stark_key(self) -> int:
        ...

    async def sign(self, message: Sequence[FieldLike]) -> tuple[int, StarkSignature]:
        ...


class Web3StarkSigner:
    """Signer whose key is derived from an Ethereum wallet on each call."""

    def __init__(self, wallet: WalletCapability, context: DerivationContext):
        self.wallet = wallet
        self.context = context

    async def derive_stark_key(self) -> int:
        key_pair = await derive_key_pair(self.wallet, self.context)
        return key_pair.stark_key

    async def sign(self, message: Sequence[FieldLike]) -> tuple[int, StarkSignature]:
        """
        Sign an ordered message vector.

        The vector is folded before the wallet is prompted, so malformed
        input never reaches the user.
        """
        digest = fold(message)
        key_pair = await derive_key_pair(self.wallet, self.context)
        signature = crypto_utils.sign(digest, key_pair.private_key)
        logger.debug("Signed digest %s with stark key %s", hex(digest), hex(key_pair.stark_key))
        return key_pair.stark_key, signature

    def __repr__(self) -> str:
        return f"Web3StarkSigner({self.wallet!r}, layer={self.context.layer!r})"


class StaticKeySigner:
    """Signer holding a fixed STARK private scalar."""

    def __init__(self, private_key: int):
        if not 0 < private_key < crypto_utils.EC_ORDER:
            raise ValueError("Private key must be in range [1, N-1]")
        self._private_key = private_key

    async def derive_stark_key(self) -> int:
        return crypto_utils.get_public_key(self._private_key)

    async def sign(self, message: Sequence[FieldLike]) -> tuple[int, StarkSignature]:
        digest = fold(message)
        signature = crypto_utils.sign(digest, self._private_key)
        return crypto_utils.get_public_key(self._private_key), signature

    def __repr__(self) -> str:
        return "StaticKeySigner(<hidden>)"
