"""
StarkWallet: one signer paired with one nonce policy.

This is the unit calling code works with.  ``authorize`` draws a nonce,
appends it to the message vector and signs, holding a lock around the
pair so concurrent operations on the same wallet cannot interleave.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from starksign.crypto_utils import StarkSignature
from starksign.field import FieldElement, FieldLike, render_decimal, to_field
from starksign.nonce import NonceProvider, TimestampNonce
from starksign.signer import StarkSigner


@dataclass(frozen=True)
class AuthorizedPayload:
    """Authentication material for one signed request."""
    stark_key: int
    signature: StarkSignature
    message: tuple[FieldElement, ...]
    nonce: int | None = None

    @property
    def r(self) -> int:
        return self.signature.r

    @property
    def s(self) -> int:
        return self.signature.s

    @property
    def signature_param(self) -> str:
        """Value of the ``signature`` query parameter: ``"r,s"`` in decimal."""
        return f"{render_decimal(self.r)},{render_decimal(self.s)}"

    def to_dict(self) -> dict:
        d = {
            "stark_key": render_decimal(self.stark_key),
            "r": render_decimal(self.r),
            "s": render_decimal(self.s),
        }
        if self.nonce is not None:
            d["nonce"] = render_decimal(self.nonce)
        return d


class StarkWallet:
    """Signer + nonce provider."""

    def __init__(self, signer: StarkSigner, nonce: NonceProvider | None = None):
        self._signer = signer
        self._nonce = nonce or TimestampNonce()
        self._lock = asyncio.Lock()

    @property
    def signer(self) -> StarkSigner:
        return self._signer

    async def derive_stark_key(self) -> int:
        return await self._signer.derive_stark_key()

    async def sign(self, message: Sequence[FieldLike]) -> tuple[int, StarkSignature]:
        return await self._signer.sign(message)

    def nonce(self) -> int:
        return self._nonce.next()

    async def authorize(self, message: Sequence[FieldLike], with_nonce: bool = True) -> AuthorizedPayload:
        """
        Sign ``message``, first appending a fresh nonce when ``with_nonce``.

        Errors from the signer propagate unchanged.
        """
        values = [to_field(v) for v in message]
        async with self._lock:
            nonce = None
            if with_nonce:
                nonce = to_field(self._nonce.next())
                values.append(nonce)
            stark_key, signature = await self._signer.sign(values)
        return AuthorizedPayload(
            stark_key=stark_key,
            signature=signature,
            message=tuple(values),
            nonce=nonce,
        )

    def __repr__(self) -> str:
        return f"StarkWallet({self._signer!r})"
