"""
Ethereum-side wallet support.

The STARK key is derived from a signature made by an Ethereum wallet, so
this module provides:
  - the ``WalletCapability`` protocol any wallet must satisfy
  - ``personal_sign`` message hashing and signature splitting (65-byte and
    EIP-2098 compact forms)
  - EIP-55 checksummed addresses
  - ``LocalEthAccount``, an in-process secp256k1 account
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union

from ecdsa import SECP256k1
from eth_account import Account
from eth_account.messages import SignableMessage, defunct_hash_message, encode_defunct
from eth_utils import to_checksum_address

SignatureLike = Union[bytes, str]

__all__ = [
    "EthSignature",
    "LocalEthAccount",
    "SignatureLike",
    "WalletCapability",
    "hash_message",
    "recover_address",
    "split_signature",
    "to_checksum_address",
]


class WalletCapability(Protocol):
    """Anything able to sign a text challenge and report its own address.

    ``sign_challenge`` may suspend while a user approves the request.
    """

    async def sign_challenge(self, text: str) -> SignatureLike:
        ...

    async def get_address(self) -> str:
        ...


@dataclass(frozen=True)
class EthSignature:
    """A split secp256k1 signature; ``v`` is normalised to 27 / 28."""
    r: bytes
    s: bytes
    v: int

    @property
    def recovery_id(self) -> int:
        return self.v - 27

    def to_bytes(self) -> bytes:
        return self.r + self.s + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()


def _to_bytes(value: SignatureLike) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value[:2].lower() == "0x" else value
        return bytes.fromhex(text)
    raise ValueError(f"expected bytes or hex string, got {type(value).__name__}")


def split_signature(signature: SignatureLike) -> EthSignature:
    """
    Split a 65-byte ``r || s || v`` or a 64-byte EIP-2098 ``r || vs`` signature.

    Raises ValueError for any other length or an unknown ``v``.
    """
    raw = _to_bytes(signature)
    if len(raw) == 65:
        v = raw[64]
        if v in (0, 1):
            v += 27
        if v not in (27, 28):
            raise ValueError(f"invalid signature v byte: {raw[64]}")
        return EthSignature(raw[:32], raw[32:64], v)
    if len(raw) == 64:
        vs = bytearray(raw[32:])
        parity = vs[0] >> 7
        vs[0] &= 0x7F
        return EthSignature(raw[:32], bytes(vs), 27 + parity)
    raise ValueError(f"invalid signature length: {len(raw)} bytes")


def _signable(message: Union[str, bytes]) -> SignableMessage:
    if isinstance(message, str):
        return encode_defunct(text=message)
    return encode_defunct(primitive=bytes(message))


def hash_message(message: Union[str, bytes]) -> bytes:
    """EIP-191 ``personal_sign`` digest."""
    if isinstance(message, str):
        return bytes(defunct_hash_message(text=message))
    return bytes(defunct_hash_message(primitive=bytes(message)))


def recover_address(message: Union[str, bytes], signature: SignatureLike) -> str:
    """Address that produced a ``personal_sign`` signature over ``message``."""
    sig = split_signature(signature)
    return Account.recover_message(_signable(message), signature=sig.to_bytes())


class LocalEthAccount:
    """An Ethereum account whose secp256k1 key lives in this process."""

    def __init__(self, private_key: Union[bytes, int, str]):
        if isinstance(private_key, int):
            if not 0 < private_key < SECP256k1.order:
                raise ValueError("Private key must be in range [1, N-1]")
            private_key = private_key.to_bytes(32, "big")
        elif isinstance(private_key, str):
            private_key = _to_bytes(private_key.strip())
        if len(private_key) != 32:
            raise ValueError("Private key must be 32 bytes")
        if not 0 < int.from_bytes(private_key, "big") < SECP256k1.order:
            raise ValueError("Private key must be in range [1, N-1]")

        self._account = Account.from_key(private_key)
        self.address = self._account.address

    @classmethod
    def from_key_file(cls, path: Union[str, Path]) -> LocalEthAccount:
        """Load a hex-encoded private key from a file."""
        return cls(Path(path).read_text(encoding="utf-8").strip())

    def sign_message(self, message: Union[str, bytes]) -> EthSignature:
        """Deterministic (RFC 6979), low-s ``personal_sign`` signature."""
        signed = self._account.sign_message(_signable(message))
        return EthSignature(
            signed.r.to_bytes(32, "big"),
            signed.s.to_bytes(32, "big"),
            signed.v,
        )

    async def sign_challenge(self, text: str) -> bytes:
        return self.sign_message(text).to_bytes()

    async def get_address(self) -> str:
        return self.address

    def __repr__(self) -> str:
        return f"LocalEthAccount({self.address})"
