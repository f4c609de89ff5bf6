"""
STARK key derivation from an Ethereum wallet signature.

  1. The wallet signs the context's fixed challenge text.
  2. The ``s`` word of that signature seeds a BIP-32 tree.
  3. The account node ``m/2645'/layer'/application'/eth1'/eth2'/1`` is derived.
  4. Its private key is ground into ``[1, EC_ORDER)`` by repeated SHA-256.
  5. The stark key is the x-coordinate of ``private_key * G``.

Steps 2-5 are pure functions of the wallet signature.  Nothing here caches
the private scalar: every caller re-derives it and drops it afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from starksign.crypto_utils import EC_ORDER, get_public_key, sha256
from starksign.errors import DerivationExhausted, DerivationUnavailable, StarkSignError
from starksign.eth import SignatureLike, WalletCapability, split_signature
from starksign.hd import HDNode

logger = logging.getLogger("starksign.derivation")

# EIP-2645 purpose
STARK_PURPOSE = 2645
ACCOUNT_INDEX = 1
GRIND_MAX_ATTEMPTS = 128

_MASK_31 = (1 << 31) - 1
_SHA256_SPACE = 2 ** 256


@dataclass(frozen=True)
class DerivationContext:
    """Fixed per deployment: which layer / application the key belongs to."""
    layer: str
    application: str
    message: str

    def challenge(self) -> str:
        """Text the wallet is asked to sign; identical on every call."""
        return self.message


@dataclass(frozen=True)
class KeyPair:
    """A derived STARK key pair.  Never persisted and never serialised."""
    private_key: int = field(repr=False)
    stark_key: int

    def __reduce__(self):
        raise TypeError("KeyPair holds a private scalar and cannot be serialised")


def _hash_low_bits(text: str) -> int:
    return int.from_bytes(sha256(text.encode("utf-8")), "big") & _MASK_31


def get_account_path(layer: str, application: str, address: str, index: int = ACCOUNT_INDEX) -> str:
    """
    EIP-2645 account path for an Ethereum address.

    The address contributes its 31 least significant bits and the 31 bits
    above those.
    """
    text = address[2:] if address[:2].lower() == "0x" else address
    try:
        address_int = int(text, 16)
    except ValueError as exc:
        raise DerivationUnavailable(f"wallet reported a malformed address: {address!r}") from exc
    eth1 = address_int & _MASK_31
    eth2 = (address_int >> 31) & _MASK_31
    return (
        f"m/{STARK_PURPOSE}'/{_hash_low_bits(layer)}'/{_hash_low_bits(application)}'"
        f"/{eth1}'/{eth2}'/{index}"
    )


def _indexed_sha256(seed: bytes, index: int) -> int:
    index_bytes = index.to_bytes(max(1, (index.bit_length() + 7) // 8), "big")
    return int.from_bytes(sha256(seed + index_bytes), "big")


def grind_key(key_seed: bytes, key_value_limit: int = EC_ORDER,
              max_attempts: int = GRIND_MAX_ATTEMPTS) -> int:
    """
    Map 32 bytes of key material uniformly onto ``[1, key_value_limit)``.

    SHA-256(seed || index) is retried with increasing index until the digest
    falls below the largest multiple of ``key_value_limit`` that fits in 256
    bits, which removes modulo bias.
    """
    max_allowed = _SHA256_SPACE - (_SHA256_SPACE % key_value_limit)
    for index in range(max_attempts):
        key = _indexed_sha256(key_seed, index)
        if key < max_allowed and key % key_value_limit:
            if index:
                logger.debug("Key grinding converged after %d attempts", index + 1)
            return key % key_value_limit
    raise DerivationExhausted(f"key grinding did not converge in {max_attempts} attempts")


def private_key_from_signature(signature: SignatureLike, address: str,
                               context: DerivationContext) -> int:
    """Deterministic STARK private scalar for a wallet's challenge signature."""
    try:
        entropy = split_signature(signature).s
    except ValueError as exc:
        raise DerivationUnavailable(f"wallet returned an unusable signature: {exc}") from exc

    path = get_account_path(context.layer, context.application, address)
    try:
        node = HDNode.from_seed(entropy).derive_path(path)
    except ValueError as exc:
        raise DerivationExhausted(f"HD derivation failed: {exc}") from exc
    logger.debug("Derived account node at %s", path)
    return grind_key(node.private_key)


async def derive_key_pair(wallet: WalletCapability, context: DerivationContext) -> KeyPair:
    """
    Ask ``wallet`` to sign the challenge and derive the STARK key pair.

    Raises DerivationUnavailable when the wallet refuses or fails, and
    DerivationExhausted when grinding does not converge.
    """
    try:
        signature = await wallet.sign_challenge(context.challenge())
        address = await wallet.get_address()
    except StarkSignError:
        raise
    except Exception as exc:
        raise DerivationUnavailable(f"wallet could not sign the challenge: {exc}") from exc

    private_key = private_key_from_signature(signature, address, context)
    stark_key = get_public_key(private_key)
    logger.debug("Derived stark key %s for %s", hex(stark_key), address)
    return KeyPair(private_key=private_key, stark_key=stark_key)
