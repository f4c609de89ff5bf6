"""
BIP-32 hierarchical deterministic derivation over secp256k1.

Used to turn the entropy taken from a wallet signature into the account
key at ``m/2645'/layer'/application'/eth1'/eth2'/index``.
"""

from __future__ import annotations

import hashlib
import hmac
import struct

from ecdsa import SECP256k1, SigningKey

from starksign.crypto_utils import hash160


class HDNode:
    """
    Hierarchical Deterministic key derivation node.

    Implements BIP-32 private derivation with HMAC-SHA512.
    Path notation: m/2645'/579218131'/211006541'/0'/0'/1
    """

    HARDENED = 0x80000000
    SEED_KEY = b"Bitcoin seed"

    def __init__(self, private_key: bytes, chain_code: bytes, depth: int = 0,
                 index: int = 0, parent_fingerprint: bytes = b"\x00" * 4):
        self.private_key = private_key
        self.chain_code = chain_code
        self.depth = depth
        self.index = index
        self.parent_fingerprint = parent_fingerprint

    @classmethod
    def from_seed(cls, seed: bytes) -> HDNode:
        """Create master node from a 16..64-byte seed."""
        if not 16 <= len(seed) <= 64:
            raise ValueError("Seed must be between 16 and 64 bytes")
        I = hmac.new(cls.SEED_KEY, seed, hashlib.sha512).digest()
        key_int = int.from_bytes(I[:32], "big")
        if not 0 < key_int < SECP256k1.order:
            raise ValueError("Seed yields an invalid master key")
        return cls(private_key=I[:32], chain_code=I[32:])

    def _get_compressed_pub(self) -> bytes:
        """Get compressed (33-byte) public key."""
        sk = SigningKey.from_string(self.private_key, curve=SECP256k1)
        return sk.get_verifying_key().to_string("compressed")

    @property
    def fingerprint(self) -> bytes:
        """First 4 bytes of Hash160 of public key."""
        return hash160(self._get_compressed_pub())[:4]

    def derive_child(self, index: int) -> HDNode:
        """
        Derive a child node at the given index.

        An index whose output is not a valid key is skipped in favour of
        the next one, matching the behaviour of common HD libraries.
        """
        while True:
            if index >= self.HARDENED:
                data = b"\x00" + self.private_key + struct.pack(">I", index)
            else:
                data = self._get_compressed_pub() + struct.pack(">I", index)

            I = hmac.new(self.chain_code, data, hashlib.sha512).digest()
            il = int.from_bytes(I[:32], "big")
            child_key_int = (il + int.from_bytes(self.private_key, "big")) % SECP256k1.order
            if il < SECP256k1.order and child_key_int != 0:
                break
            index += 1

        return HDNode(
            private_key=child_key_int.to_bytes(32, "big"),
            chain_code=I[32:],
            depth=self.depth + 1,
            index=index,
            parent_fingerprint=self.fingerprint,
        )

    def derive_path(self, path: str) -> HDNode:
        """
        Derive from a path string like "m/2645'/1'/2'/3'/4'/1".
        """
        if path == "m":
            return self
        if path.startswith("m/"):
            path = path[2:]

        node = self
        for component in path.split("/"):
            hardened = component.endswith("'")
            index = int(component[:-1] if hardened else component)
            # Both forms take 31 bits; the hardened flag is the top bit
            if not 0 <= index < self.HARDENED:
                raise ValueError(f"Path component out of range: {component}")
            if hardened:
                index += self.HARDENED
            node = node.derive_child(index)
        return node
