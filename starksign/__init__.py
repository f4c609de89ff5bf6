"""
starksign - STARK-curve request signing driven by an Ethereum wallet.

Key features:
- Deterministic STARK key derivation from a wallet signature (EIP-2645 path + key grinding)
- Order-sensitive Pedersen hash chain over message vectors
- STARK ECDSA signing and verification
- Pluggable replay-protection nonces
- Signed request builders for register / mint / transfer / trade operations
"""

__version__ = "1.0.0"
__all__ = [
    "errors",
    "field",
    "crypto_utils",
    "hash_chain",
    "hd",
    "derivation",
    "eth",
    "rpc_wallet",
    "signer",
    "nonce",
    "wallet",
    "operations",
    "config",
    "logging_config",
]
