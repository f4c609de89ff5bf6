#!/usr/bin/env python3
"""
starksign command-line tool — derive a stark key, sign or verify a message vector.

Usage:
    python run_signer.py --private-key-file eth.key stark-key
    python run_signer.py --rpc-url http://127.0.0.1:8550 sign 1 0xabc --nonce
    python run_signer.py verify --stark-key 0x... --r 123 --s 456 1 0xabc

Environment variables (alternative to flags):
    STARKSIGN_RPC_URL, STARKSIGN_PRIVATE_KEY_FILE, STARKSIGN_LAYER,
    STARKSIGN_APPLICATION, STARKSIGN_MESSAGE, STARKSIGN_NONCE_POLICY
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from starksign.config import (  # noqa: E402
    StarkSignConfig,
    build_context,
    build_nonce_provider,
    load_config,
)
from starksign.crypto_utils import verify  # noqa: E402
from starksign.errors import MalformedField, StarkSignError  # noqa: E402
from starksign.eth import LocalEthAccount, WalletCapability  # noqa: E402
from starksign.field import parse_field, render_decimal  # noqa: E402
from starksign.hash_chain import fold  # noqa: E402
from starksign.logging_config import setup_logging_from_config  # noqa: E402
from starksign.rpc_wallet import JsonRpcWallet  # noqa: E402
from starksign.signer import Web3StarkSigner  # noqa: E402
from starksign.wallet import StarkWallet  # noqa: E402

logger = logging.getLogger("starksign.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="STARK request signing with an Ethereum wallet")
    p.add_argument("--config", default=None, help="Path to starksign.toml config file")
    p.add_argument("--rpc-url", default=None, help="JSON-RPC wallet endpoint")
    p.add_argument("--private-key-file", default=None,
                   help="File holding a hex secp256k1 key for a local wallet")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("stark-key", help="Print the derived stark key")

    sign_p = sub.add_parser("sign", help="Sign a message vector")
    sign_p.add_argument("values", nargs="*", help="Field elements (decimal or 0x-hex)")
    sign_p.add_argument("--nonce", action="store_true", help="Append a fresh nonce before signing")

    verify_p = sub.add_parser("verify", help="Verify a signature over a message vector")
    verify_p.add_argument("values", nargs="*", help="Field elements (decimal or 0x-hex)")
    verify_p.add_argument("--stark-key", required=True)
    verify_p.add_argument("--r", required=True)
    verify_p.add_argument("--s", required=True)
    return p.parse_args(argv)


def build_wallet_capability(cfg: StarkSignConfig) -> WalletCapability:
    if cfg.wallet.rpc_url:
        return JsonRpcWallet(cfg.wallet.rpc_url, address=cfg.wallet.address or None)
    if cfg.wallet.private_key_file:
        return LocalEthAccount.from_key_file(cfg.wallet.private_key_file)
    raise SystemExit("No wallet configured: pass --rpc-url or --private-key-file")


async def run(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    setup_logging_from_config(cfg.logging)

    # CLI flags override config
    if args.rpc_url:
        cfg.wallet.rpc_url = args.rpc_url
    if args.private_key_file:
        cfg.wallet.private_key_file = args.private_key_file

    try:
        values = [parse_field(v) for v in getattr(args, "values", [])]
        if args.command == "verify":
            r, s = parse_field(args.r), parse_field(args.s)
            stark_key = parse_field(args.stark_key)
    except MalformedField as exc:
        logger.error("Bad field element: %s", exc)
        return 2

    if args.command == "verify":
        ok = verify(fold(values), r, s, stark_key)
        print(json.dumps({"valid": ok}))
        return 0 if ok else 1

    try:
        nonce_provider = build_nonce_provider(cfg)
    except ValueError as exc:
        logger.error("Bad configuration: %s", exc)
        return 2

    signer = Web3StarkSigner(build_wallet_capability(cfg), build_context(cfg))
    wallet = StarkWallet(signer, nonce_provider)
    try:
        if args.command == "stark-key":
            stark_key = await wallet.derive_stark_key()
            print(json.dumps({"stark_key": render_decimal(stark_key), "hex": hex(stark_key)}))
            return 0

        payload = await wallet.authorize(values, with_nonce=args.nonce)
    except StarkSignError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1

    out = payload.to_dict()
    out["digest"] = render_decimal(fold(payload.message))
    print(json.dumps(out))
    return 0


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(run(parse_args(argv)))


def main_sync():
    """Synchronous entry point for console_scripts."""
    with contextlib.suppress(KeyboardInterrupt):
        raise SystemExit(main())


if __name__ == "__main__":
    main_sync()
