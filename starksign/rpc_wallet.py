"""
JSON-RPC wallet capability.

Talks to an out-of-process Ethereum wallet (a node, Clef, Frame or any
EIP-1193 bridge exposing HTTP JSON-RPC) using ``personal_sign`` and
``eth_accounts``.  The signing call may block until the user approves it;
no timeout is applied unless one is configured.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

import aiohttp

from starksign.errors import DerivationUnavailable
from starksign.eth import to_checksum_address

logger = logging.getLogger("starksign.rpc_wallet")

# EIP-1193 provider error codes
USER_REJECTED = 4001
UNAUTHORIZED = 4100


class JsonRpcWallet:
    """WalletCapability backed by a JSON-RPC endpoint."""

    def __init__(
        self,
        url: str,
        address: str | None = None,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
    ):
        self.url = url
        self._address = to_checksum_address(address) if address else None
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        self._ids = itertools.count(1)

    async def _post(self, session: aiohttp.ClientSession, payload: dict) -> Any:
        async with session.post(self.url, json=payload, timeout=self._timeout) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def _call(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        logger.debug("JSON-RPC %s -> %s", method, self.url)
        try:
            if self._session is not None:
                data = await self._post(self._session, payload)
            else:
                async with aiohttp.ClientSession() as session:
                    data = await self._post(session, payload)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise DerivationUnavailable(f"{method} request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise DerivationUnavailable(f"{method}: malformed JSON-RPC reply")
        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", "") if isinstance(error, dict) else str(error)
            if code == USER_REJECTED:
                logger.info("Wallet user rejected %s", method)
            elif code == UNAUTHORIZED:
                logger.info("Wallet has not authorised %s for this origin", method)
            raise DerivationUnavailable(f"{method} rejected by wallet ({code}): {message}")
        if "result" not in data:
            raise DerivationUnavailable(f"{method}: reply carries no result")
        return data["result"]

    async def get_address(self) -> str:
        if self._address is None:
            accounts = await self._call("eth_accounts", [])
            if not accounts:
                raise DerivationUnavailable("wallet exposes no accounts")
            try:
                self._address = to_checksum_address(accounts[0])
            except (TypeError, ValueError) as exc:
                raise DerivationUnavailable(f"wallet returned a malformed address: {accounts[0]!r}") from exc
        return self._address

    async def sign_challenge(self, text: str) -> bytes:
        address = await self.get_address()
        message = "0x" + text.encode("utf-8").hex()
        result = await self._call("personal_sign", [message, address])
        if not isinstance(result, str):
            raise DerivationUnavailable("personal_sign returned a non-string signature")
        try:
            return bytes.fromhex(result[2:] if result[:2].lower() == "0x" else result)
        except ValueError as exc:
            raise DerivationUnavailable("personal_sign returned malformed hex") from exc

    def __repr__(self) -> str:
        return f"JsonRpcWallet({self.url})"
