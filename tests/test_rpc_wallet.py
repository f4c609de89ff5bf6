"""
Tests for starksign.rpc_wallet — JSON-RPC wallet capability.

A small aiohttp app stands in for the external wallet, answering
``eth_accounts`` and ``personal_sign`` with a LocalEthAccount.
"""

from __future__ import annotations

import contextlib

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from starksign.derivation import derive_key_pair
from starksign.errors import DerivationUnavailable
from starksign.eth import LocalEthAccount, recover_address
from starksign.rpc_wallet import UNAUTHORIZED, USER_REJECTED, JsonRpcWallet
from tests.conftest import ETH_ADDRESS, ETH_PRIVATE_KEY, TEST_CONTEXT


class _FakeWallet:
    """JSON-RPC handler with switchable failure modes."""

    def __init__(self, account: LocalEthAccount):
        self.account = account
        self.accounts = [account.address.lower()]
        self.reject = False
        self.reject_code = USER_REJECTED
        self.http_status = 200
        self.calls: list[str] = []

    async def handle(self, request: web.Request) -> web.Response:
        if self.http_status != 200:
            return web.Response(status=self.http_status, text="boom")
        body = await request.json()
        method = body["method"]
        self.calls.append(method)
        reply = {"jsonrpc": "2.0", "id": body["id"]}
        if method == "eth_accounts":
            reply["result"] = self.accounts
        elif method == "personal_sign":
            if self.reject:
                reply["error"] = {"code": self.reject_code, "message": "User rejected the request."}
            else:
                message = bytes.fromhex(body["params"][0][2:])
                reply["result"] = self.account.sign_message(message).to_hex()
        else:
            reply["error"] = {"code": -32601, "message": "Method not found"}
        return web.json_response(reply)


@contextlib.asynccontextmanager
async def _serve(fake: _FakeWallet):
    app = web.Application()
    app.router.add_post("/", fake.handle)
    server = TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/"))
    finally:
        await server.close()


@pytest.fixture
def fake_wallet():
    return _FakeWallet(LocalEthAccount(ETH_PRIVATE_KEY))


class TestJsonRpcWallet:

    @pytest.mark.asyncio
    async def test_address_checksummed_and_cached(self, fake_wallet):
        async with _serve(fake_wallet) as url:
            wallet = JsonRpcWallet(url)
            assert await wallet.get_address() == ETH_ADDRESS
            assert await wallet.get_address() == ETH_ADDRESS
        assert fake_wallet.calls == ["eth_accounts"]

    @pytest.mark.asyncio
    async def test_configured_address_skips_lookup(self, fake_wallet):
        async with _serve(fake_wallet) as url:
            wallet = JsonRpcWallet(url, address=ETH_ADDRESS.lower())
            assert await wallet.get_address() == ETH_ADDRESS
        assert fake_wallet.calls == []

    @pytest.mark.asyncio
    async def test_sign_challenge(self, fake_wallet):
        async with _serve(fake_wallet) as url:
            wallet = JsonRpcWallet(url)
            signature = await wallet.sign_challenge("Test")
        assert isinstance(signature, bytes)
        assert recover_address("Test", signature) == ETH_ADDRESS

    @pytest.mark.asyncio
    async def test_shared_session(self, fake_wallet):
        async with _serve(fake_wallet) as url:
            async with aiohttp.ClientSession() as session:
                wallet = JsonRpcWallet(url, session=session, timeout=5)
                signature = await wallet.sign_challenge("Test")
        assert recover_address("Test", signature) == ETH_ADDRESS

    @pytest.mark.asyncio
    async def test_derivation_matches_local_account(self, fake_wallet):
        async with _serve(fake_wallet) as url:
            remote = await derive_key_pair(JsonRpcWallet(url), TEST_CONTEXT)
        local = await derive_key_pair(LocalEthAccount(ETH_PRIVATE_KEY), TEST_CONTEXT)
        assert remote == local

    @pytest.mark.asyncio
    async def test_user_rejection(self, fake_wallet):
        fake_wallet.reject = True
        async with _serve(fake_wallet) as url:
            wallet = JsonRpcWallet(url)
            with pytest.raises(DerivationUnavailable, match="4001"):
                await wallet.sign_challenge("Test")

    @pytest.mark.asyncio
    async def test_unauthorized_origin(self, fake_wallet, caplog):
        fake_wallet.reject = True
        fake_wallet.reject_code = UNAUTHORIZED
        async with _serve(fake_wallet) as url:
            with caplog.at_level("INFO", logger="starksign.rpc_wallet"):
                with pytest.raises(DerivationUnavailable, match="4100"):
                    await JsonRpcWallet(url).sign_challenge("Test")
        assert "not authorised" in caplog.text

    @pytest.mark.asyncio
    async def test_rejection_through_derivation(self, fake_wallet):
        fake_wallet.reject = True
        async with _serve(fake_wallet) as url:
            with pytest.raises(DerivationUnavailable):
                await derive_key_pair(JsonRpcWallet(url), TEST_CONTEXT)

    @pytest.mark.asyncio
    async def test_http_error(self, fake_wallet):
        fake_wallet.http_status = 500
        async with _serve(fake_wallet) as url:
            with pytest.raises(DerivationUnavailable):
                await JsonRpcWallet(url).get_address()

    @pytest.mark.asyncio
    async def test_no_accounts(self, fake_wallet):
        fake_wallet.accounts = []
        async with _serve(fake_wallet) as url:
            with pytest.raises(DerivationUnavailable, match="no accounts"):
                await JsonRpcWallet(url).get_address()

    @pytest.mark.asyncio
    async def test_malformed_account(self, fake_wallet):
        fake_wallet.accounts = ["0x1234"]
        async with _serve(fake_wallet) as url:
            with pytest.raises(DerivationUnavailable):
                await JsonRpcWallet(url).get_address()

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self, fake_wallet):
        async with _serve(fake_wallet) as url:
            pass
        with pytest.raises(DerivationUnavailable):
            await JsonRpcWallet(url).get_address()

    def test_repr(self):
        assert repr(JsonRpcWallet("http://127.0.0.1:8550")) == "JsonRpcWallet(http://127.0.0.1:8550)"
