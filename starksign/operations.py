"""
Authenticated marketplace operations.

Each builder signs the message vector the receiving service expects and
returns a ``SignedRequest`` describing the HTTP call to make.  No network
I/O happens here; sending the request is up to the caller's transport.

Vector layouts (order matters, ``n`` is a fresh nonce):

    register_client      [address, n]
    create_blueprint     [h(permanent_id)]
    register_collection  [address, h(name), h(symbol), h(base_uri), h(image),
                          h(background_image), h(description)]
    save_metadata        [contract, token_id, nonce]        (caller's nonce)
    mint                 [to, token_id, contract, n]
    withdraw             [amount_or_token_id, contract, address, n]
    transfer             [to, amount_or_token_id, contract, n]
    create_order         [order_id, bid, base_contract, base_token_id,
                          quote_contract, quote_amount]
    fulfill_order        [order_id, n]
    cancel_order         [order_id, n]

``h`` is ``hash_to_field``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from starksign.field import FieldLike, hash_to_field, parse_field, render_decimal, to_field
from starksign.wallet import AuthorizedPayload, StarkWallet


@dataclass(frozen=True)
class SignedRequest:
    """An HTTP request carrying STARK authentication material."""
    method: str
    path: str
    payload: AuthorizedPayload
    body: dict[str, Any] | None = None
    query: dict[str, str] = field(default_factory=dict)

    @property
    def target(self) -> str:
        """Path plus query string, with the signature left unescaped as ``r,s``."""
        if not self.query:
            return self.path
        return self.path + "?" + "&".join(f"{k}={v}" for k, v in self.query.items())


@dataclass(frozen=True)
class NewCollection:
    address: str
    name: str
    symbol: str
    base_uri: str
    image: str
    background_image: str | None = None
    description: str | None = None
    blueprint: str | None = None


def _dec(value: FieldLike) -> str:
    return render_decimal(to_field(value))


def _signature_query(payload: AuthorizedPayload) -> dict[str, str]:
    return {"signature": payload.signature_param}


async def register_client(wallet: StarkWallet, address: str) -> SignedRequest:
    """Bind the wallet's stark key to an Ethereum address."""
    payload = await wallet.authorize([parse_field(address)])
    return SignedRequest(
        method="POST",
        path="/clients",
        payload=payload,
        body={
            "stark_key": render_decimal(payload.stark_key),
            "address": address,
            "nonce": render_decimal(payload.nonce),
        },
        query=_signature_query(payload),
    )


async def create_blueprint(wallet: StarkWallet, permanent_id: str) -> SignedRequest:
    payload = await wallet.authorize([hash_to_field(permanent_id)], with_nonce=False)
    return SignedRequest(
        method="POST",
        path="/blueprints",
        payload=payload,
        body={
            "permanent_id": permanent_id,
            "minter": render_decimal(payload.stark_key),
        },
        query=_signature_query(payload),
    )


async def register_collection(wallet: StarkWallet, collection: NewCollection) -> SignedRequest:
    """
    Register a collection contract.  Without a blueprint the signer's own
    stark key becomes the minter.
    """
    payload = await wallet.authorize(
        [
            parse_field(collection.address),
            hash_to_field(collection.name),
            hash_to_field(collection.symbol),
            hash_to_field(collection.base_uri),
            hash_to_field(collection.image),
            hash_to_field(collection.background_image or ""),
            hash_to_field(collection.description or ""),
        ],
        with_nonce=False,
    )
    body: dict[str, Any] = {
        "address": collection.address,
        "name": collection.name,
        "symbol": collection.symbol,
        "base_uri": collection.base_uri,
        "image": collection.image,
    }
    if collection.background_image:
        body["background_image"] = collection.background_image
    if collection.description:
        body["description"] = collection.description
    if collection.blueprint:
        body["blueprint"] = collection.blueprint
    else:
        body["minter"] = render_decimal(payload.stark_key)
    return SignedRequest("POST", "/collections", payload, body, _signature_query(payload))


async def save_metadata(wallet: StarkWallet, contract: str, token_id: FieldLike,
                        nonce: FieldLike, metadata: dict[str, Any]) -> SignedRequest:
    """Update token metadata; the nonce is supplied by the caller."""
    payload = await wallet.authorize(
        [parse_field(contract), to_field(token_id), to_field(nonce)],
        with_nonce=False,
    )
    return SignedRequest(
        method="PUT",
        path=f"/collections/{contract}/tokens/{_dec(token_id)}/_metadata",
        payload=payload,
        body=dict(metadata),
        query=_signature_query(payload),
    )


async def mint(wallet: StarkWallet, to: FieldLike, token_id: FieldLike, contract: str) -> SignedRequest:
    payload = await wallet.authorize([to_field(to), to_field(token_id), parse_field(contract)])
    return SignedRequest(
        method="POST",
        path="/mint",
        payload=payload,
        body={
            "user": _dec(to),
            "token_id": _dec(token_id),
            "contract": contract,
            "nonce": render_decimal(payload.nonce),
        },
        query=_signature_query(payload),
    )


async def withdraw(wallet: StarkWallet, address: str, amount_or_token_id: FieldLike,
                   contract: str | None = None) -> SignedRequest:
    """Request a layer-1 withdrawal to ``address``; ``contract=None`` means ether."""
    contract = contract or "0"
    payload = await wallet.authorize(
        [to_field(amount_or_token_id), parse_field(contract), parse_field(address)],
    )
    return SignedRequest(
        method="POST",
        path="/withdraw",
        payload=payload,
        body={
            "user": render_decimal(payload.stark_key),
            "amount_or_token_id": _dec(amount_or_token_id),
            "contract": contract,
            "address": address,
            "nonce": render_decimal(payload.nonce),
        },
        query=_signature_query(payload),
    )


async def transfer(wallet: StarkWallet, to: FieldLike, amount_or_token_id: FieldLike,
                   contract: str) -> SignedRequest:
    payload = await wallet.authorize(
        [to_field(to), to_field(amount_or_token_id), parse_field(contract)],
    )
    return SignedRequest(
        method="POST",
        path="/transfer",
        payload=payload,
        body={
            "from": render_decimal(payload.stark_key),
            "to": _dec(to),
            "amount_or_token_id": _dec(amount_or_token_id),
            "contract": contract,
            "nonce": render_decimal(payload.nonce),
        },
        query=_signature_query(payload),
    )


async def create_order(wallet: StarkWallet, order_id: FieldLike, bid: bool,
                       base_contract: str, base_token_id: FieldLike,
                       quote_contract: str, quote_amount: FieldLike) -> SignedRequest:
    payload = await wallet.authorize(
        [
            to_field(order_id),
            int(bool(bid)),
            parse_field(base_contract),
            to_field(base_token_id),
            parse_field(quote_contract),
            to_field(quote_amount),
        ],
        with_nonce=False,
    )
    return SignedRequest(
        method="POST",
        path="/orders",
        payload=payload,
        body={
            "order_id": _dec(order_id),
            "user": render_decimal(payload.stark_key),
            "bid": bool(bid),
            "base_contract": base_contract,
            "base_token_id": _dec(base_token_id),
            "quote_contract": quote_contract,
            "quote_amount": _dec(quote_amount),
        },
        query=_signature_query(payload),
    )


async def fulfill_order(wallet: StarkWallet, order_id: FieldLike) -> SignedRequest:
    payload = await wallet.authorize([to_field(order_id)])
    return SignedRequest(
        method="POST",
        path=f"/orders/{_dec(order_id)}",
        payload=payload,
        body={
            "user": render_decimal(payload.stark_key),
            "nonce": render_decimal(payload.nonce),
        },
        query=_signature_query(payload),
    )


async def cancel_order(wallet: StarkWallet, order_id: FieldLike) -> SignedRequest:
    payload = await wallet.authorize([to_field(order_id)])
    return SignedRequest(
        method="DELETE",
        path=f"/orders/{_dec(order_id)}",
        payload=payload,
        query={"nonce": render_decimal(payload.nonce), "signature": payload.signature_param},
    )
