from __future__ import annotations

import asyncio
from decimal import Decimal

import httpx
import pytest

from storefront_server.config import StorefrontConfig
from storefront_server.medusa_client import CART_EXPAND, FetchErrorKind, MedusaClient

from .conftest import FakeMedusa


def _client(config: StorefrontConfig, handler) -> MedusaClient:
    return MedusaClient(config, transport=httpx.MockTransport(handler))


def test_cart_round_trip_against_backend(config: StorefrontConfig, backend: FakeMedusa, transport) -> None:
    async def scenario() -> None:
        async with MedusaClient(config, transport=transport) as client:
            created = await client.create_cart()
            assert created.ok
            cart_id = created.value.id

            added = await client.add_line_item(cart_id, "v1", 2)
            assert added.value.items[0].quantity == 2
            assert added.value.items[0].unit_price == Decimal("1500")

            updated = await client.update_line_item(cart_id, added.value.items[0].id, 5)
            assert updated.value.items[0].quantity == 5

            deleted = await client.delete_line_item(cart_id, added.value.items[0].id)
            assert deleted.value.items == []

            retrieved = await client.retrieve_cart(cart_id)
            assert retrieved.value.id == cart_id

    asyncio.run(scenario())

    for request in backend.requests:
        assert request.url.params["expand"] == CART_EXPAND
        assert request.headers["accept"] == "application/json"
    assert backend.requests[0].method == "POST"
    assert backend.requests[0].content == b"{}"
    assert backend.calls("DELETE", "/line-items/li_1")


def test_status_error_returns_none_with_typed_error(config: StorefrontConfig, backend: FakeMedusa, transport) -> None:
    async def scenario():
        async with MedusaClient(config, transport=transport) as client:
            return await client.retrieve_cart("cart_missing")

    result = asyncio.run(scenario())

    assert result.value is None
    assert result.error.kind == FetchErrorKind.STATUS
    assert result.error.status_code == 404


def test_transport_error_never_raises(config: StorefrontConfig, backend: FakeMedusa, transport) -> None:
    backend.offline = True

    async def scenario():
        async with MedusaClient(config, transport=transport) as client:
            return await client.create_cart()

    result = asyncio.run(scenario())

    assert result.value is None
    assert result.error.kind == FetchErrorKind.TRANSPORT
    assert "backend offline" in result.error.message


def test_unparsable_body_is_a_decode_error(config: StorefrontConfig) -> None:
    async def scenario():
        async with _client(config, lambda request: httpx.Response(200, text="<html>oops</html>")) as client:
            return await client.create_cart()

    result = asyncio.run(scenario())

    assert result.value is None
    assert result.error.kind == FetchErrorKind.DECODE


def test_missing_cart_key_is_a_validation_error(config: StorefrontConfig) -> None:
    async def scenario():
        async with _client(config, lambda request: httpx.Response(200, json={"unexpected": True})) as client:
            return await client.create_cart()

    result = asyncio.run(scenario())

    assert result.value is None
    assert result.error.kind == FetchErrorKind.VALIDATION


ORDER = {"id": "order_9", "status": "completed", "items": []}


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "order", "order": ORDER},
        {"type": "order", "data": ORDER},
        {"type": "cart", "data": {"id": "cart_1"}, "order": ORDER},
    ],
)
def test_complete_cart_extracts_order(config: StorefrontConfig, payload: dict) -> None:
    async def scenario():
        async with _client(config, lambda request: httpx.Response(200, json=payload)) as client:
            return await client.complete_cart("cart_1")

    result = asyncio.run(scenario())

    assert result.ok
    assert result.value.id == "order_9"


def test_complete_cart_without_order_is_not_an_error(config: StorefrontConfig) -> None:
    payload = {"type": "cart", "data": {"id": "cart_1", "items": []}}

    async def scenario():
        async with _client(config, lambda request: httpx.Response(200, json=payload)) as client:
            return await client.complete_cart("cart_1")

    result = asyncio.run(scenario())

    assert result.ok
    assert result.value is None


def test_fetch_products_maps_and_skips_malformed(config: StorefrontConfig, backend: FakeMedusa, transport) -> None:
    async def scenario():
        async with MedusaClient(config, transport=transport) as client:
            listing = await client.fetch_products(limit=10)
            single = await client.fetch_product_by_handle("classic-tee")
            missing = await client.fetch_product_by_handle("nope")
            collections = await client.fetch_collections()
            return listing, single, missing, collections

    listing, single, missing, collections = asyncio.run(scenario())

    assert [p.slug for p in listing.value] == ["classic-tee", "gift-card"]
    assert single.value.price == Decimal("15")
    assert missing.ok and missing.value is None
    assert collections.value[0].title == "Summer"

    first = backend.calls("GET", "/store/products")[0]
    assert first.url.params["limit"] == "10"
    assert "variants.prices" in first.url.params["expand"]


def test_fetch_products_skips_invalid_entries(config: StorefrontConfig) -> None:
    payload = {"products": [{"id": "broken"}, {"id": "p1", "title": "Mug", "handle": "mug"}]}

    async def scenario():
        async with _client(config, lambda request: httpx.Response(200, json=payload)) as client:
            return await client.fetch_products()

    result = asyncio.run(scenario())

    assert [p.slug for p in result.value] == ["mug"]


def test_fetch_products_failure(config: StorefrontConfig, backend: FakeMedusa, transport) -> None:
    backend.fail_status["/store/products"] = 500

    async def scenario():
        async with MedusaClient(config, transport=transport) as client:
            return await client.fetch_products()

    result = asyncio.run(scenario())

    assert result.value is None
    assert result.error.status_code == 500
