from __future__ import annotations

from decimal import Decimal

import pytest

from storefront_server.models import MedusaCart, MedusaLineItem, MedusaOrder, MedusaProduct
from storefront_server.normalize import (
    extract_price,
    map_line_item,
    map_product,
    normalize_amount,
    normalize_cart,
    normalize_order,
)

from .conftest import PRODUCTS


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (100, Decimal("1.00")),
        (1500, Decimal("15.00")),
        (12345, Decimal("123.45")),
        (99, Decimal("99")),
        (15.5, Decimal("15.5")),
        (0, Decimal("0")),
        (None, Decimal("0")),
    ],
)
def test_normalize_amount_magnitude_heuristic(raw, expected) -> None:
    assert normalize_amount(raw) == expected


def test_normalize_amount_explicit_units() -> None:
    assert normalize_amount(50, "usd", units="minor") == Decimal("0.50")
    assert normalize_amount(1500, "jpy", units="minor") == Decimal("1500")
    assert normalize_amount(1500, "kwd", units="minor") == Decimal("1.5")
    assert normalize_amount(1500, "usd", units="major") == Decimal("1500")


def test_line_total_prefers_backend_total_then_subtotal_then_computed() -> None:
    base = {"id": "li_1", "title": "Tee", "quantity": 2, "variant_id": "v1", "product_id": "p1", "unit_price": 1500}

    with_total = map_line_item(MedusaLineItem(**base, total=2800, subtotal=3000), "usd")
    assert with_total.total == Decimal("28")

    with_subtotal = map_line_item(MedusaLineItem(**base, subtotal=3000), "usd")
    assert with_subtotal.total == Decimal("30")

    computed = map_line_item(MedusaLineItem(**base), "eur")
    assert computed.unit_price == Decimal("15")
    assert computed.total == Decimal("30")
    assert computed.currency_code == "eur"


def test_normalize_cart_inherits_region_currency_and_falls_back_to_item_sum() -> None:
    cart = MedusaCart.model_validate(
        {
            "id": "cart_1",
            "region": {"id": "reg_1", "currency_code": "eur"},
            "items": [
                {"id": "li_1", "title": "A", "quantity": 1, "variant_id": "v1", "product_id": "p", "unit_price": 1500},
                {"id": "li_2", "title": "B", "quantity": 3, "variant_id": "v2", "product_id": "p", "unit_price": 200},
            ],
        }
    )

    normalized = normalize_cart(cart)

    assert normalized.currency_code == "eur"
    assert [item.currency_code for item in normalized.items] == ["eur", "eur"]
    assert normalized.subtotal == Decimal("21")
    assert normalized.total == Decimal("21")


def test_normalize_cart_without_region_uses_default_currency() -> None:
    normalized = normalize_cart(MedusaCart(id="cart_1", subtotal=1000, total=1200))

    assert normalized.currency_code == "usd"
    assert normalized.items == []
    assert normalized.subtotal == Decimal("10")
    assert normalized.total == Decimal("12")


def test_normalize_order_defaults_statuses_and_flattens_tracking_links() -> None:
    order = MedusaOrder.model_validate(
        {
            "id": "order_1",
            "display_id": 7,
            "payment_status": "captured",
            "total": 3000,
            "items": [
                {"id": "li_1", "title": "Tee", "quantity": 2, "variant_id": "v1", "product_id": "p", "unit_price": 1500}
            ],
            "fulfillments": [
                {"id": "ful_1", "tracking_links": [{"url": "https://track.test/1", "tracking_number": "T1"}, {"url": None}]},
                {"id": "ful_2", "tracking_links": [{"url": "https://track.test/2"}]},
            ],
        }
    )

    summary = normalize_order(order)

    assert summary.status == "pending"
    assert summary.payment_status == "captured"
    assert summary.fulfillment_status == "pending"
    assert summary.currency_code == "usd"
    assert summary.subtotal == Decimal("30")
    assert summary.total == Decimal("30")
    assert [(link.url, link.tracking_number) for link in summary.tracking_links] == [
        ("https://track.test/1", "T1"),
        ("https://track.test/2", None),
    ]


def test_extract_price_prefers_target_currency_minimum() -> None:
    product = MedusaProduct.model_validate(PRODUCTS[0])

    assert extract_price(product) == (Decimal("15"), "usd")
    assert extract_price(product, "eur") == (Decimal("14"), "eur")
    # No price in the preferred currency: minimum across all prices.
    assert extract_price(product, "gbp") == (Decimal("14"), "usd")


def test_extract_price_without_prices() -> None:
    product = MedusaProduct.model_validate(PRODUCTS[1])

    assert extract_price(product) == (Decimal("0"), "usd")


def test_map_product_builds_display_projection() -> None:
    product = map_product(MedusaProduct.model_validate(PRODUCTS[0]))

    assert product.name == "Classic Tee"
    assert product.slug == "classic-tee"
    assert product.price == Decimal("15")
    assert [(plan.id, plan.name) for plan in product.plans] == [("v1", "M"), ("v2", "L")]
    assert [perk.text for perk in product.perks] == ["Size: M, L"]
    assert [image.url for image in product.images] == ["https://cdn.test/tee.png"]
    assert product.categories[0].name == "Shirts"
    assert product.collections[0].handle == "summer"
    assert product.featured is False
