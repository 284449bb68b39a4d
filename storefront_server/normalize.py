"""Normalisation of commerce backend payloads into storefront display models."""

from decimal import Decimal
from typing import Optional, Union

from .models import (
    DEFAULT_CURRENCY,
    Cart,
    CartItem,
    MedusaCart,
    MedusaLineItem,
    MedusaOrder,
    MedusaProduct,
    MedusaProductOption,
    OrderSummary,
    Product,
    ProductCategory,
    ProductCollection,
    ProductImage,
    ProductPerk,
    ProductPlan,
    TrackingLink,
)

Number = Union[Decimal, int, float]

# ISO 4217 currencies whose minor unit is not 1/100.
CURRENCY_EXPONENTS = {
    "bif": 0,
    "clp": 0,
    "djf": 0,
    "gnf": 0,
    "isk": 0,
    "jpy": 0,
    "kmf": 0,
    "krw": 0,
    "pyg": 0,
    "rwf": 0,
    "ugx": 0,
    "vnd": 0,
    "vuv": 0,
    "xaf": 0,
    "xof": 0,
    "xpf": 0,
    "bhd": 3,
    "iqd": 3,
    "jod": 3,
    "kwd": 3,
    "lyd": 3,
    "omr": 3,
    "tnd": 3,
}


def currency_exponent(currency_code: Optional[str]) -> int:
    """Number of decimal places of the currency's minor unit."""
    if not currency_code:
        return 2
    return CURRENCY_EXPONENTS.get(currency_code.lower(), 2)


def normalize_amount(
    value: Optional[Number], currency_code: Optional[str] = None, units: str = "auto"
) -> Decimal:
    """
    Convert a backend amount to major currency units.

    In ``auto`` mode amounts of 100 or more are taken to be minor units and
    divided by 100, smaller amounts are returned unchanged. ``minor`` always
    divides by the currency's minor unit, ``major`` never divides.
    """
    if not value:
        return Decimal("0")

    amount = value if isinstance(value, Decimal) else Decimal(str(value))

    if units == "major":
        return amount
    if units == "minor":
        return amount / (Decimal(10) ** currency_exponent(currency_code))
    return amount / 100 if amount >= 100 else amount


def map_line_item(item: MedusaLineItem, currency_code: str, units: str = "auto") -> CartItem:
    """Map a backend line item, inheriting the owning cart's currency."""
    if item.total is not None:
        line_total = item.total
    elif item.subtotal is not None:
        line_total = item.subtotal
    else:
        line_total = item.unit_price * item.quantity

    return CartItem(
        id=item.id,
        title=item.title,
        description=item.description,
        thumbnail=item.thumbnail,
        quantity=item.quantity,
        unit_price=normalize_amount(item.unit_price, currency_code, units),
        total=normalize_amount(line_total, currency_code, units),
        variant_id=item.variant_id,
        product_id=item.product_id,
        currency_code=currency_code,
    )


def items_total(items: list[CartItem]) -> Decimal:
    return sum((item.total for item in items), Decimal("0"))


def normalize_cart(cart: MedusaCart, units: str = "auto") -> Cart:
    """Normalise a backend cart. Totals fall back to the sum of line totals."""
    currency_code = cart.region.currency_code if cart.region else DEFAULT_CURRENCY
    items = [map_line_item(item, currency_code, units) for item in cart.items]

    subtotal = (
        normalize_amount(cart.subtotal, currency_code, units) if cart.subtotal else items_total(items)
    )
    total = normalize_amount(cart.total, currency_code, units) if cart.total else items_total(items)

    return Cart(
        id=cart.id,
        items=items,
        currency_code=currency_code,
        subtotal=subtotal,
        total=total,
    )


def normalize_order(order: MedusaOrder, units: str = "auto") -> OrderSummary:
    """Build the post-checkout order summary."""
    currency_code = order.currency_code or DEFAULT_CURRENCY
    items = [map_line_item(item, currency_code, units) for item in order.items]

    subtotal = (
        normalize_amount(order.subtotal, currency_code, units) if order.subtotal else items_total(items)
    )
    total = normalize_amount(order.total, currency_code, units) if order.total else items_total(items)

    tracking_links = [
        TrackingLink(url=link.url, tracking_number=link.tracking_number)
        for fulfillment in order.fulfillments
        for link in fulfillment.tracking_links
        if link.url
    ]

    return OrderSummary(
        id=order.id,
        display_id=order.display_id,
        status=order.status or "pending",
        payment_status=order.payment_status or "pending",
        fulfillment_status=order.fulfillment_status or "pending",
        created_at=order.created_at,
        currency_code=currency_code,
        subtotal=subtotal,
        total=total,
        items=items,
        tracking_links=tracking_links,
    )


def extract_price(
    product: MedusaProduct, preferred_currency: str = DEFAULT_CURRENCY, units: str = "auto"
) -> tuple[Decimal, str]:
    """
    Pick the representative price of a product.

    Returns the minimum amount across all variant prices, restricted to the
    preferred currency whenever the product has at least one price in it.
    """
    prices = [price for variant in product.variants for price in variant.prices]
    if not prices:
        return Decimal("0"), preferred_currency

    preferred = [p for p in prices if p.currency_code.lower() == preferred_currency.lower()]
    relevant = preferred or prices

    currency_code = relevant[0].currency_code
    amount = min(price.amount for price in relevant)
    return normalize_amount(amount, currency_code, units), currency_code


def map_option_to_perk(option: MedusaProductOption) -> Optional[ProductPerk]:
    values = ", ".join(value.value for value in option.values if value.value)
    if not values:
        return None
    return ProductPerk(text=f"{option.title}: {values}")


def map_product(
    product: MedusaProduct, preferred_currency: str = DEFAULT_CURRENCY, units: str = "auto"
) -> Product:
    """Project a backend product into its display shape."""
    price, currency_code = extract_price(product, preferred_currency, units)

    if product.images:
        images = [ProductImage(url=image.url) for image in product.images]
    elif product.thumbnail:
        images = [ProductImage(url=product.thumbnail)]
    else:
        images = []

    perks = [perk for perk in map(map_option_to_perk, product.options) if perk]
    plans = [ProductPlan(id=variant.id, name=variant.title) for variant in product.variants]

    return Product(
        id=product.id,
        name=product.title,
        slug=product.handle,
        description=product.description or "",
        price=price,
        currency_code=currency_code,
        plans=plans,
        perks=perks,
        featured=False,
        images=images,
        categories=[ProductCategory(id=c.id, name=c.name) for c in product.categories],
        collections=[
            ProductCollection(id=c.id, title=c.title, handle=c.handle) for c in product.collections
        ],
    )
