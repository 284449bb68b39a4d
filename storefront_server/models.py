"""Data models for commerce backend payloads and storefront state."""

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CURRENCY = "usd"


# Backend payloads. Unknown fields are ignored.


class MedusaPrice(BaseModel):
    amount: Decimal
    currency_code: str


class MedusaRegion(BaseModel):
    id: str
    currency_code: str


class MedusaLineItem(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    quantity: int
    variant_id: Optional[str] = None
    product_id: Optional[str] = None
    unit_price: Decimal = Decimal("0")
    subtotal: Optional[Decimal] = None
    total: Optional[Decimal] = None


class MedusaCart(BaseModel):
    id: str
    items: list[MedusaLineItem] = Field(default_factory=list)
    region: Optional[MedusaRegion] = None
    subtotal: Optional[Decimal] = None
    total: Optional[Decimal] = None
    tax_total: Optional[Decimal] = None
    discount_total: Optional[Decimal] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MedusaTrackingLink(BaseModel):
    id: Optional[str] = None
    url: Optional[str] = None
    tracking_number: Optional[str] = None


class MedusaFulfillment(BaseModel):
    id: str
    tracking_links: list[MedusaTrackingLink] = Field(default_factory=list)


class MedusaOrder(BaseModel):
    id: str
    display_id: Optional[int] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    currency_code: Optional[str] = None
    subtotal: Optional[Decimal] = None
    total: Optional[Decimal] = None
    created_at: Optional[str] = None
    items: list[MedusaLineItem] = Field(default_factory=list)
    fulfillments: list[MedusaFulfillment] = Field(default_factory=list)


class MedusaProductOptionValue(BaseModel):
    id: Optional[str] = None
    value: Optional[str] = None


class MedusaProductOption(BaseModel):
    id: str
    title: str
    values: list[MedusaProductOptionValue] = Field(default_factory=list)


class MedusaProductVariant(BaseModel):
    id: str
    title: str
    prices: list[MedusaPrice] = Field(default_factory=list)


class MedusaProductCategory(BaseModel):
    id: Optional[str] = None
    name: str


class MedusaProductImage(BaseModel):
    id: Optional[str] = None
    url: str


class MedusaCollection(BaseModel):
    id: Optional[str] = None
    title: str
    handle: Optional[str] = None


class MedusaProduct(BaseModel):
    id: str
    title: str
    handle: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    images: list[MedusaProductImage] = Field(default_factory=list)
    variants: list[MedusaProductVariant] = Field(default_factory=list)
    options: list[MedusaProductOption] = Field(default_factory=list)
    categories: list[MedusaProductCategory] = Field(default_factory=list)
    collections: list[MedusaCollection] = Field(default_factory=list)


# Storefront display models.


class ProductPlan(BaseModel):
    """A purchasable variant of a product."""

    id: Optional[str] = None
    name: str


class ProductPerk(BaseModel):
    text: str


class ProductImage(BaseModel):
    url: str
    alternative_text: Optional[str] = None


class ProductCategory(BaseModel):
    id: Optional[str] = None
    name: str


class ProductCollection(BaseModel):
    id: Optional[str] = None
    title: str
    handle: Optional[str] = None


class Product(BaseModel):
    """Display projection of a backend product."""

    id: str = Field(description="Product ID")
    name: str = Field(description="Product name")
    slug: str = Field(description="Product handle")
    description: str = Field(default="", description="Product description")
    price: Decimal = Field(default=Decimal("0"), description="Lowest variant price")
    currency_code: str = Field(default=DEFAULT_CURRENCY, description="Currency of the price")
    plans: list[ProductPlan] = Field(default_factory=list, description="Purchasable variants")
    perks: list[ProductPerk] = Field(default_factory=list, description="Option summaries")
    featured: bool = False
    images: list[ProductImage] = Field(default_factory=list)
    categories: list[ProductCategory] = Field(default_factory=list)
    collections: list[ProductCollection] = Field(default_factory=list)


class CartItem(BaseModel):
    """Represents a line item in the shopping cart."""

    id: str
    title: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    quantity: int = Field(ge=0, description="Quantity of the variant")
    unit_price: Decimal = Field(description="Unit price in major units")
    total: Decimal = Field(description="Line total in major units")
    variant_id: Optional[str] = None
    product_id: Optional[str] = None
    currency_code: str = DEFAULT_CURRENCY


class Cart(BaseModel):
    """Normalised shopping cart."""

    id: str
    items: list[CartItem] = Field(default_factory=list)
    currency_code: str = DEFAULT_CURRENCY
    subtotal: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class TrackingLink(BaseModel):
    url: str
    tracking_number: Optional[str] = None


class OrderSummary(BaseModel):
    """Snapshot of an order taken at checkout completion."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_id: Optional[int] = None
    status: str = "pending"
    payment_status: str = "pending"
    fulfillment_status: str = "pending"
    created_at: Optional[str] = None
    currency_code: str = DEFAULT_CURRENCY
    subtotal: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    items: list[CartItem] = Field(default_factory=list)
    tracking_links: list[TrackingLink] = Field(default_factory=list)


class CartState(BaseModel):
    """Immutable snapshot of the cart store."""

    model_config = ConfigDict(frozen=True)

    status: Literal["uninitialized", "loading", "ready"] = "uninitialized"
    cart_id: Optional[str] = None
    items: list[CartItem] = Field(default_factory=list)
    currency_code: str = DEFAULT_CURRENCY
    subtotal: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    is_loading: bool = False
    is_updating: bool = False
    is_processing_checkout: bool = False
    error: Optional[str] = None
    last_order: Optional[OrderSummary] = None


# Authentication.


class Customer(BaseModel):
    """Customer attached to the current session."""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class AuthCredentials(BaseModel):
    """Authentication credentials."""

    email: str
    password: str


class RegisterPayload(BaseModel):
    """Account registration fields."""

    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class AuthResult(BaseModel):
    success: bool
    message: Optional[str] = None


class AuthState(BaseModel):
    """Immutable snapshot of the auth session."""

    model_config = ConfigDict(frozen=True)

    customer: Optional[Customer] = None
    is_loading: bool = True


ContentData = dict[str, Any]
