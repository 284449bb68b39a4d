"""Client for the Medusa-compatible commerce backend store API."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

import httpx
from pydantic import ValidationError

from .config import StorefrontConfig
from .models import MedusaCart, MedusaCollection, MedusaOrder, MedusaProduct, Product, ProductCollection
from .normalize import map_product

logger = logging.getLogger(__name__)

CART_EXPAND = ",".join(
    [
        "items",
        "items.variant",
        "items.variant.product",
        "region",
        "shipping_address",
        "billing_address",
    ]
)

PRODUCT_EXPAND = ",".join(
    [
        "variants",
        "variants.prices",
        "images",
        "options",
        "categories",
        "collections",
    ]
)

DEFAULT_PRODUCT_LIMIT = 50

T = TypeVar("T")


class FetchErrorKind(str, Enum):
    TRANSPORT = "transport"
    STATUS = "status"
    DECODE = "decode"
    VALIDATION = "validation"


@dataclass(frozen=True)
class FetchError:
    """Why a backend call produced no data."""

    kind: FetchErrorKind
    message: str
    url: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """
    Outcome of a backend call.

    ``value`` is ``None`` whenever ``error`` is set. A successful call may
    still carry ``value=None`` when the backend legitimately returned nothing
    usable (e.g. a checkout that did not produce an order).
    """

    value: Optional[T] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T]) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: FetchError) -> "FetchResult[T]":
        return cls(error=error)


class MedusaClient:
    """Client for the commerce backend cart, checkout and product endpoints."""

    def __init__(
        self,
        config: StorefrontConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the commerce client.

        Args:
            config: Storefront configuration (backend URL, timeout, currency)
            transport: Optional httpx transport, used to substitute the network
        """
        self.config = config
        self.client = httpx.AsyncClient(
            base_url=config.medusa_url,
            timeout=config.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "MedusaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _store_fetch(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> FetchResult[dict[str, Any]]:
        """Issue one request and decode its JSON object body."""
        url = f"{self.config.medusa_url}{path}"

        try:
            response = await self.client.request(method, path, params=params, json=json)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Failed to reach commerce backend at {url}: {e}")
            return FetchResult.failure(FetchError(FetchErrorKind.TRANSPORT, str(e), url))

        if not response.is_success:
            logger.error(f"Failed to fetch store data from {url}: {response.status_code}")
            return FetchResult.failure(
                FetchError(
                    FetchErrorKind.STATUS,
                    f"Backend responded with status {response.status_code}",
                    url,
                    response.status_code,
                )
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Could not parse store response from {url}: {e}")
            return FetchResult.failure(
                FetchError(FetchErrorKind.DECODE, str(e), url, response.status_code)
            )

        if not isinstance(data, dict):
            logger.error(f"Unexpected store response from {url}: {type(data).__name__}")
            return FetchResult.failure(
                FetchError(
                    FetchErrorKind.DECODE,
                    "Expected a JSON object",
                    url,
                    response.status_code,
                )
            )

        return FetchResult.success(data)

    async def _cart_request(
        self, method: str, path: str, json: Optional[dict[str, Any]] = None
    ) -> FetchResult[MedusaCart]:
        result = await self._store_fetch(method, path, params={"expand": CART_EXPAND}, json=json)
        if result.error:
            return FetchResult.failure(result.error)

        url = f"{self.config.medusa_url}{path}"
        cart_data = result.value.get("cart")
        if not cart_data:
            logger.error(f"Store response from {url} did not include a cart")
            return FetchResult.failure(
                FetchError(FetchErrorKind.VALIDATION, "Response did not include a cart", url)
            )

        try:
            return FetchResult.success(MedusaCart.model_validate(cart_data))
        except ValidationError as e:
            logger.error(f"Invalid cart payload from {url}: {e}")
            return FetchResult.failure(FetchError(FetchErrorKind.VALIDATION, str(e), url))

    async def create_cart(self) -> FetchResult[MedusaCart]:
        """Create an empty cart."""
        logger.info("=== CREATE CART ===")
        return await self._cart_request("POST", "/store/carts", json={})

    async def retrieve_cart(self, cart_id: str) -> FetchResult[MedusaCart]:
        """Fetch a cart by id."""
        logger.info(f"=== RETRIEVE CART: cart_id={cart_id} ===")
        return await self._cart_request("GET", f"/store/carts/{cart_id}")

    async def add_line_item(
        self, cart_id: str, variant_id: str, quantity: int
    ) -> FetchResult[MedusaCart]:
        """
        Add a variant to a cart.

        Args:
            cart_id: Cart ID
            variant_id: Variant to add
            quantity: Quantity to add

        Returns:
            Result holding the updated cart
        """
        logger.info(
            f"=== ADD LINE ITEM: cart_id={cart_id}, variant_id={variant_id}, quantity={quantity} ==="
        )
        return await self._cart_request(
            "POST",
            f"/store/carts/{cart_id}/line-items",
            json={"variant_id": variant_id, "quantity": quantity},
        )

    async def update_line_item(
        self, cart_id: str, line_id: str, quantity: int
    ) -> FetchResult[MedusaCart]:
        """Set the quantity of a line item."""
        logger.info(
            f"=== UPDATE LINE ITEM: cart_id={cart_id}, line_id={line_id}, quantity={quantity} ==="
        )
        return await self._cart_request(
            "POST",
            f"/store/carts/{cart_id}/line-items/{line_id}",
            json={"quantity": quantity},
        )

    async def delete_line_item(self, cart_id: str, line_id: str) -> FetchResult[MedusaCart]:
        """Remove a line item from a cart."""
        logger.info(f"=== DELETE LINE ITEM: cart_id={cart_id}, line_id={line_id} ===")
        return await self._cart_request("DELETE", f"/store/carts/{cart_id}/line-items/{line_id}")

    async def complete_cart(self, cart_id: str) -> FetchResult[MedusaOrder]:
        """
        Complete checkout for a cart.

        The backend answers with ``{"type": "order" | "cart", "data": ...}``.
        A successful result with ``value=None`` means the cart did not turn
        into an order (for example, payment needs further action).
        """
        logger.info(f"=== COMPLETE CART: cart_id={cart_id} ===")
        path = f"/store/carts/{cart_id}/complete"
        result = await self._store_fetch("POST", path, json={})
        if result.error:
            return FetchResult.failure(result.error)

        data = result.value
        order_data = None

        if data.get("type") == "order":
            if data.get("order"):
                order_data = data["order"]
            elif isinstance(data.get("data"), dict) and data["data"].get("id"):
                order_data = data["data"]

        if order_data is None and data.get("order"):
            order_data = data["order"]

        if order_data is None:
            logger.warning(f"Cart {cart_id} did not complete into an order (type={data.get('type')})")
            return FetchResult.success(None)

        try:
            return FetchResult.success(MedusaOrder.model_validate(order_data))
        except ValidationError as e:
            url = f"{self.config.medusa_url}{path}"
            logger.error(f"Invalid order payload from {url}: {e}")
            return FetchResult.failure(FetchError(FetchErrorKind.VALIDATION, str(e), url))

    def _parse_products(self, products_data: list[Any]) -> list[Product]:
        """Parse and project products, skipping malformed entries."""
        products = []

        for item in products_data:
            try:
                product = MedusaProduct.model_validate(item)
                products.append(
                    map_product(product, self.config.currency, self.config.amount_units)
                )
            except ValidationError as e:
                logger.warning(f"Failed to parse product: {e}")
                continue

        return products

    async def fetch_products(self, limit: int = DEFAULT_PRODUCT_LIMIT) -> FetchResult[list[Product]]:
        """List products in display shape."""
        logger.info(f"=== FETCH PRODUCTS: limit={limit} ===")
        result = await self._store_fetch(
            "GET", "/store/products", params={"limit": limit, "expand": PRODUCT_EXPAND}
        )
        if result.error:
            return FetchResult.failure(result.error)

        return FetchResult.success(self._parse_products(result.value.get("products") or []))

    async def fetch_product_by_handle(self, handle: str) -> FetchResult[Product]:
        """Look up a single product by its handle."""
        logger.info(f"=== FETCH PRODUCT: handle={handle} ===")
        result = await self._store_fetch(
            "GET",
            "/store/products",
            params={"handle": handle, "limit": 1, "expand": PRODUCT_EXPAND},
        )
        if result.error:
            return FetchResult.failure(result.error)

        products = self._parse_products((result.value.get("products") or [])[:1])
        return FetchResult.success(products[0] if products else None)

    async def fetch_collections(self) -> FetchResult[list[ProductCollection]]:
        """List product collections."""
        result = await self._store_fetch("GET", "/store/collections")
        if result.error:
            return FetchResult.failure(result.error)

        collections = []
        for item in result.value.get("collections") or []:
            try:
                collection = MedusaCollection.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Failed to parse collection: {e}")
                continue
            collections.append(
                ProductCollection(id=collection.id, title=collection.title, handle=collection.handle)
            )

        return FetchResult.success(collections)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
