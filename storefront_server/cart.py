"""Shopping cart state container backed by the commerce client."""

import asyncio
import logging
from decimal import Decimal
from typing import Callable, Optional

from .medusa_client import FetchErrorKind, MedusaClient
from .models import DEFAULT_CURRENCY, Cart, CartState, OrderSummary, Product
from .normalize import normalize_cart, normalize_order
from .storage import CartIdStore

logger = logging.getLogger(__name__)

PRODUCT_UNAVAILABLE = "This product is currently unavailable."
CREATE_FAILED = "Unable to create a shopping cart. Please try again."
MISSING_VARIANT = "Missing product variant."
ADD_FAILED = "Unable to add the product to the cart."
UPDATE_FAILED = "Unable to update the quantity."
REMOVE_FAILED = "Unable to remove the item."
CART_EMPTY = "Your cart is currently empty."
CHECKOUT_FAILED = "We could not finalise your order. Please try again in a moment."

Listener = Callable[[CartState], None]


class CartOperationError(Exception):
    """A cart command failed; the message is shown to the shopper."""


def _user_message(error: Exception, default: str) -> str:
    if isinstance(error, CartOperationError):
        return str(error)
    return default


class CartStore:
    """
    Client-side cart cache.

    Holds the normalised cart and the last completed order, and exposes the
    cart commands. Commands run one at a time per store; the backend stays
    the source of truth for every amount, the store only mirrors its answers.
    """

    def __init__(
        self,
        client: MedusaClient,
        storage: CartIdStore,
        units: Optional[str] = None,
    ) -> None:
        """
        Initialize the cart store.

        Args:
            client: Commerce backend client
            storage: Where the active cart identifier is persisted
            units: Amount unit policy, defaults to the client's configuration
        """
        self.client = client
        self.storage = storage
        self.units = units or client.config.amount_units
        self._cart: Optional[Cart] = None
        self._state = CartState()
        self._lock = asyncio.Lock()
        self._listeners: list[Listener] = []

    @property
    def snapshot(self) -> CartState:
        """Current state of the store."""
        return self._state

    @property
    def cart(self) -> Optional[Cart]:
        return self._cart

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every new snapshot. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Cart listener failed")

    def _replace_cart(self, cart: Optional[Cart]) -> None:
        self._cart = cart
        if cart is None:
            self._set_state(
                cart_id=None,
                items=[],
                currency_code=DEFAULT_CURRENCY,
                subtotal=Decimal("0"),
                total=Decimal("0"),
            )
        else:
            self._set_state(
                cart_id=cart.id,
                items=list(cart.items),
                currency_code=cart.currency_code,
                subtotal=cart.subtotal,
                total=cart.total,
            )

    async def _load_existing_cart(self) -> Optional[Cart]:
        """Restore the cart whose identifier is in storage."""
        stored_id = self.storage.get()
        if not stored_id:
            self._replace_cart(None)
            return None

        result = await self.client.retrieve_cart(stored_id)
        if result.value is None:
            # The identifier is only stale if the backend answered; keep it
            # when the backend could not be reached.
            if result.error is None or result.error.kind != FetchErrorKind.TRANSPORT:
                logger.warning(f"Discarding stored cart id {stored_id}")
                self.storage.clear()
            self._replace_cart(None)
            return None

        cart = normalize_cart(result.value, self.units)
        self._replace_cart(cart)
        self.storage.set(cart.id)
        return cart

    async def initialize(self) -> CartState:
        """Restore a previously stored cart, if any."""
        self._set_state(status="loading", is_loading=True)
        try:
            async with self._lock:
                await self._load_existing_cart()
        except Exception as e:
            logger.error(f"Failed to restore stored cart: {e}", exc_info=True)
        finally:
            self._set_state(status="ready", is_loading=False)
        return self._state

    async def _ensure_cart(self) -> Cart:
        self._set_state(error=None)

        if self._cart:
            return self._cart

        existing = await self._load_existing_cart()
        if existing:
            return existing

        result = await self.client.create_cart()
        if result.value is None:
            raise CartOperationError(CREATE_FAILED)

        cart = normalize_cart(result.value, self.units)
        self.storage.set(cart.id)
        self._replace_cart(cart)
        logger.info(f"Created cart {cart.id}")
        return cart

    async def ensure_cart(self) -> Cart:
        """
        Return the current cart, restoring or creating one when needed.

        Raises:
            CartOperationError: If no cart could be created
        """
        async with self._lock:
            return await self._ensure_cart()

    async def add_to_cart(self, product: Product, quantity: int = 1) -> None:
        """Add the product's first purchasable variant to the cart."""
        if not product.plans:
            self._set_state(error=PRODUCT_UNAVAILABLE)
            return

        async with self._lock:
            self._set_state(is_updating=True, error=None, last_order=None)
            try:
                cart = await self._ensure_cart()
                variant_id = product.plans[0].id
                if not variant_id:
                    raise CartOperationError(MISSING_VARIANT)

                result = await self.client.add_line_item(cart.id, variant_id, quantity)
                if result.value is None:
                    raise CartOperationError(ADD_FAILED)

                updated = normalize_cart(result.value, self.units)
                self.storage.set(updated.id)
                self._replace_cart(updated)
            except Exception as e:
                logger.error(f"Add to cart failed for product {product.id}: {e}", exc_info=True)
                self._set_state(error=_user_message(e, ADD_FAILED))
            finally:
                self._set_state(is_updating=False)

    async def update_quantity(self, line_item_id: str, quantity: int) -> None:
        """Set a line item's quantity. Zero removes the item, negatives are ignored."""
        if not line_item_id or quantity < 0:
            return

        if quantity == 0:
            await self.remove_from_cart(line_item_id)
            return

        async with self._lock:
            if not self._cart:
                return

            self._set_state(is_updating=True, error=None)
            try:
                result = await self.client.update_line_item(self._cart.id, line_item_id, quantity)
                if result.value is None:
                    raise CartOperationError(UPDATE_FAILED)

                self._replace_cart(normalize_cart(result.value, self.units))
            except Exception as e:
                logger.error(f"Update quantity failed for {line_item_id}: {e}", exc_info=True)
                self._set_state(error=_user_message(e, UPDATE_FAILED))
            finally:
                self._set_state(is_updating=False)

    async def remove_from_cart(self, line_item_id: str) -> None:
        """Remove a line item. An emptied cart stays the active cart."""
        async with self._lock:
            if not self._cart:
                return

            self._set_state(is_updating=True, error=None)
            try:
                result = await self.client.delete_line_item(self._cart.id, line_item_id)
                if result.value is None:
                    raise CartOperationError(REMOVE_FAILED)

                updated = normalize_cart(result.value, self.units)
                self._replace_cart(updated)
                if not updated.items:
                    self.storage.set(updated.id)
            except Exception as e:
                logger.error(f"Remove from cart failed for {line_item_id}: {e}", exc_info=True)
                self._set_state(error=_user_message(e, REMOVE_FAILED))
            finally:
                self._set_state(is_updating=False)

    def _clear(self) -> None:
        self._replace_cart(None)
        self.storage.clear()
        self._set_state(last_order=None)

    async def clear_cart(self) -> None:
        """Forget the cart and the last order."""
        async with self._lock:
            self._clear()

    async def checkout(self) -> Optional[OrderSummary]:
        """
        Complete the active cart.

        Returns:
            The order summary, or None if the cart is empty or checkout failed
        """
        async with self._lock:
            self._set_state(error=None)
            try:
                active = self._cart or await self._load_existing_cart()
                if not active or not active.items:
                    self._set_state(error=CART_EMPTY)
                    return None

                self._set_state(is_processing_checkout=True)
                result = await self.client.complete_cart(active.id)
                if result.value is None:
                    raise CartOperationError(CHECKOUT_FAILED)

                order = normalize_order(result.value, self.units)
                self._clear()
                self._set_state(last_order=order)
                logger.info(f"Checkout completed: order {order.id}")
                return order
            except Exception as e:
                logger.error(f"Checkout failed: {e}", exc_info=True)
                self._set_state(error=_user_message(e, CHECKOUT_FAILED))
                return None
            finally:
                self._set_state(is_processing_checkout=False)
