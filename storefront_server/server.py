"""MCP Server for the Medusa storefront."""

import asyncio
import json
import logging
import os
from typing import Any, Optional

import httpx
from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .auth import AuthSession
from .cart import CartStore
from .cms_client import CmsClient
from .config import StorefrontConfig
from .http_server import create_app
from .medusa_client import MedusaClient
from .models import AuthCredentials, CartState, OrderSummary, Product, RegisterPayload
from .storage import FileCartIdStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-mcp-server")

# Initialize server
app = Server("storefront-mcp-server")

# Global state
config: StorefrontConfig
medusa_client: MedusaClient
cms_client: CmsClient
cart_store: CartStore
auth_session: AuthSession
credentials: Optional[AuthCredentials] = None


def setup(
    storefront_config: StorefrontConfig,
    backend_transport: Optional[httpx.AsyncBaseTransport] = None,
    gateway_transport: Optional[httpx.AsyncBaseTransport] = None,
    cms_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """
    Build the clients and state containers used by the tools.

    Without a gateway transport the auth session talks to an in-process
    gateway application.
    """
    global config, medusa_client, cms_client, cart_store, auth_session, credentials

    config = storefront_config
    medusa_client = MedusaClient(config, transport=backend_transport)
    cms_client = CmsClient(config, transport=cms_transport)
    cart_store = CartStore(medusa_client, FileCartIdStore(config.session_file))

    if gateway_transport is None:
        gateway_app = create_app(config, transport=backend_transport)
        gateway_transport = httpx.ASGITransport(app=gateway_app)
    auth_session = AuthSession(config.gateway_url, transport=gateway_transport, timeout=config.timeout)

    if config.email and config.password:
        credentials = AuthCredentials(email=config.email, password=config.password)
        logger.info(f"Credentials loaded from environment for: {config.email}")
    else:
        credentials = None
        logger.warning(
            "No credentials found in environment variables (STOREFRONT_EMAIL, STOREFRONT_PASSWORD)"
        )


async def ensure_authenticated() -> bool:
    """Ensure there is a customer session, auto-login if credentials are available."""
    if auth_session.is_authenticated():
        return True

    if credentials:
        logger.info("Auto-logging in with configured credentials...")
        result = await auth_session.login(credentials.email, credentials.password)
        if result.success:
            logger.info("Auto-login successful")
            return True
        logger.warning(f"Auto-login failed: {result.message}")

    return False


def _money(amount: Any, currency_code: str) -> str:
    return f"{amount:.2f} {currency_code.upper()}"


def format_product(product: Product) -> list[str]:
    lines = [product.name, f"   Handle: {product.slug}", f"   Price: {_money(product.price, product.currency_code)}"]
    if product.plans:
        lines.append(f"   Variants: {', '.join(plan.name for plan in product.plans)}")
    for perk in product.perks:
        lines.append(f"   {perk.text}")
    return lines


def format_cart(state: CartState) -> str:
    if not state.items:
        return "Your cart is empty"

    lines = [f"Shopping Cart {state.cart_id} ({len(state.items)} items):\n"]
    for i, item in enumerate(state.items, 1):
        lines.append(f"\n{i}. {item.title}")
        lines.append(f"   Line item ID: {item.id}")
        lines.append(f"   Unit price: {_money(item.unit_price, item.currency_code)}")
        lines.append(f"   Quantity: {item.quantity}")
        lines.append(f"   Total: {_money(item.total, item.currency_code)}")

    lines.append(f"\n{'=' * 50}")
    lines.append(f"Subtotal: {_money(state.subtotal, state.currency_code)}")
    lines.append(f"Total: {_money(state.total, state.currency_code)}")
    return "\n".join(lines)


def format_order(order: OrderSummary) -> str:
    lines = [f"Order #{order.display_id or order.id}"]
    lines.append(f"Status: {order.status}")
    lines.append(f"Payment: {order.payment_status}")
    lines.append(f"Fulfillment: {order.fulfillment_status}")
    lines.append(f"Total: {_money(order.total, order.currency_code)}")
    if order.items:
        lines.append(f"\nItems ({len(order.items)}):")
        for item in order.items:
            lines.append(f"  - {item.title} x{item.quantity} ({_money(item.total, item.currency_code)})")
    for link in order.tracking_links:
        tracking = f" ({link.tracking_number})" if link.tracking_number else ""
        lines.append(f"Tracking: {link.url}{tracking}")
    return "\n".join(lines)


def _cart_reply(success_text: str) -> list[TextContent]:
    state = cart_store.snapshot
    if state.error:
        return [TextContent(type="text", text=f"Error: {state.error}")]
    return [TextContent(type="text", text=f"{success_text}\n\n{format_cart(state)}")]


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = [
        Resource(
            uri=AnyUrl("storefront://cart"),
            name="Shopping Cart",
            mimeType="application/json",
            description="Current shopping cart state",
        )
    ]

    if cart_store.snapshot.last_order:
        resources.append(
            Resource(
                uri=AnyUrl("storefront://orders/last"),
                name="Last Order",
                mimeType="application/json",
                description="Order created by the last checkout",
            )
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "storefront://cart":
        return cart_store.snapshot.model_dump_json(indent=2)

    elif uri_str == "storefront://orders/last":
        order = cart_store.snapshot.last_order
        if not order:
            return "No order has been placed in this session."
        return order.model_dump_json(indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    empty = {"type": "object", "properties": {}}
    return [
        Tool(
            name="storefront_login",
            description="Sign in to the storefront. Uses STOREFRONT_EMAIL/STOREFRONT_PASSWORD if not provided.",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {"type": "string", "description": "Customer email address"},
                    "password": {"type": "string", "description": "Customer password"},
                },
            },
        ),
        Tool(
            name="storefront_register",
            description="Create a customer account and sign in with it",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {"type": "string"},
                    "password": {"type": "string"},
                    "first_name": {"type": "string"},
                    "last_name": {"type": "string"},
                    "phone": {"type": "string"},
                },
                "required": ["email", "password"],
            },
        ),
        Tool(name="storefront_logout", description="Sign out of the storefront", inputSchema=empty),
        Tool(name="storefront_whoami", description="Show the signed-in customer", inputSchema=empty),
        Tool(
            name="storefront_list_products",
            description="List products with their price, variants and options",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of products (default: 50)",
                        "default": 50,
                    },
                },
            },
        ),
        Tool(
            name="storefront_get_product",
            description="Show a product by its handle",
            inputSchema={
                "type": "object",
                "properties": {"handle": {"type": "string", "description": "Product handle"}},
                "required": ["handle"],
            },
        ),
        Tool(name="storefront_list_collections", description="List product collections", inputSchema=empty),
        Tool(
            name="storefront_get_content",
            description="Fetch CMS entries of a content type (e.g. articles, pages)",
            inputSchema={
                "type": "object",
                "properties": {
                    "content_type": {"type": "string", "description": "CMS collection name"},
                    "params": {"type": "object", "description": "Filter/populate parameters"},
                    "single": {
                        "type": "boolean",
                        "description": "Return only the first entry (default: false)",
                        "default": False,
                    },
                },
                "required": ["content_type"],
            },
        ),
        Tool(name="storefront_get_cart", description="Show the shopping cart", inputSchema=empty),
        Tool(
            name="storefront_add_to_cart",
            description="Add a product (by handle) to the shopping cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "handle": {"type": "string", "description": "Product handle"},
                    "quantity": {"type": "integer", "description": "Quantity (default: 1)", "default": 1},
                },
                "required": ["handle"],
            },
        ),
        Tool(
            name="storefront_update_quantity",
            description="Set the quantity of a cart line item; 0 removes it",
            inputSchema={
                "type": "object",
                "properties": {
                    "line_item_id": {"type": "string"},
                    "quantity": {"type": "integer"},
                },
                "required": ["line_item_id", "quantity"],
            },
        ),
        Tool(
            name="storefront_remove_from_cart",
            description="Remove a line item from the shopping cart",
            inputSchema={
                "type": "object",
                "properties": {"line_item_id": {"type": "string"}},
                "required": ["line_item_id"],
            },
        ),
        Tool(name="storefront_checkout", description="Complete checkout for the cart", inputSchema=empty),
        Tool(name="storefront_clear_cart", description="Forget the current cart", inputSchema=empty),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "storefront_login":
            email = arguments.get("email") or (credentials.email if credentials else None)
            password = arguments.get("password") or (credentials.password if credentials else None)
            if not email or not password:
                return [
                    TextContent(
                        type="text",
                        text="Error: No credentials provided and STOREFRONT_EMAIL/STOREFRONT_PASSWORD not configured.",
                    )
                ]

            result = await auth_session.login(email, password)
            if not result.success:
                return [TextContent(type="text", text=f"Login failed: {result.message}")]
            return [TextContent(type="text", text=f"Successfully logged in as {email}")]

        elif name == "storefront_register":
            payload = RegisterPayload(**arguments)
            result = await auth_session.register(payload)
            if not result.success:
                return [TextContent(type="text", text=f"Registration failed: {result.message}")]
            return [TextContent(type="text", text=f"Account created for {payload.email}")]

        elif name == "storefront_logout":
            await auth_session.logout()
            return [TextContent(type="text", text="Successfully logged out")]

        elif name == "storefront_whoami":
            if not await ensure_authenticated():
                await auth_session.refresh()
            customer = auth_session.customer
            if not customer:
                return [TextContent(type="text", text="Not signed in")]
            full_name = " ".join(part for part in (customer.first_name, customer.last_name) if part)
            return [
                TextContent(
                    type="text",
                    text=f"Signed in as {customer.email}" + (f" ({full_name})" if full_name else ""),
                )
            ]

        elif name == "storefront_list_products":
            result = await medusa_client.fetch_products(limit=arguments.get("limit", 50))
            products = result.value or []
            if not products:
                return [TextContent(type="text", text="No products found")]

            lines = [f"Found {len(products)} product(s):\n"]
            for i, product in enumerate(products, 1):
                formatted = format_product(product)
                lines.append(f"\n{i}. {formatted[0]}")
                lines.extend(formatted[1:])
            return [TextContent(type="text", text="\n".join(lines))]

        elif name == "storefront_get_product":
            handle = arguments["handle"]
            result = await medusa_client.fetch_product_by_handle(handle)
            if not result.value:
                return [TextContent(type="text", text=f"Product {handle} not found")]
            return [TextContent(type="text", text="\n".join(format_product(result.value)))]

        elif name == "storefront_list_collections":
            result = await medusa_client.fetch_collections()
            collections = result.value or []
            if not collections:
                return [TextContent(type="text", text="No collections found")]
            lines = [f"- {c.title}" + (f" ({c.handle})" if c.handle else "") for c in collections]
            return [TextContent(type="text", text="\n".join(lines))]

        elif name == "storefront_get_content":
            data = await cms_client.fetch_content_type(
                arguments["content_type"],
                arguments.get("params"),
                spread_data=arguments.get("single", False),
            )
            return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]

        elif name == "storefront_get_cart":
            return [TextContent(type="text", text=format_cart(cart_store.snapshot))]

        elif name == "storefront_add_to_cart":
            handle = arguments["handle"]
            quantity = arguments.get("quantity", 1)
            result = await medusa_client.fetch_product_by_handle(handle)
            if not result.value:
                return [TextContent(type="text", text=f"Product {handle} not found")]

            await cart_store.add_to_cart(result.value, quantity)
            return _cart_reply(f"Added {result.value.name} (quantity: {quantity}) to cart")

        elif name == "storefront_update_quantity":
            line_item_id = arguments["line_item_id"]
            quantity = arguments["quantity"]
            await cart_store.update_quantity(line_item_id, quantity)
            return _cart_reply(f"Updated {line_item_id} to quantity {quantity}")

        elif name == "storefront_remove_from_cart":
            line_item_id = arguments["line_item_id"]
            await cart_store.remove_from_cart(line_item_id)
            return _cart_reply(f"Removed {line_item_id} from cart")

        elif name == "storefront_checkout":
            order = await cart_store.checkout()
            if not order:
                return [TextContent(type="text", text=f"Error: {cart_store.snapshot.error}")]
            return [TextContent(type="text", text=f"Order placed!\n\n{format_order(order)}")]

        elif name == "storefront_clear_cart":
            await cart_store.clear_cart()
            return [TextContent(type="text", text="Cart cleared")]

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return [TextContent(type="text", text=f"Error: {str(e)}")]


async def main() -> None:
    """Main entry point for the MCP server."""
    gateway_transport = None
    if os.environ.get("STOREFRONT_GATEWAY_URL"):
        gateway_transport = httpx.AsyncHTTPTransport()
    setup(StorefrontConfig.from_env(), gateway_transport=gateway_transport)

    await cart_store.initialize()
    await auth_session.refresh()

    logger.info("Starting Storefront MCP Server...")

    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await auth_session.close()
        await cms_client.close()
        await medusa_client.close()


if __name__ == "__main__":
    asyncio.run(main())
