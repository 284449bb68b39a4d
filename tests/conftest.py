from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from storefront_server.config import StorefrontConfig

VARIANTS = {
    "v1": {"title": "Classic Tee / M", "unit_price": 1500, "product_id": "prod_1"},
    "v2": {"title": "Classic Tee / L", "unit_price": 1700, "product_id": "prod_1"},
}

PRODUCTS = [
    {
        "id": "prod_1",
        "title": "Classic Tee",
        "handle": "classic-tee",
        "description": "Cotton tee",
        "thumbnail": "https://cdn.test/tee.png",
        "images": [],
        "variants": [
            {
                "id": "v1",
                "title": "M",
                "prices": [
                    {"amount": 1500, "currency_code": "usd"},
                    {"amount": 1400, "currency_code": "eur"},
                ],
            },
            {"id": "v2", "title": "L", "prices": [{"amount": 1700, "currency_code": "usd"}]},
        ],
        "options": [
            {"id": "opt_1", "title": "Size", "values": [{"id": "ov_1", "value": "M"}, {"id": "ov_2", "value": "L"}]},
            {"id": "opt_2", "title": "Color", "values": []},
        ],
        "categories": [{"id": "pcat_1", "name": "Shirts"}],
        "collections": [{"id": "pcol_1", "title": "Summer", "handle": "summer"}],
    },
    {
        "id": "prod_2",
        "title": "Gift Card",
        "handle": "gift-card",
        "variants": [],
        "options": [],
    },
]

CUSTOMER = {
    "id": "cus_1",
    "email": "ada@example.com",
    "first_name": "Ada",
    "last_name": "Lovelace",
    "phone": None,
}


class FakeMedusa:
    """In-memory stand-in for the commerce backend store API."""

    def __init__(self) -> None:
        self.carts: dict[str, dict[str, Any]] = {}
        self.customers: dict[str, dict[str, Any]] = {CUSTOMER["email"]: {**CUSTOMER, "password": "secret"}}
        self.sessions: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.offline = False
        self.fail_status: dict[str, int] = {}
        self.complete_payload: Optional[dict[str, Any]] = None
        self._seq: dict[str, int] = {}

    def _next(self, prefix: str) -> str:
        self._seq[prefix] = self._seq.get(prefix, 0) + 1
        return f"{prefix}_{self._seq[prefix]}"

    def calls(self, method: str, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.endswith(path_suffix)]

    def _cart_json(self, cart: dict[str, Any]) -> dict[str, Any]:
        items = []
        for item in cart["items"]:
            line_total = item["unit_price"] * item["quantity"]
            items.append({**item, "subtotal": line_total, "total": line_total})
        total = sum(item["total"] for item in items)
        return {
            "id": cart["id"],
            "items": items,
            "region": {"id": "reg_1", "currency_code": "usd"},
            "subtotal": total,
            "total": total,
        }

    def _json(self, status: int, body: Any, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        return httpx.Response(status, json=body, headers=headers)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.offline:
            raise httpx.ConnectError("backend offline", request=request)

        path = request.url.path
        if path in self.fail_status:
            return self._json(self.fail_status[path], {"message": "backend failure"})

        parts = path.strip("/").split("/")
        method = request.method
        body = json.loads(request.content) if request.content else {}

        if parts[:2] == ["store", "carts"]:
            return self._handle_carts(method, parts[2:], body)
        if path == "/store/products":
            handle = request.url.params.get("handle")
            products = [p for p in PRODUCTS if not handle or p["handle"] == handle]
            return self._json(200, {"products": products})
        if path == "/store/collections":
            return self._json(200, {"collections": [{"id": "pcol_1", "title": "Summer", "handle": "summer"}]})
        if path.startswith("/store/auth") or path == "/store/customers":
            return self._handle_auth(method, path, body, request)

        return self._json(404, {"message": "Not found"})

    def _handle_carts(self, method: str, parts: list[str], body: dict[str, Any]) -> httpx.Response:
        if not parts:
            cart = {"id": self._next("cart"), "items": []}
            self.carts[cart["id"]] = cart
            return self._json(200, {"cart": self._cart_json(cart)})

        cart = self.carts.get(parts[0])
        if cart is None:
            return self._json(404, {"message": f"Cart with id {parts[0]} was not found"})

        if len(parts) == 1 and method == "GET":
            return self._json(200, {"cart": self._cart_json(cart)})

        if parts[1:] == ["complete"]:
            if self.complete_payload is not None:
                return self._json(200, self.complete_payload)
            del self.carts[cart["id"]]
            order = {
                "id": "order_1",
                "display_id": 1001,
                "status": "pending",
                "payment_status": "awaiting",
                "currency_code": "usd",
                **{k: v for k, v in self._cart_json(cart).items() if k in ("items", "subtotal", "total")},
                "fulfillments": [],
            }
            return self._json(200, {"type": "order", "data": order})

        if parts[1] == "line-items" and len(parts) == 2:
            variant = VARIANTS.get(body.get("variant_id"))
            if variant is None:
                return self._json(404, {"message": "Variant not found"})
            cart["items"].append(
                {
                    "id": self._next("li"),
                    "title": variant["title"],
                    "quantity": body["quantity"],
                    "variant_id": body["variant_id"],
                    "product_id": variant["product_id"],
                    "unit_price": variant["unit_price"],
                }
            )
            return self._json(200, {"cart": self._cart_json(cart)})

        if parts[1] == "line-items" and len(parts) == 3:
            item = next((i for i in cart["items"] if i["id"] == parts[2]), None)
            if item is None:
                return self._json(404, {"message": "Line item not found"})
            if method == "DELETE":
                cart["items"].remove(item)
            else:
                item["quantity"] = body["quantity"]
            return self._json(200, {"cart": self._cart_json(cart)})

        return self._json(404, {"message": "Not found"})

    def _handle_auth(
        self, method: str, path: str, body: dict[str, Any], request: httpx.Request
    ) -> httpx.Response:
        if path == "/store/customers":
            if body.get("email") in self.customers:
                return self._json(422, {"message": "A customer with the given email already has an account."})
            customer = {"id": self._next("cus"), **body}
            self.customers[body["email"]] = customer
            public = {k: v for k, v in customer.items() if k != "password"}
            return self._json(200, {"customer": public})

        if path == "/store/auth/logout":
            return self._json(
                200, {}, headers={"set-cookie": "connect.sid=; Path=/; Max-Age=0"}
            )

        if method == "POST":
            customer = self.customers.get(body.get("email"))
            if not customer or customer["password"] != body.get("password"):
                return self._json(401, {"message": "Unauthorized"})
            session_id = self._next("sess")
            self.sessions[session_id] = customer["email"]
            public = {k: v for k, v in customer.items() if k != "password"}
            return self._json(
                200, {"customer": public}, headers={"set-cookie": f"connect.sid={session_id}; Path=/; HttpOnly"}
            )

        cookie = request.headers.get("cookie", "")
        session_id = cookie.split("connect.sid=", 1)[1].split(";")[0] if "connect.sid=" in cookie else None
        email = self.sessions.get(session_id) if session_id else None
        if not email:
            return self._json(401, {"message": "Unauthorized"})
        public = {k: v for k, v in self.customers[email].items() if k != "password"}
        return self._json(200, {"customer": public})

    async def async_handler(self, request: httpx.Request) -> httpx.Response:
        # Yield to the loop so concurrent callers interleave like real I/O.
        await asyncio.sleep(0)
        return self.handler(request)


@pytest.fixture()
def backend() -> FakeMedusa:
    return FakeMedusa()


@pytest.fixture()
def transport(backend: FakeMedusa) -> httpx.MockTransport:
    return httpx.MockTransport(backend.async_handler)


@pytest.fixture()
def config(tmp_path: Path) -> StorefrontConfig:
    return StorefrontConfig(
        medusa_url="http://medusa.test",
        cms_url="http://cms.test",
        gateway_url="http://gateway.test",
        session_file=str(tmp_path / "session.json"),
    )
