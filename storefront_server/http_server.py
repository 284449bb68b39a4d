"""HTTP auth gateway forwarding storefront auth calls to the commerce backend."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from . import __version__
from .config import StorefrontConfig

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-http-server")

INVALID_JSON = "Invalid JSON body."
INVALID_BODY = "Invalid request body."
CREDENTIALS_REQUIRED = "Email and password are required."
BACKEND_UNREACHABLE = "Unexpected error contacting the commerce backend"

REGISTER_FIELDS = ("email", "password", "first_name", "last_name", "phone")

router = APIRouter()


def error_response(message: str, status: int = 500) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=status)


def relay_response(response: httpx.Response, include_cookies: bool = True) -> Response:
    """Mirror a backend response: status, JSON body and every Set-Cookie header."""
    if response.status_code in (204, 304):
        relayed: Response = Response(status_code=response.status_code)
    else:
        raw = response.text
        data: Any = {}
        if raw:
            try:
                data = json.loads(raw)
            except ValueError:
                data = {"message": raw}
        relayed = JSONResponse(data, status_code=response.status_code)

    if include_cookies:
        for cookie in response.headers.get_list("set-cookie"):
            relayed.headers.append("set-cookie", cookie)

    return relayed


def backend_client(app: FastAPI) -> httpx.AsyncClient:
    """
    Build a client for one forwarded call.

    Each call gets its own cookie jar so sessions never leak between browsers.
    """
    config: StorefrontConfig = app.state.config
    return httpx.AsyncClient(
        base_url=config.medusa_url,
        timeout=config.timeout,
        transport=app.state.transport,
        follow_redirects=False,
        headers={"Accept": "application/json"},
    )


async def read_json(request: Request) -> tuple[bool, Any]:
    try:
        return True, await request.json()
    except ValueError:
        return False, None


async def forward_request(
    request: Request,
    method: str,
    path: str,
    body: Optional[dict[str, Any]] = None,
) -> Response:
    """Forward a call with the browser's cookies and relay the backend's answer."""
    headers = {}
    cookie = request.headers.get("cookie")
    if cookie:
        headers["Cookie"] = cookie

    try:
        async with backend_client(request.app) as client:
            response = await client.request(method, path, json=body, headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Forwarding {method} {path} failed: {e}", exc_info=True)
        return error_response(str(e) or BACKEND_UNREACHABLE, 500)

    logger.info(f"{method} {path} -> {response.status_code}")
    return relay_response(response)


def sanitize_register_body(body: dict[str, Any]) -> Optional[dict[str, str]]:
    """
    Keep the allow-listed registration fields, trimmed.

    Returns None if an allow-listed field is not a string, or if email or
    password is missing.
    """
    output = {}

    for key in REGISTER_FIELDS:
        value = body.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            return None
        output[key] = value.strip()

    if not output.get("email") or not output.get("password"):
        return None

    return output


@router.post("/api/auth/login")
async def login(request: Request) -> Response:
    """Sign in with email and password."""
    ok, body = await read_json(request)
    if not ok:
        return error_response(INVALID_JSON, 400)

    if (
        not isinstance(body, dict)
        or not isinstance(body.get("email"), str)
        or not isinstance(body.get("password"), str)
    ):
        return error_response(CREDENTIALS_REQUIRED, 400)

    return await forward_request(
        request,
        "POST",
        "/store/auth",
        {"email": body["email"], "password": body["password"]},
    )


@router.post("/api/auth/logout")
async def logout(request: Request) -> Response:
    """End the backend session."""
    return await forward_request(request, "POST", "/store/auth/logout")


@router.get("/api/auth/me")
async def me(request: Request) -> Response:
    """Return the customer attached to the session cookie."""
    return await forward_request(request, "GET", "/store/auth")


@router.post("/api/auth/register")
async def register(request: Request) -> Response:
    """Create a customer account, then sign in with it."""
    ok, raw_body = await read_json(request)
    if not ok:
        return error_response(INVALID_JSON, 400)

    if not isinstance(raw_body, dict):
        return error_response(INVALID_BODY, 400)

    body = sanitize_register_body(raw_body)
    if body is None:
        return error_response(CREDENTIALS_REQUIRED, 400)

    logger.info(f"=== REGISTER: email={body['email']} ===")

    try:
        async with backend_client(request.app) as client:
            register_response = await client.post("/store/customers", json=body)

        if not register_response.is_success:
            logger.warning(f"Registration rejected: status={register_response.status_code}")
            return relay_response(register_response, include_cookies=False)

        async with backend_client(request.app) as client:
            login_response = await client.post(
                "/store/auth",
                json={"email": body["email"], "password": body["password"]},
            )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Registration error: {e}", exc_info=True)
        return error_response(str(e) or BACKEND_UNREACHABLE, 500)

    return relay_response(login_response)


@router.get("/")
async def root(request: Request) -> dict:
    """Root endpoint with API information."""
    return {
        "name": "Storefront Auth Gateway",
        "version": __version__,
        "endpoints": {
            "health": "GET /health",
            "auth": {
                "login": "POST /api/auth/login",
                "register": "POST /api/auth/register",
                "logout": "POST /api/auth/logout",
                "me": "GET /api/auth/me",
            },
        },
        "backend_url": request.app.state.config.medusa_url,
    }


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "backend_url": request.app.state.config.medusa_url}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    logger.info(f"Starting Storefront Auth Gateway (backend: {app.state.config.medusa_url})...")
    yield
    logger.info("Shutting down Storefront Auth Gateway...")


def create_app(
    config: Optional[StorefrontConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        config: Storefront configuration, read from the environment by default
        transport: Optional httpx transport for backend calls
    """
    app = FastAPI(
        title="Storefront Auth Gateway",
        description="Forwards storefront authentication to the commerce backend",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config or StorefrontConfig.from_env()
    app.state.transport = transport
    app.include_router(router)
    return app


app = create_app()


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Serve the gateway with uvicorn. Reloading needs the app as an import string."""
    import uvicorn

    logger.info(f"Auth gateway listening on {host}:{port}, forwarding to {app.state.config.medusa_url}")
    target = "storefront_server.http_server:app" if reload else app
    uvicorn.run(target, host=host, port=port, reload=reload, log_level="info")
