"""Customer session state backed by the auth gateway."""

import logging
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from .models import AuthResult, AuthState, Customer, RegisterPayload

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Unable to sign in. Please check your credentials."
LOGIN_ERROR = "Something went wrong while signing in."
REGISTER_FAILED = "Unable to create the account. Please check the information provided."
REGISTER_ERROR = "Something went wrong while creating the account."

Listener = Callable[[AuthState], None]


def _parse_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    message = data.get("message")
    return message if isinstance(message, str) and message else None


def _customer_from(data: Any) -> tuple[bool, Optional[Customer]]:
    """Return whether the body carried a ``customer`` key, and the parsed customer."""
    if not isinstance(data, dict) or "customer" not in data:
        return False, None
    if not data["customer"]:
        return True, None
    try:
        return True, Customer.model_validate(data["customer"])
    except ValidationError as e:
        logger.warning(f"Ignoring malformed customer record: {e}")
        return True, None


class AuthSession:
    """
    Client-side session cache.

    Talks to the auth gateway with its own cookie jar, the way a browser
    would, and keeps the current customer record.
    """

    def __init__(
        self,
        gateway_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self.client = httpx.AsyncClient(
            base_url=gateway_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._state = AuthState()
        self._listeners: list[Listener] = []

    @property
    def snapshot(self) -> AuthState:
        return self._state

    @property
    def customer(self) -> Optional[Customer]:
        return self._state.customer

    def is_authenticated(self) -> bool:
        return self._state.customer is not None

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
                logger.exception("Auth listener failed")

    async def refresh(self) -> None:
        """Reload the customer attached to the current session."""
        self._set_state(is_loading=True)
        try:
            response = await self.client.get("/api/auth/me")
            if not response.is_success:
                self._set_state(customer=None)
                return

            _, customer = _customer_from(_parse_json(response))
            self._set_state(customer=customer)
        except httpx.HTTPError as e:
            logger.error(f"Failed to refresh session: {e}")
            self._set_state(customer=None)
        finally:
            self._set_state(is_loading=False)

    async def _submit(self, path: str, payload: dict, failed: str, error: str) -> AuthResult:
        try:
            response = await self.client.post(path, json=payload)
            data = _parse_json(response)

            if not response.is_success:
                return AuthResult(success=False, message=_error_message(data) or failed)

            has_customer, customer = _customer_from(data)
            if has_customer:
                self._set_state(customer=customer)
            else:
                await self.refresh()

            return AuthResult(success=True)
        except httpx.HTTPError as e:
            logger.error(f"Auth request to {path} failed: {e}")
            return AuthResult(success=False, message=error)
        except Exception as e:
            logger.error(f"Unexpected error during auth request to {path}: {e}", exc_info=True)
            return AuthResult(success=False, message=error)

    async def login(self, email: str, password: str) -> AuthResult:
        """Sign in through the gateway."""
        logger.info(f"=== LOGIN: email={email} ===")
        return await self._submit(
            "/api/auth/login", {"email": email, "password": password}, LOGIN_FAILED, LOGIN_ERROR
        )

    async def register(self, payload: RegisterPayload) -> AuthResult:
        """Create an account and sign in with it."""
        logger.info(f"=== REGISTER: email={payload.email} ===")
        return await self._submit(
            "/api/auth/register",
            payload.model_dump(exclude_none=True),
            REGISTER_FAILED,
            REGISTER_ERROR,
        )

    async def logout(self) -> None:
        """End the session. Local state is cleared even if the gateway call fails."""
        try:
            response = await self.client.post("/api/auth/logout")
            if not response.is_success:
                logger.warning(f"Logout returned a non-ok response: {response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to logout: {e}")
        finally:
            self.client.cookies.clear()
            self._set_state(customer=None)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
