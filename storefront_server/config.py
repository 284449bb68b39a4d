"""Configuration loaded from environment variables."""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_MEDUSA_URL = "http://localhost:9000"
DEFAULT_GATEWAY_URL = "http://localhost:8000"

# Server-side name first, then the names bundled into the browser apps.
MEDUSA_URL_VARS = (
    "MEDUSA_URL",
    "NEXT_PUBLIC_MEDUSA_URL",
    "VITE_MEDUSA_BACKEND_URL",
    "NEXT_PUBLIC_API_URL",
)
CMS_URL_VARS = ("CMS_URL", "NEXT_PUBLIC_API_URL")

TRUTHY = {"1", "true", "yes", "on"}


def _first_env(names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


class StorefrontConfig(BaseModel):
    """Runtime settings for the storefront clients and servers."""

    medusa_url: str = Field(default=DEFAULT_MEDUSA_URL, description="Commerce backend base URL")
    cms_url: Optional[str] = Field(None, description="Headless CMS base URL")
    draft_mode: bool = Field(default=False, description="Request unpublished CMS content")
    gateway_url: str = Field(default=DEFAULT_GATEWAY_URL, description="Auth gateway base URL")
    session_file: str = Field(
        default_factory=lambda: str(Path.home() / ".storefront_session.json"),
        description="File holding the active cart identifier",
    )
    currency: str = Field(default="usd", description="Preferred currency for product prices")
    amount_units: Literal["auto", "minor", "major"] = Field(
        default="auto", description="How backend amounts are interpreted"
    )
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    email: Optional[str] = Field(None, description="Customer email for auto-login")
    password: Optional[str] = Field(None, description="Customer password for auto-login")

    @field_validator("medusa_url", "cms_url", "gateway_url")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return value.rstrip("/")

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.lower()

    @classmethod
    def from_env(cls) -> "StorefrontConfig":
        """Build the configuration from the process environment."""
        values: dict = {}

        medusa_url = _first_env(MEDUSA_URL_VARS)
        if medusa_url:
            values["medusa_url"] = medusa_url
        else:
            logger.info(f"No commerce backend URL configured, using {DEFAULT_MEDUSA_URL}")

        cms_url = _first_env(CMS_URL_VARS)
        if cms_url:
            values["cms_url"] = cms_url

        values["draft_mode"] = os.environ.get("STOREFRONT_DRAFT_MODE", "").lower() in TRUTHY

        if os.environ.get("STOREFRONT_GATEWAY_URL"):
            values["gateway_url"] = os.environ["STOREFRONT_GATEWAY_URL"]
        if os.environ.get("STOREFRONT_SESSION_FILE"):
            values["session_file"] = os.environ["STOREFRONT_SESSION_FILE"]
        if os.environ.get("STOREFRONT_CURRENCY"):
            values["currency"] = os.environ["STOREFRONT_CURRENCY"]
        if os.environ.get("STOREFRONT_AMOUNT_UNITS"):
            values["amount_units"] = os.environ["STOREFRONT_AMOUNT_UNITS"].lower()
        if os.environ.get("STOREFRONT_HTTP_TIMEOUT"):
            values["timeout"] = float(os.environ["STOREFRONT_HTTP_TIMEOUT"])

        values["email"] = os.environ.get("STOREFRONT_EMAIL")
        values["password"] = os.environ.get("STOREFRONT_PASSWORD")

        return cls(**values)
