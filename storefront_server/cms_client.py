"""Headless CMS content client."""

import logging
from typing import Any, Optional

import httpx

from .config import StorefrontConfig
from .medusa_client import FetchError, FetchErrorKind, FetchResult
from .models import ContentData

logger = logging.getLogger(__name__)


def _flatten(name: str, value: Any) -> list[tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, dict):
        pairs = []
        for key, item in value.items():
            pairs.extend(_flatten(f"{name}[{key}]", item))
        return pairs
    if isinstance(value, (list, tuple)):
        pairs = []
        for index, item in enumerate(value):
            pairs.extend(_flatten(f"{name}[{index}]", item))
        return pairs
    if isinstance(value, bool):
        return [(name, "true" if value else "false")]
    return [(name, str(value))]


def flatten_params(params: dict[str, Any]) -> list[tuple[str, str]]:
    """
    Flatten nested filter/populate parameters into bracketed query pairs.

    ``{"filters": {"slug": {"$eq": "x"}}, "populate": ["seo"]}`` becomes
    ``filters[slug][$eq]=x`` and ``populate[0]=seo``.
    """
    pairs = []
    for key, value in params.items():
        pairs.extend(_flatten(str(key), value))
    return pairs


def spread_content_data(payload: dict[str, Any]) -> Optional[ContentData]:
    """Return the single entry of a ``{"data": ...}`` payload."""
    data = payload.get("data")
    if isinstance(data, list):
        return data[0] if data else None
    return data


def resolve_media_url(url: str, base_url: Optional[str]) -> str:
    """Make a CMS media URL absolute against the CMS base URL."""
    if not url:
        return url
    if url.startswith(("http://", "https://", "//")):
        return url
    if not base_url:
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


class CmsClient:
    """Client for CMS collection endpoints under ``/api/{content_type}``."""

    def __init__(
        self,
        config: StorefrontConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.client = httpx.AsyncClient(
            timeout=config.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def _fetch(self, content_type: str, params: dict[str, Any]) -> FetchResult[dict[str, Any]]:
        if not self.config.cms_url:
            return FetchResult.failure(
                FetchError(FetchErrorKind.TRANSPORT, "CMS URL is not configured", f"/api/{content_type}")
            )

        url = f"{self.config.cms_url}/api/{content_type}"
        try:
            response = await self.client.get(url, params=flatten_params(params))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return FetchResult.failure(FetchError(FetchErrorKind.TRANSPORT, str(e), url))

        if not response.is_success:
            return FetchResult.failure(
                FetchError(
                    FetchErrorKind.STATUS,
                    f"CMS responded with status {response.status_code}",
                    url,
                    response.status_code,
                )
            )

        try:
            data = response.json()
        except ValueError as e:
            return FetchResult.failure(FetchError(FetchErrorKind.DECODE, str(e), url))

        if not isinstance(data, dict):
            return FetchResult.failure(FetchError(FetchErrorKind.DECODE, "Expected a JSON object", url))

        return FetchResult.success(data)

    async def fetch_content_type(
        self,
        content_type: str,
        params: Optional[dict[str, Any]] = None,
        spread_data: bool = False,
    ) -> Any:
        """
        Fetch entries of a content type.

        Args:
            content_type: Collection name, e.g. ``articles``
            params: Filter/populate parameters
            spread_data: Return the single entry instead of the payload

        Returns:
            The payload (``{"data": [...]}`` on failure), or with
            ``spread_data`` the entry (``None`` on failure)
        """
        query = dict(params or {})
        if self.config.draft_mode:
            query["status"] = "draft"

        result = await self._fetch(content_type, query)
        if result.error:
            logger.error(
                f"Failed to fetch data from CMS (endpoint={result.error.url}, "
                f"status={result.error.status_code}): {result.error.message}"
            )
            return None if spread_data else {"data": []}

        return spread_content_data(result.value) if spread_data else result.value

    def media_url(self, url: str) -> str:
        return resolve_media_url(url, self.config.cms_url)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
