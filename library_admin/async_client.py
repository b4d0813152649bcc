"""Async HTTP client for the library REST API."""
import httpx
from typing import Optional, Dict, Any
import logging

from library_admin.client import (
    StoreDecodeError,
    StoreHTTPError,
    StoreTransportError,
    collection_url,
)
from library_admin.config import Config

logger = logging.getLogger(__name__)


class AsyncLibraryStoreClient:
    """Async client used by the book management screen."""

    def __init__(
        self,
        base_url: str = Config.API_URL,
        timeout: Optional[float] = Config.REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize async client.

        Args:
            base_url: API origin
            timeout: Request timeout in seconds (None waits indefinitely)
            transport: Optional httpx transport, e.g. a mock in tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        # Create async HTTP client
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def list(self, collection: str) -> Any:
        """Fetch every record of a collection."""
        return await self._request("GET", collection_url(self.base_url, collection))

    async def get(self, collection: str, record_id: Any) -> Any:
        """Fetch one record by identity."""
        return await self._request(
            "GET", collection_url(self.base_url, collection, record_id)
        )

    async def create(self, collection: str, body: Dict[str, Any]) -> Any:
        """POST a new record; returns the stored record."""
        return await self._request(
            "POST", collection_url(self.base_url, collection), body
        )

    async def replace(self, collection: str, record_id: Any, body: Dict[str, Any]) -> Any:
        """PUT a full replacement of an existing record."""
        return await self._request(
            "PUT", collection_url(self.base_url, collection, record_id), body
        )

    async def delete(self, collection: str, record_id: Any) -> Any:
        """DELETE a record."""
        return await self._request(
            "DELETE", collection_url(self.base_url, collection, record_id)
        )

    async def _request(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Make a single HTTP request asynchronously.

        Args:
            method: HTTP method
            url: Request URL
            body: Optional JSON body

        Returns:
            Decoded JSON, or None for an empty body
        """
        logger.debug(f"Async {method} {url}")

        try:
            response = await self.client.request(method, url, json=body)
        except httpx.HTTPError as e:
            logger.warning(f"Transport error for {method} {url}: {e}")
            raise StoreTransportError(method, url, e) from e

        if not response.is_success:
            logger.warning(f"{method} {url} returned {response.status_code}")
            raise StoreHTTPError(method, url, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{method} {url} returned a non-JSON body: {e}")
            raise StoreDecodeError(method, url, response.status_code) from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
