"""HTTP client for the library REST API."""
import requests
from typing import Optional, Dict, Any
import logging

from library_admin.config import Config

logger = logging.getLogger(__name__)

COLLECTIONS = ("books", "users", "borrowings", "logs")


class StoreError(Exception):
    """Base class for remote store failures."""


class StoreTransportError(StoreError):
    """The request never produced an HTTP response."""

    def __init__(self, method: str, url: str, reason: Any):
        self.method = method
        self.url = url
        self.reason = reason
        super().__init__(f"{method} {url} failed: {reason}")


class StoreHTTPError(StoreError):
    """The server answered with a non-2xx status."""

    def __init__(self, method: str, url: str, status_code: int):
        self.method = method
        self.url = url
        self.status_code = status_code
        super().__init__(f"{method} {url} returned HTTP {status_code}")


class StoreDecodeError(StoreError):
    """A 2xx response whose body is not JSON."""

    def __init__(self, method: str, url: str, status_code: int):
        self.method = method
        self.url = url
        self.status_code = status_code
        super().__init__(f"{method} {url} returned HTTP {status_code} with a non-JSON body")


def collection_url(base_url: str, collection: str, record_id: Any = None) -> str:
    """
    Build the URL of a collection or one of its records.

    Args:
        base_url: API origin
        collection: One of ``COLLECTIONS``
        record_id: Optional record identity

    Returns:
        Absolute URL
    """
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")

    url = f"{base_url.rstrip('/')}/{collection}"
    if record_id is not None:
        url = f"{url}/{record_id}"
    return url


class LibraryStoreClient:
    """Blocking client for the books, users, borrowings and logs collections."""

    def __init__(
        self,
        base_url: str = Config.API_URL,
        timeout: Optional[float] = Config.REQUEST_TIMEOUT
    ):
        """
        Initialize library API client.

        Args:
            base_url: API origin, e.g. ``http://localhost:3001``
            timeout: Request timeout in seconds (None waits indefinitely)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        # Create session for connection pooling
        self.session = requests.Session()

    def list(self, collection: str) -> Any:
        """Fetch every record of a collection."""
        return self._request("GET", collection_url(self.base_url, collection))

    def get(self, collection: str, record_id: Any) -> Any:
        """Fetch one record by identity."""
        return self._request("GET", collection_url(self.base_url, collection, record_id))

    def create(self, collection: str, body: Dict[str, Any]) -> Any:
        """POST a new record; returns the stored record."""
        return self._request("POST", collection_url(self.base_url, collection), body)

    def replace(self, collection: str, record_id: Any, body: Dict[str, Any]) -> Any:
        """PUT a full replacement of an existing record."""
        return self._request(
            "PUT", collection_url(self.base_url, collection, record_id), body
        )

    def delete(self, collection: str, record_id: Any) -> Any:
        """DELETE a record."""
        return self._request(
            "DELETE", collection_url(self.base_url, collection, record_id)
        )

    def _request(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Make a single HTTP request.

        Args:
            method: HTTP method
            url: Request URL
            body: Optional JSON body

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            StoreTransportError: on connection problems or timeout
            StoreHTTPError: on a non-2xx status
            StoreDecodeError: on a 2xx body that is not JSON
        """
        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method,
                url,
                json=body,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Transport error for {method} {url}: {e}")
            raise StoreTransportError(method, url, e) from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"{method} {url} returned {response.status_code}")
            raise StoreHTTPError(method, url, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{method} {url} returned a non-JSON body: {e}")
            raise StoreDecodeError(method, url, response.status_code) from e

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
