"""
Shared HTTP plumbing for the backend clients.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlparse
import httpx
from .config import settings
from .errors import NetworkError
from .logging import get_logger


LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "0.0.0.0"})


def is_local_endpoint(endpoint: str) -> bool:
    """True when the endpoint points at this machine."""
    host = urlparse(endpoint).hostname or ""
    return host in LOCAL_HOSTS or host.endswith(".localhost")


class BaseBackendClient:
    """Wraps an httpx.AsyncClient, either borrowed or owned."""

    service_name = "backend"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.logger = get_logger(self.service_name.lower().replace(" ", "_"))
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=settings.request_timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make one HTTP request. No retries; failures become NetworkError."""
        try:
            response = await self.client.request(
                method=method,
                url=url,
                json=json_data,
                files=files,
                headers=headers,
                params=params,
            )
            response.raise_for_status()
            return response

        except httpx.HTTPStatusError as e:
            self.logger.debug(f"{self.service_name} HTTP {method} {url} failed: {e.response.status_code}")
            raise NetworkError(self._describe_status_error(url, e.response)) from e

        except httpx.RequestError as e:
            self.logger.debug(f"{self.service_name} request to {url} failed: {e!r}")
            raise NetworkError(self._describe_request_error(url, e)) from e

    def _describe_status_error(self, url: str, response: httpx.Response) -> str:
        return f"{self.service_name} error: HTTP {response.status_code} {response.reason_phrase}"

    def _describe_request_error(self, url: str, error: httpx.RequestError) -> str:
        return f"{self.service_name} request failed: {type(error).__name__}: {error}"

    async def aclose(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
