"""
GoHighLevel CRM API client.
Low-level transport shared by every paginator and fetcher. Holds one pooled
async HTTP client plus the fixed credentials; no retries are attempted, a
failed request surfaces immediately as CrmTransportError.
"""

from typing import Any

import httpx

from app.config import Settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CrmTransportError(Exception):
    """Raised for network failures, timeouts, non-2xx responses and malformed bodies."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        timed_out: bool = False,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.timed_out = timed_out
        self.response_data = response_data or {}

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"CRM API Error ({self.status_code}): {self.message}"
        return f"CRM API Error: {self.message}"


class CrmApiClient:
    """
    Authenticated JSON transport for the CRM REST API.

    Stateless beyond its configuration, so a single instance is shared by
    all concurrent fetchers.
    """

    def __init__(self, config: Settings, transport: httpx.AsyncBaseTransport | None = None):
        client_config = config.get_client_config()
        self.base_url = client_config["base_url"]
        self.timeout = client_config["timeout"]
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=client_config["headers"],
            timeout=httpx.Timeout(self.timeout),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Issue one request and return the parsed JSON body.

        Args:
            method: HTTP method
            path: Path relative to the configured base URL
            params: Query parameters
            json: JSON request body

        Returns:
            dict: Parsed response body

        Raises:
            CrmTransportError: On timeout, network failure, non-2xx status
                or a body that is not a JSON object
        """
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.error("CRM API request timed out", method=method, path=path, timeout=self.timeout)
            raise CrmTransportError(
                f"Request timed out after {self.timeout}s", timed_out=True
            ) from e
        except httpx.HTTPError as e:
            logger.error("CRM API request failed", method=method, path=path, error=str(e))
            raise CrmTransportError(str(e) or type(e).__name__) from e

        return self._handle_api_response(response, method, path)

    def _handle_api_response(self, response: httpx.Response, method: str, path: str) -> dict:
        """
        Validate a CRM API response.

        Returns:
            dict: Parsed response data

        Raises:
            CrmTransportError: If the response is an error or unparseable
        """
        logger.debug(
            "CRM API response",
            method=method,
            path=path,
            status_code=response.status_code,
            response_size=len(response.content),
        )

        if response.is_success:
            try:
                data = response.json() if response.content else {}
            except ValueError as e:
                logger.error("Failed to parse CRM API response", path=path, error=str(e))
                raise CrmTransportError(
                    f"Invalid response format: {e}", status_code=response.status_code
                ) from e
            if not isinstance(data, dict):
                raise CrmTransportError(
                    "Invalid response format: expected a JSON object",
                    status_code=response.status_code,
                )
            return data

        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            error_data = {}
        if not isinstance(error_data, dict):
            error_data = {}

        message = _extract_error_message(error_data) or f"HTTP {response.status_code}"

        logger.error(
            "CRM API request failed",
            method=method,
            path=path,
            status_code=response.status_code,
            error_message=message,
        )
        raise CrmTransportError(
            message, status_code=response.status_code, response_data=error_data
        )


def _extract_error_message(error_data: dict) -> str | None:
    """Pull the human message out of the provider error envelope."""
    for key in ("message", "msg", "error"):
        value = error_data.get(key)
        if isinstance(value, list):
            value = "; ".join(str(item) for item in value if item)
        if value:
            return str(value)
    return None
