"""Base HTTP client for APISIX Bridge.

This module provides a base async HTTP client with connection pooling,
optional rate limiting, request logging and exception mapping. It is the
leaf of the client: it owns connection parameters and nothing else.
"""

import asyncio
import time
from typing import Any
from urllib.parse import urljoin

import httpx

from apisix_bridge.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    ConflictError,
    MethodNotAllowedError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from apisix_bridge.utils.logging import (
    get_logger,
    log_api_request,
    log_error,
    sanitize_payload,
    should_log_payloads,
    truncate_payload,
)

logger = get_logger(__name__)

_UNSET: Any = object()


class BaseAPIClient:
    """Base async HTTP client bound to a single base URL.

    This client provides:
    - Connection pooling
    - Optional client-side rate limiting
    - Request/response logging
    - Per-call timeouts with a client-wide default
    - Mapping of HTTP failures onto the exception taxonomy

    It never retries.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        verify_ssl: bool = True,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        rate_limit: int = 0,
        max_connections: int | None = None,
        max_keepalive_connections: int | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for API requests
            api_key: API key sent in the ``X-API-KEY`` header (omitted if None)
            verify_ssl: Whether to verify SSL certificates
            timeout: Default request timeout in seconds
            headers: Extra headers sent with every request
            rate_limit: Maximum requests per second (0 disables limiting)
            max_connections: Maximum number of connections in pool (default: 50)
            max_keepalive_connections: Maximum keep-alive connections (default: 20)
            log_payloads: Enable request/response payload logging at DEBUG level
            max_payload_size: Maximum payload size (chars) to log before truncation
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.extra_headers = dict(headers or {})

        self.log_payloads = log_payloads
        self.max_payload_size = max_payload_size

        self.rate_limit = rate_limit
        self._rate_limit_lock = asyncio.Lock()
        self._last_request_time: float = 0
        self._min_request_interval = 1.0 / rate_limit if rate_limit > 0 else 0

        if max_connections is None:
            max_connections = 50
        if max_keepalive_connections is None:
            max_keepalive_connections = 20

        self.client = httpx.AsyncClient(
            headers=self._build_headers(),
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            verify=verify_ssl,
            follow_redirects=True,
            transport=transport,
        )

        logger.debug(
            "client_initialized",
            base_url=self.base_url,
            rate_limit=rate_limit,
            max_connections=max_connections,
        )

    def _build_headers(self) -> dict[str, str]:
        """Build HTTP headers for requests.

        Returns:
            Dictionary of HTTP headers
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            **self.extra_headers,
        }
        if self.api_key:
            headers["X-API-KEY"] = self.api_key
        return headers

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full URL
        """
        endpoint = endpoint.lstrip("/")
        return urljoin(f"{self.base_url}/", endpoint)

    async def _rate_limit_wait(self) -> None:
        """Implement rate limiting by waiting if necessary."""
        if self._min_request_interval > 0:
            async with self._rate_limit_lock:
                now = time.monotonic()
                time_since_last = now - self._last_request_time

                if time_since_last < self._min_request_interval:
                    await asyncio.sleep(self._min_request_interval - time_since_last)

                self._last_request_time = time.monotonic()

    @staticmethod
    def _error_message(error_data: Any) -> str:
        """Pull a human-readable message out of a gateway error body."""
        if isinstance(error_data, dict):
            for field in ("error_msg", "message", "detail"):
                value = error_data.get(field)
                if value:
                    return str(value)
            return "Unknown error"
        if isinstance(error_data, list):
            return ", ".join(str(item) for item in error_data) if error_data else "Unknown error"
        return str(error_data) if error_data else "Unknown error"

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Handle error responses by raising appropriate exceptions.

        Args:
            response: HTTP response object

        Raises:
            BadRequestError: For 400 responses
            AuthenticationError: For 401 responses
            AuthorizationError: For 403 responses
            NotFoundError: For 404 responses
            MethodNotAllowedError: For 405 responses
            ConflictError: For 409 responses
            RateLimitError: For 429 responses
            ServerError: For 5xx responses
            APIError: For other error responses
        """
        status_code = response.status_code

        try:
            error_data = response.json()
        except ValueError:
            error_data = {"error_msg": response.text}

        error_message = self._error_message(error_data)
        if not isinstance(error_data, dict):
            error_data = {"error_msg": error_message, "_raw": error_data}

        if status_code == 400:
            raise BadRequestError(error_message, status_code=status_code, response=error_data)
        elif status_code == 401:
            raise AuthenticationError(
                f"Authentication failed: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        elif status_code == 403:
            raise AuthorizationError(
                f"Authorization failed: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        elif status_code == 404:
            raise NotFoundError(error_message, status_code=status_code, response=error_data)
        elif status_code == 405:
            raise MethodNotAllowedError(error_message, status_code=status_code, response=error_data)
        elif status_code == 409:
            raise ConflictError(error_message, status_code=status_code, response=error_data)
        elif status_code == 429:
            retry_after = response.headers.get("Retry-After")
            retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
            raise RateLimitError(
                "Rate limit exceeded",
                status_code=status_code,
                response=error_data,
                retry_after=retry_seconds,
            )
        elif 500 <= status_code < 600:
            raise ServerError(
                f"Server error: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        else:
            raise APIError(
                f"API error: {error_message}",
                status_code=status_code,
                response=error_data,
            )

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        """Decode a successful response body (JSON, text, or empty dict)."""
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | list[Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = _UNSET,
    ) -> Any:
        """Make an HTTP request with rate limiting and error handling.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            endpoint: API endpoint path, relative to the base URL
            params: Query parameters
            json_data: JSON request body
            headers: Extra headers for this request only
            timeout: Per-call timeout in seconds (defaults to the client timeout)

        Returns:
            Decoded response body

        Raises:
            RequestTimeoutError: When the request times out
            NetworkError: For other transport failures
            APIError subclasses: For non-2xx responses
        """
        url = self._build_url(endpoint)
        request_kwargs: dict[str, Any] = {}
        if timeout is not _UNSET:
            request_kwargs["timeout"] = timeout

        await self._rate_limit_wait()

        if should_log_payloads(logger, self.log_payloads) and json_data is not None:
            logger.debug(
                "api_request_payload",
                method=method,
                url=url,
                payload=truncate_payload(sanitize_payload(json_data), self.max_payload_size),
            )

        start_time = time.monotonic()

        try:
            response = await self.client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=headers,
                **request_kwargs,
            )
        except httpx.TimeoutException as e:
            log_error(logger, e, context="request_timeout", method=method, url=url)
            raise RequestTimeoutError(f"Request timeout: {method} {url}") from e
        except httpx.TransportError as e:
            log_error(logger, e, context="network_failure", method=method, url=url)
            raise NetworkError(f"Network error: {method} {url}: {e}") from e

        log_api_request(
            logger,
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

        if response.status_code >= 400:
            self._handle_error_response(response)

        body = self._decode_body(response)

        if should_log_payloads(logger, self.log_payloads) and response.content:
            logger.debug(
                "api_response_payload",
                method=method,
                url=url,
                status_code=response.status_code,
                payload=truncate_payload(sanitize_payload(body), self.max_payload_size),
            )

        return body

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a GET request."""
        return await self.request("GET", endpoint, params=params, **kwargs)

    async def post(
        self,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a POST request."""
        return await self.request("POST", endpoint, params=params, json_data=json_data, **kwargs)

    async def put(
        self,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a PUT request."""
        return await self.request("PUT", endpoint, params=params, json_data=json_data, **kwargs)

    async def patch(
        self,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a PATCH request."""
        return await self.request("PATCH", endpoint, params=params, json_data=json_data, **kwargs)

    async def delete(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a DELETE request."""
        return await self.request("DELETE", endpoint, params=params, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()
        logger.debug("client_closed", base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
