"""HTTP-backed service handler."""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class HttpServiceHandler:
    """ServiceHandler that forwards requests to a backend service over HTTP.

    The request payload is sent as JSON and the decoded JSON response is
    returned. Non-2xx responses raise ``httpx.HTTPStatusError``, which the
    gateway reports as a handler failure.

    A dict request may carry a ``correlation_id`` key; it is stripped from the
    body and sent as the X-Correlation-ID header.

    Usage:
        handler = HttpServiceHandler(
            base_url="http://fm-user-service:8000",
            path="/api/v1/execute",
        )
        gateway.register_service("UserService", handler)

        # On shutdown the gateway calls handler.aclose()
    """

    def __init__(
        self,
        base_url: str,
        path: str = "/",
        method: str = "POST",
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the handler.

        Args:
            base_url: Service base URL (e.g., http://fm-user-service:8000)
            path: Request path appended to base_url (default: "/")
            method: HTTP method (default: "POST")
            timeout: Transport-level timeout in seconds (default: 30.0)
            headers: Extra headers sent with every request
            transport: Custom httpx transport (e.g., httpx.MockTransport in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.path = "/" + path.lstrip("/")
        self.method = method.upper()
        self.timeout = timeout
        self.extra_headers = dict(headers or {})
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized {self.__class__.__name__}: {self.method} {self.base_url}{self.path}"
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    def _headers(self, correlation_id: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.extra_headers)
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Get the persistent client, creating it on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def execute(self, request: Any) -> Any:
        payload = request
        correlation_id = None
        if isinstance(request, dict) and "correlation_id" in request:
            payload = {k: v for k, v in request.items() if k != "correlation_id"}
            correlation_id = request["correlation_id"]

        client = self._get_client()
        if self.method in ("GET", "DELETE"):
            response = await client.request(
                self.method,
                self.url,
                params=payload if isinstance(payload, dict) else None,
                headers=self._headers(correlation_id),
            )
        else:
            response = await client.request(
                self.method,
                self.url,
                json=payload,
                headers=self._headers(correlation_id),
            )
        response.raise_for_status()

        logger.debug(f"{self.method} {self.url} -> {response.status_code}")
        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        """Close the persistent HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def __repr__(self) -> str:
        return f"HttpServiceHandler({self.method} {self.url})"
