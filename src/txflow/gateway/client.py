"""HTTP client for the transaction gateway.

Endpoints (relative to ``gateway_url``):
- ``POST <build endpoint>``        build an unsigned transaction
- ``POST /tx/register``            register a submitted transaction
- ``GET  /tx/status/{hash}``       current status (404 = not registered)
- ``GET  /tx/stream/{hash}``       server-sent status events
- ``GET  /tx/pending``             the user's non-terminal transactions
"""

import logging
from typing import Any, AsyncIterator, Optional

import httpx

from txflow.config import Settings, get_settings
from txflow.errors import BuildError, GatewayError, GatewayUnavailableError
from txflow.gateway.contracts import (
    RegisterRequest,
    RegisterResponse,
    TxStatus,
    UnsignedTransaction,
)
from txflow.gateway.sse import SSEEvent, iter_sse_events
from txflow.session import Session

logger = logging.getLogger(__name__)

ERROR_DETAIL_KEYS = ("details", "message", "error", "detail")


def extract_error_detail(response: httpx.Response) -> str:
    """Pull a human-readable error out of a failed gateway response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ERROR_DETAIL_KEYS:
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else str(value)

    text = response.text.strip() if response.text else ""
    return text or response.reason_phrase or "Unknown error"


class GatewayClient:
    """Async client for the transaction gateway.

    Sends ``X-API-Key`` on every request and the session's bearer token
    when the user is authenticated.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[Session] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize gateway client.

        Args:
            base_url: Gateway base URL (defaults to settings.gateway_url)
            api_key: Gateway API key (defaults to settings.gateway_api_key)
            session: Auth session providing the user's JWT
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests, ASGI apps)
            settings: Settings to read defaults from
        """
        settings = settings or get_settings()
        self.base_url = (base_url or settings.gateway_url).rstrip("/")
        self.api_key = settings.gateway_api_key if api_key is None else api_key
        self.session = session or Session()
        self.timeout = timeout or settings.request_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        headers.update(self.session.auth_headers())
        return headers

    @staticmethod
    def _path(path: str) -> str:
        return path if path.startswith("/") else f"/{path}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, self._path(path), headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Gateway request failed: {method} {path}: {e}")
            raise GatewayUnavailableError(str(e)) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        detail = extract_error_detail(response)
        raise GatewayError(response.status_code, detail)

    async def build_transaction(self, endpoint: str, params: dict[str, Any]) -> UnsignedTransaction:
        """Ask the gateway to build an unsigned transaction.

        Raises:
            GatewayError: Non-success response
            BuildError: Response carried no unsigned transaction
        """
        response = await self._request("POST", endpoint, json=params)
        self._raise_for_status(response)

        unsigned = UnsignedTransaction.model_validate(response.json())
        if not unsigned.unsigned_tx:
            raise BuildError(f"No unsigned transaction returned from {endpoint}")
        return unsigned

    async def register_transaction(
        self,
        tx_hash: str,
        tx_type: str,
        metadata: Optional[dict[str, str]] = None,
        instance_id: Optional[str] = None,
    ) -> RegisterResponse:
        """Register a submitted transaction for gateway-side confirmation tracking."""
        request = RegisterRequest(
            tx_hash=tx_hash,
            tx_type=tx_type,
            metadata=metadata,
            instance_id=instance_id,
        )
        response = await self._request(
            "POST", "/tx/register", json=request.model_dump(exclude_none=True)
        )
        self._raise_for_status(response)

        try:
            body = response.json()
        except ValueError:
            body = {}
        return RegisterResponse.model_validate(body if isinstance(body, dict) else {})

    async def get_status(self, tx_hash: str) -> Optional[TxStatus]:
        """Get the current status, or None if the gateway does not know the hash."""
        response = await self._request("GET", f"/tx/status/{tx_hash}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        return TxStatus.model_validate(response.json())

    async def stream_status(self, tx_hash: str) -> AsyncIterator[SSEEvent]:
        """Yield status events until the server closes the stream."""
        client = await self._get_client()
        headers = self._headers()
        headers["Accept"] = "text/event-stream"

        try:
            async with client.stream(
                "GET",
                f"/tx/stream/{tx_hash}",
                headers=headers,
                timeout=httpx.Timeout(self.timeout, read=None),
            ) as response:
                if not response.is_success:
                    await response.aread()
                    self._raise_for_status(response)
                async for event in iter_sse_events(response.aiter_lines()):
                    yield event
        except httpx.HTTPError as e:
            logger.warning(f"Status stream for {tx_hash} failed: {e}")
            raise GatewayUnavailableError(str(e)) from e

    async def list_pending(self) -> list[TxStatus]:
        """List the authenticated user's non-terminal transactions.

        404 and 204 both mean "nothing pending".
        """
        response = await self._request("GET", "/tx/pending")
        if response.status_code in (404, 204):
            return []
        self._raise_for_status(response)

        if not response.content:
            return []
        body = response.json()
        if not body:
            return []
        if isinstance(body, dict):
            body = body.get("transactions") or body.get("data") or []
        return [TxStatus.model_validate(item) for item in body]
