"""HTTP client speaking MCP JSON-RPC to a remote tool provider."""

import json
import uuid
from typing import Any

import httpx
import structlog

from src.exceptions import ProviderError, ProviderUnavailableError
from .schemas import MCPRequest, MCPResponse, MCPToolCallParams, ToolDescriptor


logger = structlog.get_logger("provider.client")

# Default timeouts for provider requests
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

SESSION_HEADER = "Mcp-Session-Id"
CLIENT_CAPABILITIES: dict[str, Any] = {"tools": {}, "resources": {}}


def parse_sse_body(text: str) -> dict[str, Any] | None:
    """Extract the last JSON ``data:`` payload from an SSE response body.

    A provider may answer a POST with an event stream; the final frame that
    parses as a JSON object is the JSON-RPC response.
    """
    last_payload: dict[str, Any] | None = None
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.startswith("data:"):
            continue
        raw = stripped[len("data:"):].strip()
        if not raw:
            continue
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            last_payload = parsed
    return last_payload


def _error_text(result: dict[str, Any]) -> str:
    texts = [
        item.get("text", "")
        for item in result.get("content") or []
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    return "\n".join(text for text in texts if text) or "Tool execution failed"


class HTTPToolBackend:
    """Remote tool provider reached over MCP's HTTP transport.

    ``connect`` performs the ``initialize`` handshake and keeps the
    ``Mcp-Session-Id`` the provider hands out; every later request carries it.

    Attributes:
        name: Backend mode reported by the health check.
        url: Provider endpoint receiving JSON-RPC POSTs.
        session_id: Session assigned by the provider, if any.
        server_info: ``serverInfo`` returned by the last handshake.
    """

    name = "remote"

    def __init__(
        self,
        url: str,
        *,
        api_key: str = "",
        protocol_version: str = "2024-11-05",
        client_name: str = "mcp-sse-gateway",
        client_version: str = "1.0.0",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the backend without opening any connection.

        Args:
            url: Provider endpoint.
            api_key: Optional bearer token sent to the provider.
            protocol_version: MCP protocol version offered in ``initialize``.
            client_name: ``clientInfo.name`` sent in ``initialize``.
            client_version: ``clientInfo.version`` sent in ``initialize``.
            timeout: Per-request timeout in seconds.
            connect_timeout: TCP connect timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.url = url
        self.session_id: str | None = None
        self.server_info: dict[str, Any] = {}
        self._api_key = api_key
        self._protocol_version = protocol_version
        self._client_info = {"name": client_name, "version": client_version}
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id
        return headers

    async def _post(self, mcp_request: MCPRequest) -> httpx.Response:
        """POST one JSON-RPC message, mapping transport failures.

        Raises:
            ProviderUnavailableError: On timeout or connection failure.
            ProviderError: If the provider answers with an HTTP error status.
        """
        if self._client is None:
            raise ProviderUnavailableError(self.url, reason="link is not open")

        try:
            response = await self._client.post(
                self.url,
                json=mcp_request.model_dump(exclude_none=True),
                headers=self._headers(),
            )
        except httpx.TimeoutException:
            raise ProviderUnavailableError(
                self.url, reason=f"timed out after {self._timeout.read}s"
            )
        except httpx.ConnectError as e:
            raise ProviderUnavailableError(self.url, reason=str(e))
        except httpx.RequestError as e:
            raise ProviderUnavailableError(self.url, reason=f"Request failed: {e}")

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.session_id = session_id

        if response.status_code >= 400:
            raise ProviderError(
                f"Tool provider returned error {response.status_code}: "
                f"{response.text[:200]}"  # Truncate for safety
            )
        return response

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send a JSON-RPC request and return its ``result``.

        Raises:
            ProviderError: If the provider returns a JSON-RPC error or an
                unparseable body.
        """
        mcp_request = MCPRequest(method=method, params=params, id=str(uuid.uuid4()))
        response = await self._post(mcp_request)

        content_type = response.headers.get("content-type", "").lower()
        if "text/event-stream" in content_type:
            data = parse_sse_body(response.text)
        else:
            try:
                data = response.json()
            except ValueError:
                data = None
        if not isinstance(data, dict):
            raise ProviderError(f"Unparseable response to '{method}' from tool provider")

        mcp_response = MCPResponse(**data)
        if mcp_response.error is not None:
            raise ProviderError(mcp_response.error.message)
        return mcp_response.result

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        await self._post(MCPRequest(method=method, params=params))

    async def connect(self) -> None:
        """Open a fresh HTTP client and perform the MCP handshake."""
        await self.close()
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

        result = await self._request(
            "initialize",
            {
                "protocolVersion": self._protocol_version,
                "capabilities": CLIENT_CAPABILITIES,
                "clientInfo": self._client_info,
            },
        )
        self.server_info = (result or {}).get("serverInfo", {})
        await self._notify("notifications/initialized")
        logger.info(
            "provider_handshake_complete",
            url=self.url,
            session_id=self.session_id,
            server_info=self.server_info,
        )

    async def list_tools(self) -> list[ToolDescriptor]:
        """Return every tool the provider offers, following pagination."""
        tools: list[ToolDescriptor] = []
        cursor: str | None = None
        while True:
            result = await self._request("tools/list", {"cursor": cursor} if cursor else None)
            result = result or {}
            tools.extend(ToolDescriptor(**tool) for tool in result.get("tools", []))
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool and return the raw ``tools/call`` result.

        Raises:
            ProviderError: If the provider flags the result with ``isError``.
        """
        params = MCPToolCallParams(name=name, arguments=arguments)
        result = await self._request("tools/call", params.model_dump())
        if isinstance(result, dict) and result.get("isError"):
            raise ProviderError(_error_text(result))
        return result

    async def close(self) -> None:
        """Terminate the provider session and close the HTTP client."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            if self.session_id:
                try:
                    await client.delete(self.url, headers=self._headers())
                except httpx.HTTPError as e:
                    logger.warning("provider_session_delete_failed", url=self.url, error=str(e))
        finally:
            self.session_id = None
            await client.aclose()
