"""Pydantic schemas for events pushed over the MCP SSE stream."""

from typing import Any, Literal
from pydantic import BaseModel, Field

from src.utils import utc_timestamp


HANDSHAKE_METHOD = "notifications/initialized"
PING_METHOD = "notifications/ping"
MESSAGE_METHOD = "notifications/message"

SERVER_CAPABILITIES: dict[str, Any] = {"tools": {}, "resources": {}}


class MCPServerInfo(BaseModel):
    """Identity announced in the handshake."""

    name: str
    version: str


class MCPHandshakeParams(BaseModel):
    """Parameters of the handshake event."""

    protocolVersion: str
    capabilities: dict[str, Any] = Field(default_factory=lambda: dict(SERVER_CAPABILITIES))
    serverInfo: MCPServerInfo


class MCPStreamEvent(BaseModel):
    """A JSON-RPC 2.0 notification written to a stream.

    ``method`` is the discriminator telling handshake, liveness and
    notification events apart.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    def to_sse(self) -> str:
        """Render as a single ``data:`` frame."""
        return f"data: {self.model_dump_json()}\n\n"


def handshake_event(protocol_version: str, server_name: str, server_version: str) -> MCPStreamEvent:
    params = MCPHandshakeParams(
        protocolVersion=protocol_version,
        serverInfo=MCPServerInfo(name=server_name, version=server_version),
    )
    return MCPStreamEvent(method=HANDSHAKE_METHOD, params=params.model_dump())


def ping_event() -> MCPStreamEvent:
    return MCPStreamEvent(method=PING_METHOD, params={"timestamp": utc_timestamp()})


def message_event(data: dict[str, Any], level: str = "info", logger: str = "gateway") -> MCPStreamEvent:
    """Build a log-style notification, as MCP servers send with ``notifications/message``."""
    return MCPStreamEvent(
        method=MESSAGE_METHOD,
        params={"level": level, "logger": logger, "data": data},
    )
