"""Pydantic schemas for the tool provider link."""

from enum import Enum
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field


def default_input_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {},
        "additionalProperties": True,
    }


class ConnectionState(str, Enum):
    """Lifecycle of the single tool provider connection."""

    uninitialized = "uninitialized"
    connecting = "connecting"
    connected = "connected"
    failed = "failed"


class ToolDescriptor(BaseModel):
    """Tool definition as reported live by the provider.

    Attributes:
        name: Unique, opaque tool identifier.
        description: Human-readable description.
        inputSchema: JSON schema of accepted arguments.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    description: str = ""
    inputSchema: dict[str, Any] = Field(default_factory=default_input_schema)


class MCPToolCallParams(BaseModel):
    """Parameters for a tool call request.

    Attributes:
        name: Name of the tool to invoke.
        arguments: Arguments to pass to the tool.
    """

    name: str = Field(..., description="Name of the tool to invoke")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


class MCPRequest(BaseModel):
    """JSON-RPC 2.0 request sent to the tool provider.

    Requests without an ``id`` are notifications and get no response.
    """

    jsonrpc: Literal["2.0"] = Field(default="2.0", description="JSON-RPC version")
    method: str = Field(..., description="Method to call")
    params: dict[str, Any] | None = Field(default=None, description="Method parameters")
    id: str | int | None = Field(default=None, description="Request ID for correlation")


class MCPErrorDetail(BaseModel):
    """Error details in JSON-RPC format."""

    code: int = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    data: Any | None = Field(default=None, description="Additional error data")


class MCPResponse(BaseModel):
    """JSON-RPC 2.0 response from the tool provider."""

    jsonrpc: Literal["2.0"] = Field(default="2.0", description="JSON-RPC version")
    result: Any | None = Field(default=None, description="Result on success")
    error: MCPErrorDetail | None = Field(default=None, description="Error on failure")
    id: str | int | None = Field(default=None, description="Request ID for correlation")


class ProviderStatus(BaseModel):
    """Snapshot of the provider connection, reported by the health check."""

    mode: str
    state: ConnectionState
    connected: bool
    lastError: str | None = None
