"""Pydantic schemas for the gateway's HTTP envelopes."""

from typing import Any, Literal
from pydantic import BaseModel, Field, field_validator

from src.provider.schemas import ToolDescriptor


class ToolInvocationRequest(BaseModel):
    """Body of ``POST /api/execute``.

    Attributes:
        tool: Name of the tool to invoke; validated by the service so a
            missing name yields the documented error message.
        arguments: Arguments passed to the tool verbatim.
    """

    tool: str | None = Field(default=None, description="Tool to invoke")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")

    @field_validator("arguments", mode="before")
    @classmethod
    def _null_arguments(cls, value: Any) -> Any:
        return {} if value is None else value


class ToolInvocationResult(BaseModel):
    """Successful invocation envelope.

    Attributes:
        success: Always True.
        tool: Echo of the requested tool name.
        arguments: Echo of the request arguments.
        result: Provider payload (its ``content`` when present).
        timestamp: ISO8601 completion time.
    """

    success: Literal[True] = True
    tool: str
    arguments: dict[str, Any]
    result: Any = None
    timestamp: str


class ListToolsResponse(BaseModel):
    """Envelope for ``GET /api/tools``."""

    success: Literal[True] = True
    tools: list[ToolDescriptor]


class ShortcutResponse(BaseModel):
    """Envelope for the shorthand endpoints."""

    success: Literal[True] = True
    data: Any = None


class ErrorEnvelope(BaseModel):
    """Failure envelope shared by every gateway endpoint.

    ``tool`` is echoed when the caller supplied one so failures can be
    correlated on the caller side.
    """

    success: Literal[False] = False
    error: str
    tool: str | None = None


class ProductsRequest(BaseModel):
    """Body of ``POST /api/shopify/products``."""

    limit: int = 50
    page_info: str | None = None


class UpdateProductImageRequest(BaseModel):
    """Body of ``POST /api/shopify/update-product-image``."""

    product_id: int
    image_id: int
    alt: str | None = None
    position: int | None = None
