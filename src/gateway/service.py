"""Service layer translating gateway requests into provider calls."""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog

from src.exceptions import InvalidRequestError, ToolGatewayError
from src.provider import ToolDescriptor, ToolProviderConnection
from src.utils import utc_timestamp

from .schemas import ToolInvocationRequest, ToolInvocationResult


logger = structlog.get_logger("gateway")

PRODUCTS_TOOL = "get_products"
PRODUCT_TOOL = "get_product"
UPDATE_PRODUCT_IMAGE_TOOL = "update_product_image"
DEFAULT_PRODUCTS_LIMIT = 50


class InvocationContext:
    """Tracks timing and outcome of one tool invocation.

    Attributes:
        tool_name: Which tool is being invoked.
        start_time: When the invocation started.
        status: ``"success"`` or ``"error"``.
        error_code: Error code if failed.
    """

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        self.start_time = time.perf_counter()
        self.status = "success"
        self.error_code: str | None = None

    def mark_error(self, error_code: str) -> None:
        self.status = "error"
        self.error_code = error_code

    @property
    def duration_ms(self) -> int:
        """Calculate duration in milliseconds."""
        elapsed = time.perf_counter() - self.start_time
        return int(elapsed * 1000)


@asynccontextmanager
async def track_invocation(tool_name: str) -> AsyncGenerator[InvocationContext, None]:
    """Time an invocation and log one ``tool_invocation`` event when it ends."""
    context = InvocationContext(tool_name)
    try:
        yield context
    except ToolGatewayError as e:
        context.mark_error(e.code)
        raise
    except Exception:
        context.mark_error("INTERNAL_ERROR")
        raise
    finally:
        logger.info(
            "tool_invocation",
            tool_name=context.tool_name,
            status=context.status,
            duration_ms=context.duration_ms,
            error_code=context.error_code,
        )


def extract_content(payload: Any) -> Any:
    """Return the provider payload's ``content`` when it has any, else the payload."""
    if isinstance(payload, dict) and payload.get("content"):
        return payload["content"]
    return payload


def compact_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Drop optional arguments the caller did not supply (None or empty string)."""
    return {key: value for key, value in arguments.items() if value is not None and value != ""}


def _as_int(value: Any, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"'{field}' must be an integer")


async def list_tools(provider: ToolProviderConnection) -> list[ToolDescriptor]:
    """List the provider's tools, connecting first if needed.

    Raises:
        NotConnectedError: If the provider cannot be connected.
        ProviderError: If the provider fails to list its tools.
    """
    await provider.ensure_connected()
    return await provider.list_tools()


async def invoke_tool(
    provider: ToolProviderConnection,
    request: ToolInvocationRequest,
) -> ToolInvocationResult:
    """Invoke a tool on behalf of a caller.

    The tool name is validated before the provider is touched, so a request
    without one never triggers a connection attempt.

    Args:
        provider: The shared provider connection.
        request: Tool name and arguments.

    Returns:
        Success envelope echoing the tool name and arguments.

    Raises:
        InvalidRequestError: If no tool name was given.
        NotConnectedError: If the provider cannot be connected.
        ProviderError: If the provider fails to run the tool.
    """
    if not request.tool:
        raise InvalidRequestError("Tool name is required")

    async with track_invocation(request.tool):
        await provider.ensure_connected()
        logger.debug("tool_invocation_started", tool_name=request.tool, arguments=request.arguments)
        payload = await provider.call_tool(request.tool, request.arguments)

    return ToolInvocationResult(
        tool=request.tool,
        arguments=request.arguments,
        result=extract_content(payload),
        timestamp=utc_timestamp(),
    )


async def fetch_products(
    provider: ToolProviderConnection,
    limit: int = DEFAULT_PRODUCTS_LIMIT,
    page_info: str | None = None,
) -> Any:
    """Fetch one page of products."""
    arguments = compact_arguments({"limit": limit, "page_info": page_info})
    result = await invoke_tool(provider, ToolInvocationRequest(tool=PRODUCTS_TOOL, arguments=arguments))
    return result.result


async def fetch_product(provider: ToolProviderConnection, product_id: Any) -> Any:
    """Fetch one product by identifier."""
    arguments = {"id": _as_int(product_id, "id")}
    result = await invoke_tool(provider, ToolInvocationRequest(tool=PRODUCT_TOOL, arguments=arguments))
    return result.result


async def update_product_image(
    provider: ToolProviderConnection,
    product_id: Any,
    image_id: Any,
    alt: str | None = None,
    position: Any = None,
) -> Any:
    """Update a product image's alt text and/or position."""
    arguments = compact_arguments(
        {
            "product_id": _as_int(product_id, "product_id"),
            "image_id": _as_int(image_id, "image_id"),
            "alt": alt,
            "position": None if position is None else _as_int(position, "position"),
        }
    )
    result = await invoke_tool(
        provider,
        ToolInvocationRequest(tool=UPDATE_PRODUCT_IMAGE_TOOL, arguments=arguments),
    )
    return result.result
