"""Gateway module - HTTP tool enumeration and invocation."""

from .schemas import (
    ErrorEnvelope,
    ListToolsResponse,
    ProductsRequest,
    ShortcutResponse,
    ToolInvocationRequest,
    ToolInvocationResult,
    UpdateProductImageRequest,
)
from .service import (
    fetch_product,
    fetch_products,
    invoke_tool,
    list_tools,
    update_product_image,
)
from .router import create_error_response, router
from .shortcuts import router as shortcuts_router


__all__ = [
    # Schemas
    "ErrorEnvelope",
    "ListToolsResponse",
    "ProductsRequest",
    "ShortcutResponse",
    "ToolInvocationRequest",
    "ToolInvocationResult",
    "UpdateProductImageRequest",
    # Service
    "fetch_product",
    "fetch_products",
    "invoke_tool",
    "list_tools",
    "update_product_image",
    # Routers
    "create_error_response",
    "router",
    "shortcuts_router",
]
