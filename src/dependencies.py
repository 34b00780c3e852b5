"""Global dependencies for the application."""

from fastapi import Request

from src.mcp_transport.manager import StreamManager
from src.provider import ToolProviderConnection


async def get_tool_provider(request: Request) -> ToolProviderConnection:
    """Dependency to get the process-wide tool provider connection.

    The connection is created in main.py lifespan and shared by every
    request, so all of them drive the same connection state machine.

    Args:
        request: The FastAPI request object.

    Returns:
        The global ToolProviderConnection instance.
    """
    return request.app.state.tool_provider


async def get_stream_manager(request: Request) -> StreamManager:
    """Dependency to get the SSE stream manager created in main.py lifespan."""
    return request.app.state.stream_manager
