"""SSE transport endpoint for MCP stream clients."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from src.dependencies import get_stream_manager

from .manager import StreamManager, stream_events


router = APIRouter(prefix="", tags=["mcp-sse"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/mcp", operation_id="sse_endpoint_get")
async def sse_get_endpoint(
    manager: Annotated[StreamManager, Depends(get_stream_manager)],
) -> StreamingResponse:
    """Open an SSE stream: a handshake event, then periodic pings."""
    if not manager.accepting:
        raise HTTPException(status_code=503, detail="Server is shutting down")

    return StreamingResponse(
        stream_events(manager),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
