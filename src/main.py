from contextlib import asynccontextmanager
from functools import partial
from typing import Annotated

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .dependencies import get_stream_manager, get_tool_provider
from .exceptions import InvalidRequestError, ToolGatewayError
from .log import configure_logging
from .provider import ConnectionState, ToolProviderConnection, build_tool_provider
from .utils import utc_timestamp
from src.gateway.router import create_error_response, router as gateway_router
from src.gateway.shortcuts import router as shortcuts_router
from src.mcp_transport.manager import StreamManager
from src.mcp_transport.schemas import handshake_event, message_event
from src.mcp_transport.sse import router as mcp_sse_router

settings = get_settings()
logger = structlog.get_logger("main")


def notify_provider_state(
    manager: StreamManager, state: ConnectionState, error: str | None
) -> None:
    """Tell every open stream that the provider connection changed state."""
    level = "error" if state is ConnectionState.failed else "info"
    manager.broadcast(
        message_event({"state": state.value, "error": error}, level=level, logger="tool_provider")
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.MCP_LOG_LEVEL, json_logs=settings.LOG_JSON)
    logger.info("startup", service=settings.SERVICE_NAME, port=settings.PORT)

    stream_manager = StreamManager(
        handshake_factory=partial(
            handshake_event,
            settings.MCP_PROTOCOL_VERSION,
            settings.SERVICE_NAME,
            settings.APP_VERSION,
        ),
        keepalive_interval=settings.SSE_KEEPALIVE_INTERVAL_SECONDS,
        max_pending_events=settings.SSE_MAX_PENDING_EVENTS,
    )
    provider = build_tool_provider(
        settings, on_state_change=partial(notify_provider_state, stream_manager)
    )
    app.state.stream_manager = stream_manager
    app.state.tool_provider = provider

    # A failed first connect is not fatal; requests retry it lazily.
    if not await provider.initialize():
        logger.warning("provider_initialization_deferred", error=provider.last_error)

    yield

    # Shutdown: end open streams, then release the provider link
    logger.info("shutdown_started", active_streams=stream_manager.active_count)
    stream_manager.close_all()
    try:
        await provider.close()
    except Exception as e:
        logger.error("shutdown_provider_close_failed", error=str(e), exc_info=e)
    logger.info("shutdown_complete")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return create_error_response(InvalidRequestError(f"Invalid request: {errors}"))

@app.exception_handler(ToolGatewayError)
async def gateway_exception_handler(request: Request, exc: ToolGatewayError):
    return create_error_response(exc)

@app.get("/health")
async def health_check(
    provider: Annotated[ToolProviderConnection, Depends(get_tool_provider)],
    manager: Annotated[StreamManager, Depends(get_stream_manager)],
):
    status = provider.describe()
    return {
        "status": "ok",
        "timestamp": utc_timestamp(),
        "service": settings.SERVICE_NAME,
        "version": settings.APP_VERSION,
        "mcpConnected": status.connected,
        "provider": status.model_dump(mode="json"),
        "activeStreams": manager.active_count,
        "endpoints": {
            "health": "/health",
            "sse": "/mcp",
            "api": "/api",
        },
    }

# Include routers
app.include_router(gateway_router)
app.include_router(shortcuts_router)
app.include_router(mcp_sse_router)


class GatewayServer(uvicorn.Server):
    """uvicorn server that ends open streams as soon as shutdown begins.

    Stream bodies never finish on their own; closing their sessions first
    lets them complete normally instead of being cancelled at the end of
    the graceful-shutdown window.
    """

    async def shutdown(self, sockets=None) -> None:
        manager: StreamManager | None = getattr(self.config.app.state, "stream_manager", None)
        if manager is not None:
            logger.info("shutdown_closing_streams", active_streams=manager.active_count)
            manager.close_all()
        await super().shutdown(sockets=sockets)


def serve() -> None:
    """Run the gateway with uvicorn on ``HOST:PORT``.

    Graceful shutdown is bounded by ``SHUTDOWN_GRACE_SECONDS``.
    """
    config = uvicorn.Config(
        app,
        host=settings.HOST,
        port=settings.PORT,
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_SECONDS,
        log_level=settings.MCP_LOG_LEVEL.lower(),
    )
    GatewayServer(config).run()


if __name__ == "__main__":
    serve()
