"""Provider module - the single connection to the backend tool provider."""

from src.config import Settings
from .base import ToolBackend
from .client import HTTPToolBackend
from .connection import StateListener, ToolProviderConnection
from .mock import MockToolBackend, load_mock_catalog
from .retry import RetryPolicy
from .schemas import ConnectionState, ProviderStatus, ToolDescriptor


def build_backend(settings: Settings) -> ToolBackend:
    """Select the backend named by ``TOOL_PROVIDER_MODE``."""
    if settings.TOOL_PROVIDER_MODE == "mock":
        return MockToolBackend(load_mock_catalog(settings.MOCK_CATALOG_PATH or None))
    return HTTPToolBackend(
        settings.TOOL_PROVIDER_URL,
        api_key=settings.TOOL_PROVIDER_API_KEY,
        protocol_version=settings.MCP_PROTOCOL_VERSION,
        client_name=settings.SERVICE_NAME,
        client_version=settings.APP_VERSION,
        timeout=settings.TOOL_PROVIDER_TIMEOUT_SECONDS,
        connect_timeout=settings.TOOL_PROVIDER_CONNECT_TIMEOUT_SECONDS,
    )


def build_tool_provider(
    settings: Settings,
    on_state_change: StateListener | None = None,
) -> ToolProviderConnection:
    """Create the process-wide provider connection from settings."""
    return ToolProviderConnection(
        build_backend(settings),
        retry_policy=RetryPolicy(
            max_attempts=settings.CONNECT_MAX_ATTEMPTS,
            base_delay=settings.CONNECT_BACKOFF_BASE_SECONDS,
            max_delay=settings.CONNECT_BACKOFF_MAX_SECONDS,
        ),
        on_state_change=on_state_change,
    )


__all__ = [
    "ConnectionState",
    "HTTPToolBackend",
    "MockToolBackend",
    "ProviderStatus",
    "RetryPolicy",
    "StateListener",
    "ToolBackend",
    "ToolDescriptor",
    "ToolProviderConnection",
    "build_backend",
    "build_tool_provider",
    "load_mock_catalog",
]
