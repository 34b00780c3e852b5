from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal


def _csv_values(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    # App
    APP_NAME: str = "MCP SSE Gateway"
    APP_VERSION: str = "1.0.0"
    SERVICE_NAME: str = "mcp-sse-gateway"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    CORS_ORIGINS: str = "https://app.n8n.cloud,http://localhost:5678"
    SHUTDOWN_GRACE_SECONDS: int = 5

    # Logging
    MCP_LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # MCP
    MCP_PROTOCOL_VERSION: str = "2024-11-05"

    # Tool provider
    TOOL_PROVIDER_MODE: Literal["remote", "mock"] = "remote"
    TOOL_PROVIDER_URL: str = "http://localhost:8080/mcp"
    TOOL_PROVIDER_API_KEY: str = ""
    TOOL_PROVIDER_TIMEOUT_SECONDS: float = 30.0
    TOOL_PROVIDER_CONNECT_TIMEOUT_SECONDS: float = 10.0
    CONNECT_MAX_ATTEMPTS: int = 3
    CONNECT_BACKOFF_BASE_SECONDS: float = 0.5
    CONNECT_BACKOFF_MAX_SECONDS: float = 5.0
    MOCK_CATALOG_PATH: str = ""

    # Streaming
    SSE_KEEPALIVE_INTERVAL_SECONDS: float = 30.0
    SSE_MAX_PENDING_EVENTS: int = 100

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return _csv_values(self.CORS_ORIGINS)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
