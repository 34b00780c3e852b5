"""Mock tool provider serving canned results from a YAML catalog."""

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field

from src.utils import utc_timestamp
from .schemas import ToolDescriptor, default_input_schema


logger = structlog.get_logger("provider.mock")

DEFAULT_CATALOG_PATH = Path(__file__).parent / "mock_tools.yaml"
ARGUMENT_PREFIX = "$arguments."
NOW_PLACEHOLDER = "$now"


class MockToolConfig(BaseModel):
    """Tool definition loaded from the mock catalog."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] | None = None
    result: Any = None


class MockCatalog(BaseModel):
    """Container for mock tool definitions."""

    tools: list[MockToolConfig] = Field(default_factory=list)


def load_mock_catalog(config_path: str | Path | None = None) -> MockCatalog:
    """Load the mock catalog from YAML.

    Args:
        config_path: Optional custom catalog path; the packaged catalog is
            used when omitted.

    Returns:
        Parsed MockCatalog, or an empty catalog if the file is missing.
    """
    path = Path(config_path) if config_path else DEFAULT_CATALOG_PATH
    if not path.exists():
        logger.warning("mock_catalog_missing", path=str(path))
        return MockCatalog()

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    return MockCatalog(**data)


def render_result(template: Any, arguments: dict[str, Any]) -> Any:
    """Fill ``$arguments.<name>`` and ``$now`` placeholders in a result template."""
    if isinstance(template, dict):
        return {key: render_result(value, arguments) for key, value in template.items()}
    if isinstance(template, list):
        return [render_result(item, arguments) for item in template]
    if isinstance(template, str):
        if template == NOW_PLACEHOLDER:
            return utc_timestamp()
        if template.startswith(ARGUMENT_PREFIX):
            return arguments.get(template[len(ARGUMENT_PREFIX):])
    return template


class MockToolBackend:
    """Stand-in provider with the same capabilities as the remote one.

    Unknown tool names succeed with a generic message so callers can exercise
    the invocation path without a real provider.
    """

    name = "mock"

    def __init__(self, catalog: MockCatalog | None = None) -> None:
        self.catalog = catalog if catalog is not None else load_mock_catalog()
        self._tools = {tool.name: tool for tool in self.catalog.tools}

    async def connect(self) -> None:
        logger.info("mock_provider_ready", tools=len(self._tools))

    async def list_tools(self) -> list[ToolDescriptor]:
        return [
            ToolDescriptor(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema or default_input_schema(),
            )
            for tool in self.catalog.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        logger.info("mock_tool_executed", tool=name, arguments=arguments)
        tool = self._tools.get(name)
        if tool is None or tool.result is None:
            return {"message": f"Tool {name} executed successfully"}
        return render_result(tool.result, arguments)

    async def close(self) -> None:
        pass
