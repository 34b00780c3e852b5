"""Interface implemented by every tool provider backend."""

from typing import Any, Protocol, runtime_checkable

from .schemas import ToolDescriptor


@runtime_checkable
class ToolBackend(Protocol):
    """A concrete link to a tool provider.

    ``ToolProviderConnection`` owns exactly one backend and drives it through
    its state machine. Backends raise ``ProviderError`` (or its
    ``ProviderUnavailableError`` subclass for retryable link failures).
    """

    name: str

    async def connect(self) -> None:
        """Establish the link, discarding any previous one."""
        ...

    async def list_tools(self) -> list[ToolDescriptor]:
        """Return the tools currently offered by the provider."""
        ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool and return the provider's raw result payload."""
        ...

    async def close(self) -> None:
        """Release the link. Safe to call when nothing is held."""
        ...
