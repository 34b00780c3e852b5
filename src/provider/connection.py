"""The single, process-wide connection to the tool provider."""

import asyncio
import contextlib
from collections.abc import Callable
from typing import Any

import structlog

from src.exceptions import (
    InvalidRequestError,
    NotConnectedError,
    ProviderError,
    ToolGatewayError,
)
from .base import ToolBackend
from .retry import RetryPolicy, retry_with_backoff
from .schemas import ConnectionState, ProviderStatus, ToolDescriptor


logger = structlog.get_logger("provider.connection")

StateListener = Callable[[ConnectionState, str | None], None]


class ToolProviderConnection:
    """Owns the one logical link to the tool provider.

    State moves ``uninitialized``/``failed`` -> ``connecting`` ->
    ``connected``/``failed``, and leaves ``connected`` only through
    ``close()``. Initialization is guarded by a single in-flight task: the
    first caller starts it and every concurrent caller awaits that same task,
    so the backend sees exactly one connection attempt sequence.

    Attributes:
        backend: The concrete provider link.
        retry_policy: Bounded retry applied to each initialization.
    """

    def __init__(
        self,
        backend: ToolBackend,
        retry_policy: RetryPolicy | None = None,
        on_state_change: StateListener | None = None,
    ) -> None:
        self.backend = backend
        self.retry_policy = retry_policy or RetryPolicy()
        self._on_state_change = on_state_change
        self._state = ConnectionState.uninitialized
        self._last_error: str | None = None
        self._pending: asyncio.Task[bool] | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.connected

    def describe(self) -> ProviderStatus:
        return ProviderStatus(
            mode=self.backend.name,
            state=self._state,
            connected=self.is_connected,
            lastError=self._last_error,
        )

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        logger.info(
            "provider_state_changed",
            previous=previous.value,
            state=state.value,
            error=self._last_error,
        )
        if self._on_state_change is not None:
            self._on_state_change(state, self._last_error)

    def _log_retry(self, attempt: int, delay: float, error: Exception) -> None:
        logger.warning(
            "provider_connect_retry",
            mode=self.backend.name,
            attempt=attempt,
            delay_seconds=round(delay, 3),
            error=str(error),
        )

    async def _connect(self) -> bool:
        self._set_state(ConnectionState.connecting)
        try:
            await retry_with_backoff(
                self.backend.connect, self.retry_policy, on_retry=self._log_retry
            )
        except ToolGatewayError as e:
            self._last_error = e.message
        except Exception as e:
            logger.error("provider_connect_crashed", mode=self.backend.name, exc_info=e)
            self._last_error = str(e) or e.__class__.__name__
        else:
            self._last_error = None
            self._set_state(ConnectionState.connected)
            logger.info("provider_connected", mode=self.backend.name)
            return True
        finally:
            # close() may already have handed the slot to a newer attempt.
            if self._pending is asyncio.current_task():
                self._pending = None

        logger.error("provider_connect_failed", mode=self.backend.name, error=self._last_error)
        self._set_state(ConnectionState.failed)
        return False

    async def initialize(self) -> bool:
        """Establish the provider link if it is not already up.

        A no-op returning True while connected. Concurrent callers share one
        in-flight attempt; cancelling a waiter does not cancel that attempt.

        Returns:
            True when connected, False when the attempt failed (see
            ``last_error``).
        """
        if self.is_connected:
            return True
        if self._pending is None:
            self._pending = asyncio.create_task(self._connect())
        return await asyncio.shield(self._pending)

    async def ensure_connected(self) -> None:
        """Connect on demand; the single entry point used by the gateway.

        Raises:
            NotConnectedError: If the connection attempt failed.
        """
        if not await self.initialize():
            raise NotConnectedError(self._last_error)

    def _require_connected(self) -> None:
        if not self.is_connected:
            raise NotConnectedError(self._last_error)

    async def list_tools(self) -> list[ToolDescriptor]:
        """Return the provider's current tool list. Never cached.

        Raises:
            NotConnectedError: If the link is not established.
            ProviderError: If the provider fails to list its tools.
        """
        self._require_connected()
        try:
            return await self.backend.list_tools()
        except ToolGatewayError:
            raise
        except Exception as e:
            logger.error("provider_list_tools_failed", exc_info=e)
            raise ProviderError(str(e) or e.__class__.__name__)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Invoke a tool on the provider and return its raw payload.

        Raises:
            NotConnectedError: If the link is not established.
            InvalidRequestError: If ``name`` is empty.
            ProviderError: If the provider fails to run the tool.
        """
        self._require_connected()
        if not name:
            raise InvalidRequestError("Tool name is required")
        try:
            return await self.backend.call_tool(name, arguments or {})
        except ToolGatewayError:
            raise
        except Exception as e:
            logger.error("provider_call_tool_failed", tool=name, exc_info=e)
            raise ProviderError(str(e) or e.__class__.__name__)

    async def close(self) -> None:
        """Release the provider link. Safe to call repeatedly."""
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pending

        if self._state is ConnectionState.uninitialized:
            return
        try:
            await self.backend.close()
        finally:
            self._last_error = None
            self._set_state(ConnectionState.uninitialized)
            logger.info("provider_closed", mode=self.backend.name)
