"""Tests for the tool provider connection state machine."""

import asyncio

import pytest

from src.exceptions import (
    InvalidRequestError,
    NotConnectedError,
    ProviderError,
    ProviderUnavailableError,
)
from src.provider import ConnectionState, RetryPolicy, ToolProviderConnection
from tests.fakes import FakeBackend


NO_RETRY = RetryPolicy(max_attempts=1, base_delay=0, jitter=False)
FAST_RETRY = RetryPolicy(max_attempts=3, base_delay=0, jitter=False)


def _unavailable() -> ProviderUnavailableError:
    return ProviderUnavailableError("http://provider:8080/mcp", reason="Connection refused")


class TestInitialize:
    """Tests for initialize / ensure_connected."""

    @pytest.mark.asyncio
    async def test_initialize_connects(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        assert provider.state is ConnectionState.uninitialized
        assert await provider.initialize() is True
        assert provider.state is ConnectionState.connected
        assert provider.last_error is None

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent_while_connected(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        for _ in range(5):
            assert await provider.initialize() is True

        assert backend.connect_calls == 1
        assert provider.state is ConnectionState.connected

    @pytest.mark.asyncio
    async def test_concurrent_initialize_shares_one_attempt(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        results = await asyncio.gather(*(provider.initialize() for _ in range(10)))

        assert results == [True] * 10
        assert backend.connect_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_initialize_fails_together(self):
        backend = FakeBackend(connect_failures=[_unavailable()])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        results = await asyncio.gather(*(provider.initialize() for _ in range(10)))

        assert results == [False] * 10
        assert backend.connect_calls == 1
        assert provider.state is ConnectionState.failed

    @pytest.mark.asyncio
    async def test_failure_is_retained_and_recovers_lazily(self):
        backend = FakeBackend(connect_failures=[_unavailable()])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        assert await provider.initialize() is False
        assert provider.state is ConnectionState.failed
        assert "Connection refused" in provider.last_error

        assert await provider.initialize() is True
        assert provider.state is ConnectionState.connected
        assert provider.last_error is None
        assert backend.connect_calls == 2

    @pytest.mark.asyncio
    async def test_initialize_never_raises(self):
        backend = FakeBackend(connect_failures=[RuntimeError("boom")])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        assert await provider.initialize() is False
        assert provider.last_error == "boom"

    @pytest.mark.asyncio
    async def test_ensure_connected_raises_with_reason(self):
        backend = FakeBackend(connect_failures=[_unavailable()])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        with pytest.raises(NotConnectedError) as exc_info:
            await provider.ensure_connected()

        assert exc_info.value.code == "NOT_CONNECTED"
        assert "Connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unavailable_is_retried_within_one_initialization(self):
        backend = FakeBackend(connect_failures=[_unavailable(), _unavailable()])
        provider = ToolProviderConnection(backend, retry_policy=FAST_RETRY)

        assert await provider.initialize() is True
        assert backend.connect_calls == 3

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self):
        backend = FakeBackend(connect_failures=[_unavailable() for _ in range(5)])
        provider = ToolProviderConnection(backend, retry_policy=FAST_RETRY)

        assert await provider.initialize() is False
        assert backend.connect_calls == 3

    @pytest.mark.asyncio
    async def test_provider_errors_are_not_retried(self):
        backend = FakeBackend(connect_failures=[ProviderError("unsupported protocol version")])
        provider = ToolProviderConnection(backend, retry_policy=FAST_RETRY)

        assert await provider.initialize() is False
        assert backend.connect_calls == 1
        assert provider.last_error == "unsupported protocol version"

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_attempt(self):
        backend = FakeBackend()
        backend.gate = asyncio.Event()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        first = asyncio.create_task(provider.initialize())
        second = asyncio.create_task(provider.initialize())
        await asyncio.sleep(0)
        first.cancel()
        backend.gate.set()

        assert await second is True
        assert provider.state is ConnectionState.connected
        assert backend.connect_calls == 1

    @pytest.mark.asyncio
    async def test_state_listener_sees_transitions(self):
        seen = []
        backend = FakeBackend(connect_failures=[_unavailable()])
        provider = ToolProviderConnection(
            backend,
            retry_policy=NO_RETRY,
            on_state_change=lambda state, error: seen.append((state, error)),
        )

        await provider.initialize()
        await provider.initialize()

        states = [state for state, _ in seen]
        assert states == [
            ConnectionState.connecting,
            ConnectionState.failed,
            ConnectionState.connecting,
            ConnectionState.connected,
        ]
        assert "Connection refused" in seen[1][1]
        assert seen[3][1] is None


class TestOperations:
    """Tests for list_tools / call_tool / close."""

    @pytest.mark.asyncio
    async def test_list_tools_requires_connection(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        with pytest.raises(NotConnectedError):
            await provider.list_tools()
        assert backend.list_calls == 0

    @pytest.mark.asyncio
    async def test_list_tools_is_not_cached(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        await provider.list_tools()
        tools = await provider.list_tools()

        assert [tool.name for tool in tools] == ["get_products"]
        assert backend.list_calls == 2

    @pytest.mark.asyncio
    async def test_call_tool_requires_connection(self):
        provider = ToolProviderConnection(FakeBackend(), retry_policy=NO_RETRY)

        with pytest.raises(NotConnectedError):
            await provider.call_tool("get_products", {})

    @pytest.mark.asyncio
    async def test_call_tool_rejects_empty_name(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        with pytest.raises(InvalidRequestError):
            await provider.call_tool("", {})
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_call_tool_returns_raw_payload(self):
        backend = FakeBackend(result={"content": [{"type": "text", "text": "42"}], "isError": False})
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        result = await provider.call_tool("calc", {"x": 1})

        assert result == {"content": [{"type": "text", "text": "42"}], "isError": False}
        assert backend.calls == [("calc", {"x": 1})]

    @pytest.mark.asyncio
    async def test_call_tool_defaults_arguments(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        await provider.call_tool("get_products")

        assert backend.calls == [("get_products", {})]

    @pytest.mark.asyncio
    async def test_provider_errors_pass_through(self):
        backend = FakeBackend(call_failures=[ProviderError("Product not found")])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        with pytest.raises(ProviderError) as exc_info:
            await provider.call_tool("get_product", {"id": 1})
        assert exc_info.value.message == "Product not found"

    @pytest.mark.asyncio
    async def test_unexpected_errors_become_provider_errors(self):
        backend = FakeBackend(call_failures=[KeyError("content")])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        with pytest.raises(ProviderError):
            await provider.call_tool("get_products", {})

    @pytest.mark.asyncio
    async def test_provider_error_keeps_connection(self):
        backend = FakeBackend(call_failures=[ProviderError("rejected")])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        with pytest.raises(ProviderError):
            await provider.call_tool("get_products", {})

        assert provider.state is ConnectionState.connected

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        await provider.close()
        await provider.close()

        assert provider.state is ConnectionState.uninitialized
        assert backend.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_before_connect_is_noop(self):
        backend = FakeBackend()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        await provider.close()

        assert backend.close_calls == 0
        assert provider.state is ConnectionState.uninitialized

    @pytest.mark.asyncio
    async def test_close_cancels_inflight_initialization(self):
        backend = FakeBackend()
        backend.gate = asyncio.Event()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        waiter = asyncio.create_task(provider.initialize())
        for _ in range(3):
            await asyncio.sleep(0)
        assert provider.state is ConnectionState.connecting

        await provider.close()

        assert provider.state is ConnectionState.uninitialized
        assert backend.close_calls == 1
        with pytest.raises(asyncio.CancelledError):
            await waiter

    @pytest.mark.asyncio
    async def test_initialize_during_close_keeps_single_attempt(self):
        backend = FakeBackend()
        backend.gate = asyncio.Event()
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)

        first = asyncio.create_task(provider.initialize())
        for _ in range(3):
            await asyncio.sleep(0)

        closer = asyncio.create_task(provider.close())
        second = asyncio.create_task(provider.initialize())
        for _ in range(5):
            await asyncio.sleep(0)
        third = asyncio.create_task(provider.initialize())
        for _ in range(3):
            await asyncio.sleep(0)

        assert backend.connect_calls == 2

        backend.gate.set()
        await closer
        assert await second is True
        assert await third is True
        assert backend.connect_calls == 2
        with pytest.raises(asyncio.CancelledError):
            await first

    @pytest.mark.asyncio
    async def test_describe_reports_status(self):
        backend = FakeBackend(connect_failures=[_unavailable()])
        provider = ToolProviderConnection(backend, retry_policy=NO_RETRY)
        await provider.initialize()

        status = provider.describe()

        assert status.mode == "fake"
        assert status.state is ConnectionState.failed
        assert status.connected is False
        assert "unavailable" in status.lastError
