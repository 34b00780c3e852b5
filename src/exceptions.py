"""Exception hierarchy for the MCP SSE Gateway."""


class ToolGatewayError(Exception):
    """Base exception for all gateway errors.

    Attributes:
        message: Human-readable error message, passed to callers verbatim.
        code: Stable machine-readable error code.
        status_code: HTTP status used when the error reaches a caller.
    """

    status_code: int = 500

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


class InvalidRequestError(ToolGatewayError):
    """Raised when caller input fails validation. Never retried."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_REQUEST")


class NotConnectedError(ToolGatewayError):
    """Raised when the tool provider link is not established.

    Attributes:
        reason: Retained failure reason of the last connection attempt, if any.
    """

    def __init__(self, reason: str | None = None):
        message = "MCP client not connected"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message=message, code="NOT_CONNECTED")
        self.reason = reason


class ProviderError(ToolGatewayError):
    """Raised when the tool provider reports a failure.

    The underlying message is kept as-is so callers see exactly what the
    provider said.
    """

    def __init__(self, message: str, code: str = "PROVIDER_ERROR"):
        super().__init__(message=message, code=code)


class ProviderUnavailableError(ProviderError):
    """Raised when the tool provider cannot be reached (connect, timeout).

    Attributes:
        provider_url: Address of the unreachable provider.
        reason: Description of the transport failure.
    """

    def __init__(self, provider_url: str, reason: str = "Connection failed"):
        super().__init__(
            message=f"Tool provider at '{provider_url}' is unavailable: {reason}",
            code="PROVIDER_UNAVAILABLE",
        )
        self.provider_url = provider_url
        self.reason = reason


class TransportError(ToolGatewayError):
    """Raised when an event cannot be delivered to a stream session.

    There is no response channel left for these, so they are only logged.
    """

    def __init__(self, session_id: str, reason: str):
        super().__init__(
            message=f"Stream session '{session_id}' cannot accept events: {reason}",
            code="TRANSPORT_ERROR",
        )
        self.session_id = session_id
        self.reason = reason
