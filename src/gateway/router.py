"""FastAPI router for tool enumeration and invocation."""

import json
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.dependencies import get_tool_provider
from src.exceptions import InvalidRequestError, ToolGatewayError
from src.provider import ToolProviderConnection

from .schemas import ErrorEnvelope, ListToolsResponse, ToolInvocationRequest, ToolInvocationResult
from .service import invoke_tool, list_tools


logger = structlog.get_logger("gateway")

router = APIRouter(prefix="/api", tags=["gateway"])


def create_error_response(exc: Exception, tool: str | None = None) -> JSONResponse:
    """Render any failure as the uniform ``{success: false, error}`` envelope."""
    if isinstance(exc, ToolGatewayError):
        status_code, message = exc.status_code, exc.message
    else:
        logger.error("gateway_unexpected_error", tool_name=tool, exc_info=exc)
        status_code, message = 500, str(exc) or exc.__class__.__name__
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(error=message, tool=tool).model_dump(exclude_none=True),
    )


async def _read_body(request: Request) -> dict[str, Any]:
    """Parse the execute body into a JSON object."""
    raw = await request.body()
    try:
        body = json.loads(raw) if raw.strip() else {}
    except ValueError:
        raise InvalidRequestError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body


def _parse_invocation(body: dict[str, Any]) -> ToolInvocationRequest:
    try:
        return ToolInvocationRequest(**body)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidRequestError(f"Invalid request body: {errors}")


@router.get("/tools", response_model=ListToolsResponse)
async def list_tools_endpoint(
    provider: Annotated[ToolProviderConnection, Depends(get_tool_provider)],
):
    """List the tools the provider currently offers."""
    try:
        tools = await list_tools(provider)
    except Exception as exc:
        logger.warning("list_tools_failed", error=str(exc))
        return create_error_response(exc)
    return ListToolsResponse(tools=tools)


@router.post("/execute", response_model=ToolInvocationResult)
async def execute_tool_endpoint(
    http_request: Request,
    provider: Annotated[ToolProviderConnection, Depends(get_tool_provider)],
):
    """Invoke a named tool with arguments and return a normalized envelope.

    Body: ``{"tool": "<name>", "arguments": {...}}``.
    """
    tool: Any = None
    try:
        body = await _read_body(http_request)
        tool = body.get("tool")
        invocation = _parse_invocation(body)
        return await invoke_tool(provider, invocation)
    except Exception as exc:
        logger.warning("execute_tool_failed", tool_name=tool, error=str(exc))
        return create_error_response(exc, tool=tool if isinstance(tool, str) and tool else None)
