"""Tool handler invocation."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ..exceptions import ToolHandlerError
from ..models.program import ExternalHttpHandler, ToolHandler, UnrecognizedHandler

logger = structlog.get_logger(__name__)

DEFAULT_HANDLER_TIMEOUT_SECONDS = 30.0


async def call_tool_handler(
    handler: ToolHandler | None,
    inputs: dict[str, Any],
    timeout_seconds: float = DEFAULT_HANDLER_TIMEOUT_SECONDS,
) -> Any:
    """
    Invoke a tool handler with evaluated inputs.

    A tool without a handler echoes its inputs back.

    Args:
        handler: Parsed handler, or None for passthrough
        inputs: Evaluated tool inputs
        timeout_seconds: HTTP timeout for external handlers

    Returns:
        Handler result

    Raises:
        ToolHandlerError: If the handler format is unrecognized or the call fails
    """
    match handler:
        case None:
            return {"success": True, "data": inputs}
        case ExternalHttpHandler(url=url):
            return await _call_external(url, inputs, timeout_seconds)
        case UnrecognizedHandler(descriptor=descriptor):
            raise ToolHandlerError(f"Unknown tool handler format: {descriptor}")
        case _:
            raise ToolHandlerError(f"Unknown tool handler format: {handler!r}")


async def _call_external(url: str, inputs: dict[str, Any], timeout_seconds: float) -> Any:
    logger.info("external_tool_handler_call", url=url)

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.post(url, json=inputs)
            if response.is_error:
                raise ToolHandlerError(
                    f"Tool handler failed: Tool handler returned {response.status_code}"
                )
            return response.json()
    except httpx.HTTPError as e:
        raise ToolHandlerError(f"Tool handler failed: {e}") from e
    except ValueError as e:
        # Non-JSON response body
        raise ToolHandlerError(f"Tool handler failed: {e}") from e
