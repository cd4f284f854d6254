"""Tools API - what the tool server advertises."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from diffpilot.api.dependencies import get_tool_server, limiter, rate_limit
from diffpilot.domain.errors import ToolCallError, ToolTimeoutError
from diffpilot.domain.ports.tool_server import ToolServerPort

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("")
@limiter.limit(rate_limit)
async def list_tools(
    request: Request,
    tool_server: ToolServerPort = Depends(get_tool_server),
) -> dict:
    """Tool names and descriptions from ``tools/list``."""
    try:
        tools = await tool_server.list_tools()
    except ToolTimeoutError:
        raise HTTPException(status_code=504, detail="Tool server did not answer in time")
    except ToolCallError as e:
        logger.error("Listing tools failed: %s", e)
        raise HTTPException(status_code=502, detail="Tool server unavailable")
    return {"tools": tools}
