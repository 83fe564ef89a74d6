"""
Tool executor for PipeRun tool calls.

Handles credential resolution, client lifetime and error conversion for one
tool invocation, and formats the result as the JSON text returned to the MCP
client.
"""

import json
import logging
from typing import Any, Awaitable, Callable

import httpx
from mcp.types import INTERNAL_ERROR

from piperun_gateway.schemas.base import ToolInput
from piperun_gateway.services.piperun.base import (
    ClientConfig,
    CrmClient,
    resolve_api_token,
    to_mcp_error,
)
from piperun_gateway.services.piperun.client import PipeRunClient
from piperun_gateway.tools.base import ResourceTool
from piperun_gateway.tools.definitions import run_resource_tool

logger = logging.getLogger(__name__)

Operation = Callable[[CrmClient, Any], Awaitable[Any]]


def to_json_text(result: Any) -> str:
    """Serialize a tool result; objects with to_dict() are expanded first."""
    if hasattr(result, "to_dict"):
        result = result.to_dict()
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


class ToolExecutor:
    """
    Executes PipeRun tool calls.

    One executor lives for the whole process; every call opens its own
    PipeRunClient bound to the credential resolved for that call.
    """

    def __init__(
        self,
        config: ClientConfig,
        default_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._default_token = default_token
        self._transport = transport

    def open_client(self, token: str) -> PipeRunClient:
        return PipeRunClient(self.config, token, transport=self._transport)

    async def run(self, tool_name: str, params: ToolInput, operation: Operation) -> str:
        """
        Execute one tool call.

        Args:
            tool_name: Name used in log lines
            params: Validated tool input (carries the optional per-call token)
            operation: Coroutine receiving the client and the params

        Returns:
            The result as indented JSON text

        Raises:
            McpError: For every failure, with a protocol error code
        """
        logger.info(f"Executing tool: {tool_name}")
        logger.debug(f"Tool argument keys: {sorted(params.to_arguments().keys())}")

        try:
            token = resolve_api_token(params.api_token, self._default_token)
            async with self.open_client(token) as client:
                result = await operation(client, params)
        except Exception as e:
            error = to_mcp_error(e)
            if error is e:
                raise
            if error.error.code == INTERNAL_ERROR:
                logger.exception(f"Tool {tool_name} failed")
            else:
                logger.warning(f"Tool {tool_name} failed: {error.error.message}")
            raise error from e

        logger.info(f"Tool {tool_name} completed")
        return to_json_text(result)

    async def run_resource(self, tool: ResourceTool, params: ToolInput) -> str:
        """Execute a CRUD passthrough tool."""
        return await self.run(
            tool.name,
            params,
            lambda client, p: run_resource_tool(client, tool, p.to_arguments()),
        )
