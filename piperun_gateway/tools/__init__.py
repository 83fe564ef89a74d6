"""
PipeRun tool system.

Provides the CRUD passthrough definitions, their registry and the executor
that runs every tool call against PipeRun.
"""

from piperun_gateway.tools.base import ResourceTool, ToolKind, ToolRegistry
from piperun_gateway.tools.definitions import (
    RESOURCE_TOOLS,
    get_default_tools,
    run_resource_tool,
)
from piperun_gateway.tools.executor import ToolExecutor, to_json_text

__all__ = [
    "ResourceTool",
    "ToolKind",
    "ToolRegistry",
    "RESOURCE_TOOLS",
    "get_default_tools",
    "run_resource_tool",
    "ToolExecutor",
    "to_json_text",
]
