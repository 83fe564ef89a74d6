"""
Base classes for the PipeRun tool system.

Defines the ResourceTool description used for the thin CRUD tools and the
ToolRegistry the MCP server registers them from.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from piperun_gateway.schemas.base import ToolInput


class ToolKind(str, Enum):
    """What a resource tool does upstream."""

    LIST = "list"
    GET = "get"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REQUEST = "request"


@dataclass
class ResourceTool:
    """
    Definition of a single-endpoint tool.

    The endpoint is relative to /v1; id_field names the argument holding the
    record id for get/update/delete tools.
    """

    name: str
    description: str
    kind: ToolKind
    endpoint: str
    input_model: type[ToolInput]
    id_field: str | None = None
    date_fields: tuple[str, ...] = ()
    trim_fields: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()

    @property
    def read_only(self) -> bool:
        return self.kind in (ToolKind.LIST, ToolKind.GET)

    @property
    def destructive(self) -> bool:
        return self.kind in (ToolKind.DELETE, ToolKind.REQUEST)

    def annotations(self) -> dict[str, Any]:
        """MCP tool annotations."""
        return {
            "title": self.description.split(".")[0],
            "readOnlyHint": self.read_only,
            "destructiveHint": self.destructive,
            "idempotentHint": self.kind in (ToolKind.LIST, ToolKind.GET, ToolKind.UPDATE, ToolKind.DELETE),
            "openWorldHint": True,
        }


class ToolRegistry:
    """
    Registry for managing available tools.

    Aliases share the definition of their primary tool.
    """

    def __init__(self):
        self._tools: dict[str, ResourceTool] = {}

    def register(self, tool: ResourceTool) -> None:
        """Register a tool under its name and every alias."""
        self._tools[tool.name] = tool
        for alias in tool.aliases:
            self._tools[alias] = tool

    def get(self, name: str) -> ResourceTool | None:
        """Get a tool by name or alias."""
        return self._tools.get(name)

    def list_tools(self, kind: ToolKind | None = None) -> list[ResourceTool]:
        """List distinct tools, optionally filtered by kind."""
        tools: list[ResourceTool] = []
        for tool in self._tools.values():
            if tool not in tools:
                tools.append(tool)
        if kind:
            tools = [t for t in tools if t.kind == kind]
        return tools

    def list_names(self) -> list[str]:
        """List all tool names, aliases included."""
        return list(self._tools.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
