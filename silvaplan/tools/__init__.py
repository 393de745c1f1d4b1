"""Tools for the conversational planting assistant."""

from silvaplan.tools.base import MUTATING_TOOLS, ToolContext, ToolName, is_failed_result
from silvaplan.tools.registry import ToolsRegistry, get_tools_registry

__all__ = ["MUTATING_TOOLS", "ToolContext", "ToolName", "ToolsRegistry", "get_tools_registry", "is_failed_result"]
