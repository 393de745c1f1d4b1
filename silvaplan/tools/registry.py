"""Tools registry: the fixed tool catalog and dispatch."""

from typing import Any, assert_never

from pydantic import ValidationError as PydanticValidationError

from silvaplan.tools.base import ToolContext, ToolDefinition, ToolName
from silvaplan.tools.events import (
    create_create_event_tool,
    create_delete_event_tool,
    create_delete_events_tool,
    create_edit_event_tool,
    create_get_events_tool,
)
from silvaplan.tools.map_context import create_get_map_context_tool
from silvaplan.tools.weather import (
    create_analyze_risks_tool,
    create_get_alerts_tool,
    create_get_weather_tool,
    create_suggest_planting_date_tool,
)
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)


def create_tool(name: ToolName) -> ToolDefinition:
    """Build the definition for a catalog entry."""
    match name:
        case ToolName.CREATE_EVENT:
            return create_create_event_tool()
        case ToolName.EDIT_EVENT:
            return create_edit_event_tool()
        case ToolName.DELETE_EVENT:
            return create_delete_event_tool()
        case ToolName.DELETE_EVENTS:
            return create_delete_events_tool()
        case ToolName.GET_EVENTS:
            return create_get_events_tool()
        case ToolName.GET_WEATHER:
            return create_get_weather_tool()
        case ToolName.GET_ALERTS:
            return create_get_alerts_tool()
        case ToolName.ANALYZE_RISKS:
            return create_analyze_risks_tool()
        case ToolName.SUGGEST_PLANTING_DATE:
            return create_suggest_planting_date_tool()
        case ToolName.GET_MAP_CONTEXT:
            return create_get_map_context_tool()
        case _:
            assert_never(name)


def _validation_message(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in e['loc']) or 'arguments'}: {e['msg']}" for e in error.errors()
    )


class ToolsRegistry:
    """Registry for the assistant's tools."""

    def __init__(self) -> None:
        self._tools: dict[ToolName, ToolDefinition] = {name: create_tool(name) for name in ToolName}

    def function_specs(self) -> list[dict[str, Any]]:
        """Tool specs in chat-completions shape, in catalog order."""
        return [tool.function_spec() for tool in self._tools.values()]

    async def dispatch(self, name: str, arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        """Validate arguments and run a tool.

        Never raises: unknown tools, invalid arguments and handler errors all
        come back as `{"success": False, ...}` results for the model to narrate.
        """
        try:
            tool_name = ToolName(name)
        except ValueError:
            logger.warning(f"Model requested unknown tool {name!r}")
            return {"success": False, "error": "unknown tool"}

        tool = self._tools[tool_name]
        try:
            params = tool.parse_input(arguments)
        except PydanticValidationError as e:
            message = _validation_message(e)
            logger.warning(f"Invalid arguments for {name}: {message}")
            return {"success": False, "error": f"invalid arguments: {message}"}

        logger.info(f"Executing tool {name}")
        try:
            return await tool.handler(params, context)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return {"success": False, "error": str(e), "message": f"{name} failed: {e}"}


_tools_registry: ToolsRegistry | None = None


def get_tools_registry() -> ToolsRegistry:
    """Get or create tools registry instance."""
    global _tools_registry
    if _tools_registry is None:
        _tools_registry = ToolsRegistry()
    return _tools_registry
