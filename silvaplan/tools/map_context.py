"""Map context tool."""

from typing import Any

from silvaplan.tools.base import EmptyInput, ToolContext, ToolDefinition, ToolName

SOURCE_DESCRIPTIONS = {
    "picked": "The user picked a location on the map",
    "gps": "The user's GPS position",
    "view": "Center of the current map view",
}


def create_get_map_context_tool() -> ToolDefinition:
    async def get_map_context(params: EmptyInput, context: ToolContext) -> dict[str, Any]:
        best = context.map_context.get_best_location()
        if best is None:
            return {
                "success": True,
                "hasLocation": False,
                "message": (
                    "The user has not selected a location. Ask where the event should take place "
                    "before creating anything."
                ),
            }

        return {
            "success": True,
            "hasLocation": True,
            "location": {"lat": best.lat, "lng": best.lng, "source": best.source},
            "sourceDescription": SOURCE_DESCRIPTIONS[best.source],
            "message": f"Available location: {best.lat:.5f}, {best.lng:.5f} ({best.source})",
        }

    return ToolDefinition(
        name=ToolName.GET_MAP_CONTEXT,
        description=(
            "Get the current map context: the picked location, GPS position or map view center. "
            "ALWAYS call before createEvent."
        ),
        input_schema_class=EmptyInput,
        handler=get_map_context,
    )
