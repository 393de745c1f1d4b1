"""Edge logic and routing for the chat graph."""

from typing import Literal

from silvaplan.graphs.state import ChatState
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)


def route_agent_output(state: ChatState) -> Literal["tools", "end"]:
    """Route from the agent node: execute pending tool calls or finish the turn."""
    if state.next_step == "tools" and state.pending_tool_calls:
        logger.debug(f"Routing {len(state.pending_tool_calls)} tool calls to the tools node")
        return "tools"
    return "end"
