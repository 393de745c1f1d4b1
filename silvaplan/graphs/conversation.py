"""Chat graph construction and execution."""

from datetime import datetime

from langgraph.graph import END, StateGraph

from silvaplan.config import DefaultLocation
from silvaplan.graphs.edges import route_agent_output
from silvaplan.graphs.nodes import agent_node, tools_node
from silvaplan.graphs.state import MAX_MODEL_ROUNDS, ChatState, TurnDependencies
from silvaplan.models.chat import Message
from silvaplan.utils.dates import utc_now
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)


def create_chat_graph():
    """Create the chat graph.

    agent -> (tool calls?) -> tools -> agent ... -> END

    Returns:
        Compiled LangGraph workflow
    """
    logger.info("Creating chat graph")

    workflow = StateGraph(ChatState)

    workflow.add_node("agent", agent_node)
    workflow.add_node("tools", tools_node)

    workflow.set_entry_point("agent")

    workflow.add_conditional_edges(
        "agent",
        route_agent_output,
        {
            "tools": "tools",
            "end": END,
        },
    )
    workflow.add_edge("tools", "agent")

    return workflow.compile()


def get_system_prompt(default_location: DefaultLocation, now: datetime | None = None) -> str:
    """System instructions for the planting assistant."""
    now = now or utc_now()
    return f"""You are SilvaPlan, an assistant for planning tree planting and tree maintenance.

You manage the user's calendar of planting and maintenance events and advise on weather conditions.

Tools:
- getMapContext: where the user is pointing on the map (picked location, GPS, or map view)
- createEvent, editEvent, deleteEvent, deleteEvents, getEvents: manage calendar events
- getWeather, getAlerts, analyzeRisks, suggestPlantingDate: weather, alerts and planting advice

LOCATION RULES:
- ALWAYS call getMapContext before createEvent or any other tool that stores a location.
- If the map context has a location, pass its lat and lng to createEvent.
- If the user names a place or address, pass it as address to createEvent.
- If there is no location at all, ASK the user where the event should take place. Never invent coordinates.

OTHER RULES:
- Only delete events when the user explicitly asks for it.
- Dates are in YYYY-MM-DD format.
- When a tool fails, explain the problem to the user in plain words.
- Proactively mention weather risks for upcoming events.

Current date: {now.strftime('%Y-%m-%d')}
Default location for weather lookups: {default_location.name} ({default_location.lat}, {default_location.lng})"""


class ChatGraphManager:
    """Runs one user turn through the chat graph."""

    def __init__(self, max_rounds: int = MAX_MODEL_ROUNDS):
        """Initialize the graph manager.

        Args:
            max_rounds: Maximum model invocations per user turn (at least 2)
        """
        self.graph = create_chat_graph()
        self.max_rounds = max(2, max_rounds)

    async def run_turn(self, messages: list[Message], deps: TurnDependencies) -> ChatState:
        """Run the loop until the model answers without tool calls.

        Args:
            messages: History including the new user message
            deps: Collaborators for this turn

        Returns:
            Final state of the turn
        """
        initial_state = ChatState(messages=messages, max_rounds=self.max_rounds)
        config = {
            "configurable": {"deps": deps},
            # each round is an agent step plus a tools step
            "recursion_limit": 2 * self.max_rounds + 2,
        }

        result = await self.graph.ainvoke(initial_state.model_dump(), config)
        state = ChatState.model_validate(result)
        logger.info(
            f"Turn finished after {state.rounds} rounds with {len(state.tool_results)} tool executions"
        )
        return state
