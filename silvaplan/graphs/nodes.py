"""Node implementations for the chat graph."""

import inspect
import json
from typing import Any

from langchain_core.runnables import RunnableConfig

from silvaplan.graphs.state import ChatState, get_dependencies
from silvaplan.models.chat import Message, ToolExecution
from silvaplan.tools.base import MUTATING_TOOLS, is_failed_result
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

EMPTY_REPLY_FALLBACK = "I'm sorry, I couldn't complete that request. Could you rephrase it or try again?"


def parse_tool_arguments(name: str, arguments: str) -> dict[str, Any]:
    """Decode a tool call's argument string; anything but a JSON object becomes {}."""
    try:
        parsed = json.loads(arguments or "{}")
    except ValueError:
        logger.warning(f"Malformed JSON arguments for {name}: {arguments!r}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Non-object arguments for {name}: {arguments!r}")
        return {}
    return parsed


async def agent_node(state: ChatState, config: RunnableConfig) -> dict[str, Any]:
    """Invoke the model once and persist its reply.

    Tool calls requested in the last allowed round are dropped, so no
    assistant message is ever stored with calls that go unanswered.
    """
    deps = get_dependencies(config)
    rounds = state.rounds + 1
    logger.info(f"Agent round {rounds}/{state.max_rounds} for conversation {deps.conversation_id}")

    reply = await deps.chat_client.complete(state.messages, deps.registry.function_specs(), deps.system_prompt)

    tool_calls = reply.tool_calls
    if tool_calls and rounds >= state.max_rounds:
        logger.warning(f"Round limit reached, dropping {len(tool_calls)} tool calls")
        tool_calls = []

    content = reply.content
    if not tool_calls and not content.strip():
        content = EMPTY_REPLY_FALLBACK

    message = Message(role="assistant", content=content, tool_calls=tool_calls or None)
    await deps.store.save_message(
        deps.conversation_id,
        "assistant",
        content,
        tool_calls=[tc.model_dump() for tc in tool_calls] or None,
    )

    return {
        "messages": [message],
        "pending_tool_calls": tool_calls,
        "rounds": rounds,
        "next_step": "tools" if tool_calls else "end",
    }


async def tools_node(state: ChatState, config: RunnableConfig) -> dict[str, Any]:
    """Execute pending tool calls sequentially, in the order the model emitted them.

    Each call yields exactly one tool message keyed by its tool_call_id, even
    when the tool fails; a failure never stops the remaining calls.
    """
    deps = get_dependencies(config)
    messages: list[Message] = []
    executions: list[ToolExecution] = []
    events_changed = False

    for tool_call in state.pending_tool_calls:
        name = tool_call.function.name
        arguments = parse_tool_arguments(name, tool_call.function.arguments)

        result = await deps.registry.dispatch(name, arguments, deps.tool_context)
        failed = is_failed_result(name, result)
        if failed:
            logger.info(f"Tool {name} reported failure: {result.get('error') or result.get('message')}")
        elif name in MUTATING_TOOLS:
            events_changed = True

        content = json.dumps(result, ensure_ascii=False, default=str)
        await deps.store.save_message(deps.conversation_id, "tool", content, tool_call_id=tool_call.id)
        await deps.store.log_action(name, arguments, result, success=not failed, conversation_id=deps.conversation_id)

        messages.append(Message(role="tool", content=content, tool_call_id=tool_call.id, name=name))
        executions.append(
            ToolExecution(tool_call_id=tool_call.id, name=name, arguments=arguments, result=result, success=not failed)
        )

    if events_changed and deps.on_events_changed is not None:
        try:
            outcome = deps.on_events_changed()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Events-changed callback failed: {e}", exc_info=True)

    return {
        "messages": messages,
        "tool_results": executions,
        "pending_tool_calls": [],
        "next_step": None,
    }
