"""Tests for the chat loop: graph execution, persistence and tool dispatch."""

import json
from unittest.mock import AsyncMock, Mock

import pytest
from conftest import FakeChatClient, tool_call

from silvaplan.config import Settings
from silvaplan.errors import ConfigurationError
from silvaplan.graphs.conversation import get_system_prompt
from silvaplan.graphs.nodes import EMPTY_REPLY_FALLBACK, parse_tool_arguments
from silvaplan.models.chat import Message, ProviderReply, ToolExecution
from silvaplan.models.session import Session
from silvaplan.services.conversation import ChatReply, ConversationService


def make_service(conversation_store, event_store, weather, geocoder, settings, replies, **kwargs):
    chat_client = FakeChatClient(replies)
    service = ConversationService(
        store=conversation_store,
        event_store=event_store,
        weather=weather,
        geocoder=geocoder,
        chat_client=chat_client,
        settings=settings,
        **kwargs,
    )
    return service, chat_client


@pytest.fixture
def session() -> Session:
    return Session(session_id="session-1")


class TestParseToolArguments:
    """Tests for lenient argument decoding."""

    def test_valid_object(self):
        """Test a normal argument string."""
        assert parse_tool_arguments("getWeather", '{"days": 3}') == {"days": 3}

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", "", "null"])
    def test_malformed_arguments_become_empty(self, raw):
        """Test that anything but a JSON object becomes {}."""
        assert parse_tool_arguments("getWeather", raw) == {}


class TestConversationLoop:
    """End-to-end tests of one user turn."""

    @pytest.mark.asyncio
    async def test_plain_answer_takes_one_round(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test a turn without tool calls."""
        service, chat_client = make_service(
            conversation_store, event_store, weather, geocoder, settings, [ProviderReply(content="Hello! How can I help?")]
        )

        reply = await service.process_message(session, "Hi there")

        assert reply.message.content == "Hello! How can I help?"
        assert reply.tool_results == []
        assert len(chat_client.calls) == 1
        assert session.conversation_id == reply.conversation_id
        stored = await conversation_store.get_messages(reply.conversation_id)
        assert [m.role for m in stored] == ["user", "assistant"]
        conversation = await conversation_store.get_conversation(reply.conversation_id)
        assert conversation.title == "Hi there"

    @pytest.mark.asyncio
    async def test_no_location_scenario_asks_user(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test that without map context the model asks and nothing is created."""
        question = "Where should the oaks be planted? Pick a spot on the map or tell me an address."
        service, chat_client = make_service(
            conversation_store,
            event_store,
            weather,
            geocoder,
            settings,
            [
                ProviderReply(content="", tool_calls=[tool_call("getMapContext")]),
                ProviderReply(content=question),
            ],
        )

        reply = await service.process_message(session, "Plan planting of 20 oaks for Saturday")

        assert reply.message.content == question
        assert [r.name for r in reply.tool_results] == ["getMapContext"]
        assert reply.tool_results[0].result["hasLocation"] is False
        assert not any(r.name == "createEvent" for r in reply.tool_results)
        assert reply.events_changed is False
        assert await event_store.fetch_events() == []
        assert len(chat_client.calls) == 2

        stored = await conversation_store.get_messages(reply.conversation_id)
        assert [m.role for m in stored] == ["user", "assistant", "tool", "assistant"]
        assert stored[1].tool_calls[0]["function"]["name"] == "getMapContext"
        assert stored[2].tool_call_id == "call_getMapContext"

    @pytest.mark.asyncio
    async def test_second_call_contains_tool_results(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test the follow-up request: history, assistant message and tool messages."""
        service, chat_client = make_service(
            conversation_store,
            event_store,
            weather,
            geocoder,
            settings,
            [
                ProviderReply(content="", tool_calls=[tool_call("getMapContext", call_id="a"), tool_call("getEvents", call_id="b")]),
                ProviderReply(content="You have no events."),
            ],
        )

        await service.process_message(session, "What is planned?")

        follow_up = chat_client.calls[1]
        assert [m.role for m in follow_up] == ["user", "assistant", "tool", "tool"]
        assert [m.tool_call_id for m in follow_up[2:]] == ["a", "b"]
        assert json.loads(follow_up[3].content) == {"count": 0, "events": []}

    @pytest.mark.asyncio
    async def test_create_event_with_picked_location(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test the full planning flow with a location on the map."""
        session.map_context.set_context(picked_location={"lat": 50.1, "lng": 14.4})
        callback = Mock()
        service, _ = make_service(
            conversation_store,
            event_store,
            weather,
            geocoder,
            settings,
            [
                ProviderReply(content="", tool_calls=[tool_call("getMapContext")]),
                ProviderReply(
                    content="",
                    tool_calls=[
                        tool_call(
                            "createEvent",
                            {
                                "title": "Oak planting",
                                "date": "2026-05-02",
                                "lat": 50.1,
                                "lng": 14.4,
                                "items": [{"species": "Quercus robur", "quantity": 20}],
                            },
                        )
                    ],
                ),
                ProviderReply(content="Planned 20 oaks for May 2."),
            ],
            on_events_changed=callback,
        )

        reply = await service.process_message(session, "Plan 20 oaks on May 2 here")

        assert [r.name for r in reply.tool_results] == ["getMapContext", "createEvent"]
        assert reply.events_changed is True
        events = await event_store.fetch_events()
        assert len(events) == 1
        assert events[0].items[0].quantity == 20
        assert session.map_context.get_context().picked_location is None
        callback.assert_called_once_with()

        actions = await conversation_store.get_conversation_actions(reply.conversation_id)
        assert [a.action_type for a in actions] == ["getMapContext", "createEvent"]
        assert all(a.success for a in actions)

    @pytest.mark.asyncio
    async def test_failing_tool_does_not_stop_siblings(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test that unknown tools and malformed arguments never abort the turn."""
        service, chat_client = make_service(
            conversation_store,
            event_store,
            weather,
            geocoder,
            settings,
            [
                ProviderReply(
                    content="",
                    tool_calls=[
                        tool_call("plantForest", call_id="x"),
                        tool_call("deleteEvent", "{broken", call_id="y"),
                        tool_call("getMapContext", call_id="z"),
                    ],
                ),
                ProviderReply(content="Some of that did not work."),
            ],
        )

        reply = await service.process_message(session, "Do everything")

        assert [(r.name, r.success) for r in reply.tool_results] == [
            ("plantForest", False),
            ("deleteEvent", False),
            ("getMapContext", True),
        ]
        assert reply.tool_results[0].result == {"success": False, "error": "unknown tool"}
        assert reply.tool_results[1].arguments == {}
        assert reply.message.content == "Some of that did not work."
        assert len(chat_client.calls) == 2

    @pytest.mark.asyncio
    async def test_round_cap_drops_tool_calls(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test that a model that keeps calling tools is stopped."""
        looping = [ProviderReply(content="", tool_calls=[tool_call("getMapContext", call_id=f"c{i}")]) for i in range(10)]
        capped = Settings(openrouter_api_key="test-key", max_model_rounds=3)
        service, chat_client = make_service(conversation_store, event_store, weather, geocoder, capped, looping)

        reply = await service.process_message(session, "Loop forever")

        assert len(chat_client.calls) == 3
        assert len(reply.tool_results) == 2
        assert reply.message.tool_calls is None
        assert reply.message.content == EMPTY_REPLY_FALLBACK

        stored = await conversation_store.get_messages(reply.conversation_id)
        assert stored[-1].role == "assistant"
        assert stored[-1].tool_calls is None

    @pytest.mark.asyncio
    async def test_callback_failure_is_logged_not_raised(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test that a broken refresh callback does not fail the turn."""
        callback = AsyncMock(side_effect=RuntimeError("ui gone"))
        service, _ = make_service(
            conversation_store,
            event_store,
            weather,
            geocoder,
            settings,
            [
                ProviderReply(
                    content="",
                    tool_calls=[tool_call("createEvent", {"title": "Oaks", "date": "2026-05-02", "lat": 50.1, "lng": 14.4})],
                ),
                ProviderReply(content="Done."),
            ],
            on_events_changed=callback,
        )

        reply = await service.process_message(session, "Plan oaks at 50.1, 14.4")

        assert reply.message.content == "Done."
        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_history_is_sent_on_the_next_turn(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test that the conversation continues across turns."""
        service, chat_client = make_service(
            conversation_store,
            event_store,
            weather,
            geocoder,
            settings,
            [ProviderReply(content="First answer"), ProviderReply(content="Second answer")],
        )

        first = await service.process_message(session, "First question")
        second = await service.process_message(session, "Second question")

        assert first.conversation_id == second.conversation_id
        assert [m.content for m in chat_client.calls[1]] == ["First question", "First answer", "Second question"]


class TestMessageValidation:
    """Tests for checks that happen before the loop starts."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "x" * 4001])
    async def test_rejects_empty_and_oversized_messages(
        self, conversation_store, event_store, weather, geocoder, settings, session, text
    ):
        """Test message validation."""
        service, chat_client = make_service(conversation_store, event_store, weather, geocoder, settings, [])

        with pytest.raises(ValueError):
            await service.process_message(session, text)

        assert chat_client.calls == []
        assert await conversation_store.list_conversations() == []

    @pytest.mark.asyncio
    async def test_missing_configuration_fails_before_anything_is_stored(
        self, conversation_store, event_store, weather, geocoder, settings, session
    ):
        """Test the configuration error path."""
        chat_client = FakeChatClient(configured=False)
        service = ConversationService(
            store=conversation_store,
            event_store=event_store,
            weather=weather,
            geocoder=geocoder,
            chat_client=chat_client,
            settings=settings,
        )

        with pytest.raises(ConfigurationError):
            await service.process_message(session, "Hello")

        assert chat_client.calls == []
        assert await conversation_store.list_conversations() == []


class TestReply:
    """Tests for reply helpers."""

    def test_system_prompt_requires_map_context_first(self, settings):
        """Test the location policy in the system prompt."""
        prompt = get_system_prompt(settings.default_location)

        assert "ALWAYS call getMapContext before createEvent" in prompt
        assert "Praha" in prompt

    def test_events_changed_ignores_failed_mutations(self):
        """Test that failed writes do not trigger a calendar refresh."""
        failed = ToolExecution(tool_call_id="a", name="createEvent", arguments={}, result={"success": False}, success=False)
        read = ToolExecution(tool_call_id="b", name="getEvents", arguments={}, result={"count": 0}, success=True)

        assert ChatReply("c", Message(role="assistant", content="x"), [failed, read]).events_changed is False
