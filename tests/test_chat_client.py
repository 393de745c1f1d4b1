"""Tests for the vendor chat client: configuration, HTTP errors and truncation."""

import asyncio
from unittest.mock import Mock

import httpx
import pytest
from conftest import tool_call

from silvaplan.clients.chat import ChatClient, ChatClientConfig
from silvaplan.config import Settings
from silvaplan.errors import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    RateLimitError,
    RequestTimeoutError,
    TransportError,
)
from silvaplan.models.chat import Message
from silvaplan.utils.rate_limit import RateLimiter

OPENROUTER_REPLY = {
    "choices": [
        {
            "message": {
                "content": "",
                "tool_calls": [
                    {"id": "call_1", "type": "function", "function": {"name": "getMapContext", "arguments": "{}"}}
                ],
            }
        }
    ]
}


def make_client(handler, settings: Settings | None = None, config: ChatClientConfig | None = None) -> ChatClient:
    client = ChatClient(
        settings=settings or Settings(openrouter_api_key="sk-test", gemini_api_key="g-test"),
        config=config,
        transport=httpx.MockTransport(handler),
        rate_limiter=RateLimiter("1000/minute"),
    )
    client._tokenizer_loaded = True
    return client


class TestConfiguration:
    """Tests for the configuration check."""

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self):
        """Test that no request is sent without an API key."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=OPENROUTER_REPLY)

        client = make_client(handler, settings=Settings(provider="gemini", openrouter_api_key="sk-test"))

        with pytest.raises(ConfigurationError):
            await client.complete([Message(role="user", content="Hi")], [], "system")

        assert requests == []

    def test_active_key_follows_provider(self):
        """Test that the key of the configured provider is used."""
        settings = Settings(provider="gemini", openrouter_api_key="sk-test", gemini_api_key="g-test")

        assert ChatClient(settings=settings).ensure_configured() == "g-test"

    @pytest.mark.asyncio
    async def test_unknown_provider_fails_before_network(self):
        """Test that a provider outside the supported set is refused."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=OPENROUTER_REPLY)

        client = make_client(handler, settings=Settings(provider="anthropic", gemini_api_key="g-test"))

        with pytest.raises(ConfigurationError, match="Unknown provider: anthropic"):
            await client.complete([Message(role="user", content="Hi")], [], "system")

        assert requests == []


class TestComplete:
    """Tests for a successful vendor call."""

    @pytest.mark.asyncio
    async def test_openrouter_request_and_reply(self):
        """Test the chat-completions round trip through the client."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=OPENROUTER_REPLY)

        client = make_client(handler)

        reply = await client.complete([Message(role="user", content="Plan oaks")], [], "You are SilvaPlan.")

        assert [tc.function.name for tc in reply.tool_calls] == ["getMapContext"]
        request = requests[0]
        assert request.url == "https://openrouter.ai/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_gemini_provider_uses_generate_content(self):
        """Test that the adapter is selected by configuration."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]})

        client = make_client(handler, settings=Settings(provider="gemini", gemini_api_key="g-test"))

        reply = await client.complete([Message(role="user", content="Hi")], [], "system")

        assert reply.content == "Hello"
        assert requests[0].url.path.endswith(":generateContent")
        assert requests[0].headers["x-goog-api-key"] == "g-test"


class TestErrorMapping:
    """Tests for vendor error mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error_class"),
        [(401, AuthenticationError), (429, RateLimitError), (400, BadRequestError), (500, TransportError)],
    )
    async def test_status_codes(self, status, error_class):
        """Test that each status maps to its error type."""
        client = make_client(lambda request: httpx.Response(status, text="vendor says no"))

        with pytest.raises(error_class) as exc_info:
            await client.complete([Message(role="user", content="Hi")], [], "system")

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_generic_error_keeps_body_preview(self):
        """Test that the body is cut to 200 characters."""
        client = make_client(lambda request: httpx.Response(503, text="x" * 500))

        with pytest.raises(TransportError) as exc_info:
            await client.complete([Message(role="user", content="Hi")], [], "system")

        message = str(exc_info.value)
        assert "503" in message
        assert "x" * 200 in message
        assert "x" * 201 not in message

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test the user-facing timeout error."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(RequestTimeoutError, match="took too long"):
            await client.complete([Message(role="user", content="Hi")], [], "system")

    @pytest.mark.asyncio
    async def test_slow_stream_hits_deadline(self):
        """Test that a body trickling in faster than the read timeout still times out."""

        async def trickle():
            for _ in range(200):
                yield b" "
                await asyncio.sleep(0.05)

        client = make_client(
            lambda request: httpx.Response(200, content=trickle()),
            settings=Settings(openrouter_api_key="sk-test", request_timeout=0.2),
        )

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(RequestTimeoutError, match="took too long"):
            await client.complete([Message(role="user", content="Hi")], [], "system")

        assert loop.time() - started < 2

    @pytest.mark.asyncio
    async def test_network_failure(self):
        """Test that connection errors become transport errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError):
            await client.complete([Message(role="user", content="Hi")], [], "system")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        """Test that an invalid success body is a transport error."""
        client = make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(TransportError, match="invalid response"):
            await client.complete([Message(role="user", content="Hi")], [], "system")


class TestConversationTruncation:
    """Tests for history truncation."""

    @pytest.fixture
    def client(self):
        return ChatClient(
            settings=Settings(openrouter_api_key="sk-test", max_history_messages=4),
            config=ChatClientConfig(max_conversation_tokens=1000, token_headroom=0),
        )

    def test_short_history_is_unchanged(self, client):
        """Test that a fitting history is returned as is."""
        messages = [Message(role="user", content="Hi"), Message(role="assistant", content="Hello")]

        assert client.truncate_conversation(messages, "system") == messages

    def test_message_limit_never_starts_with_tool_message(self, client):
        """Test that the cut moves forward to a user message."""
        messages = [
            Message(role="user", content="Plan oaks"),
            Message(role="assistant", content="", tool_calls=[tool_call("getMapContext", call_id="c1")]),
            Message(role="tool", content="{}", tool_call_id="c1"),
            Message(role="assistant", content="Where?"),
            Message(role="user", content="Stromovka"),
            Message(role="assistant", content="Planned."),
        ]

        truncated = client.truncate_conversation(messages, "system")

        assert truncated[0].role == "user"
        assert [m.content for m in truncated] == ["Stromovka", "Planned."]

    def test_token_budget(self, client):
        """Test the token budget with a stubbed tokenizer."""
        client._tokenizer_loaded = True
        client.tokenizer = Mock()
        client.tokenizer.encode.side_effect = lambda text: [0] * (len(text) // 2)

        messages = [
            Message(role="user", content="a" * 900),
            Message(role="assistant", content="b" * 900),
            Message(role="user", content="c" * 600),
            Message(role="assistant", content="d" * 600),
        ]

        truncated = client.truncate_conversation(messages, "")

        assert [m.content[0] for m in truncated] == ["c", "d"]

    def test_keeps_last_user_turn_when_nothing_fits(self, client):
        """Test that the message being answered is always sent."""
        client._tokenizer_loaded = True
        client.tokenizer = None

        messages = [
            Message(role="assistant", content="Earlier answer"),
            Message(role="user", content="z" * 8000),
        ]

        truncated = client.truncate_conversation(messages, "")

        assert [m.role for m in truncated] == ["user"]

    def test_fallback_estimate_without_tokenizer(self, client):
        """Test the length-based estimate."""
        client._tokenizer_loaded = True
        client.tokenizer = None

        assert client.estimate_message_tokens("x" * 400) == 100
