"""Vendor chat API client with rate limiting, history truncation and error mapping."""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import tiktoken

from silvaplan.config import PROVIDERS, Settings, get_settings
from silvaplan.errors import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    RateLimitError,
    RequestTimeoutError,
    TransportError,
)
from silvaplan.models.chat import Message, ProviderReply
from silvaplan.providers import get_provider_adapter
from silvaplan.utils.logging import get_logger
from silvaplan.utils.rate_limit import RateLimiter

logger = get_logger(__name__)

ERROR_BODY_PREVIEW_CHARS = 200


@dataclass
class ChatClientConfig:
    """Configuration for the chat client."""

    requests_per_minute: int = 50
    tokens_per_minute: int = 100_000

    # Token budget for the history sent with each request
    max_conversation_tokens: int = 100_000
    token_headroom: int = 4000


class ChatClient:
    """Sends one turn of the conversation to the configured vendor.

    The provider adapter is resolved from settings on every call, so a
    provider switch takes effect at the start of the next turn.
    """

    tokenizer: tiktoken.Encoding | None = None

    def __init__(
        self,
        settings: Settings | None = None,
        config: ChatClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        """Initialize chat client.

        Args:
            settings: Provider, API keys and model ids (defaults to environment settings)
            config: Rate and token limits
            transport: Optional httpx transport (used by tests)
            rate_limiter: Optional shared limiter
        """
        self.settings = settings or get_settings()
        self.config = config or ChatClientConfig()
        self.transport = transport
        self.rate_limiter = rate_limiter or RateLimiter(
            f"{self.config.requests_per_minute}/minute", f"{self.config.tokens_per_minute}/minute"
        )
        self._tokenizer_loaded = False

    def ensure_configured(self) -> str:
        """Return the active API key.

        Raises:
            ConfigurationError: If the provider is unknown or has no API key
        """
        if self.settings.provider not in PROVIDERS:
            raise ConfigurationError(f"Unknown provider: {self.settings.provider}")
        api_key = self.settings.active_api_key
        if not api_key:
            raise ConfigurationError(f"No API key configured for provider {self.settings.provider}")
        return api_key

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
        system_prompt: str,
    ) -> ProviderReply:
        """Send the history and tool specs, return the normalized reply.

        Raises:
            ConfigurationError: If no API key is configured (before any network call)
            TransportError: On timeout, network failure or a non-2xx response
        """
        api_key = self.ensure_configured()
        adapter = get_provider_adapter(self.settings.provider)
        model_id = self.settings.model_id

        truncated = self.truncate_conversation(messages, system_prompt, tools)
        body = adapter.format_request(truncated, tools, system_prompt, model_id)

        estimated_tokens = self._estimate_tokens(truncated, system_prompt)
        await self.rate_limiter.acquire(adapter.name, estimated_tokens)

        logger.debug(
            f"Calling {adapter.name} model {model_id} with {len(truncated)} messages and {len(tools)} tools"
        )
        data = await self._post(adapter.endpoint(model_id), adapter.headers(api_key), body)

        reply = adapter.parse_response(data)
        logger.debug(f"Reply received: {len(reply.content)} chars, {len(reply.tool_calls)} tool calls")
        return reply

    async def _post(self, url: str, headers: dict[str, str], body: dict[str, Any]) -> dict[str, Any]:
        timeout = self.settings.request_timeout
        try:
            # httpx limits each phase separately; the deadline covers the whole exchange
            async with asyncio.timeout(timeout):
                async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                    response = await client.post(url, headers=headers, json=body)
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Chat request timed out after {self.settings.request_timeout}s")
            raise RequestTimeoutError("The request took too long. Please try again.") from e
        except httpx.HTTPError as e:
            logger.error(f"Chat request failed: {e}")
            raise TransportError(f"Could not reach the AI provider: {e}") from e

        if response.is_success:
            try:
                data = response.json()
            except ValueError as e:
                raise TransportError("The AI provider returned an invalid response.", response.status_code) from e
            if not isinstance(data, dict):
                raise TransportError("The AI provider returned an invalid response.", response.status_code)
            return data

        status = response.status_code
        preview = response.text[:ERROR_BODY_PREVIEW_CHARS]
        logger.error(f"Chat request failed with HTTP {status}: {preview}")
        match status:
            case 401:
                raise AuthenticationError("Invalid API key. Check the key in settings.", status)
            case 429:
                raise RateLimitError("The AI provider is rate limiting requests. Please wait a moment.", status)
            case 400:
                raise BadRequestError(f"The AI provider rejected the request: {preview}", status)
            case _:
                raise TransportError(f"AI provider error {status}: {preview}", status)

    def _get_tokenizer(self) -> tiktoken.Encoding | None:
        if not self._tokenizer_loaded:
            self._tokenizer_loaded = True
            try:
                self.tokenizer = tiktoken.get_encoding("cl100k_base")
            except Exception as e:
                # encoding files are fetched on first use; fall back to the byte estimate offline
                logger.warning(f"Tokenizer unavailable, estimating tokens from length: {e}")
                self.tokenizer = None
        return self.tokenizer

    def estimate_message_tokens(self, text: str) -> int:
        """Estimate token count for a piece of text."""
        tokenizer = self._get_tokenizer()
        if tokenizer is None:
            return len(text) // 4
        return len(tokenizer.encode(text))

    def _message_text(self, message: Message) -> str:
        text = message.content
        for tool_call in message.tool_calls or []:
            text += tool_call.function.name + tool_call.function.arguments
        for attachment in message.attachments or []:
            text += attachment.text_content or ""
        return text

    def _estimate_tokens(self, messages: list[Message], system_prompt: str) -> int:
        text = system_prompt + "".join(self._message_text(m) for m in messages)
        return self.estimate_message_tokens(text)

    def truncate_conversation(
        self, messages: list[Message], system_prompt: str, tools: list[dict[str, Any]] | None = None
    ) -> list[Message]:
        """Drop the oldest messages until the history fits the configured limits.

        The result always starts with a user message, so it never opens with a
        tool result or an assistant tool-call round whose answers were cut.

        Args:
            messages: Conversation messages, oldest first
            system_prompt: System prompt
            tools: Function specs sent with the request

        Returns:
            Truncated message list
        """
        if not messages:
            return messages

        kept = messages[-self.settings.max_history_messages :]

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom
        fixed_text = system_prompt + "".join(str(tool) for tool in tools or [])
        texts = [self._message_text(m) for m in kept]

        # BPE never yields more tokens than bytes, so a fitting byte count needs no tokenizer
        if len((fixed_text + "".join(texts)).encode()) > available_tokens:
            available_tokens -= self.estimate_message_tokens(fixed_text)
            budgeted: list[Message] = []
            current_tokens = 0
            for message, text in zip(reversed(kept), reversed(texts), strict=True):
                message_tokens = self.estimate_message_tokens(text)
                if current_tokens + message_tokens > available_tokens:
                    break
                budgeted.insert(0, message)
                current_tokens += message_tokens
            kept = budgeted

        start = next((i for i, m in enumerate(kept) if m.role == "user"), None)
        if start is None:
            # keep at least the turn that is being answered
            last_user = max((i for i, m in enumerate(messages) if m.role == "user"), default=0)
            kept = messages[last_user:]
        else:
            kept = kept[start:]

        if len(kept) < len(messages):
            logger.warning(f"Truncated conversation from {len(messages)} to {len(kept)} messages")
        return kept


_chat_client: ChatClient | None = None


def get_chat_client() -> ChatClient:
    """Get or create chat client instance."""
    global _chat_client
    if _chat_client is None:
        _chat_client = ChatClient()
    return _chat_client
