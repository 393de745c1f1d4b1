"""OpenAI-style chat-completions protocol (OpenRouter)."""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from silvaplan.models.chat import Message, ProviderReply, ToolCall
from silvaplan.models.events import cuid
from silvaplan.providers.base import document_text
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


class ChatCompletionsAdapter:
    """Messages map 1:1; only user attachments need a parts array."""

    name = "openrouter"

    def __init__(self, url: str = OPENROUTER_URL, referer: str = "https://silvaplan.app", title: str = "SilvaPlan"):
        self.url = url
        self.referer = referer
        self.title = title

    def endpoint(self, model_id: str) -> str:
        return self.url

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.referer,
            "X-Title": self.title,
        }

    def format_request(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
        system_prompt: str,
        model_id: str,
    ) -> dict[str, Any]:
        return {
            "model": model_id,
            "messages": [{"role": "system", "content": system_prompt}, *(self._format_message(m) for m in messages)],
            "tools": tools,
            "tool_choice": "auto",
        }

    def _format_message(self, message: Message) -> dict[str, Any]:
        if message.role == "user" and message.attachments:
            parts: list[dict[str, Any]] = [{"type": "text", "text": message.content}]
            for attachment in message.attachments:
                if attachment.type == "image" and attachment.base64:
                    parts.append(
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{attachment.mime_type};base64,{attachment.base64}"},
                        }
                    )
                elif attachment.type == "document" and attachment.text_content:
                    parts.append({"type": "text", "text": document_text(attachment)})
            return {"role": "user", "content": parts}

        formatted: dict[str, Any] = {"role": message.role, "content": message.content}
        if message.tool_calls:
            formatted["tool_calls"] = [tc.model_dump() for tc in message.tool_calls]
        if message.tool_call_id:
            formatted["tool_call_id"] = message.tool_call_id
        if message.name:
            formatted["name"] = message.name
        return formatted

    def parse_response(self, body: dict[str, Any]) -> ProviderReply:
        choices = body.get("choices") or [{}]
        message = (choices[0] or {}).get("message") or {}

        tool_calls: list[ToolCall] = []
        seen_ids: set[str] = set()
        for raw in message.get("tool_calls") or []:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed tool call in response: {raw!r}")
                continue
            try:
                tool_call = ToolCall.model_validate({**raw, "id": raw.get("id") or ""})
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed tool call in response: {e}")
                continue

            # tool results are paired with their call by id
            if not tool_call.id or tool_call.id in seen_ids:
                replacement = f"call_{cuid()}"
                logger.warning(
                    f"Tool call {tool_call.function.name} has missing or duplicate id {tool_call.id!r}, "
                    f"using {replacement}"
                )
                tool_call = tool_call.model_copy(update={"id": replacement})
            seen_ids.add(tool_call.id)
            tool_calls.append(tool_call)

        return ProviderReply(content=message.get("content") or "", tool_calls=tool_calls)
