"""Gemini generateContent protocol."""

import json
from typing import Any

from cuid2 import cuid_wrapper

from silvaplan.models.chat import FunctionCall, Message, ProviderReply, ToolCall
from silvaplan.providers.base import document_text
from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
TEMPERATURE = 0.7
MAX_OUTPUT_TOKENS = 2048


def _parse_arguments(arguments: str) -> dict[str, Any]:
    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError):
        logger.warning(f"Dropping unparseable tool arguments: {arguments!r}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _tool_payload(content: str) -> dict[str, Any]:
    """functionResponse.response must be an object."""
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        return {"raw": content}
    if isinstance(parsed, dict):
        return parsed
    return {"result": parsed}


class GenerateContentAdapter:
    """Re-derives Gemini `contents` from the internal history on every turn.

    Gemini has no system or tool roles: system text goes to the top-level
    systemInstruction and tool results become functionResponse parts of a
    user turn, one turn per consecutive run of tool messages.
    """

    name = "gemini"

    def __init__(self, base_url: str = GEMINI_BASE_URL):
        self.base_url = base_url

    def endpoint(self, model_id: str) -> str:
        return f"{self.base_url}/models/{model_id}:generateContent"

    def headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key, "Content-Type": "application/json"}

    def format_request(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
        system_prompt: str,
        model_id: str,
    ) -> dict[str, Any]:
        system_texts = [system_prompt]
        contents: list[dict[str, Any]] = []
        call_names: dict[str, str] = {}
        pending_responses: list[dict[str, Any]] = []

        def flush_responses() -> None:
            if pending_responses:
                contents.append({"role": "user", "parts": list(pending_responses)})
                pending_responses.clear()

        for message in messages:
            if message.role == "tool":
                name = message.name or call_names.get(message.tool_call_id or "") or "unknown"
                pending_responses.append(
                    {"functionResponse": {"name": name, "response": _tool_payload(message.content)}}
                )
                continue

            flush_responses()

            match message.role:
                case "system":
                    if message.content:
                        system_texts.append(message.content)
                case "user":
                    contents.append({"role": "user", "parts": self._user_parts(message)})
                case "assistant":
                    parts: list[dict[str, Any]] = []
                    if message.content:
                        parts.append({"text": message.content})
                    for tool_call in message.tool_calls or []:
                        call_names[tool_call.id] = tool_call.function.name
                        parts.append(
                            {
                                "functionCall": {
                                    "name": tool_call.function.name,
                                    "args": _parse_arguments(tool_call.function.arguments),
                                }
                            }
                        )
                    if parts:
                        contents.append({"role": "model", "parts": parts})

        flush_responses()

        request: dict[str, Any] = {
            "contents": contents,
            "systemInstruction": {"parts": [{"text": "\n\n".join(system_texts)}]},
            "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": MAX_OUTPUT_TOKENS},
        }
        if tools:
            request["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": tool["function"]["name"],
                            "description": tool["function"]["description"],
                            "parameters": tool["function"]["parameters"],
                        }
                        for tool in tools
                    ]
                }
            ]
        return request

    def _user_parts(self, message: Message) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = [{"text": message.content}]
        for attachment in message.attachments or []:
            if attachment.type == "image" and attachment.base64:
                parts.append({"inlineData": {"mimeType": attachment.mime_type, "data": attachment.base64}})
            elif attachment.type == "document" and attachment.text_content:
                parts.append({"text": document_text(attachment)})
        return parts

    def parse_response(self, body: dict[str, Any]) -> ProviderReply:
        candidates = body.get("candidates") or [{}]
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []

        content = ""
        tool_calls: list[ToolCall] = []
        for part in parts:
            if part.get("text"):
                content += part["text"]
            function_call = part.get("functionCall")
            if function_call and function_call.get("name"):
                tool_calls.append(
                    ToolCall(
                        id=f"call_{cuid()}",
                        function=FunctionCall(
                            name=function_call["name"],
                            arguments=json.dumps(function_call.get("args") or {}, ensure_ascii=False),
                        ),
                    )
                )

        return ProviderReply(content=content, tool_calls=tool_calls)
