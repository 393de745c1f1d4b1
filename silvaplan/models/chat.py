"""Provider-agnostic conversation models shared by adapters, tools and the loop."""

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

Role = Literal["user", "assistant", "system", "tool"]


class Attachment(BaseModel):
    """Image or document attached to a user message."""

    type: Literal["image", "document"]
    mime_type: str
    base64: str | None = None
    text_content: str | None = None
    url: str | None = None
    name: str | None = None


class FunctionCall(BaseModel):
    """Name and JSON-encoded arguments of a requested tool."""

    model_config = ConfigDict(extra="ignore")

    name: str
    arguments: str = "{}"

    @field_validator("arguments", mode="before")
    @classmethod
    def encode_arguments(cls, value: Any) -> str:
        """Some providers send arguments as an object instead of a JSON string."""
        if value is None:
            return "{}"
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)


class ToolCall(BaseModel):
    """A tool call emitted by the model."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class Message(BaseModel):
    """A single conversation turn."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None
    attachments: list[Attachment] | None = None

    @field_validator("content", mode="before")
    @classmethod
    def empty_content(cls, value: Any) -> str:
        return "" if value is None else value


@dataclass
class ProviderReply:
    """Normalized response of a vendor chat call."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)


class ToolExecution(BaseModel):
    """One executed tool call and its result."""

    tool_call_id: str
    name: str
    arguments: dict[str, Any]
    result: dict[str, Any]
    success: bool
