"""Provider adapter interface shared by all vendor chat protocols."""

from typing import Any, Protocol

from silvaplan.models.chat import Attachment, Message, ProviderReply


class ProviderAdapter(Protocol):
    """Translates between the internal conversation and one vendor wire format."""

    name: str

    def endpoint(self, model_id: str) -> str:
        """URL to POST the request to."""
        ...

    def headers(self, api_key: str) -> dict[str, str]:
        """Authentication and vendor headers."""
        ...

    def format_request(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
        system_prompt: str,
        model_id: str,
    ) -> dict[str, Any]:
        """Build the vendor request body.

        Args:
            messages: Conversation history without the system prompt
            tools: Function specs in chat-completions shape
            system_prompt: System instructions
            model_id: Vendor model identifier

        Returns:
            JSON-serializable request body
        """
        ...

    def parse_response(self, body: dict[str, Any]) -> ProviderReply:
        """Extract text and tool calls from a vendor response body."""
        ...


def document_text(attachment: Attachment) -> str:
    """Delimited text block used to inline an extracted document into a prompt."""
    return f"\n\n--- Document: {attachment.name or 'file'} ---\n{attachment.text_content}\n--- End ---\n"
