"""Vendor chat protocol adapters."""

from silvaplan.config import Provider
from silvaplan.errors import ConfigurationError
from silvaplan.providers.base import ProviderAdapter
from silvaplan.providers.chat_completions import ChatCompletionsAdapter
from silvaplan.providers.generate_content import GenerateContentAdapter


def get_provider_adapter(provider: Provider | str) -> ProviderAdapter:
    """Adapter for the configured provider.

    Raises:
        ConfigurationError: If the provider is unknown.
    """
    match provider:
        case "openrouter":
            return ChatCompletionsAdapter()
        case "gemini":
            return GenerateContentAdapter()
        case _:
            raise ConfigurationError(f"Unknown provider: {provider}")


__all__ = ["ChatCompletionsAdapter", "GenerateContentAdapter", "ProviderAdapter", "get_provider_adapter"]
