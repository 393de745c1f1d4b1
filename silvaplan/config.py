"""Application settings loaded from the environment."""

import os
from dataclasses import dataclass, field
from typing import Literal

from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

Provider = Literal["openrouter", "gemini"]

PROVIDERS: tuple[Provider, ...] = ("openrouter", "gemini")


@dataclass(frozen=True)
class DefaultLocation:
    """Fallback location for read-only lookups (weather, alerts, risk analysis)."""

    lat: float = 50.0755
    lng: float = 14.4378
    name: str = "Praha"


@dataclass
class Settings:
    """Runtime settings for the assistant."""

    provider: Provider = "openrouter"
    openrouter_api_key: str | None = None
    gemini_api_key: str | None = None
    openrouter_model_id: str = "google/gemini-2.5-flash"
    gemini_model_id: str = "gemini-2.5-flash"

    max_history_messages: int = 50
    request_timeout: float = 60.0
    max_model_rounds: int = 5

    default_location: DefaultLocation = field(default_factory=DefaultLocation)

    @property
    def active_api_key(self) -> str | None:
        """API key of the configured provider, if any."""
        key = self.openrouter_api_key if self.provider == "openrouter" else self.gemini_api_key
        return key or None

    @property
    def model_id(self) -> str:
        """Model identifier of the configured provider."""
        return self.openrouter_model_id if self.provider == "openrouter" else self.gemini_model_id

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        provider = os.getenv("SILVAPLAN_PROVIDER", defaults.provider).strip().lower()
        if provider not in PROVIDERS:
            # kept as is; the chat client refuses it before any vendor call
            logger.error(f"Unknown provider {provider!r} in SILVAPLAN_PROVIDER")

        location = DefaultLocation(
            lat=float(os.getenv("SILVAPLAN_DEFAULT_LAT", defaults.default_location.lat)),
            lng=float(os.getenv("SILVAPLAN_DEFAULT_LNG", defaults.default_location.lng)),
            name=os.getenv("SILVAPLAN_DEFAULT_LOCATION_NAME", defaults.default_location.name),
        )

        return cls(
            provider=provider,  # type: ignore[arg-type]
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            openrouter_model_id=os.getenv("OPENROUTER_MODEL", defaults.openrouter_model_id),
            gemini_model_id=os.getenv("GEMINI_MODEL", defaults.gemini_model_id),
            max_history_messages=int(os.getenv("SILVAPLAN_MAX_HISTORY_MESSAGES", defaults.max_history_messages)),
            request_timeout=float(os.getenv("SILVAPLAN_REQUEST_TIMEOUT", defaults.request_timeout)),
            max_model_rounds=max(2, int(os.getenv("SILVAPLAN_MAX_MODEL_ROUNDS", defaults.max_model_rounds))),
            default_location=location,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
