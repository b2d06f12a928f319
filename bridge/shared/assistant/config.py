"""
Assistant Configuration Settings

Pydantic-settings based configuration for the Assistants API integration.
All settings can be overridden via environment variables with MAILBRIDGE_ prefix.
"""

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from bridge.shared.exceptions import ConfigurationError


DEFAULT_BASE_URL = "https://api.openai.com/v1"
ASSISTANTS_BETA_HEADER = "assistants=v2"


class AssistantSettings(BaseSettings):
    """
    Settings for the hosted assistant the bridge forwards emails to.

    The credential and assistant id are only read here, by the orchestrator;
    AssistantClient receives them as explicit arguments.

    Environment variables are prefixed with MAILBRIDGE_ and are case-insensitive.
    Example: MAILBRIDGE_ASSISTANT_ID=asst_abc123
    """

    model_config = SettingsConfigDict(
        env_prefix="MAILBRIDGE_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Credentials
    openai_api_key: SecretStr | None = Field(
        default=None,
        description="Bearer credential for the Assistants API",
    )
    assistant_id: str | None = Field(
        default=None,
        description="Identifier of the assistant runs are started for",
    )

    # API Configuration
    api_base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL of the Assistants API",
    )
    api_beta_header: str = Field(
        default=ASSISTANTS_BETA_HEADER,
        description="Value of the OpenAI-Beta protocol version header",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout for a single HTTP request in seconds",
    )

    # Polling Configuration (fixed interval, no backoff)
    poll_max_attempts: int = Field(
        default=4,
        description="Maximum number of run status polls per conversation turn",
    )
    poll_interval_seconds: float = Field(
        default=4.0,
        description="Wait between run status polls; zero or negative retries immediately",
    )

    # Diagnostics
    suppress_logging: bool = Field(
        default=False,
        description="Suppress the client's error log lines (errors are still raised)",
    )

    def require_credentials(self) -> tuple[str, str]:
        """
        Return the (api_key, assistant_id) pair.

        Raises:
            ConfigurationError: If either value is missing or blank
        """
        api_key = self.openai_api_key.get_secret_value() if self.openai_api_key else ""
        if not api_key.strip():
            raise ConfigurationError("openai_api_key", "MAILBRIDGE_OPENAI_API_KEY")
        if not self.assistant_id or not self.assistant_id.strip():
            raise ConfigurationError("assistant_id", "MAILBRIDGE_ASSISTANT_ID")
        return api_key, self.assistant_id


@lru_cache(maxsize=1)
def get_assistant_settings() -> AssistantSettings:
    """
    Get cached assistant settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    For testing, use AssistantSettings() directly with overrides.
    """
    return AssistantSettings()
