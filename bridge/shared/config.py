"""
Configuration Management

Pydantic-settings based configuration for the mail bridge Lambda.
All settings can be overridden via environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with MAILBRIDGE_ and are case-insensitive.
    Example: MAILBRIDGE_S3_INBOUND_BUCKET_NAME=my-inbound-emails
    """

    model_config = SettingsConfigDict(
        env_prefix="MAILBRIDGE_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # S3 Configuration
    s3_inbound_bucket_name: str = Field(
        default="inbound-emails",
        description="S3 bucket the SES receipt rule writes raw emails to",
    )
    s3_inbound_key_prefix: str = Field(
        default="",
        description="Object key prefix configured on the SES S3 action",
    )
    s3_endpoint_url: str | None = Field(
        default=None,
        description="S3 endpoint URL (for local development)",
    )

    # AWS Configuration
    aws_region: str = Field(
        default="eu-west-1",
        description="AWS region",
    )

    # Application Configuration
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    raw_preview_chars: int = Field(
        default=500,
        ge=0,
        description="Number of raw email bytes logged at debug level after fetch",
    )

    @property
    def s3_config(self) -> dict:
        """S3 client configuration."""
        config = {"region_name": self.aws_region}
        if self.s3_endpoint_url and self.s3_endpoint_url != "mock":
            config["endpoint_url"] = self.s3_endpoint_url
        return config

    def object_key(self, message_id: str) -> str:
        """S3 object key SES uses for a stored message."""
        return f"{self.s3_inbound_key_prefix}{message_id}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once.
    Call get_settings.cache_clear() after changing the environment.
    """
    return Settings()
