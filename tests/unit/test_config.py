"""
Test Configuration

Unit tests for application and assistant settings.
"""

import pytest
from pydantic import ValidationError

from bridge.shared.assistant.config import (
    ASSISTANTS_BETA_HEADER,
    DEFAULT_BASE_URL,
    AssistantSettings,
    get_assistant_settings,
)
from bridge.shared.config import Settings, get_settings
from bridge.shared.exceptions import ConfigurationError


class TestSettings:
    """Tests for application Settings."""

    def test_reads_environment(self):
        settings = get_settings()

        assert settings.s3_inbound_bucket_name == "test-inbound-emails"
        assert settings.aws_region == "us-west-2"

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MAILBRIDGE_S3_INBOUND_BUCKET_NAME", raising=False)
        monkeypatch.delenv("MAILBRIDGE_AWS_REGION", raising=False)

        settings = Settings(_env_file=None)

        assert settings.s3_inbound_bucket_name == "inbound-emails"
        assert settings.aws_region == "eu-west-1"
        assert settings.raw_preview_chars == 500
        assert settings.log_level == "INFO"

    def test_object_key_with_prefix(self):
        settings = Settings(s3_inbound_key_prefix="emails/")

        assert settings.object_key("abc") == "emails/abc"

    def test_object_key_without_prefix(self):
        assert Settings(s3_inbound_key_prefix="").object_key("abc") == "abc"

    def test_s3_config_with_endpoint(self):
        settings = Settings(s3_endpoint_url="http://localhost:4566")

        assert settings.s3_config == {
            "region_name": "us-west-2",
            "endpoint_url": "http://localhost:4566",
        }

    def test_s3_config_mock_endpoint_ignored(self):
        settings = Settings(s3_endpoint_url="mock")

        assert "endpoint_url" not in settings.s3_config

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="TRACE")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestAssistantSettings:
    """Tests for AssistantSettings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MAILBRIDGE_POLL_INTERVAL_SECONDS", raising=False)

        settings = AssistantSettings(_env_file=None)

        assert settings.api_base_url == DEFAULT_BASE_URL
        assert settings.api_beta_header == ASSISTANTS_BETA_HEADER == "assistants=v2"
        assert settings.poll_max_attempts == 4
        assert settings.poll_interval_seconds == 4.0
        assert settings.suppress_logging is False

    def test_require_credentials(self):
        api_key, assistant_id = get_assistant_settings().require_credentials()

        assert api_key == "sk-test"
        assert assistant_id == "asst_test"

    def test_api_key_not_in_repr(self):
        assert "sk-test" not in repr(get_assistant_settings())

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("MAILBRIDGE_OPENAI_API_KEY", raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            AssistantSettings(_env_file=None).require_credentials()

        assert exc_info.value.env_var == "MAILBRIDGE_OPENAI_API_KEY"
        assert "MAILBRIDGE_OPENAI_API_KEY" in str(exc_info.value)

    def test_blank_assistant_id(self, monkeypatch):
        monkeypatch.setenv("MAILBRIDGE_ASSISTANT_ID", "   ")

        with pytest.raises(ConfigurationError) as exc_info:
            AssistantSettings(_env_file=None).require_credentials()

        assert exc_info.value.setting == "assistant_id"
