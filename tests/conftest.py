"""
Pytest Configuration and Shared Fixtures

Provides moto AWS mocking, sample emails and events, and the mock
Assistants API.
"""

import os
from typing import Any, Generator

import boto3
import pytest
import structlog
from moto import mock_aws

# Set test environment before importing application modules
os.environ["MAILBRIDGE_S3_INBOUND_BUCKET_NAME"] = "test-inbound-emails"
os.environ["MAILBRIDGE_AWS_REGION"] = "us-west-2"
os.environ["MAILBRIDGE_OPENAI_API_KEY"] = "sk-test"
os.environ["MAILBRIDGE_ASSISTANT_ID"] = "asst_test"
os.environ["MAILBRIDGE_POLL_INTERVAL_SECONDS"] = "0"
os.environ["AWS_DEFAULT_REGION"] = "us-west-2"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

from bridge.shared.assistant.config import get_assistant_settings  # noqa: E402
from bridge.shared.config import get_settings  # noqa: E402
import lambdas.process_inbound_email.handler  # noqa: E402,F401
from tests.fixtures.emails import HTML_ONLY_EMAIL, MULTIPART_EMAIL, PLAIN_EMAIL  # noqa: E402
from tests.mocks.mock_assistant_api import MockAssistantAPI  # noqa: E402
from tests.utils.event_generator import TEST_BUCKET, MockEventGenerator  # noqa: E402

# The handler module enables logger caching; capture_logs needs uncached loggers
structlog.configure(cache_logger_on_first_use=False)


# --- Settings ---


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Reload settings from the environment for every test."""
    get_settings.cache_clear()
    get_assistant_settings.cache_clear()
    yield
    get_settings.cache_clear()
    get_assistant_settings.cache_clear()


# --- AWS Mocking Fixtures ---


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    return {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "region_name": "us-west-2",
    }


@pytest.fixture
def mock_s3(aws_credentials):
    """Create a mocked inbound email bucket."""
    with mock_aws():
        s3 = boto3.client("s3", **aws_credentials)
        s3.create_bucket(
            Bucket=TEST_BUCKET,
            CreateBucketConfiguration={"LocationConstraint": "us-west-2"},
        )
        yield s3


# --- Assistants API ---


@pytest.fixture
def assistant_api() -> MockAssistantAPI:
    """Fake Assistants API with default thread, run and reply."""
    return MockAssistantAPI()


@pytest.fixture
def sleeps() -> list[float]:
    """Records waits requested by the poll loop."""
    return []


@pytest.fixture
def make_client(assistant_api: MockAssistantAPI, sleeps: list[float]):
    """Factory for AssistantClient instances wired to the fake API."""
    from bridge.shared.assistant import AssistantClient

    def _make(**kwargs: Any) -> AssistantClient:
        kwargs.setdefault("poll_interval", 4.0)
        kwargs.setdefault("poll_max_attempts", 4)
        return AssistantClient(
            api_key="sk-test",
            assistant_id="asst_test",
            base_url=assistant_api.base_url,
            http_client=assistant_api.client(),
            sleep=sleeps.append,
            **kwargs,
        )

    return _make


# --- Events ---


@pytest.fixture
def event_generator() -> MockEventGenerator:
    return MockEventGenerator(seed=42)


@pytest.fixture
def message_id() -> str:
    return "o3vrnil0e2ic28trm7dfhrc2v0clambda4nbp0g1"


@pytest.fixture
def ses_event(event_generator: MockEventGenerator, message_id: str) -> dict[str, Any]:
    """Direct SES invocation event for one stored email."""
    return event_generator.ses_event(message_id)


# --- Raw Emails ---


@pytest.fixture
def plain_email_raw() -> bytes:
    """Single part text/plain email."""
    return PLAIN_EMAIL


@pytest.fixture
def multipart_email_raw() -> bytes:
    """multipart/alternative email with plain text and HTML bodies."""
    return MULTIPART_EMAIL


@pytest.fixture
def html_only_email_raw() -> bytes:
    """Single part text/html email."""
    return HTML_ONLY_EMAIL
