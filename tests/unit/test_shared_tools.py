"""
Test Shared Tools

Unit tests for the S3 raw email fetcher, using moto.
"""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from bridge.shared.exceptions import BlobNotFoundError, BlobStoreError, BlobTransportError
from bridge.shared.tools.s3 import fetch_raw_email
from tests.utils.event_generator import TEST_BUCKET


class TestFetchRawEmail:
    """Tests for fetch_raw_email."""

    def test_returns_object_bytes(self, mock_s3, plain_email_raw):
        mock_s3.put_object(Bucket=TEST_BUCKET, Key="msg-001", Body=plain_email_raw)

        content = fetch_raw_email(TEST_BUCKET, "msg-001")

        assert content == plain_email_raw

    def test_missing_key(self, mock_s3):
        with pytest.raises(BlobNotFoundError) as exc_info:
            fetch_raw_email(TEST_BUCKET, "does-not-exist")

        error = exc_info.value
        assert error.bucket == TEST_BUCKET
        assert error.key == "does-not-exist"
        assert isinstance(error, BlobStoreError)

    def test_missing_bucket(self, mock_s3):
        with pytest.raises(BlobNotFoundError):
            fetch_raw_email("no-such-bucket", "msg-001")

    def test_access_denied_is_transport_error(self):
        client = MagicMock()
        client.get_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
            "GetObject",
        )

        with patch("bridge.shared.tools.s3._get_client", return_value=client):
            with pytest.raises(BlobTransportError) as exc_info:
                fetch_raw_email(TEST_BUCKET, "msg-001")

        assert "Access Denied" in str(exc_info.value)

    def test_connection_failure_is_transport_error(self):
        client = MagicMock()
        client.get_object.side_effect = EndpointConnectionError(
            endpoint_url="https://s3.us-west-2.amazonaws.com"
        )

        with patch("bridge.shared.tools.s3._get_client", return_value=client):
            with pytest.raises(BlobTransportError):
                fetch_raw_email(TEST_BUCKET, "msg-001")
