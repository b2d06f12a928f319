"""
S3 Tools

Read access to raw emails that the SES receipt rule stored in S3.
"""

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from bridge.shared.config import get_settings
from bridge.shared.exceptions import BlobNotFoundError, BlobTransportError

log = structlog.get_logger()

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchBucket", "404", "NotFound"})


def _get_client():
    """Get S3 client."""
    settings = get_settings()
    return boto3.client("s3", **settings.s3_config)


def fetch_raw_email(bucket: str, key: str) -> bytes:
    """
    Fetch raw email content from S3.

    Args:
        bucket: S3 bucket name
        key: S3 object key (the SES message id, plus any configured prefix)

    Returns:
        Raw email content as bytes

    Raises:
        BlobNotFoundError: If the bucket or object does not exist
        BlobTransportError: If the request fails for any other reason
    """
    log.info("fetching_email_from_s3", bucket=bucket, key=key)

    client = _get_client()

    try:
        response = client.get_object(Bucket=bucket, Key=key)
        content = response["Body"].read()
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "")

        if error_code in _NOT_FOUND_CODES:
            log.warning("email_not_found", bucket=bucket, key=key, error_code=error_code)
            raise BlobNotFoundError(bucket=bucket, key=key, error_message=str(e)) from e

        log.error("s3_fetch_failed", bucket=bucket, key=key, error=str(e))
        raise BlobTransportError(bucket=bucket, key=key, error_message=str(e)) from e
    except BotoCoreError as e:
        log.error("s3_fetch_failed", bucket=bucket, key=key, error=str(e))
        raise BlobTransportError(bucket=bucket, key=key, error_message=str(e)) from e

    log.debug(
        "email_fetched_from_s3",
        bucket=bucket,
        key=key,
        size_bytes=len(content),
    )

    return content
