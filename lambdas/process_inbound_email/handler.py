"""
ProcessInboundEmail Lambda Handler

Main entry point for forwarding inbound emails to the assistant.

Trigger: SES receipt rule (S3 action followed by Lambda action), either
directly or through an SNS topic
Output: the assistant's reply per email, reported in the response body
and the logs

Flow:
1. Read the SES message id from each record
2. Fetch the raw email the S3 action stored under that id
3. Decode the MIME body
4. Open a new assistant thread and send the email text
5. Report the reply
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable

import structlog

from bridge.shared.assistant import (
    AssistantClient,
    AssistantSettings,
    get_assistant_settings,
)
from bridge.shared.config import Settings, get_settings
from bridge.shared.exceptions import (
    BlobStoreError,
    ConfigurationError,
    ConversationError,
    ParseError,
)
from bridge.shared.models.events import parse_notification_record
from bridge.shared.tools.s3 import fetch_raw_email
from lambdas.process_inbound_email.email_parser import (
    ParsedEmail,
    decode_email,
    html_to_text,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()

FetchEmail = Callable[[str, str], bytes]
ClientFactory = Callable[[AssistantSettings], AssistantClient]


@dataclass(frozen=True)
class ProcessedEmail:
    """Outcome of one forwarded email."""

    message_id: str
    subject: str
    from_address: str
    thread_id: str
    reply: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class BatchResult:
    """Outcome of one notification batch."""

    processed: list[ProcessedEmail] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _prompt_for(parsed: ParsedEmail) -> str:
    """Text sent to the assistant: plain body, else tag-stripped HTML."""
    if parsed.plain_text.strip():
        return parsed.plain_text
    if parsed.html.strip():
        return html_to_text(parsed.html)
    return ""


def _log_raw_preview(raw_email: bytes, preview_chars: int) -> None:
    preview = raw_email[:preview_chars].decode("utf-8", errors="replace")
    log.debug(
        "raw_email_fetched",
        size_bytes=len(raw_email),
        preview=preview,
    )


def process_records(
    records: Iterable[dict[str, Any]],
    *,
    settings: Settings | None = None,
    assistant_settings: AssistantSettings | None = None,
    fetch_email: FetchEmail = fetch_raw_email,
    client_factory: ClientFactory | None = None,
) -> BatchResult:
    """
    Forward each email in a notification batch to the assistant.

    Records are processed sequentially with one AssistantClient per email.
    Records without a message id, or whose email has no text, are skipped.

    Args:
        records: Lambda event records (SES or SNS-wrapped SES)
        settings: Application settings, defaults to the cached instance
        assistant_settings: Assistant settings, defaults to the cached instance
        fetch_email: Blob store lookup (bucket, key) -> raw bytes
        client_factory: Builds the per-email AssistantClient

    Returns:
        BatchResult with one ProcessedEmail per forwarded email

    Raises:
        ConfigurationError: If the credential or assistant id is missing
        BlobStoreError: If a stored email cannot be fetched
        ParseError: If an email cannot be decoded
        ConversationError: If a conversation attempt fails
    """
    settings = settings or get_settings()
    assistant_settings = assistant_settings or get_assistant_settings()
    factory = client_factory or AssistantClient.from_settings

    # Fatal for the whole invocation, checked before touching any record
    assistant_settings.require_credentials()

    result = BatchResult()

    for index, record in enumerate(records):
        try:
            notification = parse_notification_record(record)
        except ValueError as e:
            log.warning("skipping_unrecognized_record", record_index=index, error=str(e))
            result.skipped.append(f"record[{index}]")
            continue

        message_id = notification.message_id
        if not message_id:
            log.warning(
                "email_key_empty",
                record_index=index,
                source=notification.mail.source,
            )
            result.skipped.append(f"record[{index}]")
            continue

        # An S3 receipt action names where it wrote the email
        bucket, key = notification.stored_object or (
            settings.s3_inbound_bucket_name,
            settings.object_key(message_id),
        )

        raw_email = fetch_email(bucket, key)
        _log_raw_preview(raw_email, settings.raw_preview_chars)

        parsed = decode_email(raw_email)

        log.info(
            "email_parsed",
            message_id=message_id,
            subject=parsed.subject,
            from_address=parsed.from_address,
            to_address=parsed.to_address,
            plain_text_length=len(parsed.plain_text),
            html_length=len(parsed.html),
            attachment_count=len(parsed.attachments),
        )

        prompt = _prompt_for(parsed)
        if not prompt:
            log.warning(
                "empty_email_body",
                message_id=message_id,
                subject=parsed.subject,
                has_attachments=bool(parsed.attachments),
            )
            result.skipped.append(message_id)
            continue

        with factory(assistant_settings) as client:
            thread_id = client.initialize()
            reply = client.converse(prompt)

        log.info(
            "assistant_replied",
            message_id=message_id,
            thread_id=thread_id,
            reply_length=len(reply),
            reply=reply,
        )

        result.processed.append(
            ProcessedEmail(
                message_id=message_id,
                subject=parsed.subject,
                from_address=parsed.from_address,
                thread_id=thread_id,
                reply=reply,
            )
        )

    return result


def _failure_response(status_code: int, stage: str, error: Exception) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "body": json.dumps(
            {
                "status": "failed",
                "stage": stage,
                "error": str(error),
            }
        ),
    }


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda handler for forwarding inbound emails.

    Args:
        event: SES receipt event (or SNS event wrapping one)
        context: Lambda context

    Returns:
        Response dict with the replies, or the stage and error of the
        first fatal failure
    """
    request_id = getattr(context, "aws_request_id", "local")
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)

    records = event.get("Records")

    log.info(
        "processing_inbound_email",
        request_id=request_id,
        environment=settings.environment,
        record_count=len(records) if isinstance(records, list) else 0,
    )

    if not isinstance(records, list):
        log.error("unknown_event_format", event_keys=list(event.keys()))
        return {
            "statusCode": 400,
            "body": json.dumps({"error": "Unknown event format"}),
        }

    try:
        result = process_records(records, settings=settings)
    except ConfigurationError as e:
        log.error("configuration_error", request_id=request_id, error=str(e))
        return _failure_response(500, "configuration", e)
    except BlobStoreError as e:
        log.error("email_fetch_failed", request_id=request_id, error=str(e))
        return _failure_response(502, "fetch", e)
    except ParseError as e:
        log.error("email_decode_failed", request_id=request_id, error=str(e))
        return _failure_response(422, "decode", e)
    except ConversationError as e:
        log.error(
            "conversation_failed",
            request_id=request_id,
            stage=e.stage,
            error=str(e),
        )
        return _failure_response(502, e.stage, e)
    except Exception as e:
        log.error("lambda_handler_failed", error=str(e), exc_info=True)
        return _failure_response(500, "internal", e)

    return {
        "statusCode": 200,
        "body": json.dumps(
            {
                "status": "processed",
                "replies": [p.to_dict() for p in result.processed],
                "skipped": result.skipped,
            }
        ),
    }
