"""
ProcessInboundEmail Lambda

Forwards inbound emails received via SES to a hosted assistant.
Fetches the raw message SES stored in S3, decodes its text and
reports the assistant's reply.

Flow:
    Inbound Email
    → SES Receipt Rule (S3 action)
    → This Lambda
    → Assistants API thread / run
"""

from lambdas.process_inbound_email.email_parser import (
    AttachmentObservation,
    MediaCategory,
    ParsedEmail,
    TransferEncoding,
    decode_email,
    html_to_text,
)
from lambdas.process_inbound_email.handler import (
    BatchResult,
    ProcessedEmail,
    lambda_handler,
    process_records,
)

__all__ = [
    "AttachmentObservation",
    "BatchResult",
    "MediaCategory",
    "ParsedEmail",
    "ProcessedEmail",
    "TransferEncoding",
    "decode_email",
    "html_to_text",
    "lambda_handler",
    "process_records",
]
