"""
Shared Models

Pydantic models for the notifications that trigger the bridge.
"""

from bridge.shared.models.events import (
    SesAction,
    SesCommonHeaders,
    SesMail,
    SesNotification,
    SesReceipt,
    parse_notification_record,
)

__all__ = [
    "SesAction",
    "SesCommonHeaders",
    "SesMail",
    "SesNotification",
    "SesReceipt",
    "parse_notification_record",
]
