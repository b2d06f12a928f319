"""
Event Models

Pydantic models for the SES receipt notifications that trigger the bridge.
Only the fields the bridge reads are declared; everything else is ignored.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SesCommonHeaders(BaseModel):
    """Parsed headers SES attaches to the notification."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    subject: str | None = None
    from_: list[str] = Field(default_factory=list, alias="from")
    to: list[str] = Field(default_factory=list)


class SesMail(BaseModel):
    """The `mail` object of an SES receipt notification."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: str = Field(default="", alias="messageId")
    source: str = ""
    timestamp: str | None = None
    destination: list[str] = Field(default_factory=list)
    common_headers: SesCommonHeaders = Field(
        default_factory=SesCommonHeaders,
        alias="commonHeaders",
    )


class SesAction(BaseModel):
    """Receipt rule action (S3, Lambda, SNS ...)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str | None = None
    bucket_name: str | None = Field(default=None, alias="bucketName")
    object_key: str | None = Field(default=None, alias="objectKey")


class SesReceipt(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    recipients: list[str] = Field(default_factory=list)
    action: SesAction = Field(default_factory=SesAction)


class SesNotification(BaseModel):
    """SES receipt notification: {"mail": ..., "receipt": ...}."""

    model_config = ConfigDict(extra="ignore")

    mail: SesMail = Field(default_factory=SesMail)
    receipt: SesReceipt = Field(default_factory=SesReceipt)

    @property
    def message_id(self) -> str:
        return self.mail.message_id

    @property
    def stored_object(self) -> tuple[str, str] | None:
        """(bucket, key) written by an S3 receipt action, if the notification names one."""
        action = self.receipt.action
        if action.type == "S3" and action.bucket_name and action.object_key:
            return action.bucket_name, action.object_key
        return None


def parse_notification_record(record: Any) -> SesNotification:
    """
    Extract the SES notification from one Lambda event record.

    Handles both direct SES invocation (`record["ses"]`) and the
    SNS-wrapped form (`record["Sns"]["Message"]` holding JSON).

    Raises:
        ValueError: If the record carries neither form or is malformed
    """
    if not isinstance(record, dict):
        raise ValueError(f"Unrecognized event record: {type(record).__name__}")

    if "ses" in record:
        return SesNotification.model_validate(record["ses"])

    if "Sns" in record:
        sns = record["Sns"]
        if not isinstance(sns, dict):
            raise ValueError(f"Invalid SNS envelope: {type(sns).__name__}")
        message = sns.get("Message", "{}")
        try:
            return SesNotification.model_validate(json.loads(message))
        except (json.JSONDecodeError, TypeError) as e:
            raise ValueError(f"Invalid SNS message JSON: {e}") from e

    raise ValueError(f"Unrecognized event record: keys={sorted(record.keys())}")
