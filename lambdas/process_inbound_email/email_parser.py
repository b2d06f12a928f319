"""
Email Parser Module

Decodes a raw MIME message fetched from S3 into the subject, addressing,
plain-text and HTML bodies the bridge forwards to the assistant.

Decoding rules:
- Top-level Content-Type must be present and well formed.
- multipart/* bodies are split on their boundary; nested containers
  are walked in order. Other bodies form a single synthetic part.
- base64 failures skip the part (multipart) or yield an empty body
  (single part); quoted-printable failures abort the whole decode.
- Charset parameters are not applied: bodies are read as UTF-8.
- Later parts of the same text type overwrite earlier ones.
"""

import base64
import binascii
import email
import quopri
import re
import string
from dataclasses import dataclass, field
from email.errors import MissingHeaderBodySeparatorDefect
from email.message import Message
from email.policy import default as default_policy
from enum import Enum

import structlog

from bridge.shared.exceptions import ParseError

log = structlog.get_logger()

# type/subtype made of RFC 2045 token characters
MEDIA_TYPE_PATTERN = re.compile(r"^[A-Za-z0-9!#$%&'*+.^_`|~-]+/[A-Za-z0-9!#$%&'*+.^_`|~-]+$")

_TOKEN = r"[A-Za-z0-9!#$%&'*+.^_`|~-]+"
# one `; name=value` parameter, value a token or quoted-string
_PARAMETER_PATTERN = re.compile(
    rf"\s*;\s*(?P<name>{_TOKEN})\s*=\s*(?P<value>{_TOKEN}|\"(?:[^\"\\]|\\.)*\")\s*"
)

_FOLDING_PATTERN = re.compile(r"\r?\n[ \t]+")
_HEX_DIGITS = frozenset(string.hexdigits.encode("ascii"))


class MediaCategory(str, Enum):
    """Closed set of media-type categories a part is routed by."""

    PLAIN_TEXT = "text/plain"
    HTML = "text/html"
    APPLICATION = "application/"
    MULTIPART = "multipart/"
    UNSUPPORTED = "unsupported"

    @classmethod
    def classify(cls, media_type: str) -> "MediaCategory":
        """Prefix-match a lower-cased `type/subtype` against the categories."""
        for category in (cls.PLAIN_TEXT, cls.HTML, cls.APPLICATION, cls.MULTIPART):
            if media_type.startswith(category.value):
                return category
        return cls.UNSUPPORTED


class TransferEncoding(str, Enum):
    """Content-Transfer-Encoding of a part."""

    BASE64 = "base64"
    QUOTED_PRINTABLE = "quoted-printable"
    IDENTITY = "identity"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, header_value: str | None) -> "TransferEncoding":
        """Case-insensitive match; absent, 7bit, 8bit and binary are identity."""
        value = (header_value or "").strip().lower()
        if value == "base64":
            return cls.BASE64
        if value == "quoted-printable":
            return cls.QUOTED_PRINTABLE
        if value in ("", "7bit", "8bit", "binary"):
            return cls.IDENTITY
        return cls.UNKNOWN


@dataclass(frozen=True)
class AttachmentObservation:
    """An application/* part seen while decoding. Payload is not kept."""

    filename: str
    content_type: str


@dataclass(frozen=True)
class ParsedEmail:
    """Content extracted from one raw email."""

    subject: str = ""
    from_address: str = ""
    to_address: str = ""
    plain_text: str = ""
    html: str = ""
    attachments: tuple[AttachmentObservation, ...] = ()


@dataclass
class _Collector:
    plain_text: str = ""
    html: str = ""
    attachments: list[AttachmentObservation] = field(default_factory=list)


def _raw_header(msg: Message, name: str) -> str | None:
    """Header value as it appeared in the message, unfolded."""
    for key, value in msg.raw_items():
        if key.lower() == name.lower():
            unfolded = _FOLDING_PATTERN.sub(" ", str(value)).strip()
            return unfolded.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
    return None


def _media_type(msg: Message) -> str:
    """
    Lower-cased `type/subtype` from the Content-Type header.

    Raises:
        ValueError: If the header is missing or malformed
    """
    value = _raw_header(msg, "Content-Type")
    if not value:
        raise ValueError("missing Content-Type header")

    media_type, _, parameters = value.partition(";")
    media_type = media_type.strip()
    if not MEDIA_TYPE_PATTERN.match(media_type):
        raise ValueError(f"malformed Content-Type header: {value!r}")
    if parameters:
        _check_parameters(";" + parameters, value)
    return media_type.lower()


def _check_parameters(parameters: str, value: str) -> None:
    """
    Validate the `; name=value` list after the media type.

    A trailing `;` is tolerated; a parameter without `=value`, an
    unterminated quoted-string or a repeated name is not.

    Raises:
        ValueError: If any parameter is malformed
    """
    seen: set[str] = set()
    position = 0
    while position < len(parameters):
        if parameters[position:].strip() in ("", ";"):
            return
        match = _PARAMETER_PATTERN.match(parameters, position)
        if not match:
            raise ValueError(f"malformed Content-Type parameter in {value!r}")
        name = match.group("name").lower()
        if name in seen:
            raise ValueError(f"duplicate Content-Type parameter {name!r} in {value!r}")
        seen.add(name)
        position = match.end()


def _payload_bytes(part: Message, encoding: TransferEncoding) -> bytes:
    """
    Undecoded body bytes of a leaf part.

    Identity bodies are read with decode=True, which returns their bytes
    untouched; a plain get_payload() would apply the charset to 8-bit data.

    Raises:
        ValueError: If the part has no leaf body (e.g. message/rfc822)
    """
    if encoding is TransferEncoding.IDENTITY:
        payload = part.get_payload(decode=True)
    else:
        payload = part.get_payload()
    if isinstance(payload, bytes):
        return payload
    if not isinstance(payload, str):
        raise ValueError(f"part body is not readable as bytes: {type(payload).__name__}")
    # The bytes parser keeps undecodable bytes as surrogates
    return payload.encode("utf-8", "surrogateescape")


def decode_base64(data: bytes) -> bytes:
    """
    Standard base64 decode; line breaks and other non-alphabet bytes are skipped.

    Raises:
        binascii.Error: On incorrect padding
    """
    return base64.b64decode(data)


def decode_quoted_printable(data: bytes) -> bytes:
    """
    Strict quoted-printable decode.

    Rejects `=` not followed by two hex digits or a soft line break,
    and unescaped bytes outside printable ASCII other than tab.

    Raises:
        ValueError: On an invalid escape or unescaped byte
    """
    for line in data.splitlines():
        stripped = line.rstrip(b" \t")
        i = 0
        while i < len(stripped):
            byte = stripped[i]
            if byte == ord("="):
                if i == len(stripped) - 1:
                    break  # soft line break
                escape = stripped[i + 1 : i + 3]
                if len(escape) < 2 or not all(c in _HEX_DIGITS for c in escape):
                    raise ValueError(f"invalid quoted-printable escape: {stripped[i:i + 3]!r}")
                i += 3
                continue
            if (byte < 0x20 and byte != 0x09) or byte > 0x7E:
                raise ValueError(f"invalid unescaped byte 0x{byte:02x} in quoted-printable body")
            i += 1

    return quopri.decodestring(data)


def html_to_text(html: str) -> str:
    """Strip tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", " ", html)
    return re.sub(r"\s+", " ", text).strip()


def _route(
    collector: _Collector,
    part: Message,
    category: MediaCategory,
    media_type: str,
    body: bytes,
) -> None:
    """Assign decoded bytes to the output fields by media category."""
    if category in (MediaCategory.PLAIN_TEXT, MediaCategory.HTML):
        # charset is recognized but not applied
        log.debug(
            "text_part_decoded",
            media_type=media_type,
            charset=part.get_content_charset(),
            size_bytes=len(body),
        )
        text = body.decode("utf-8", errors="replace")
        if category is MediaCategory.PLAIN_TEXT:
            collector.plain_text = text
        else:
            collector.html = text
        return

    filename = part.get_filename() or ""

    if category is MediaCategory.APPLICATION:
        log.info("attachment_found", content_type=media_type, filename=filename)
        collector.attachments.append(
            AttachmentObservation(filename=filename, content_type=media_type)
        )
        return

    log.warning("ignoring_unsupported_part", content_type=media_type, filename=filename)


def _decode_multipart(collector: _Collector, container: Message) -> None:
    """Decode each sub-part of a multipart container, skipping bad parts."""
    for index, part in enumerate(container.get_payload()):
        try:
            media_type = _media_type(part)
        except ValueError as e:
            log.warning("skipping_part_bad_content_type", part_index=index, error=str(e))
            continue

        category = MediaCategory.classify(media_type)

        if category is MediaCategory.MULTIPART:
            if not part.is_multipart():
                log.warning(
                    "skipping_unreadable_multipart",
                    part_index=index,
                    content_type=media_type,
                )
                continue
            _decode_multipart(collector, part)
            continue

        header = _raw_header(part, "Content-Transfer-Encoding")
        encoding = TransferEncoding.classify(header)

        try:
            raw = _payload_bytes(part, encoding)
        except ValueError as e:
            log.warning("skipping_part_unreadable_body", part_index=index, error=str(e))
            continue

        if encoding is TransferEncoding.BASE64:
            try:
                body = decode_base64(raw)
            except (binascii.Error, ValueError) as e:
                log.warning("skipping_part_bad_base64", part_index=index, error=str(e))
                continue
        elif encoding is TransferEncoding.QUOTED_PRINTABLE:
            try:
                body = decode_quoted_printable(raw)
            except ValueError as e:
                log.error("quoted_printable_decode_failed", part_index=index, error=str(e))
                raise ParseError(
                    f"Failed to quoted-printable decode part: {e}",
                    part_index=index,
                ) from e
        else:
            if encoding is TransferEncoding.UNKNOWN:
                log.warning("unhandled_transfer_encoding", part_index=index, encoding=header)
            body = raw

        _route(collector, part, category, media_type, body)


def _decode_single_part(collector: _Collector, msg: Message, media_type: str) -> None:
    """Decode a non-multipart message as one synthetic part."""
    header = _raw_header(msg, "Content-Transfer-Encoding")
    encoding = TransferEncoding.classify(header)

    try:
        raw = _payload_bytes(msg, encoding)
    except ValueError as e:
        raise ParseError(f"Failed to read single part email body: {e}") from e

    if encoding is TransferEncoding.BASE64:
        try:
            body = decode_base64(raw)
        except (binascii.Error, ValueError) as e:
            log.warning("single_part_bad_base64", error=str(e), action="using_empty_body")
            body = b""
    elif encoding is TransferEncoding.QUOTED_PRINTABLE:
        try:
            body = decode_quoted_printable(raw)
        except ValueError as e:
            log.error("quoted_printable_decode_failed", error=str(e))
            raise ParseError(f"Failed to quoted-printable decode body: {e}") from e
    else:
        if encoding is TransferEncoding.UNKNOWN:
            log.warning("unhandled_transfer_encoding", encoding=header)
        body = raw

    _route(collector, msg, MediaCategory.classify(media_type), media_type, body)


def decode_email(raw_email: str | bytes) -> ParsedEmail:
    """
    Parse raw email content (MIME format) into a ParsedEmail.

    Args:
        raw_email: Raw email content as string or bytes

    Returns:
        ParsedEmail with headers and decoded bodies

    Raises:
        ParseError: If the message or its Content-Type header cannot be read,
            or a quoted-printable body is invalid
    """
    raw_bytes = raw_email.encode("utf-8") if isinstance(raw_email, str) else bytes(raw_email)

    if not raw_bytes.strip():
        raise ParseError("Failed to read email message: empty input")

    try:
        msg = email.message_from_bytes(raw_bytes, policy=default_policy)
    except Exception as e:
        log.error("email_parse_failed", error=str(e))
        raise ParseError(f"Failed to read email message: {e}") from e

    if any(isinstance(d, MissingHeaderBodySeparatorDefect) for d in msg.defects):
        log.error("email_parse_failed", error="malformed header block")
        raise ParseError("Failed to read email message: malformed header block")

    try:
        media_type = _media_type(msg)
    except ValueError as e:
        log.error("content_type_parse_failed", error=str(e))
        raise ParseError(f"Failed to parse Content-Type header: {e}") from e

    collector = _Collector()

    if MediaCategory.classify(media_type) is MediaCategory.MULTIPART:
        if not msg.is_multipart():
            boundary = msg.get_param("boundary")
            log.error("multipart_read_failed", content_type=media_type, boundary=boundary)
            raise ParseError(
                "Failed to read multipart body",
                content_type=media_type,
                boundary=boundary,
            )
        _decode_multipart(collector, msg)
    else:
        _decode_single_part(collector, msg, media_type)

    return ParsedEmail(
        subject=_raw_header(msg, "Subject") or "",
        from_address=_raw_header(msg, "From") or "",
        to_address=_raw_header(msg, "To") or "",
        plain_text=collector.plain_text,
        html=collector.html,
        attachments=tuple(collector.attachments),
    )
