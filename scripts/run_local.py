#!/usr/bin/env python3
"""
Local Runner: decode an email and optionally ask the assistant

Reads a raw RFC 5322 message from disk, prints what the decoder extracted
and, with --send, forwards the text to the configured assistant.

Usage:
    # Show the decoded headers and body previews
    python scripts/run_local.py path/to/message.eml

    # Also send it to the assistant (needs MAILBRIDGE_OPENAI_API_KEY
    # and MAILBRIDGE_ASSISTANT_ID)
    python scripts/run_local.py path/to/message.eml --send

    # Continue an existing thread instead of creating one
    python scripts/run_local.py path/to/message.eml --send --thread-id thread_abc123
"""

import argparse
import sys
from pathlib import Path

import structlog

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bridge.shared.assistant import AssistantClient, get_assistant_settings  # noqa: E402
from bridge.shared.exceptions import BridgeError  # noqa: E402
from lambdas.process_inbound_email.email_parser import ParsedEmail, decode_email, html_to_text  # noqa: E402

log = structlog.get_logger()


def _preview(text: str, limit: int) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def print_summary(parsed: ParsedEmail, preview_chars: int) -> None:
    """Print the decoded fields."""
    print(f"Subject: {parsed.subject}")
    print(f"From:    {parsed.from_address}")
    print(f"To:      {parsed.to_address}")
    print()
    print(f"Plain text ({len(parsed.plain_text)} chars):")
    print(f"  {_preview(parsed.plain_text, preview_chars) or '<empty>'}")
    print(f"HTML ({len(parsed.html)} chars):")
    print(f"  {_preview(parsed.html, preview_chars) or '<empty>'}")

    if parsed.attachments:
        print("Attachments:")
        for attachment in parsed.attachments:
            print(f"  - {attachment.filename or '<unnamed>'} ({attachment.content_type})")


def send_to_assistant(parsed: ParsedEmail, thread_id: str | None) -> str:
    """Forward the email text and return the reply."""
    prompt = parsed.plain_text.strip() or html_to_text(parsed.html)
    if not prompt:
        raise SystemExit("Email has no text to send")

    with AssistantClient.from_settings(get_assistant_settings()) as client:
        client.initialize(thread_id, reuse_thread=thread_id is not None)
        reply = client.converse(prompt)
        print(f"\nThread: {client.thread_id}")
    return reply


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Decode a raw email and optionally forward it to the assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s message.eml                    Show decoded fields
  %(prog)s message.eml --send             Forward to the assistant
  %(prog)s message.eml --send --thread-id thread_abc123
        """,
    )

    parser.add_argument(
        "path",
        type=Path,
        help="Path to a raw email file",
    )
    parser.add_argument(
        "--send",
        action="store_true",
        help="Send the email text to the assistant and print the reply",
    )
    parser.add_argument(
        "--thread-id",
        default=None,
        help="Reuse an existing thread instead of creating one",
    )
    parser.add_argument(
        "--preview-chars",
        type=int,
        default=500,
        help="Characters of each body to print",
    )

    args = parser.parse_args()

    try:
        parsed = decode_email(args.path.read_bytes())
        print_summary(parsed, args.preview_chars)

        if args.send:
            reply = send_to_assistant(parsed, args.thread_id)
            print(f"Reply:\n{reply}")
    except BridgeError as e:
        log.error("run_local_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
