"""Body cleanup for inbound messages.

Email replies usually carry the whole quoted conversation underneath the new
text.  ``clean_email_body`` keeps only the new part: ``mail-parser-reply``
extracts the latest reply (reply headers, including ones wrapped over
several lines, quoted history, signatures), then the line rules below are
applied to what is left:

- stop at the first reply header line (``On <date>, <name> wrote:``)
- drop quoted lines starting with ``>``
- collapse runs of blank lines into one

SMS bodies are stored exactly as received.
"""

from __future__ import annotations

import re

from mailparser_reply import EmailReplyParser  # type: ignore[import-untyped]

from sellerdesk.domain.types import Channel

_REPLY_HEADER = re.compile(r"^On\s.*wrote:")


def is_reply_header(line: str) -> bool:
    """Return ``True`` for lines like ``On Mon, Jan 5, 2026, Bob wrote:``."""
    return bool(_REPLY_HEADER.match(line.strip()))


def extract_latest_reply(full_body: str) -> str:
    """Extract only the latest reply text from an email thread body.

    If the parser returns nothing (e.g. the entire message was detected as
    quoted content), ``full_body`` is returned unchanged.
    """
    if not full_body.strip():
        return full_body
    parsed: str | None = EmailReplyParser(languages=["en"]).parse_reply(text=full_body)
    if not parsed or not parsed.strip():
        return full_body
    return parsed


def clean_email_body(body: str) -> str:
    """Strip quoted reply content and extra blank lines from an email body.

    Args:
        body: The plain-text email body.

    Returns:
        The new content of the email, trimmed.
    """
    cleaned: list[str] = []
    for line in extract_latest_reply(body).strip().split("\n"):
        stripped = line.strip()
        if is_reply_header(stripped):
            break
        if stripped.startswith(">"):
            continue
        if stripped == "" and cleaned and cleaned[-1].strip() == "":
            continue
        cleaned.append(line.rstrip("\r") if stripped else "")

    return "\n".join(cleaned).strip()


def clean_body(channel: Channel, body: str) -> str:
    """Apply the cleanup rules for *channel*."""
    if channel is Channel.EMAIL:
        return clean_email_body(body)
    return body
