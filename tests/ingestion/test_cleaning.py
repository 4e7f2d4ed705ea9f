"""Tests for inbound body cleanup."""

from __future__ import annotations

from sellerdesk.domain.types import Channel
from sellerdesk.ingestion.cleaning import (
    clean_body,
    clean_email_body,
    extract_latest_reply,
    is_reply_header,
)


class TestIsReplyHeader:
    def test_gmail_style_header(self) -> None:
        assert is_reply_header("On Mon, Jan 5, 2026 at 9:14 AM Bob <bob@example.com> wrote:")

    def test_indented_header(self) -> None:
        assert is_reply_header("   On Tuesday, Alice wrote:")

    def test_sentence_starting_with_on_is_not_header(self) -> None:
        assert not is_reply_header("On second thought, $19k works.")


class TestCleanEmailBody:
    def test_stops_at_reply_header(self) -> None:
        body = (
            "Sure, $18,500 works.\n"
            "\n"
            "On Mon, Jan 5, 2026 at 9:14 AM Buyer <buyer@example.com> wrote:\n"
            "> Would you take $18,000?\n"
        )
        assert clean_email_body(body) == "Sure, $18,500 works."

    def test_drops_quoted_lines(self) -> None:
        body = "Yes.\n> quoted\n>> deeper\nStill here."
        cleaned = clean_email_body(body)

        assert cleaned.startswith("Yes.")
        assert ">" not in cleaned

    def test_stops_at_header_wrapped_over_two_lines(self) -> None:
        body = (
            "Sounds good, $18k works.\n"
            "\n"
            "On Mon, Jan 5, 2026 at 10:00 AM Bob Smith <\n"
            "bob@example.com> wrote:\n"
            "> Would you take $17k?\n"
        )
        assert clean_email_body(body) == "Sounds good, $18k works."

    def test_collapses_blank_line_runs(self) -> None:
        body = "Line one\n\n\n\nLine two\n   \n\nLine three"
        assert clean_email_body(body) == "Line one\n\nLine two\n\nLine three"

    def test_trims_surrounding_whitespace(self) -> None:
        assert clean_email_body("\n\n  Hello  \n\n") == "Hello"

    def test_only_quoted_content_becomes_empty(self) -> None:
        assert clean_email_body("> all quoted\n> here") == ""

    def test_crlf_line_endings(self) -> None:
        assert clean_email_body("Deal.\r\n> old\r\n") == "Deal."


class TestCleanBody:
    def test_sms_is_untouched(self) -> None:
        body = "> not a quote in SMS\n\n\nOn it, wrote: later"
        assert clean_body(Channel.SMS, body) == body

    def test_email_is_cleaned(self) -> None:
        assert clean_body(Channel.EMAIL, "Hi\n> old") == "Hi"


class TestExtractLatestReply:
    def test_blank_body_returned_as_is(self) -> None:
        assert extract_latest_reply("  ") == "  "

    def test_plain_body_kept(self) -> None:
        assert extract_latest_reply("Is the car still available?").strip() == (
            "Is the car still available?"
        )
