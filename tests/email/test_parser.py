"""Tests for HTML-to-text conversion, history trimming, and date parsing."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from mailrelay.email.parser import html_to_plain_text, parse_date, trim_content

# ---------------------------------------------------------------------------
# html_to_plain_text
# ---------------------------------------------------------------------------


class TestHtmlToPlainText:
    def test_paragraphs_and_line_breaks(self) -> None:
        html = "<html><body><p>Hello</p><br><p>World</p></body></html>"
        assert html_to_plain_text(html, strip_quoted_history=True) == "Hello\nWorld"

    def test_blockquote_skipped_when_stripping(self) -> None:
        html = "<html><body>Reply<blockquote>old text</blockquote></body></html>"
        assert html_to_plain_text(html, strip_quoted_history=True) == "Reply"

    def test_blockquote_kept_without_stripping(self) -> None:
        html = "<html><body>Reply<blockquote>old text</blockquote></body></html>"
        assert html_to_plain_text(html, strip_quoted_history=False) == "Replyold text"

    def test_head_script_and_style_skipped(self) -> None:
        html = (
            "<html><head><title>Title</title><meta charset='utf-8'></head>"
            "<body><style>p { color: red; }</style><script>alert(1)</script>Hi</body></html>"
        )
        assert html_to_plain_text(html, strip_quoted_history=True) == "Hi"

    def test_comments_skipped(self) -> None:
        html = "<html><body><!-- tracking -->Hi</body></html>"
        assert html_to_plain_text(html, strip_quoted_history=True) == "Hi"

    def test_non_breaking_spaces_become_spaces(self) -> None:
        html = "<html><body>a&nbsp;b</body></html>"
        assert html_to_plain_text(html, strip_quoted_history=True) == "a b"

    def test_empty_paragraph_is_a_newline(self) -> None:
        html = "<html><body>a<p>&nbsp;</p>b</body></html>"
        assert html_to_plain_text(html, strip_quoted_history=True) == "a\nb"

    def test_nested_elements_are_flattened(self) -> None:
        html = "<html><body><div><span>one</span> <b>two</b></div></body></html>"
        assert html_to_plain_text(html, strip_quoted_history=True) == "one two"

    def test_fragment_without_html_root(self) -> None:
        assert html_to_plain_text("<div>Hi<br>there</div>", strip_quoted_history=True) == "Hi\nthere"

    def test_empty_input(self) -> None:
        assert html_to_plain_text("", strip_quoted_history=True) == ""

    def test_html_without_children(self) -> None:
        assert html_to_plain_text("<html></html>", strip_quoted_history=True) == ""

    def test_html_without_body(self) -> None:
        assert html_to_plain_text("<html><div>x</div></html>", strip_quoted_history=True) == ""


# ---------------------------------------------------------------------------
# trim_content
# ---------------------------------------------------------------------------


class TestTrimContent:
    def test_empty(self) -> None:
        assert trim_content("", strip_history=True) == ""

    def test_collapses_blank_lines(self) -> None:
        assert trim_content("a\n\n\n\nb", strip_history=True) == "a\n\nb"

    def test_whitespace_only_lines_count_as_blank(self) -> None:
        assert trim_content("a\n   \n\t\nb", strip_history=False) == "a\n\nb"

    def test_drops_quote_and_preamble(self) -> None:
        content = "Thanks!\nOn Mon, Bob wrote:\n> old\n> older"
        assert trim_content(content, strip_history=True) == "Thanks!"

    def test_blank_line_before_quote_keeps_previous_line(self) -> None:
        content = "Thanks!\n\n> old"
        assert trim_content(content, strip_history=True) == "Thanks!"

    def test_quote_on_first_line(self) -> None:
        assert trim_content("> quoted\nreply", strip_history=True) == "reply"

    def test_each_quoted_run_retracts_its_preamble(self) -> None:
        content = "a\nb\n> q\nc\n> r"
        assert trim_content(content, strip_history=True) == "a"

    def test_keeps_quotes_without_stripping(self) -> None:
        content = "Thanks!\nOn Mon, Bob wrote:\n> old"
        assert trim_content(content, strip_history=False) == content

    def test_trailing_whitespace_and_nbsp_entity(self) -> None:
        assert trim_content("a   \nb&nbsp;c", strip_history=True) == "a\nb c"

    def test_trailing_blank_lines_dropped(self) -> None:
        assert trim_content("a\n\n\n", strip_history=True) == "a"

    def test_windows_line_endings(self) -> None:
        assert trim_content("a\r\nb\r\n", strip_history=True) == "a\nb"


# ---------------------------------------------------------------------------
# parse_date
# ---------------------------------------------------------------------------


class TestParseDate:
    def test_rfc2822(self) -> None:
        parsed = parse_date("Fri, 21 Oct 2022 13:50:42 +0200")
        assert parsed == datetime(2022, 10, 21, 13, 50, 42, tzinfo=timezone(timedelta(hours=2)))

    def test_timezone_annotation(self) -> None:
        parsed = parse_date("Fri, 21 Oct 2022 13:50:42 +0200 (CEST)")
        assert parsed == datetime(2022, 10, 21, 11, 50, 42, tzinfo=UTC)

    def test_without_weekday(self) -> None:
        parsed = parse_date("21 Oct 2022 13:50:42 +0000")
        assert parsed == datetime(2022, 10, 21, 13, 50, 42, tzinfo=UTC)

    def test_unknown_offset_is_utc(self) -> None:
        parsed = parse_date("Fri, 21 Oct 2022 13:50:42 -0000")
        assert parsed is not None
        assert parsed.utcoffset() == timedelta(0)

    def test_contradicting_weekday(self) -> None:
        assert parse_date("Mon, 21 Oct 2022 13:50:42 +0200") is None

    def test_garbage(self) -> None:
        assert parse_date("not a date") is None

    def test_empty(self) -> None:
        assert parse_date("") is None
