"""Plain-text extraction, quoted-history trimming, and date parsing.

Provides helpers for:
- Converting HTML body parts to plain text, optionally skipping ``blockquote``
  subtrees that hold quoted history
- Trimming decoded text line by line (blank-line collapsing and removal of
  ``>``-quoted history together with its "so-and-so wrote" preamble)
- Parsing RFC 2822 ``Date`` headers leniently
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import structlog
from bs4 import BeautifulSoup, ParserRejectedMarkup
from bs4.element import NavigableString, PreformattedString, Tag

logger = structlog.get_logger()

_NBSP = "\xa0"
_NBSP_ENTITY = "&nbsp;"
_QUOTE_MARKER = ">"

# Elements whose text never belongs in the rendered body.
_SKIPPED_ELEMENTS = frozenset({"head", "meta", "script", "style", "title"})

_KNOWN_TIMEZONE_ANNOTATIONS = re.compile(r"\((UTC|GMT|PDT|CEST|CET)\)")
_LEADING_WEEKDAY = re.compile(r"^\s*(mon|tue|wed|thu|fri|sat|sun)[a-z]*\s*,", re.IGNORECASE)
_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------


def _is_empty_paragraph(tag: Tag) -> bool:
    return not tag.get_text().replace(_NBSP, " ").strip()


def _render_nodes(parent: Tag, strip_quoted_history: bool, out: list[str]) -> None:
    for node in parent.children:
        if isinstance(node, PreformattedString):
            # Comments, doctypes, CDATA and processing instructions.
            continue
        if isinstance(node, NavigableString):
            out.append(str(node).replace(_NBSP, " "))
            continue
        if not isinstance(node, Tag):
            continue

        name = node.name.lower()
        if strip_quoted_history and name == "blockquote":
            continue
        if name in _SKIPPED_ELEMENTS:
            continue
        if name == "br":
            out.append("\n")
        elif name == "p" and _is_empty_paragraph(node):
            out.append("\n")
        elif node.contents:
            _render_nodes(node, strip_quoted_history, out)


def html_to_plain_text(html: str, strip_quoted_history: bool) -> str:
    """Convert an HTML body part to plain text.

    ``<br>`` and empty ``<p>`` elements become newlines, text nodes are kept
    with non-breaking spaces mapped to ordinary spaces, and every other element
    is flattened into its children.  When *strip_quoted_history* is set,
    ``blockquote`` subtrees are skipped entirely.

    Malformed markup never raises: a diagnostic is logged and an empty string
    returned.

    Args:
        html: The decoded HTML body.
        strip_quoted_history: Skip ``blockquote`` elements.

    Returns:
        The extracted plain text, or ``""`` if the markup is unusable.
    """
    try:
        soup = BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as exc:
        logger.warning("Parsing of HTML e-mail failed", error=str(exc))
        return ""

    if not soup.contents:
        logger.warning("Parsing of HTML e-mail failed, could not find any nodes")
        return ""

    out: list[str] = []
    html_node = soup.find("html", recursive=False)
    if isinstance(html_node, Tag):
        if not html_node.contents:
            logger.warning("Parsing of HTML e-mail failed, HTML node does not have any children")
            return ""
        body_node = html_node.find("body", recursive=False)
        if not isinstance(body_node, Tag):
            logger.warning("Parsing of HTML e-mail failed, could not find body node")
            return ""
        _render_nodes(body_node, strip_quoted_history, out)
        return "".join(out)

    # Fragments without an <html> root are rendered from the top level.
    _render_nodes(soup, strip_quoted_history, out)
    return "".join(out)


# ---------------------------------------------------------------------------
# History trim
# ---------------------------------------------------------------------------


def trim_content(content: str, strip_history: bool) -> str:
    """Tidy decoded text line by line.

    Consecutive blank lines collapse into one and trailing whitespace is
    removed from every line.  With *strip_history* set, lines starting with
    ``>`` are dropped, and when such a quoted run begins directly after a
    non-blank line, that line is retracted as well (it is almost always an
    "On <date>, <someone> wrote:" preamble).

    This is a heuristic; it can drop a legitimate line that happens to sit
    right above a quotation.

    Args:
        content: Text extracted from a plain-text or HTML body part.
        strip_history: Remove quoted history.

    Returns:
        The trimmed text, without trailing blank lines.
    """
    if not content:
        return ""

    lines: list[str] = []
    in_quoted_run = False
    last_was_blank = False

    for raw_line in content.split("\n"):
        if not raw_line.strip():
            if last_was_blank:
                continue
            lines.append("")
            last_was_blank = True
            continue

        if strip_history and raw_line.startswith(_QUOTE_MARKER):
            if not in_quoted_run and not last_was_blank and lines:
                lines.pop()
            in_quoted_run = True
            continue

        lines.append(raw_line.rstrip().replace(_NBSP_ENTITY, " "))
        last_was_blank = False
        in_quoted_run = False

    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def _parse_rfc2822(value: str) -> datetime | None:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None

    weekday = _LEADING_WEEKDAY.match(value)
    if weekday and _WEEKDAYS.index(weekday.group(1).lower()) != parsed.weekday():
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_date(value: str) -> datetime | None:
    """Parse a ``Date`` header leniently.

    A first attempt parses the header as-is.  If that fails, known timezone
    annotations such as ``(GMT)`` or ``(CEST)`` are stripped and parsing is
    retried once.  A leading weekday that contradicts the date is rejected.
    Dates without an offset are interpreted as UTC.

    Args:
        value: The raw header value, e.g. ``"Fri, 21 Oct 2022 13:50:42 +0200"``.

    Returns:
        A timezone-aware ``datetime``, or ``None`` if the value is unparseable.
    """
    parsed = _parse_rfc2822(value)
    if parsed is not None:
        return parsed

    stripped = _KNOWN_TIMEZONE_ANNOTATIONS.sub("", value).strip()
    if stripped == value:
        return None
    return _parse_rfc2822(stripped)
