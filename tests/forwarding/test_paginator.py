"""Tests for splitting long messages into bounded posts."""

from __future__ import annotations

import re

import pytest

from mailrelay.forwarding.paginator import extra_marker, find_split, page_marker, paginate

_MARKER = re.compile(r"^\((\d+/\d+|extra post #\d+)\)\n")


def _strip_markers(posts: list[str]) -> str:
    return "".join(_MARKER.sub("", post, count=1) for post in posts)


# ---------------------------------------------------------------------------
# find_split
# ---------------------------------------------------------------------------


class TestFindSplit:
    def test_prefers_newline(self) -> None:
        body = "a" * 95 + "\n" + "b" * 20
        assert find_split(body, 0, 100) == 96

    def test_falls_back_to_space(self) -> None:
        body = "a" * 92 + " " + "b" * 3 + " " + "c" * 20
        # The space closest to the window start wins.
        assert find_split(body, 0, 100) == 93

    def test_hard_cut_without_break(self) -> None:
        body = "a" * 200
        assert find_split(body, 0, 100) == 100

    def test_break_before_window_is_ignored(self) -> None:
        body = "a" * 10 + "\n" + "b" * 200
        assert find_split(body, 0, 100) == 100

    def test_relative_to_cursor(self) -> None:
        body = "x" * 50 + "a" * 95 + "\n" + "b" * 50
        assert find_split(body, 50, 100) == 146


# ---------------------------------------------------------------------------
# paginate
# ---------------------------------------------------------------------------


class TestPaginate:
    def test_short_message_is_one_post(self) -> None:
        assert paginate("H\n", "hello", 2000) == ["H\nhello"]

    def test_exact_fit_is_one_post(self) -> None:
        body = "x" * 1990
        assert paginate("h" * 10, body, 2000) == ["h" * 10 + body]

    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            paginate("", "text", 0)

    def test_plans_ceil_posts(self) -> None:
        header = "h" * 50
        body = ("word " * 900)[:4500]

        posts = paginate(header, body, 2000)

        assert len(posts) == 3
        assert posts[0].startswith(page_marker(1, 3) + header)
        assert posts[1].startswith(page_marker(2, 3))
        assert not posts[2].startswith("(")

    def test_posts_fit_the_limit(self) -> None:
        body = "\n".join(f"line {i} " + "lorem ipsum " * 8 for i in range(200))

        posts = paginate("**From:** someone\n\n", body, 500)

        assert all(len(post) <= 500 for post in posts)

    def test_content_is_preserved(self) -> None:
        header = "**From:** a@example.com\n\n"
        body = "\n".join("paragraph " * (i % 7 + 1) for i in range(300))

        posts = paginate(header, body, 300)

        assert _strip_markers(posts) == header + body

    def test_posts_end_on_line_breaks_when_possible(self) -> None:
        body = "\n".join("x" * 40 for _ in range(100))

        posts = paginate("", body, 410)

        for post in posts[:-1]:
            assert post.endswith("\n")

    def test_split_targets_share_of_remaining_text(self) -> None:
        body = " ".join("word" for _ in range(1000))

        posts = paginate("", body, 2000)

        assert [len(post) for post in posts] == [1501, 1581, 1929]
        assert posts[0].endswith(" ")
        assert posts[1].endswith(" ")

    def test_header_only_in_first_post(self) -> None:
        header = "HEADER\n"
        posts = paginate(header, "y " * 2000, 1000)

        assert header in posts[0]
        assert all(header not in post for post in posts[1:])

    def test_remainder_is_spread_over_bounded_extra_posts(self) -> None:
        # Space-only prose makes every planned post stop short of its share.
        header = "**From:** a@example.com\n\n"
        body = " ".join(["word"] * 3988)

        posts = paginate(header, body, 2000)

        assert len(posts) == 12
        assert posts[-2].startswith(extra_marker(11))
        assert posts[-1].startswith(extra_marker(12))
        assert all(len(post) <= 2000 for post in posts)
        assert _strip_markers(posts) == header + body

    def test_long_body_never_exceeds_the_limit(self) -> None:
        header = "**From:** a@example.com\n\n"
        body = " ".join(f"token{i % 97}" for i in range(30_000))

        posts = paginate(header, body, 2000)

        assert max(len(post) for post in posts) <= 2000
        extras = [post for post in posts if post.startswith("(extra post")]
        planned = len(posts) - len(extras)
        assert [post.split("\n", 1)[0] + "\n" for post in extras] == [
            extra_marker(planned + k) for k in range(1, len(extras) + 1)
        ]
        assert _strip_markers(posts) == header + body

    def test_markers(self) -> None:
        assert page_marker(2, 7) == "(2/7)\n"
        assert extra_marker(8) == "(extra post #8)\n"
