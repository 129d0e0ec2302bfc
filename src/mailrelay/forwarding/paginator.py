"""Split message text into bounded, human-readable posts.

The chat sink rejects posts above a fixed length, so a long message body is
spread over several posts.  Rather than cutting fixed-size chunks, every step
aims for an even share of what is left and prefers to end a post on a newline,
then on a space, and only cuts mid-word as a last resort.
"""

from __future__ import annotations

import math

SPLIT_WINDOW = 0.9


def page_marker(page: int, total: int) -> str:
    return f"({page}/{total})\n"


def extra_marker(page: int) -> str:
    return f"(extra post #{page})\n"


def find_split(body: str, cursor: int, budget: int) -> int:
    """Return the end index (exclusive) of the next slice of *body*.

    Scans backwards from ``cursor + budget - 1`` down to
    ``cursor + 0.9 * budget``.  The first newline found ends the slice right
    after it; otherwise the slice ends after the last space seen (the one
    closest to the window start); failing both, the slice is hard-cut at
    ``cursor + budget``.

    Args:
        body: The text being paginated.
        cursor: Start of the slice.
        budget: Maximum slice length, at least 1.

    Returns:
        The exclusive end index, always in ``(cursor, cursor + budget]``.
    """
    last_space = -1
    lowest = cursor + int(SPLIT_WINDOW * budget)
    for idx in range(cursor + budget - 1, lowest - 1, -1):
        char = body[idx]
        if char == "\n":
            return idx + 1
        if char == " ":
            last_space = idx
    if last_space >= cursor:
        return last_space + 1
    return cursor + budget


def paginate(header: str, body: str, max_length: int) -> list[str]:
    """Split ``header + body`` into posts of at most *max_length* characters.

    A message that fits is returned as a single post.  Otherwise
    ``n = ceil(len(header + body) / max_length)`` posts are planned.  Each step
    targets ``min(max_length, remaining_length / remaining_posts)`` characters;
    the ``(i/n)`` page marker of every post but the last, and the header in the
    first post, are subtracted from that target before a split point is chosen
    in the body.

    If the split heuristic leaves text over after ``n`` posts, the remainder is
    carried by extra posts prefixed ``(extra post #n+1)``, ``(extra post #n+2)``
    and so on, each split the same way and bounded by *max_length*.

    Removing the markers and concatenating the posts gives back exactly
    ``header + body``.

    Args:
        header: Text placed at the start of the first post.
        body: The message text.
        max_length: Hard length limit of one post.

    Returns:
        The posts in order.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    total_length = len(header) + len(body)
    if total_length <= max_length:
        return [header + body]

    total = math.ceil(total_length / max_length)
    posts: list[str] = []
    cursor = 0
    remaining_length = total_length

    for page in range(1, total + 1):
        if cursor >= len(body):
            break

        remaining_posts = total - page + 1
        target = min(max_length, remaining_length // remaining_posts)
        marker = page_marker(page, total) if page < total else ""
        prefix = header if page == 1 else ""

        budget = max(1, target - len(marker) - len(prefix))
        if len(body) - cursor <= budget:
            end = len(body)
        else:
            end = find_split(body, cursor, budget)

        posts.append(marker + prefix + body[cursor:end])
        remaining_length -= len(prefix) + (end - cursor)
        cursor = end

    page = total
    while cursor < len(body):
        page += 1
        marker = extra_marker(page)
        budget = max(1, max_length - len(marker))
        end = len(body) if len(body) - cursor <= budget else find_split(body, cursor, budget)
        posts.append(marker + body[cursor:end])
        cursor = end

    return posts
