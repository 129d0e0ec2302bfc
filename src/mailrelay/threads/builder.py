"""Bulk thread reconstruction from a flat list of messages.

Used once at warm start.  Every reply either extends a thread whose leaf it
answers or seeds a new thread by walking its ``In-Reply-To`` chain backwards
to the root.  Whatever is left over lands in the standalone pool.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from mailrelay.email.models import MessageRecord
from mailrelay.threads.models import Thread, ThreadIndex

logger = structlog.get_logger()


def walk_back(
    record: MessageRecord,
    known: dict[str, MessageRecord],
    claimed: set[str],
) -> tuple[list[MessageRecord], bool]:
    """Collect the ancestors of *record* in root-to-parent order.

    The walk is iterative and guarded by a visited set.  It stops when it
    reaches a message without ``In-Reply-To`` (the root), an id missing from
    *known* or already in *claimed* (a broken chain), or an id it has already
    visited (a cycle, in which case no ancestors are returned).

    Args:
        record: The reply to start from.
        known: Every known valid message keyed by message id.
        claimed: Message ids that already belong to a thread.

    Returns:
        ``(ancestors, complete)`` where *complete* is ``True`` only if the
        first ancestor is a genuine root.
    """
    ancestors: list[MessageRecord] = []
    visited = {record.message_id}
    parent_id = record.in_reply_to

    while parent_id:
        if parent_id in visited:
            logger.warning(
                "Cyclic In-Reply-To chain detected",
                message_id=record.message_id,
                repeated_id=parent_id,
            )
            return [], False
        parent = known.get(parent_id)
        if parent is None or parent_id in claimed:
            ancestors.reverse()
            return ancestors, False
        visited.add(parent_id)
        ancestors.append(parent)
        parent_id = parent.in_reply_to

    ancestors.reverse()
    return ancestors, True


def build_threads(index: ThreadIndex, records: Iterable[MessageRecord]) -> int:
    """Reconcile *records* into *index*.

    Invalid records are ignored and duplicate message ids keep the first
    occurrence.  Records already placed in a thread are skipped, so running
    the builder again over the same messages creates no new threads.
    Standalone records already in the index may be claimed as ancestors.

    Args:
        index: The index to populate.
        records: Cached and freshly fetched messages in any order.

    Returns:
        The number of threads created.
    """
    known: dict[str, MessageRecord] = {}
    for record in records:
        if record.is_valid:
            known.setdefault(record.message_id, record)

    lookup = dict(known)
    for message_id, record in index.standalone.items():
        lookup.setdefault(message_id, record)

    claimed = {message_id for message_id in lookup if index.thread_of(message_id) is not None}
    created = 0

    for record in known.values():
        if not record.in_reply_to or record.message_id in claimed:
            continue

        thread = index.find_thread_by_leaf(record.in_reply_to)
        if thread is not None:
            index.pop_standalone(record.message_id)
            index.append_to_thread(thread, record)
            claimed.add(record.message_id)
            continue

        ancestors, complete = walk_back(record, lookup, claimed)
        if not ancestors:
            logger.debug(
                "Could not find referenced message",
                message_id=record.message_id,
                in_reply_to=record.in_reply_to,
            )
            continue
        if not complete:
            logger.debug(
                "Thread root is unresolved, starting from oldest known ancestor",
                message_id=record.message_id,
                synthetic_root=ancestors[0].message_id,
                missing=ancestors[0].in_reply_to,
            )

        members = [*ancestors, record]
        for member in members:
            index.pop_standalone(member.message_id)
        index.add_thread(Thread(members[0], members[1:]))
        claimed.update(member.message_id for member in members)
        created += 1

    for record in known.values():
        if record.message_id not in claimed:
            index.add_standalone(record)

    logger.info(
        "Thread index built",
        threads_created=created,
        threads_total=len(index.threads),
        standalone=len(index.standalone),
    )
    return created
