"""Incremental classification of newly fetched messages.

Each polling cycle hands a batch of fresh records to ``classify_batch``.
Records are processed oldest first; replies whose parent is not (yet) known
are deferred and retried once after the pass, because a later record in the
same batch may be the parent they need.  Header dates are not trustworthy,
so the date order is a heuristic rather than a guarantee.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from mailrelay.email.models import MessageRecord
from mailrelay.threads.models import (
    AppendedToThread,
    ClassificationEvent,
    Membership,
    NewStandalone,
    NewThread,
    Thread,
    ThreadIndex,
)

logger = structlog.get_logger()


def _try_attach(index: ThreadIndex, record: MessageRecord) -> ClassificationEvent | None:
    """Attach a reply to a thread leaf or promote its standalone parent."""
    parent_id = record.in_reply_to or ""

    thread = index.find_thread_by_leaf(parent_id)
    if thread is not None:
        index.append_to_thread(thread, record)
        return AppendedToThread(root_id=thread.root_id, root=thread.root, record=record)

    parent = index.pop_standalone(parent_id)
    if parent is not None:
        thread = Thread(parent, [record])
        index.add_thread(thread)
        return NewThread(root_id=thread.root_id, root=parent, record=record)

    return None


def classify_batch(index: ThreadIndex, records: Iterable[MessageRecord]) -> list[ClassificationEvent]:
    """Route a batch of new messages into *index*.

    - Messages without ``In-Reply-To`` become standalone entries.
    - Replies to a thread's current leaf are appended to that thread.
    - Replies to a standalone message promote it to the root of a new thread.
    - Anything else is deferred, retried once, and finally kept as a
      standalone orphan.

    Invalid records are ignored.  Records are sorted by date; ties keep the
    order in which they were fetched.  A message id that is already placed
    is skipped (first-seen-wins).

    Args:
        index: The thread index to mutate.
        records: Newly fetched messages.

    Returns:
        The classification events in the order they happened.  Consumers must
        process them in this order: a thread's root post has to exist before
        replies can be addressed to it.
    """
    batch = sorted((record for record in records if record.is_valid), key=lambda r: r.date)
    events: list[ClassificationEvent] = []
    deferred: list[MessageRecord] = []

    for record in batch:
        if record.message_id in index:
            logger.debug("Skipping already known message", message_id=record.message_id)
            continue

        if not record.in_reply_to:
            if index.add_standalone(record):
                events.append(NewStandalone(record=record))
            continue

        event = _try_attach(index, record)
        if event is None:
            deferred.append(record)
        else:
            events.append(event)

    for record in deferred:
        if record.message_id in index:
            continue

        event = _try_attach(index, record)
        if event is not None:
            events.append(event)
            continue

        parent_id = record.in_reply_to
        if index.membership(parent_id or "") is Membership.THREAD:
            logger.warning(
                "Reply targets a message that is not a thread leaf, keeping it standalone",
                message_id=record.message_id,
                in_reply_to=parent_id,
            )
        else:
            logger.warning(
                "Message refers to an unknown parent, keeping it standalone",
                message_id=record.message_id,
                in_reply_to=parent_id,
            )
        index.add_standalone(record)
        events.append(NewStandalone(record=record, unresolved_parent=parent_id))

    logger.info(
        "Classified message batch",
        received=len(batch),
        events=len(events),
        deferred=len(deferred),
    )
    return events
