"""Thread state: linear reply chains, the standalone pool, and events.

``ThreadIndex`` is the only mutable state of the threading engine.  It is
owned by a single writer (the builder during warm start, then the classifier
once per polling cycle) and guarantees that every message id lives in at most
one place: the standalone pool or exactly one thread.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from mailrelay.domain.errors import ThreadIntegrityError
from mailrelay.email.models import MessageRecord


class Membership(StrEnum):
    """Where a message id currently lives in the index."""

    UNSEEN = "unseen"
    STANDALONE = "standalone"
    THREAD = "thread"


class Thread:
    """An append-only linear chain of messages.

    The root never changes after creation and each appended message must reply
    to the current leaf, so a message can have at most one recorded child.
    Mutate through ``ThreadIndex`` so its lookup tables stay in sync.
    """

    def __init__(self, root: MessageRecord, replies: Iterable[MessageRecord] = ()) -> None:
        self._messages: list[MessageRecord] = [root]
        for reply in replies:
            self._append(reply)

    def _append(self, record: MessageRecord) -> None:
        if record.in_reply_to != self.current_leaf_id:
            raise ThreadIntegrityError(
                record.message_id,
                f"replies to '{record.in_reply_to}', thread leaf is '{self.current_leaf_id}'",
            )
        self._messages.append(record)

    @property
    def root(self) -> MessageRecord:
        return self._messages[0]

    @property
    def root_id(self) -> str:
        return self._messages[0].message_id

    @property
    def leaf(self) -> MessageRecord:
        return self._messages[-1]

    @property
    def current_leaf_id(self) -> str:
        return self._messages[-1].message_id

    @property
    def messages(self) -> tuple[MessageRecord, ...]:
        return tuple(self._messages)

    @property
    def message_ids(self) -> list[str]:
        return [message.message_id for message in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[MessageRecord]:
        return iter(self._messages)

    def __repr__(self) -> str:
        return f"Thread(root={self.root_id!r}, leaf={self.current_leaf_id!r}, length={len(self)})"


class ThreadIndex:
    """All threads plus the standalone pool.

    Lookups by current leaf and by member id are O(1).  Every mutation checks
    that a message is not placed twice.
    """

    def __init__(self) -> None:
        self._threads: list[Thread] = []
        self._standalone: dict[str, MessageRecord] = {}
        self._by_leaf: dict[str, Thread] = {}
        self._by_member: dict[str, Thread] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def threads(self) -> tuple[Thread, ...]:
        return tuple(self._threads)

    @property
    def standalone(self) -> dict[str, MessageRecord]:
        """A copy of the standalone pool keyed by message id."""
        return dict(self._standalone)

    def membership(self, message_id: str) -> Membership:
        if message_id in self._by_member:
            return Membership.THREAD
        if message_id in self._standalone:
            return Membership.STANDALONE
        return Membership.UNSEEN

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._by_member or message_id in self._standalone

    def find_thread_by_leaf(self, message_id: str) -> Thread | None:
        """Return the thread whose current leaf is *message_id*, if any."""
        return self._by_leaf.get(message_id)

    def thread_of(self, message_id: str) -> Thread | None:
        """Return the thread containing *message_id*, if any."""
        return self._by_member.get(message_id)

    def get_standalone(self, message_id: str) -> MessageRecord | None:
        return self._standalone.get(message_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _claim(self, record: MessageRecord) -> None:
        if record.message_id in self._by_member:
            raise ThreadIntegrityError(record.message_id, "already belongs to a thread")
        if record.message_id in self._standalone:
            raise ThreadIntegrityError(record.message_id, "is still in the standalone pool")

    def add_thread(self, thread: Thread) -> None:
        """Register a new thread; none of its messages may be placed yet."""
        for message in thread:
            self._claim(message)
        self._threads.append(thread)
        self._by_leaf[thread.current_leaf_id] = thread
        for message in thread:
            self._by_member[message.message_id] = thread

    def append_to_thread(self, thread: Thread, record: MessageRecord) -> None:
        """Append *record* as the new leaf of *thread*."""
        self._claim(record)
        previous_leaf = thread.current_leaf_id
        thread._append(record)
        del self._by_leaf[previous_leaf]
        self._by_leaf[record.message_id] = thread
        self._by_member[record.message_id] = thread

    def add_standalone(self, record: MessageRecord) -> bool:
        """Add *record* to the standalone pool, first-seen-wins.

        Returns:
            ``True`` if the record was added, ``False`` if its message id is
            already placed somewhere in the index.
        """
        if not record.is_valid:
            raise ValueError(f"Invalid record '{record.mail_id}' cannot join the standalone pool")
        if record.message_id in self:
            return False
        self._standalone[record.message_id] = record
        return True

    def pop_standalone(self, message_id: str) -> MessageRecord | None:
        """Remove and return a standalone record, or ``None`` if absent."""
        return self._standalone.pop(message_id, None)

    def clear(self) -> None:
        self._threads.clear()
        self._standalone.clear()
        self._by_leaf.clear()
        self._by_member.clear()


# ---------------------------------------------------------------------------
# Classification events
# ---------------------------------------------------------------------------


class NewStandalone(BaseModel):
    """A message that starts a conversation of its own.

    ``unresolved_parent`` is set for replies whose parent could not be found.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["new_standalone"] = "new_standalone"
    record: MessageRecord
    unresolved_parent: str | None = None


class NewThread(BaseModel):
    """A standalone message was promoted to the root of a new thread."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["new_thread"] = "new_thread"
    root_id: str
    root: MessageRecord
    record: MessageRecord


class AppendedToThread(BaseModel):
    """A message became the new leaf of an existing thread.

    ``root`` is carried so a consumer can open the thread's conversation if
    it has never been forwarded, e.g. a thread rebuilt from history.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["appended_to_thread"] = "appended_to_thread"
    root_id: str
    root: MessageRecord
    record: MessageRecord


ClassificationEvent = Annotated[
    NewStandalone | NewThread | AppendedToThread,
    Field(discriminator="kind"),
]
