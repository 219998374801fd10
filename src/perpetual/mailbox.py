"""Server mailbox with a non-blocking receive and configurable overflow.

A perpetual server never waits on its mailbox: it takes a message if one
is queued, and advances its state otherwise. ``try_get`` is that
"receive, else advance" primitive.
"""

from __future__ import annotations

from collections import deque
from enum import Enum, auto


class MailboxOverflowStrategy(Enum):
    """Policy applied when a bounded mailbox is full.

    Examples
    --------
    >>> from perpetual import MailboxOverflowStrategy
    >>> MailboxOverflowStrategy.drop_new
    <MailboxOverflowStrategy.drop_new: 1>
    """

    drop_new = auto()
    drop_oldest = auto()


class Mailbox[M]:
    """FIFO message queue owned by one server.

    When no capacity is set the mailbox is unbounded and never drops
    anything. Pinned messages (lifecycle requests such as a stop) are
    queued in order like any other, but ignore the capacity and are never
    evicted.

    Parameters
    ----------
    capacity : int | None
        Maximum number of queued messages. ``None`` for unbounded.
    overflow : MailboxOverflowStrategy
        Policy when the mailbox is full.

    Examples
    --------
    >>> mb = Mailbox[str](capacity=10, overflow=MailboxOverflowStrategy.drop_oldest)
    """

    def __init__(
        self,
        capacity: int | None = None,
        overflow: MailboxOverflowStrategy = MailboxOverflowStrategy.drop_new,
    ) -> None:
        self._overflow = overflow
        self._capacity = capacity
        self._queue: deque[tuple[M, bool]] = deque()

    @property
    def capacity(self) -> int | None:
        return self._capacity

    def put(self, msg: M, *, pinned: bool = False) -> M | None:
        """Enqueue a message, applying the overflow strategy if full.

        Parameters
        ----------
        msg : M
            The message to enqueue.
        pinned : bool
            Enqueue regardless of capacity and never evict it.

        Returns
        -------
        M | None
            The message that was dropped to honour the capacity (the new
            one for ``drop_new``, the oldest unpinned one for
            ``drop_oldest``), or ``None`` when nothing was dropped.

        Examples
        --------
        >>> mb = Mailbox[int](capacity=1)
        >>> mb.put(1) is None
        True
        >>> mb.put(2)
        2
        >>> mb.put(3, pinned=True) is None
        True
        """
        if pinned or self._capacity is None or len(self._queue) < self._capacity:
            self._queue.append((msg, pinned))
            return None

        match self._overflow:
            case MailboxOverflowStrategy.drop_new:
                return msg
            case MailboxOverflowStrategy.drop_oldest:
                for index, (queued, queued_pinned) in enumerate(self._queue):
                    if not queued_pinned:
                        del self._queue[index]
                        self._queue.append((msg, False))
                        return queued
                return msg

    def try_get(self) -> M | None:
        """Dequeue the next message, or return ``None`` if there is none.

        Examples
        --------
        >>> mb = Mailbox[str]()
        >>> mb.try_get() is None
        True
        >>> mb.put("hello")
        >>> mb.try_get()
        'hello'
        """
        if not self._queue:
            return None
        msg, _ = self._queue.popleft()
        return msg

    def drain(self) -> list[M]:
        """Remove and return every queued message, oldest first."""
        drained = [msg for msg, _ in self._queue]
        self._queue.clear()
        return drained

    def size(self) -> int:
        """Return the number of messages currently in the mailbox."""
        return len(self._queue)

    def empty(self) -> bool:
        """Return whether the mailbox has no messages."""
        return not self._queue
