from __future__ import annotations

from perpetual.mailbox import Mailbox, MailboxOverflowStrategy


def test_unbounded_mailbox_put_and_get() -> None:
    mb: Mailbox[str] = Mailbox()
    mb.put("hello")
    mb.put("world")
    assert mb.try_get() == "hello"
    assert mb.try_get() == "world"


def test_unbounded_mailbox_no_limit() -> None:
    mb: Mailbox[int] = Mailbox()
    for i in range(10_000):
        assert mb.put(i) is None
    assert mb.size() == 10_000
    assert mb.capacity is None


def test_try_get_does_not_wait() -> None:
    mb: Mailbox[str] = Mailbox()
    assert mb.try_get() is None
    mb.put("hello")
    assert mb.try_get() == "hello"
    assert mb.try_get() is None
    assert mb.empty()


def test_bounded_drop_new_discards_incoming() -> None:
    mb: Mailbox[int] = Mailbox(capacity=2, overflow=MailboxOverflowStrategy.drop_new)
    mb.put(1)
    mb.put(2)
    assert mb.put(3) == 3
    assert mb.size() == 2
    assert mb.drain() == [1, 2]


def test_bounded_drop_oldest_discards_oldest() -> None:
    mb: Mailbox[int] = Mailbox(capacity=2, overflow=MailboxOverflowStrategy.drop_oldest)
    mb.put(1)
    mb.put(2)
    assert mb.put(3) == 1
    assert mb.size() == 2
    assert mb.drain() == [2, 3]


def test_pinned_messages_ignore_capacity() -> None:
    mb: Mailbox[str] = Mailbox(capacity=1, overflow=MailboxOverflowStrategy.drop_new)
    mb.put("request")
    assert mb.put("stop", pinned=True) is None
    assert mb.put("late") == "late"
    assert mb.drain() == ["request", "stop"]


def test_drop_oldest_never_evicts_pinned_messages() -> None:
    mb: Mailbox[str] = Mailbox(capacity=2, overflow=MailboxOverflowStrategy.drop_oldest)
    mb.put("stop", pinned=True)
    mb.put("a")
    assert mb.put("b") == "a"
    assert mb.drain() == ["stop", "b"]


def test_drop_oldest_with_only_pinned_messages_drops_new() -> None:
    mb: Mailbox[str] = Mailbox(capacity=1, overflow=MailboxOverflowStrategy.drop_oldest)
    mb.put("stop", pinned=True)
    assert mb.put("a") == "a"
    assert mb.drain() == ["stop"]


def test_drain_empties_in_order() -> None:
    mb: Mailbox[int] = Mailbox()
    for i in range(3):
        mb.put(i)
    assert mb.drain() == [0, 1, 2]
    assert mb.empty()
    assert mb.drain() == []
