from __future__ import annotations

import logging

import pytest

from perpetual import ActorStarted, ActorStopped, DeadLetter, EventStream, LocalActorRef

REF = LocalActorRef(id="test/1", _deliver=lambda msg: None)


def test_publish_reaches_subscribers_of_that_type() -> None:
    stream = EventStream()
    started: list[ActorStarted] = []
    stopped: list[ActorStopped] = []
    stream.subscribe(ActorStarted, started.append)
    stream.subscribe(ActorStopped, stopped.append)

    stream.publish(ActorStopped(ref=REF, reason="normal"))

    assert started == []
    assert stopped == [ActorStopped(ref=REF, reason="normal")]


def test_unsubscribe() -> None:
    stream = EventStream()
    received: list[DeadLetter] = []
    stream.subscribe(DeadLetter, received.append)
    stream.unsubscribe(DeadLetter, received.append)

    stream.publish(DeadLetter(message="hello", address="nobody"))

    assert received == []


def test_failing_handler_does_not_affect_others(caplog: pytest.LogCaptureFixture) -> None:
    stream = EventStream()
    received: list[ActorStarted] = []

    def broken(event: ActorStarted) -> None:
        raise RuntimeError("handler bug")

    stream.subscribe(ActorStarted, broken)
    stream.subscribe(ActorStarted, received.append)

    with caplog.at_level(logging.ERROR, logger="perpetual.events"):
        stream.publish(ActorStarted(ref=REF))

    assert received == [ActorStarted(ref=REF)]
    assert "Event handler failed" in caplog.text
