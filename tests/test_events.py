from __future__ import annotations

import pytest

from abbey.events import Signal


def test_emit_without_consumer_is_dropped() -> None:
    signal: Signal[int] = Signal("numbers")
    signal.emit(1)
    assert not signal.connected


def test_single_consumer_receives_payloads() -> None:
    received: list[int] = []
    signal: Signal[int] = Signal("numbers")
    signal.connect(received.append)
    signal.emit(1)
    signal.emit(2)
    assert received == [1, 2]


def test_second_consumer_is_rejected_until_disconnect() -> None:
    first: list[str] = []
    second: list[str] = []
    signal: Signal[str] = Signal("words")
    signal.connect(first.append)
    signal.connect(first.append)

    with pytest.raises(RuntimeError):
        signal.connect(second.append)

    signal.disconnect(second.append)
    assert signal.connected

    signal.disconnect()
    signal.connect(second.append)
    signal.emit("hi")
    assert first == []
    assert second == ["hi"]
