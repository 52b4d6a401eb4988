import threading

import pytest

from firenozzle.diodes import EnvelopeDiode


def test_set_then_try_next_round_trip():
    diode = EnvelopeDiode(4)
    envelope = {"source_id": "app-guid"}
    diode.set(envelope)
    assert diode.try_next() is envelope
    assert diode.try_next() is None


def test_fifo_order():
    diode = EnvelopeDiode(8)
    items = ["a", "b", "c"]
    for item in items:
        diode.set(item)
    assert [diode.try_next() for _ in items] == items
    assert len(diode) == 0


def test_overflow_drops_oldest_and_alerts():
    missed = []
    diode = EnvelopeDiode(2, missed.append)
    for item in ("first", "second", "third"):
        diode.set(item)
    assert diode.try_next() == "second"
    assert missed == [1]
    assert diode.try_next() == "third"
    assert missed == [1]


def test_next_waits_for_writer():
    diode = EnvelopeDiode(2)
    timer = threading.Timer(0.05, diode.set, args=("late",))
    timer.start()
    try:
        assert diode.next(timeout=5) == "late"
    finally:
        timer.cancel()


def test_next_times_out_when_empty():
    diode = EnvelopeDiode(2)
    with pytest.raises(TimeoutError):
        diode.next(timeout=0.01)


def test_size_must_be_positive():
    with pytest.raises(ValueError):
        EnvelopeDiode(0)


def test_none_is_rejected():
    diode = EnvelopeDiode(1)
    with pytest.raises(ValueError):
        diode.set(None)