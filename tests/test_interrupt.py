import signal
from contextlib import contextmanager

import pytest

from conekit.interrupt import InterruptListener


@contextmanager
def _recording_handler():
    calls = []

    def handler(signum, frame):
        calls.append(signum)

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield calls
    finally:
        signal.signal(signal.SIGINT, previous)


def test_not_interrupted_initially():
    with InterruptListener() as listener:
        assert listener.interrupted() is False


def test_sigint_is_recorded():
    with InterruptListener() as listener:
        signal.raise_signal(signal.SIGINT)
        assert listener.interrupted() is True
    assert listener.interrupted() is True


def test_handler_restored_after_exit():
    with _recording_handler() as calls:
        listener = InterruptListener()
        with listener:
            signal.raise_signal(signal.SIGINT)
            assert listener.interrupted() is True
        assert calls == []
        listener = InterruptListener()
        with listener:
            pass
        signal.raise_signal(signal.SIGINT)
        assert listener.interrupted() is False
        assert calls == [signal.SIGINT]


def test_handler_restored_after_exception():
    with _recording_handler() as calls:
        listener = InterruptListener()
        with pytest.raises(RuntimeError):
            with listener:
                raise RuntimeError("boom")
        signal.raise_signal(signal.SIGINT)
        assert listener.interrupted() is False
        assert calls == [signal.SIGINT]


def test_reentering_clears_flag():
    listener = InterruptListener()
    with listener:
        signal.raise_signal(signal.SIGINT)
    assert listener.interrupted() is True
    with listener:
        assert listener.interrupted() is False