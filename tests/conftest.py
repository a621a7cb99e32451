"""Shared fixtures for yomiage tests."""

import pytest

from yomiage.controller import PlaybackController, PlaybackListeners
from yomiage.engine import SpeechEngine, Utterance


class FakeEngine(SpeechEngine):
    """Records speak() calls; tests fire the utterance callbacks by hand."""

    def __init__(self):
        self.utterances = []
        self.cancel_count = 0
        self.pause_count = 0
        self.resume_count = 0

    def speak(self, text, settings, *, on_boundary=None, on_end=None, on_error=None):
        utterance = Utterance(text, settings, on_boundary, on_end, on_error)
        self.utterances.append(utterance)
        return utterance

    def cancel(self):
        self.cancel_count += 1

    def pause(self):
        self.pause_count += 1

    def resume(self):
        self.resume_count += 1

    def is_speaking(self):
        return bool(self.utterances)

    def is_paused(self):
        return False

    def is_supported(self):
        return True

    @property
    def texts(self):
        return [u.text for u in self.utterances]

    @property
    def last(self):
        return self.utterances[-1]


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def recorded():
    """Listener bundle that records every notification."""
    record = {"index": [], "state": [], "error": [], "progress": []}
    listeners = PlaybackListeners(
        on_index=lambda index, total: record["index"].append((index, total)),
        on_state=record["state"].append,
        on_error=record["error"].append,
        on_progress=record["progress"].append,
    )
    return record, listeners


@pytest.fixture
def make_controller(engine, recorded):
    """Build a controller over the fake engine with recording listeners."""
    _, listeners = recorded

    def factory(chunks, settings=None):
        return PlaybackController(engine, chunks, settings, listeners)

    return factory
