"""Test doubles shared across the suite: timers, audio input and progress storage."""

import copy

import numpy as np

from piano_tutor.domain.constants import SAMPLE_RATE
from piano_tutor.domain.errors import MicrophoneUnavailable
from piano_tutor.domain.interfaces import AudioSource, ProgressRepository, TimerService
from piano_tutor.domain.models import FlashCard, LearningProgress
from piano_tutor.domain.notes import make_note


def tone(frequencies, n=8192, sample_rate=SAMPLE_RATE, amplitude=0.3, partials=(1.0,)):
    """Sum of harmonic tones; ``partials`` are relative amplitudes of harmonics 1, 2, ..."""
    t = np.arange(n) / sample_rate
    signal = np.zeros(n)
    for f in frequencies:
        for h, weight in enumerate(partials, start=1):
            signal += amplitude * weight * np.sin(2 * np.pi * f * h * t)
    return signal.astype(np.float32)


class FakeHandle:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeTask:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualTimers(TimerService):
    """Deterministic timer service: time only moves on ``advance``. Tasks are never run."""

    def __init__(self):
        self.now = 0.0
        self.handles: list[FakeHandle] = []
        self.tasks: list[FakeTask] = []

    def call_later(self, delay_s, callback):
        handle = FakeHandle(self.now + delay_s, callback)
        self.handles.append(handle)
        return handle

    def create_task(self, coro):
        coro.close()
        task = FakeTask()
        self.tasks.append(task)
        return task

    def pending(self):
        return [h for h in self.handles if not h.cancelled and h.callback is not None]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.pending() if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.now = handle.due
            callback, handle.callback = handle.callback, None
            callback()
        self.now = target

    def live_tasks(self):
        return [t for t in self.tasks if not t.cancelled]


class FakeAudioSource(AudioSource):
    def __init__(self, signal=None, sample_rate=SAMPLE_RATE, fail=False):
        self.signal = signal
        self._sample_rate = sample_rate
        self.fail = fail
        self.opened = 0
        self.closed = 0
        self._open = False

    @property
    def sample_rate(self):
        return self._sample_rate

    @property
    def is_open(self):
        return self._open

    def open(self):
        if self.fail:
            raise MicrophoneUnavailable("Permission denied")
        self.opened += 1
        self._open = True

    def close(self):
        self.closed += 1
        self._open = False

    def read_latest(self, frames):
        if self.signal is None or len(self.signal) < frames:
            return None
        return self.signal[-frames:]


class InMemoryProgressRepository(ProgressRepository):
    def __init__(self, initial: dict | None = None):
        self.store = dict(initial or {})
        self.saves = 0

    def load(self, user_id=None):
        progress = self.store.get(user_id)
        return copy.deepcopy(progress) if progress is not None else None

    def save(self, progress, user_id=None):
        self.saves += 1
        self.store[user_id] = copy.deepcopy(progress)


def make_card(card_id="c1", payload=None, box=0, next_review=0, lesson_id=None, **counts):
    return FlashCard(
        id=card_id,
        payload=payload or make_note("A", 4),
        lesson_id=lesson_id,
        box_number=box,
        last_review_date=0,
        next_review_date=next_review,
        **counts,
    )


def progress_with(*cards, injected=()):
    return LearningProgress(cards=list(cards), injected_lesson_ids=list(injected))
