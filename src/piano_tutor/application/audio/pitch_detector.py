"""
Pitch detector.

Wraps an AudioSource and turns its latest window into a validated piano note
or chord. Single-shot detection is synchronous; the stable variants poll it
on a fixed interval until enough ticks agree.
"""

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Awaitable, Callable, Hashable
from enum import Enum
from typing import TypeVar

from piano_tutor.application.config import AudioDetectionSettings
from piano_tutor.domain.constants import (
    BUFFER_SIZE,
    CHORD_BUFFER_SIZE,
    CHORD_CONSENSUS,
    CHORD_STABLE_DURATION_MS,
    CLARITY_THRESHOLD,
    MAX_FREQUENCY,
    MIN_FREQUENCY,
    NOTE_CONSENSUS,
    NOTE_STABLE_DURATION_MS,
    NOTE_TOLERANCE_SEMITONES,
    POLL_INTERVAL_MS,
    SILENCE_RMS,
)
from piano_tutor.domain.errors import MicrophoneUnavailable
from piano_tutor.domain.interfaces import AudioSource
from piano_tutor.domain.models import Note
from piano_tutor.domain.notes import quantize

from . import analysis

logger = logging.getLogger(__name__)

T = TypeVar("T")
ChordNotes = tuple[Note, ...]


class DetectorState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


def note_key(note: Note) -> str:
    return note.key


def chord_key(notes: ChordNotes) -> tuple[str, ...]:
    """Order-independent identity of a set of held notes."""
    return tuple(sorted(n.key for n in notes))


class PitchDetector:
    """
    Stateful front end over the analysis functions.

    Misses (silence, noise, out of range) are returned as None; only
    ``start`` raises.
    """

    def __init__(
        self,
        source: AudioSource,
        settings: AudioDetectionSettings | None = None,
        *,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            source: Audio input port.
            settings: Harmonic-ratio gate; defaults if not provided.
            poll_interval_ms: Gap between ticks in the stable detectors.
            clock: Monotonic seconds, injectable for tests.
            sleep: Awaitable sleep, injectable for tests.
        """
        self._source = source
        self._settings = settings or AudioDetectionSettings()
        self._poll_interval = poll_interval_ms / 1000
        self._clock = clock
        self._sleep = sleep
        self._state = DetectorState.IDLE

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is DetectorState.RUNNING

    @property
    def settings(self) -> AudioDetectionSettings:
        return self._settings

    def update_settings(self, settings: AudioDetectionSettings) -> None:
        self._settings = settings
        logger.debug(
            f"Detector settings: harmonic ratio {'on' if settings.enable_harmonic_ratio else 'off'}"
            f" (threshold {settings.harmonic_ratio_threshold})"
        )

    # ---------- Lifecycle ----------

    def start(self) -> None:
        """
        Open the audio source and begin detecting.

        Raises:
            MicrophoneUnavailable: the source could not be opened. The detector
                is left IDLE and the caller may retry.
        """
        if self._state in (DetectorState.RUNNING, DetectorState.PAUSED):
            return

        self._state = DetectorState.INITIALIZING
        try:
            self._source.open()
        except MicrophoneUnavailable as e:
            self._state = DetectorState.IDLE
            logger.warning(f"Cannot start pitch detection: {e}")
            raise

        self._state = DetectorState.RUNNING
        logger.info("Pitch detection started")

    def stop(self) -> None:
        """Release the audio source. Idempotent."""
        self._source.close()
        if self._state is not DetectorState.STOPPED:
            logger.info("Pitch detection stopped")
        self._state = DetectorState.STOPPED

    def pause(self) -> None:
        if self._state is DetectorState.RUNNING:
            self._state = DetectorState.PAUSED

    def resume(self) -> None:
        if self._state is DetectorState.PAUSED:
            self._state = DetectorState.RUNNING

    # ---------- Single-shot ----------

    def detect_pitch(self) -> Note | None:
        """Latest window -> nearest piano key, or None."""
        if not self.is_running:
            return None

        frame = self._source.read_latest(BUFFER_SIZE)
        if frame is None or analysis.rms(frame) < SILENCE_RMS:
            return None

        sample_rate = self._source.sample_rate
        estimate = analysis.estimate_pitch(frame, sample_rate)
        if estimate is None:
            return None
        if not MIN_FREQUENCY <= estimate.frequency <= MAX_FREQUENCY:
            return None
        if estimate.clarity < CLARITY_THRESHOLD:
            return None
        if not self._passes_harmonic_gate(frame, sample_rate, [estimate.frequency]):
            return None

        return quantize(estimate.frequency, NOTE_TOLERANCE_SEMITONES)

    def detect_chord(self) -> ChordNotes | None:
        """Latest window -> the set of concurrently sounding keys, or None."""
        if not self.is_running:
            return None

        frame = self._source.read_latest(CHORD_BUFFER_SIZE)
        if frame is None or analysis.rms(frame) < SILENCE_RMS:
            return None

        sample_rate = self._source.sample_rate
        fundamentals = analysis.chord_fundamentals(analysis.spectral_peaks(frame, sample_rate))
        if not fundamentals:
            return None
        if not self._passes_harmonic_gate(frame, sample_rate, fundamentals):
            return None

        notes: dict[str, Note] = {}
        for frequency in fundamentals:
            note = quantize(frequency, NOTE_TOLERANCE_SEMITONES)
            if note is not None:
                notes.setdefault(note.key, note)
        if not notes:
            return None
        return tuple(sorted(notes.values(), key=lambda n: n.frequency))

    def _passes_harmonic_gate(self, frame, sample_rate: int, fundamentals: list[float]) -> bool:
        if not self._settings.enable_harmonic_ratio:
            return True
        ratio = analysis.harmonic_ratio(frame, sample_rate, fundamentals)
        return ratio >= self._settings.harmonic_ratio_threshold

    # ---------- Consensus ----------

    async def detect_stable(
        self,
        duration_ms: int = NOTE_STABLE_DURATION_MS,
        required_consensus: int = NOTE_CONSENSUS,
    ) -> Note | None:
        return await self._consensus(self.detect_pitch, note_key, duration_ms, required_consensus)

    async def detect_chord_stable(
        self,
        duration_ms: int = CHORD_STABLE_DURATION_MS,
        required_consensus: int = CHORD_CONSENSUS,
    ) -> ChordNotes | None:
        return await self._consensus(self.detect_chord, chord_key, duration_ms, required_consensus)

    async def _consensus(
        self,
        sample: Callable[[], T | None],
        key_of: Callable[[T], Hashable],
        duration_ms: int,
        required: int,
    ) -> T | None:
        """
        Poll ``sample`` until one key has been seen ``required`` times or
        ``duration_ms`` has elapsed.

        On timeout the most frequent key wins (earliest seen on a tie); with
        no sightings at all the result is None.
        """
        counts: Counter = Counter()
        latest: dict[Hashable, T] = {}
        started = self._clock()

        while self.is_running:
            result = sample()
            if result is not None:
                key = key_of(result)
                counts[key] += 1
                latest[key] = result
                if counts[key] >= required:
                    return result

            if (self._clock() - started) * 1000 >= duration_ms:
                break
            await self._sleep(self._poll_interval)

        if not counts:
            return None
        best, _ = counts.most_common(1)[0]
        return latest[best]
