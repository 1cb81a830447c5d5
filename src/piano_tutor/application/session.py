"""
Review session state machine.

The session owns the live card collection and is its only writer. It pulls
cards from the scheduler, runs the detector polling task while listening,
judges answers through the matcher, and persists after every mutation.

Every deferred action has exactly one handle (countdown, stabilization,
feedback, timeout, polling task). Handles are cancelled before a new card is
shown, so no callback outlives the card it was scheduled for.
"""

import asyncio
import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from piano_tutor.application import scheduler
from piano_tutor.application.audio.pitch_detector import PitchDetector, chord_key
from piano_tutor.application.config import UserSettings
from piano_tutor.application.lessons import build_catalog, get_lesson, shuffle
from piano_tutor.application.matcher import Answer, is_correct
from piano_tutor.domain.constants import (
    CHORD_CONSENSUS,
    CHORD_STABLE_DURATION_MS,
    COUNTDOWN_SECONDS,
    DETECTION_LOOP_GAP_MS,
    FEEDBACK_CORRECT_MS,
    FEEDBACK_INCORRECT_MS,
    NOTE_CONSENSUS,
    NOTE_STABLE_DURATION_MS,
    STABILIZATION_MS,
)
from piano_tutor.domain.errors import MicrophoneUnavailable
from piano_tutor.domain.interfaces import Cancellable, ProgressRepository, TimerService
from piano_tutor.domain.models import (
    CardPayload,
    Chord,
    ClockProblem,
    FlashCard,
    LearningProgress,
    Lesson,
    MathProblem,
    Note,
)
from piano_tutor.domain.stats.models import ProgressStatistics

logger = logging.getLogger(__name__)

Listener = Callable[["ReviewSession"], None]


class SessionState(str, Enum):
    AWAITING_START = "awaiting_start"
    COUNTING_DOWN = "counting_down"
    LISTENING = "listening"
    PAUSED = "paused"
    FEEDBACK_CORRECT = "feedback_correct"
    FEEDBACK_INCORRECT = "feedback_incorrect"


FEEDBACK_STATES = (SessionState.FEEDBACK_CORRECT, SessionState.FEEDBACK_INCORRECT)


@dataclass(frozen=True)
class SessionTiming:
    """Durations driving the per-card timers."""

    countdown_s: int = COUNTDOWN_SECONDS
    stabilization_ms: int = STABILIZATION_MS
    feedback_correct_ms: int = FEEDBACK_CORRECT_MS
    feedback_incorrect_ms: int = FEEDBACK_INCORRECT_MS
    detection_gap_ms: int = DETECTION_LOOP_GAP_MS


@dataclass(frozen=True)
class Verdict:
    """
    Outcome of one review.

    Attributes:
        card_id: The judged card.
        correct: What the learner is shown.
        promoted: Whether the card was scheduled as correct. Differs from
            ``correct`` only for a correct answer after a silent deadline.
        answer: The typed text or detected note(s); None on timeout.
        expected: The correct answer as display text.
        timed_out: The verdict was forced by the timeout.
    """

    card_id: str
    correct: bool
    promoted: bool
    answer: Answer | None
    expected: str
    timed_out: bool = False


def describe_payload(payload: CardPayload) -> str:
    if isinstance(payload, Note):
        return payload.key
    if isinstance(payload, Chord):
        return f"{payload.name} {payload.type}"
    if isinstance(payload, MathProblem):
        return payload.answer
    if isinstance(payload, ClockProblem):
        return payload.display_answer
    raise TypeError(f"Unsupported card payload: {type(payload).__name__}")


def _candidate_key(candidate: Answer) -> object:
    if isinstance(candidate, Note):
        return candidate.key
    if isinstance(candidate, str):
        return candidate
    return chord_key(tuple(candidate))


class ReviewSession:
    """
    One learner's review loop.

    Drive it with ``load``, ``start``, ``submit_typed``/detections, ``advance``,
    ``pause``/``resume`` and ``stop``. Manual actions that arrive in the wrong
    state (for example ``advance`` after the feedback timer already fired) are
    discarded.
    """

    def __init__(
        self,
        progress_repo: ProgressRepository,
        settings: UserSettings,
        timers: TimerService,
        detector: PitchDetector | None = None,
        *,
        user_id: str | None = None,
        mode: str = "music",
        catalog: Sequence[Lesson] | None = None,
        timing: SessionTiming | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], int] = scheduler.now_ms,
    ):
        """
        Args:
            progress_repo: Where progress is loaded from and saved to.
            settings: Intervals, timeout behavior and detector thresholds.
            timers: Deferred callbacks and the polling task.
            detector: Pitch detector for audio answers; typed-only without one.
            user_id: Persistence key; None uses the default profile.
            mode: Lesson mode whose cards are reviewed.
            catalog: Lesson catalog; the built-in one if not provided.
            timing: Timer durations; defaults if not provided.
            rng: Source for due-card selection and injection shuffles.
            clock: Current time in epoch milliseconds.
        """
        self._repo = progress_repo
        self._settings = settings
        self._timers = timers
        self._detector = detector
        self._user_id = user_id
        self._mode = mode
        self._catalog = tuple(catalog) if catalog is not None else build_catalog(settings.locale)
        self._timing = timing or SessionTiming()
        self._rng = rng or random.Random()
        self._clock = clock

        self._progress = LearningProgress()
        self._state = SessionState.AWAITING_START
        self._current: FlashCard | None = None
        self._active = False
        self._audio = False
        self._candidate: Answer | None = None
        self._deadline_passed = False
        self._countdown_remaining = 0
        self._time_remaining: float | None = None
        self._timeout_step = 0.0
        self._last_verdict: Verdict | None = None
        self._last_error: str | None = None
        self._listeners: list[Listener] = []

        self._countdown_handle: Cancellable | None = None
        self._stabilization_handle: Cancellable | None = None
        self._feedback_handle: Cancellable | None = None
        self._timeout_handle: Cancellable | None = None
        self._poll_task: Cancellable | None = None

    # ---------- Read-only view ----------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_card(self) -> FlashCard | None:
        return self._current

    @property
    def cards(self) -> tuple[FlashCard, ...]:
        return tuple(self._progress.cards)

    @property
    def injected_lesson_ids(self) -> tuple[str, ...]:
        return tuple(self._progress.injected_lesson_ids)

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def settings(self) -> UserSettings:
        return self._settings

    @property
    def candidate(self) -> Answer | None:
        return self._candidate

    @property
    def countdown_remaining(self) -> int:
        return self._countdown_remaining

    @property
    def time_remaining(self) -> float | None:
        """Seconds left on the visible timeout; None when no timeout runs or it is silent."""
        if self._settings.silent_timeout:
            return None
        return self._time_remaining

    @property
    def deadline_passed(self) -> bool:
        return self._deadline_passed

    @property
    def last_verdict(self) -> Verdict | None:
        return self._last_verdict

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def statistics(self) -> ProgressStatistics:
        return scheduler.statistics(self._mode_cards(), self._clock())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ---------- Deck management ----------

    def load(self) -> None:
        """Load saved progress (empty when none) and show the first card."""
        self._progress = self._repo.load(self._user_id) or LearningProgress()
        logger.info(
            f"Loaded {len(self._progress.cards)} cards, "
            f"{len(self._progress.injected_lesson_ids)} lessons for user {self._user_id!r}"
        )
        self._show_next_card()
        self._notify()

    def set_mode(self, mode: str) -> None:
        """Switch lesson mode. Mid-review, the switch applies from the next card."""
        if mode == self._mode:
            return
        self._mode = mode
        if self._state in (SessionState.AWAITING_START, SessionState.LISTENING):
            self._show_next_card()
            self._resume_or_wait()
        self._notify()

    def update_settings(self, settings: UserSettings) -> None:
        """Swap settings; intervals apply to the next verdict, thresholds immediately."""
        self._settings = settings
        if self._detector is not None:
            self._detector.update_settings(settings.audio_detection)
        self._notify()

    def inject_lesson(self, lesson_id: str) -> int:
        """
        Shuffle a lesson's items into the deck as new cards.

        Returns the number of cards added; 0 when the lesson was injected before.

        Raises:
            KeyError: no lesson with that id in the catalog.
        """
        lesson = get_lesson(lesson_id, self._catalog)
        if lesson is None:
            raise KeyError(f"Unknown lesson: {lesson_id}")
        if lesson.id in self._progress.injected_lesson_ids:
            logger.info(f"Lesson {lesson.id} already injected")
            return 0

        added = scheduler.initialize_cards(shuffle(lesson.items, self._rng), lesson.id)
        self._progress.cards = [*self._progress.cards, *added]
        self._progress.injected_lesson_ids = [*self._progress.injected_lesson_ids, lesson.id]
        self._save()
        logger.info(f"Injected lesson {lesson.id}: {len(added)} cards")

        if self._state is SessionState.AWAITING_START:
            self._show_next_card()
        self._notify()
        return len(added)

    def reset(self) -> None:
        """Discard every card and injected lesson for this user."""
        self._stop_listening()
        self._progress = LearningProgress()
        self._save()
        self._current = None
        self._last_verdict = None
        self._state = SessionState.AWAITING_START
        logger.info(f"Progress reset for user {self._user_id!r}")
        self._notify()

    # ---------- Listening lifecycle ----------

    def start(self, audio: bool = True) -> None:
        """
        Begin reviewing the current card.

        With audio, a countdown runs first and the detector is started when it
        ends. Without audio the session listens for typed answers immediately.
        """
        if self._state is not SessionState.AWAITING_START or self._current is None:
            logger.debug(f"Ignoring start in state {self._state.value}")
            return

        self._last_error = None
        if audio and self._detector is not None:
            self._audio = True
            self._countdown_remaining = self._timing.countdown_s
            if self._countdown_remaining <= 0:
                self._finish_countdown()
                return
            self._state = SessionState.COUNTING_DOWN
            self._countdown_handle = self._timers.call_later(1.0, self._tick_countdown)
            self._notify()
            return

        self._audio = False
        self._active = True
        self._begin_listening()
        self._notify()

    def _tick_countdown(self) -> None:
        self._countdown_handle = None
        if self._state is not SessionState.COUNTING_DOWN:
            return
        self._countdown_remaining -= 1
        if self._countdown_remaining > 0:
            self._countdown_handle = self._timers.call_later(1.0, self._tick_countdown)
            self._notify()
            return
        self._finish_countdown()

    def _finish_countdown(self) -> None:
        self._countdown_remaining = 0
        try:
            self._detector.start()
        except MicrophoneUnavailable as e:
            self._last_error = str(e) or "Microphone unavailable"
            self._audio = False
            self._state = SessionState.AWAITING_START
            self._notify()
            return

        self._active = True
        self._begin_listening()
        self._notify()

    def stop(self) -> None:
        """Stop listening and release the microphone. The current card stays."""
        self._stop_listening()
        self._state = SessionState.AWAITING_START
        self._notify()

    def _stop_listening(self) -> None:
        self._cancel_timers()
        self._cancel_feedback()
        if self._detector is not None and self._audio:
            self._detector.stop()
        self._active = False
        self._audio = False
        self._candidate = None

    def pause(self) -> None:
        """Halt polling and cancel the stabilization window and timeout."""
        if self._state is not SessionState.LISTENING:
            return
        self._cancel_timers()
        self._candidate = None
        if self._detector is not None and self._audio:
            self._detector.pause()
        self._state = SessionState.PAUSED
        self._notify()

    def resume(self) -> None:
        """Resume listening with no carried-over candidate and a fresh timeout."""
        if self._state is not SessionState.PAUSED:
            return
        if self._detector is not None and self._audio:
            self._detector.resume()
        # A resumed card gets a new deadline, so a silent miss before the pause is forgiven
        self._deadline_passed = False
        self._begin_listening()
        self._notify()

    def skip(self) -> None:
        """Move to another card without judging the current one."""
        if self._state not in (SessionState.AWAITING_START, SessionState.LISTENING):
            return
        self._show_next_card()
        self._resume_or_wait()
        self._notify()

    def _begin_listening(self) -> None:
        self._state = SessionState.LISTENING
        self._candidate = None
        self._start_timeout()
        if self._audio and self._current is not None and isinstance(self._current.payload, (Note, Chord)):
            self._poll_task = self._timers.create_task(self._poll_detector())

    async def _poll_detector(self) -> None:
        """Feed stable detections into ``on_detection`` until listening ends."""
        card = self._current
        detector = self._detector
        gap = self._timing.detection_gap_ms / 1000

        while self._state is SessionState.LISTENING and self._current is card and detector.is_running:
            if isinstance(card.payload, Chord):
                result = await detector.detect_chord_stable(CHORD_STABLE_DURATION_MS, CHORD_CONSENSUS)
            else:
                result = await detector.detect_stable(NOTE_STABLE_DURATION_MS, NOTE_CONSENSUS)

            if self._state is not SessionState.LISTENING or self._current is not card:
                break
            self.on_detection(result)
            await asyncio.sleep(gap)

    # ---------- Answers ----------

    def on_detection(self, candidate: Note | tuple[Note, ...] | None) -> None:
        """
        Accept one detector result.

        A new candidate (re)starts the stabilization window; the same candidate
        leaves a running window alone; None clears it.
        """
        if self._state is not SessionState.LISTENING:
            return

        if not candidate:
            if self._candidate is not None:
                self._cancel(self._stabilization_handle)
                self._stabilization_handle = None
                self._candidate = None
                self._notify()
            return

        if self._candidate is not None and _candidate_key(candidate) == _candidate_key(self._candidate):
            return

        self._cancel(self._stabilization_handle)
        self._candidate = candidate
        self._stabilization_handle = self._timers.call_later(
            self._timing.stabilization_ms / 1000, self._stabilized
        )
        self._notify()

    def _stabilized(self) -> None:
        self._stabilization_handle = None
        if self._state is not SessionState.LISTENING or self._candidate is None:
            return
        self._judge(self._candidate)

    def submit_typed(self, text: str) -> Verdict | None:
        """Judge a typed answer immediately. Blank input is ignored."""
        if self._state is not SessionState.LISTENING or self._current is None:
            logger.debug(f"Ignoring typed answer in state {self._state.value}")
            return None
        if not text or not text.strip():
            return None
        return self._judge(text)

    def _judge(self, answer: Answer | None, timed_out: bool = False) -> Verdict:
        card = self._current
        correct = answer is not None and is_correct(card.payload, answer)
        promoted = correct and not self._deadline_passed

        self._cancel_timers()
        self._candidate = None

        config = self._settings.box_config
        now = self._clock()
        updated = scheduler.promote(card, config, now) if promoted else scheduler.demote(card, config, now)
        self._replace(updated)
        self._save()

        verdict = Verdict(
            card_id=card.id,
            correct=correct,
            promoted=promoted,
            answer=answer,
            expected=describe_payload(card.payload),
            timed_out=timed_out,
        )
        self._last_verdict = verdict
        logger.info(
            f"Card {card.id}: {'correct' if correct else 'incorrect'}"
            f"{' (late)' if correct and not promoted else ''} -> box {updated.box_number}"
        )

        if correct:
            self._state = SessionState.FEEDBACK_CORRECT
            delay_ms = self._timing.feedback_correct_ms
        else:
            self._state = SessionState.FEEDBACK_INCORRECT
            delay_ms = self._timing.feedback_incorrect_ms
        self._feedback_handle = self._timers.call_later(delay_ms / 1000, self._feedback_elapsed)
        self._notify()
        return verdict

    def advance(self) -> None:
        """Leave feedback now instead of waiting for the auto-advance."""
        if self._state not in FEEDBACK_STATES:
            return
        self._cancel_feedback()
        self._advance()

    def _feedback_elapsed(self) -> None:
        self._feedback_handle = None
        if self._state not in FEEDBACK_STATES:
            return
        self._advance()

    def _advance(self) -> None:
        self._show_next_card()
        self._resume_or_wait()
        self._notify()

    def _resume_or_wait(self) -> None:
        if self._current is None:
            if self._active:
                self._stop_listening()
            self._state = SessionState.AWAITING_START
        elif self._active:
            self._begin_listening()
        else:
            self._state = SessionState.AWAITING_START

    # ---------- Timeout ----------

    def _start_timeout(self) -> None:
        self._time_remaining = None
        card = self._current
        if card is None or self._settings.timeout <= 0 or card.box_number < 1 or self._deadline_passed:
            return
        self._time_remaining = float(self._settings.timeout)
        self._schedule_timeout_tick()

    def _schedule_timeout_tick(self) -> None:
        self._timeout_step = min(1.0, self._time_remaining)
        self._timeout_handle = self._timers.call_later(self._timeout_step, self._tick_timeout)

    def _tick_timeout(self) -> None:
        self._timeout_handle = None
        if self._state is not SessionState.LISTENING or self._time_remaining is None:
            return

        self._time_remaining = max(0.0, self._time_remaining - self._timeout_step)
        if self._time_remaining > 0:
            self._schedule_timeout_tick()
            self._notify()
            return

        self._time_remaining = None
        if self._settings.silent_timeout:
            logger.debug(f"Silent deadline passed for card {self._current.id}")
            self._deadline_passed = True
            self._notify()
            return
        self._judge(None, timed_out=True)

    # ---------- Internals ----------

    def _mode_cards(self) -> list[FlashCard]:
        return scheduler.filter_by_mode(self._progress.cards, self._catalog, self._mode)

    def _show_next_card(self) -> None:
        """Cancel everything pending, then pick and (if new) introduce the next card."""
        self._cancel_timers()
        self._cancel_feedback()
        self._candidate = None
        self._deadline_passed = False
        self._time_remaining = None

        now = self._clock()
        card = scheduler.next_card(self._mode_cards(), now, rng=self._rng)
        if card is not None and card.is_new:
            card = scheduler.introduce_card(card, now)
            self._replace(card)
            self._save()
        self._current = card

    def _replace(self, card: FlashCard) -> None:
        self._progress.cards = scheduler.replace_card(self._progress.cards, card)
        if self._current is not None and self._current.id == card.id:
            self._current = card

    def _save(self) -> None:
        self._repo.save(self._progress, self._user_id)

    def _cancel_timers(self) -> None:
        for name in ("_countdown_handle", "_stabilization_handle", "_timeout_handle", "_poll_task"):
            self._cancel(getattr(self, name))
            setattr(self, name, None)

    def _cancel_feedback(self) -> None:
        self._cancel(self._feedback_handle)
        self._feedback_handle = None

    @staticmethod
    def _cancel(handle: Cancellable | None) -> None:
        if handle is not None:
            handle.cancel()
