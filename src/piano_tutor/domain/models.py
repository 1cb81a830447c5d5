"""
Domain models for flash cards and their payloads.

These are pure data structures with no I/O or external dependencies.
Every transition produces a new value (``dataclasses.replace``); nothing in
the domain is mutated in place.
"""

from dataclasses import dataclass, field

from .constants import BOX_COUNT, NEW_CARD_BOX


@dataclass(frozen=True)
class Note:
    """
    A single pitch.

    Attributes:
        name: Pitch class as spelled, e.g. "C", "D#", "Eb".
        octave: Scientific pitch octave (4 = middle C octave).
        frequency: Equal-temperament frequency in Hz, derived from name and octave.
    """

    name: str
    octave: int
    frequency: float

    @property
    def key(self) -> str:
        return f"{self.name}{self.octave}"


@dataclass(frozen=True)
class Chord:
    """
    A triad identified by its root.

    Inversions reorder and octave-shift ``notes`` but never omit one, so the
    pitch-class multiset is fixed per chord identity.
    """

    name: str
    notes: tuple[Note, ...]
    type: str = "major"


@dataclass(frozen=True)
class MathProblem:
    question: str
    answer: str
    operation: str | None = None


@dataclass(frozen=True)
class ClockProblem:
    """
    An analog clock reading.

    Attributes:
        hour: 1-12 as shown on the clock face.
        minute: 0-59.
        display_answer: Canonical locale phrase shown as the correct answer.
        valid_answers: Every textual form accepted as correct.
    """

    hour: int
    minute: int
    display_answer: str
    valid_answers: tuple[str, ...] = ()


CardPayload = Note | Chord | MathProblem | ClockProblem


@dataclass(frozen=True)
class FlashCard:
    """
    A card in the Leitner rotation.

    ``box_number == -1`` means the card has not been introduced yet and no due
    date applies. Boxes 0-4 are active and ``next_review_date`` decides
    eligibility. Timestamps are epoch milliseconds.
    """

    id: str
    payload: CardPayload
    lesson_id: str | None = None
    box_number: int = NEW_CARD_BOX
    last_review_date: int = 0
    next_review_date: int = 0
    review_count: int = 0
    correct_count: int = 0
    incorrect_count: int = 0

    @property
    def is_new(self) -> bool:
        return self.box_number == NEW_CARD_BOX

    @property
    def kind(self) -> str:
        return payload_kind(self.payload)


def payload_kind(payload: CardPayload) -> str:
    if isinstance(payload, Note):
        return "note"
    if isinstance(payload, Chord):
        return "chord"
    if isinstance(payload, MathProblem):
        return "math"
    if isinstance(payload, ClockProblem):
        return "clock"
    raise TypeError(f"Unsupported card payload: {type(payload).__name__}")


@dataclass(frozen=True)
class LeitnerBoxConfig:
    """Review interval (ms) for each of the five boxes."""

    intervals_ms: tuple[int, ...]

    def __post_init__(self):
        if len(self.intervals_ms) != BOX_COUNT:
            raise ValueError(f"Expected {BOX_COUNT} box intervals, got {len(self.intervals_ms)}")

    def interval_for(self, box_number: int) -> int:
        if 0 <= box_number < BOX_COUNT:
            return self.intervals_ms[box_number]
        return self.intervals_ms[0]


@dataclass(frozen=True)
class Lesson:
    """A named batch of items that can be injected into the deck once."""

    id: str
    name: str
    description: str
    mode: str  # "music", "math" or "clock"
    items: tuple[CardPayload, ...] = ()


@dataclass
class LearningProgress:
    """
    Persisted aggregate owned by the review session.

    Created empty per user and only cleared by an explicit reset.
    """

    cards: list[FlashCard] = field(default_factory=list)
    injected_lesson_ids: list[str] = field(default_factory=list)

    @property
    def total_reviews(self) -> int:
        return sum(c.review_count for c in self.cards)

    @property
    def correct_reviews(self) -> int:
        return sum(c.correct_count for c in self.cards)
