"""
Answer matcher.

Stateless equivalence checks between an expected card payload and a detected
or typed answer. Typed input is validated before it is parsed, so learner
input never raises; it is simply judged incorrect.
"""

from collections.abc import Sequence

from piano_tutor.application.clock_phrases import is_valid_clock_answer
from piano_tutor.domain.models import CardPayload, Chord, ClockProblem, MathProblem, Note
from piano_tutor.domain.notes import is_note_string, parse_note, pitch_class

Answer = str | Note | Sequence[Note]


def notes_equivalent(first: str, second: str) -> bool:
    """
    Enharmonic comparison of two note strings ("C#4" == "Db4").

    Octaves must match exactly. Raises InvalidNoteError on malformed input.
    """
    a = parse_note(first)
    b = parse_note(second)
    return a.octave == b.octave and pitch_class(a) == pitch_class(b)


def note_matches(expected: Note, answer: str | Note) -> bool:
    text = answer.key if isinstance(answer, Note) else _normalize_typed_note(answer)
    if not is_note_string(text):
        return False
    return notes_equivalent(expected.key, text)


def chord_matches_detected(expected: Chord, detected: Sequence[Note]) -> bool:
    """Pitch-class set equality, ignoring octave; doubled pitch classes count once."""
    played = {pitch_class(n) for n in detected}
    wanted = {pitch_class(n) for n in expected.notes}
    return len(played) == len(wanted) and played == wanted


def chord_matches_typed(expected: Chord, text: str) -> bool:
    return text.strip().lower() == expected.name.lower()


def math_matches(expected: MathProblem, text: str) -> bool:
    return text.strip() == expected.answer


def clock_matches(expected: ClockProblem, text: str) -> bool:
    return is_valid_clock_answer(text, expected.valid_answers)


def is_correct(payload: CardPayload, answer: Answer) -> bool:
    """Dispatch on the payload kind. Unsupported answer shapes are incorrect."""
    if isinstance(payload, Note):
        if isinstance(answer, (str, Note)):
            return note_matches(payload, answer)
        return False

    if isinstance(payload, Chord):
        if isinstance(answer, str):
            return chord_matches_typed(payload, answer)
        if isinstance(answer, Note):
            return False
        return chord_matches_detected(payload, answer)

    if not isinstance(answer, str):
        return False
    if isinstance(payload, MathProblem):
        return math_matches(payload, answer)
    if isinstance(payload, ClockProblem):
        return clock_matches(payload, answer)
    raise TypeError(f"Unsupported card payload: {type(payload).__name__}")


def _normalize_typed_note(text: str) -> str:
    text = text.strip()
    return text[:1].upper() + text[1:]
