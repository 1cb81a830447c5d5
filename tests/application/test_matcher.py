import pytest

from piano_tutor.application.clock_phrases import create_clock_problem
from piano_tutor.application.lessons import major_chord_inversions
from piano_tutor.application.matcher import (
    chord_matches_detected,
    is_correct,
    math_matches,
    note_matches,
    notes_equivalent,
)
from piano_tutor.domain.errors import InvalidNoteError
from piano_tutor.domain.models import MathProblem
from piano_tutor.domain.notes import make_note, parse_note


@pytest.fixture
def c_major():
    return major_chord_inversions("C", 4)[0]


@pytest.mark.parametrize(
    "first,second,expected",
    [
        ("C#4", "Db4", True),
        ("A#3", "Bb3", True),
        ("C4", "C4", True),
        ("C4", "C5", False),
        ("D#4", "Eb5", False),
        ("E4", "F4", False),
    ],
)
def test_notes_equivalent(first, second, expected):
    assert notes_equivalent(first, second) is expected


def test_notes_equivalent_rejects_malformed():
    with pytest.raises(InvalidNoteError):
        notes_equivalent("H4", "C4")


def test_note_matches_detected_note():
    assert note_matches(make_note("Db", 4), make_note("C#", 4))
    assert not note_matches(make_note("Db", 4), make_note("C#", 5))


@pytest.mark.parametrize("typed", ["C#4", "c#4", " Db4 ", "db4"])
def test_note_matches_typed(typed):
    assert note_matches(make_note("C#", 4), typed)


@pytest.mark.parametrize("typed", ["", "C#", "hello", "X4", "Cb4"])
def test_note_matches_invalid_typed_is_incorrect(typed):
    assert not note_matches(make_note("C#", 4), typed)


def test_chord_matches_any_inversion(c_major):
    for inversion in major_chord_inversions("C", 4):
        assert chord_matches_detected(c_major, inversion.notes)


def test_chord_matches_ignores_octave_and_enharmonics():
    d_flat = major_chord_inversions("Db", 4)[0]
    detected = [parse_note("C#3"), parse_note("F5"), parse_note("G#4")]
    assert chord_matches_detected(d_flat, detected)


def test_chord_requires_all_pitch_classes(c_major):
    two_notes = [parse_note("C4"), parse_note("E4")]
    assert not chord_matches_detected(c_major, two_notes)


def test_chord_doubled_root_matches(c_major):
    doubled = [parse_note("C4"), parse_note("E4"), parse_note("G4"), parse_note("C5")]
    assert chord_matches_detected(c_major, doubled)


def test_chord_extra_pitch_class_rejected(c_major):
    added_sixth = [parse_note("C4"), parse_note("E4"), parse_note("G4"), parse_note("A4")]
    assert not chord_matches_detected(c_major, added_sixth)


def test_chord_wrong_notes(c_major):
    assert not chord_matches_detected(c_major, [parse_note("C4"), parse_note("D#4"), parse_note("G4")])


def test_math_matches_trims():
    problem = MathProblem(question="7 × 8", answer="56", operation="multiplication")
    assert math_matches(problem, " 56 ")
    assert not math_matches(problem, "57")
    assert not math_matches(problem, "fifty-six")


def test_is_correct_dispatch(c_major):
    clock = create_clock_problem(2, 30, "no")
    math = MathProblem(question="2 + 2", answer="4")

    assert is_correct(make_note("A", 4), "a4")
    assert is_correct(c_major, "c")
    assert is_correct(c_major, list(c_major.notes))
    assert is_correct(math, "4")
    assert is_correct(clock, "14:30")


def test_is_correct_mismatched_answer_shapes(c_major):
    math = MathProblem(question="2 + 2", answer="4")

    assert not is_correct(make_note("A", 4), [make_note("A", 4)])
    assert not is_correct(c_major, make_note("C", 4))
    assert not is_correct(math, make_note("C", 4))
