import math

import pytest

from piano_tutor.domain.errors import InvalidNoteError
from piano_tutor.domain.notes import (
    equal_temperament_frequency,
    generate_note_set,
    is_note_string,
    make_note,
    midi_number,
    normalize_pitch_class,
    parse_note,
    quantize,
    transpose,
)


def test_a4_is_440():
    assert equal_temperament_frequency("A", 4) == 440.0
    assert midi_number("A", 4) == 69


def test_middle_c_frequency():
    assert math.isclose(equal_temperament_frequency("C", 4), 261.6256, rel_tol=1e-5)


def test_flat_and_sharp_share_a_frequency():
    assert equal_temperament_frequency("Db", 4) == equal_temperament_frequency("C#", 4)


def test_generated_notes_derive_frequency_from_name_and_octave():
    note = make_note("Eb", 5)
    assert note.frequency == equal_temperament_frequency("Eb", 5)
    assert note.key == "Eb5"


def test_note_set_spans_the_piano():
    notes = generate_note_set()
    assert len(notes) == 88
    assert notes[0].key == "A0"
    assert notes[-1].key == "C8"


def test_quantize_round_trips_every_key():
    for note in generate_note_set():
        assert quantize(note.frequency) == note


def test_quantize_spells_flats_as_sharps():
    result = quantize(make_note("Bb", 3).frequency)
    assert result.key == "A#3"


def test_quantize_within_tolerance():
    slightly_sharp = 440.0 * 2 ** (0.3 / 12)
    assert quantize(slightly_sharp).key == "A4"


def test_quantize_rejects_between_keys():
    quarter_tone = 440.0 * 2 ** (0.5 / 12)
    assert quantize(quarter_tone) is None


@pytest.mark.parametrize("frequency", [0.0, -10.0, 20.0, 5000.0])
def test_quantize_rejects_outside_keyboard(frequency):
    assert quantize(frequency) is None


def test_normalize_pitch_class():
    assert normalize_pitch_class("Db") == "C#"
    assert normalize_pitch_class("G") == "G"
    with pytest.raises(InvalidNoteError):
        normalize_pitch_class("H")


def test_invalid_note_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_note("C")


def test_parse_note():
    note = parse_note("F#3")
    assert (note.name, note.octave) == ("F#", 3)


@pytest.mark.parametrize("text,expected", [("C4", True), ("Db5", True), ("Cb4", False), ("c4", False), ("C", False), ("", False)])
def test_is_note_string(text, expected):
    assert is_note_string(text) is expected


def test_transpose_crosses_octave():
    assert transpose(make_note("A", 4), 3).key == "C5"
    assert transpose(make_note("C", 4), -1).key == "B3"
