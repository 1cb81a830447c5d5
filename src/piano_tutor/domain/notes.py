"""
Note/frequency model.

Pure functions mapping (pitch class, octave) to equal-temperament frequency
(A4 = 440 Hz) and back, with flat spellings normalised to sharps.
"""

import math
import re
from functools import lru_cache

from .constants import (
    A4_FREQUENCY,
    A4_MIDI,
    FLAT_TO_SHARP,
    NOTE_TOLERANCE_SEMITONES,
    PIANO_HIGHEST_MIDI,
    PIANO_LOWEST_MIDI,
    SHARP_NAMES,
)
from .errors import InvalidNoteError
from .models import Note

NOTE_PATTERN = re.compile(r"^([A-G][#b]?)(-?\d+)$")


def normalize_pitch_class(name: str) -> str:
    """Return the sharp spelling of ``name`` ("Db" -> "C#")."""
    normalized = FLAT_TO_SHARP.get(name, name)
    if normalized not in SHARP_NAMES:
        raise InvalidNoteError(f"Invalid note name: {name}")
    return normalized


def midi_number(name: str, octave: int) -> int:
    index = SHARP_NAMES.index(normalize_pitch_class(name))
    return (octave + 1) * 12 + index


def equal_temperament_frequency(name: str, octave: int) -> float:
    """f = 440 * 2^(n/12) where n is the semitone distance from A4."""
    semitones_from_a4 = midi_number(name, octave) - A4_MIDI
    return A4_FREQUENCY * 2 ** (semitones_from_a4 / 12)


def make_note(name: str, octave: int) -> Note:
    return Note(name=name, octave=octave, frequency=equal_temperament_frequency(name, octave))


def note_from_midi(midi: int) -> Note:
    name = SHARP_NAMES[midi % 12]
    return make_note(name, midi // 12 - 1)


def transpose(note: Note, semitones: int) -> Note:
    """Shift a note by ``semitones``, spelling the result with sharps."""
    return note_from_midi(midi_number(note.name, note.octave) + semitones)


@lru_cache(maxsize=1)
def generate_note_set() -> tuple[Note, ...]:
    """Every key of an 88-key piano (A0-C8), sharp spelling."""
    return tuple(note_from_midi(m) for m in range(PIANO_LOWEST_MIDI, PIANO_HIGHEST_MIDI + 1))


def quantize(frequency: float, tolerance: float = NOTE_TOLERANCE_SEMITONES) -> Note | None:
    """
    Map a frequency to the nearest piano key.

    Returns None when the frequency is not within ``tolerance`` semitones of
    a defined key (or is outside the keyboard altogether).
    """
    if frequency <= 0:
        return None

    exact = A4_MIDI + 12 * math.log2(frequency / A4_FREQUENCY)
    nearest = round(exact)
    if nearest < PIANO_LOWEST_MIDI or nearest > PIANO_HIGHEST_MIDI:
        return None
    if abs(exact - nearest) >= tolerance:
        return None
    return note_from_midi(nearest)


def is_note_string(text: str) -> bool:
    match = NOTE_PATTERN.match(text)
    if not match:
        return False
    return FLAT_TO_SHARP.get(match.group(1), match.group(1)) in SHARP_NAMES


def parse_note(text: str) -> Note:
    """Parse strings like "C#4" or "Db5". Raises InvalidNoteError on anything else."""
    match = NOTE_PATTERN.match(text)
    if not match:
        raise InvalidNoteError(f"Invalid note format: {text}")
    return make_note(match.group(1), int(match.group(2)))


def pitch_class(note: Note) -> str:
    return normalize_pitch_class(note.name)
