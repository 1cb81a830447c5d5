"""
Static lesson catalog.

Lessons are grouped by mode ("music", "math", "clock"). Each lesson's items
are fed to ``initialize_cards`` after an optional Fisher-Yates shuffle.
Randomly generated arithmetic is seeded by the lesson id so a catalog is
identical across runs.
"""

import logging
import random
from collections.abc import Sequence
from functools import lru_cache
from typing import TypeVar

from piano_tutor.application.clock_phrases import create_clock_problem
from piano_tutor.domain.constants import DEFAULT_LOCALE
from piano_tutor.domain.models import Chord, ClockProblem, Lesson, MathProblem, Note
from piano_tutor.domain.notes import make_note, transpose

logger = logging.getLogger(__name__)

T = TypeVar("T")

MODES = ("music", "math", "clock")

NATURALS = ["C", "D", "E", "F", "G", "A", "B"]
ACCIDENTALS = ["C#", "Db", "D#", "Eb", "F#", "Gb", "G#", "Ab", "A#", "Bb"]
BASS_LOWER = ["E", "F", "G", "A", "B"]
BASS_UPPER = ["C", "D"]
BASS_LOWER_ACCIDENTALS = ["F#", "Gb", "G#", "Ab", "A#", "Bb"]
BASS_UPPER_ACCIDENTALS = ["C#", "Db", "D#", "Eb"]


def shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """
    Return a uniformly shuffled copy of ``items`` (Fisher-Yates).

    Pass a seeded ``random.Random`` for a reproducible order.
    """
    rng = rng or random.Random()
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


# ---------- Item generators ----------


def octave_notes(names: Sequence[str], octave: int) -> list[Note]:
    return [make_note(name, octave) for name in names]


def bass_clef_notes(lower: Sequence[str], upper: Sequence[str], start_octave: int) -> list[Note]:
    """Notes from E of ``start_octave`` up to D of the next octave."""
    return octave_notes(lower, start_octave) + octave_notes(upper, start_octave + 1)


def major_chord_inversions(root_name: str, octave: int) -> list[Chord]:
    """Root position, first and second inversion of a major triad."""
    root = make_note(root_name, octave)
    third = transpose(root, 4)
    fifth = transpose(root, 7)

    def up(note: Note) -> Note:
        return make_note(note.name, note.octave + 1)

    voicings = [
        (root, third, fifth),
        (third, fifth, up(root)),
        (fifth, up(root), up(third)),
    ]
    return [Chord(name=root_name, notes=v, type="major") for v in voicings]


def arithmetic_problems(
    operation: str,
    first: tuple[int, int],
    second: tuple[int, int],
    count: int,
    rng: random.Random,
) -> list[MathProblem]:
    """Random problems; division is built from a product so it is always whole."""
    problems = []
    for _ in range(count):
        a = rng.randint(*first)
        b = rng.randint(*second)
        if operation == "addition":
            question, answer = f"{a} + {b}", a + b
        elif operation == "subtraction":
            question, answer = f"{a} - {b}", a - b
        elif operation == "multiplication":
            question, answer = f"{a} × {b}", a * b
        elif operation == "division":
            question, answer = f"{a * b} / {b}", a
        else:
            raise ValueError(f"Unknown operation: {operation}")
        problems.append(MathProblem(question=question, answer=str(answer), operation=operation))
    return problems


def multiplication_table(table: int) -> list[MathProblem]:
    return [
        MathProblem(question=f"{table} × {m}", answer=str(table * m), operation="multiplication")
        for m in range(11)
    ]


def clock_problems(minutes: Sequence[int], locale: str) -> list[ClockProblem]:
    return [create_clock_problem(hour, minute, locale) for minute in minutes for hour in range(1, 13)]


# ---------- Catalog ----------


def _music_lessons() -> list[Lesson]:
    lessons = []
    treble = [
        ("lesson-1-c4-b4", "1: Treble Clef Basics", "the fundamental notes on the treble staff from Middle C (C4) to B4", 4),
        ("lesson-2-c5-b5", "2: Treble Clef Higher Notes", "the higher notes on the treble staff from C5 to B5", 5),
        ("lesson-3-c3-b3", "3: Treble Clef Lower Notes", "the lower notes on the treble staff from C3 to B3", 3),
    ]
    for lesson_id, name, about, octave in treble:
        lessons.append(Lesson(lesson_id, name, f"Learn {about}", "music", tuple(octave_notes(NATURALS, octave))))

    for index, (label, octave) in enumerate([("Middle", 4), ("Higher", 5), ("Lower", 3)], start=4):
        lessons.append(
            Lesson(
                f"lesson-{index}-accidentals-c{octave}-b{octave}",
                f"{index}: Sharps & Flats ({label})",
                f"Sharps and flats on the treble staff from C{octave} to B{octave}",
                "music",
                tuple(octave_notes(ACCIDENTALS, octave)),
            )
        )

    bass_ranges = [("Basics", 2), ("Higher Notes", 3), ("Lower Notes", 1)]
    for index, (label, octave) in enumerate(bass_ranges, start=7):
        lessons.append(
            Lesson(
                f"lesson-{index}-bass-e{octave}-d{octave + 1}",
                f"{index}: Bass Clef {label}",
                f"Notes on the bass staff from E{octave} to D{octave + 1}",
                "music",
                tuple(bass_clef_notes(BASS_LOWER, BASS_UPPER, octave)),
            )
        )
    for index, (label, octave) in enumerate([("Middle", 2), ("Higher", 3), ("Lower", 1)], start=10):
        lessons.append(
            Lesson(
                f"lesson-{index}-bass-accidentals-e{octave}-d{octave + 1}",
                f"{index}: Bass Sharps & Flats ({label})",
                f"Sharps and flats on the bass staff from E{octave} to D{octave + 1}",
                "music",
                tuple(bass_clef_notes(BASS_LOWER_ACCIDENTALS, BASS_UPPER_ACCIDENTALS, octave)),
            )
        )

    chord_sets = [
        ("natural", "Natural", ["C", "D", "E", "F", "G", "A", "B"]),
        ("sharp", "Sharps", ["C#", "D#", "F#", "G#", "A#"]),
        ("flat", "Flats", ["Db", "Eb", "Gb", "Ab", "Bb"]),
    ]
    for index, (slug, label, roots) in enumerate(chord_sets, start=13):
        chords = [chord for root in roots for chord in major_chord_inversions(root, 4)]
        lessons.append(
            Lesson(
                f"lesson-{index}-major-chords-{slug}",
                f"{index}: Major Chords ({label})",
                f"Major chords built on {', '.join(roots)} with all inversions",
                "music",
                tuple(chords),
            )
        )
    return lessons


def _math_lessons() -> list[Lesson]:
    random_sets = [
        (1, "addition-basic", "Addition (0-10)", "addition", (0, 10), (0, 10)),
        (2, "addition-medium", "Addition (0-20)", "addition", (0, 20), (0, 20)),
        (3, "addition-advanced", "Addition (0-100)", "addition", (0, 100), (0, 100)),
        (4, "subtraction-basic", "Subtraction (0-10)", "subtraction", (0, 10), (0, 10)),
        (5, "subtraction-medium", "Subtraction (0-20)", "subtraction", (0, 20), (0, 20)),
        (6, "subtraction-advanced", "Subtraction (0-100)", "subtraction", (0, 100), (0, 100)),
        (17, "division-basic", "Division (0-10)", "division", (1, 10), (1, 10)),
        (18, "division-medium", "Division (0-12)", "division", (1, 12), (1, 12)),
    ]
    lessons = []
    for number, slug, title, operation, first, second in random_sets:
        lesson_id = f"math-lesson-{number}-{slug}"
        items = arithmetic_problems(operation, first, second, 20, random.Random(lesson_id))
        lessons.append(Lesson(lesson_id, f"M{number}: {title}", f"Practice {title.lower()}", "math", tuple(items)))

    for table in range(1, 11):
        number = table + 6
        lessons.append(
            Lesson(
                f"math-lesson-{number}-multiplication-table-{table}",
                f"M{number}: Multiplication Table of {table}",
                f"Practice the multiplication table of {table}",
                "math",
                tuple(multiplication_table(table)),
            )
        )
    return sorted(lessons, key=lambda lesson: int(lesson.id.split("-")[2]))


def _clock_lessons(locale: str) -> list[Lesson]:
    groups = [
        ("whole-hours", "Whole Hours", [0]),
        ("half-past", "Half Past", [30]),
        ("quarter-past", "Quarter Past", [15]),
        ("quarter-to", "Quarter To", [45]),
        ("five-minutes", "Five Minutes Past/To", [5, 55]),
        ("ten-minutes", "Ten Minutes Past/To", [10, 50]),
        ("twenty-minutes", "Twenty/Forty Past", [20, 40]),
        ("twentyfive-thirtyfive", "Twenty-Five/Thirty-Five Past", [25, 35]),
    ]
    return [
        Lesson(
            f"clock-lesson-{number}-{slug}",
            f"C{number}: {title}",
            "Read an analog clock at " + ", ".join(f":{m:02d}" for m in minutes),
            "clock",
            tuple(clock_problems(minutes, locale)),
        )
        for number, (slug, title, minutes) in enumerate(groups, start=1)
    ]


@lru_cache
def build_catalog(locale: str = DEFAULT_LOCALE) -> tuple[Lesson, ...]:
    """All lessons, music first, then math, then clock."""
    catalog = tuple(_music_lessons() + _math_lessons() + _clock_lessons(locale))
    logger.debug(f"Built lesson catalog ({locale}): {len(catalog)} lessons")
    return catalog


def get_lesson(lesson_id: str, catalog: Sequence[Lesson] | None = None) -> Lesson | None:
    for lesson in catalog if catalog is not None else build_catalog():
        if lesson.id == lesson_id:
            return lesson
    return None


def lessons_for_mode(mode: str, catalog: Sequence[Lesson] | None = None) -> list[Lesson]:
    return [lesson for lesson in (catalog if catalog is not None else build_catalog()) if lesson.mode == mode]
