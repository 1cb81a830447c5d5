"""
JSON file persistence for progress and settings.

One file per user and record type under the data directory:
``progress-<user>.json`` / ``settings-<user>.json``, or ``progress.json`` /
``settings.json`` for the default profile. Unreadable files are treated as
absent.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from piano_tutor.application.config import UserSettings
from piano_tutor.domain.interfaces import ProgressRepository, SettingsRepository
from piano_tutor.domain.models import (
    CardPayload,
    Chord,
    ClockProblem,
    FlashCard,
    LearningProgress,
    MathProblem,
    Note,
)

logger = logging.getLogger(__name__)

PROGRESS_PREFIX = "progress"
SETTINGS_PREFIX = "settings"


# ---------- Records ----------


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NoteRecord(_Record):
    kind: Literal["note"] = "note"
    name: str
    octave: int
    frequency: float


class ChordRecord(_Record):
    kind: Literal["chord"] = "chord"
    name: str
    notes: list[NoteRecord]
    type: str = "major"


class MathRecord(_Record):
    kind: Literal["math"] = "math"
    question: str
    answer: str
    operation: str | None = None


class ClockRecord(_Record):
    kind: Literal["clock"] = "clock"
    hour: int
    minute: int
    display_answer: str
    valid_answers: list[str] = Field(default_factory=list)


PayloadRecord = Annotated[NoteRecord | ChordRecord | MathRecord | ClockRecord, Field(discriminator="kind")]


class CardRecord(_Record):
    id: str
    payload: PayloadRecord
    lesson_id: str | None = None
    box_number: int = Field(default=-1, ge=-1, le=4)
    last_review_date: int = 0
    next_review_date: int = 0
    review_count: int = Field(default=0, ge=0)
    correct_count: int = Field(default=0, ge=0)
    incorrect_count: int = Field(default=0, ge=0)


class ProgressRecord(_Record):
    cards: list[CardRecord] = Field(default_factory=list)
    total_reviews: int = 0
    correct_reviews: int = 0
    injected_lesson_ids: list[str] = Field(default_factory=list)


# ---------- Mapping ----------


def _note_to_record(note: Note) -> NoteRecord:
    return NoteRecord(name=note.name, octave=note.octave, frequency=note.frequency)


def _note_from_record(record: NoteRecord) -> Note:
    return Note(name=record.name, octave=record.octave, frequency=record.frequency)


def payload_to_record(payload: CardPayload) -> PayloadRecord:
    if isinstance(payload, Note):
        return _note_to_record(payload)
    if isinstance(payload, Chord):
        return ChordRecord(name=payload.name, notes=[_note_to_record(n) for n in payload.notes], type=payload.type)
    if isinstance(payload, MathProblem):
        return MathRecord(question=payload.question, answer=payload.answer, operation=payload.operation)
    if isinstance(payload, ClockProblem):
        return ClockRecord(
            hour=payload.hour,
            minute=payload.minute,
            display_answer=payload.display_answer,
            valid_answers=list(payload.valid_answers),
        )
    raise TypeError(f"Unsupported card payload: {type(payload).__name__}")


def payload_from_record(record: PayloadRecord) -> CardPayload:
    if isinstance(record, NoteRecord):
        return _note_from_record(record)
    if isinstance(record, ChordRecord):
        return Chord(name=record.name, notes=tuple(_note_from_record(n) for n in record.notes), type=record.type)
    if isinstance(record, MathRecord):
        return MathProblem(question=record.question, answer=record.answer, operation=record.operation)
    return ClockProblem(
        hour=record.hour,
        minute=record.minute,
        display_answer=record.display_answer,
        valid_answers=tuple(record.valid_answers),
    )


def progress_to_record(progress: LearningProgress) -> ProgressRecord:
    return ProgressRecord(
        cards=[
            CardRecord(
                id=c.id,
                payload=payload_to_record(c.payload),
                lesson_id=c.lesson_id,
                box_number=c.box_number,
                last_review_date=c.last_review_date,
                next_review_date=c.next_review_date,
                review_count=c.review_count,
                correct_count=c.correct_count,
                incorrect_count=c.incorrect_count,
            )
            for c in progress.cards
        ],
        total_reviews=progress.total_reviews,
        correct_reviews=progress.correct_reviews,
        injected_lesson_ids=list(progress.injected_lesson_ids),
    )


def progress_from_record(record: ProgressRecord) -> LearningProgress:
    cards = [
        FlashCard(
            id=r.id,
            payload=payload_from_record(r.payload),
            lesson_id=r.lesson_id,
            box_number=r.box_number,
            last_review_date=r.last_review_date,
            next_review_date=r.next_review_date,
            review_count=r.review_count,
            correct_count=r.correct_count,
            incorrect_count=r.incorrect_count,
        )
        for r in record.cards
    ]
    return LearningProgress(cards=cards, injected_lesson_ids=list(record.injected_lesson_ids))


# ---------- Files ----------


def _file_for(data_dir: Path, prefix: str, user_id: str | None) -> Path:
    return data_dir / (f"{prefix}-{user_id}.json" if user_id else f"{prefix}.json")


def _write_atomic(path: Path, text: str) -> None:
    """Write via a temp file in the same directory so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _read_text(path: Path) -> str | None:
    if not path.exists():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return None


class JsonProgressRepository(ProgressRepository):
    """Learning progress stored as one JSON document per user."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, user_id: str | None = None) -> Path:
        return _file_for(self.data_dir, PROGRESS_PREFIX, user_id)

    def load(self, user_id: str | None = None) -> LearningProgress | None:
        path = self.path_for(user_id)
        text = _read_text(path)
        if text is None:
            return None
        try:
            record = ProgressRecord.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring malformed progress file {path}: {e}")
            return None
        return progress_from_record(record)

    def save(self, progress: LearningProgress, user_id: str | None = None) -> None:
        record = progress_to_record(progress)
        _write_atomic(self.path_for(user_id), record.model_dump_json(by_alias=True, indent=2))


class JsonSettingsRepository(SettingsRepository):
    """User settings stored as one JSON document per user."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, user_id: str | None = None) -> Path:
        return _file_for(self.data_dir, SETTINGS_PREFIX, user_id)

    def load(self, user_id: str | None = None) -> UserSettings:
        path = self.path_for(user_id)
        text = _read_text(path)
        if text is None:
            return UserSettings()
        try:
            return UserSettings.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring malformed settings file {path}: {e}")
            return UserSettings()

    def save(self, settings: UserSettings, user_id: str | None = None) -> None:
        _write_atomic(self.path_for(user_id), settings.model_dump_json(by_alias=True, indent=2))
