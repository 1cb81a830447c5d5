"""
Leitner scheduler.

Pure functions over card collections. Nothing here mutates a card: every
transition returns a new FlashCard that the caller substitutes into its own
collection (see ``replace_card``).
"""

import logging
import random
import time
from collections.abc import Iterable, Sequence
from dataclasses import replace

from piano_tutor.application.id_service import generate_card_id
from piano_tutor.application.stats.metrics_calculator import MetricsCalculator
from piano_tutor.domain.constants import MAX_BOX, NEW_CARD_BOX
from piano_tutor.domain.models import CardPayload, FlashCard, LeitnerBoxConfig, Lesson
from piano_tutor.domain.stats.models import ProgressStatistics

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def initialize_cards(items: Iterable[CardPayload], lesson_id: str | None = None) -> list[FlashCard]:
    """
    Wrap each item in a fresh, not-yet-introduced card.

    Item order is kept; callers shuffle beforehand when they want a random
    introduction order.
    """
    return [
        FlashCard(id=generate_card_id(), payload=item, lesson_id=lesson_id, box_number=NEW_CARD_BOX)
        for item in items
    ]


def due_cards(cards: Sequence[FlashCard], now: int | None = None) -> list[FlashCard]:
    now = now_ms() if now is None else now
    return [c for c in cards if c.box_number >= 0 and c.next_review_date <= now]


def new_cards(cards: Sequence[FlashCard]) -> list[FlashCard]:
    """Cards not yet introduced, in insertion order."""
    return [c for c in cards if c.box_number == NEW_CARD_BOX]


def next_card(
    cards: Sequence[FlashCard],
    now: int | None = None,
    exclude: str | None = None,
    rng: random.Random | None = None,
) -> FlashCard | None:
    """
    Pick the card to show next.

    Due cards win and are chosen uniformly at random (``exclude`` removes one
    card id from that draw). With nothing due, the first new card is returned,
    or None when the deck is exhausted.
    """
    available = [c for c in due_cards(cards, now) if c.id != exclude]
    if available:
        return (rng or random).choice(available)

    fresh = new_cards(cards)
    return fresh[0] if fresh else None


def introduce_card(card: FlashCard, now: int | None = None) -> FlashCard:
    """Move a new card into box 0, due immediately."""
    now = now_ms() if now is None else now
    return replace(card, box_number=0, last_review_date=now, next_review_date=now)


def promote(card: FlashCard, config: LeitnerBoxConfig, now: int | None = None) -> FlashCard:
    """
    Correct answer: advance one box (capped at the last) and push the due date.

    A card already in the last box stays there but its due date still moves.
    """
    now = now_ms() if now is None else now
    box = min(card.box_number + 1, MAX_BOX)
    logger.debug(f"Promoting {card.id}: box {card.box_number} -> {box}")
    return replace(
        card,
        box_number=box,
        last_review_date=now,
        next_review_date=now + config.interval_for(box),
        review_count=card.review_count + 1,
        correct_count=card.correct_count + 1,
    )


def demote(card: FlashCard, config: LeitnerBoxConfig, now: int | None = None) -> FlashCard:
    """Incorrect answer: back to box 0 regardless of the previous box."""
    now = now_ms() if now is None else now
    logger.debug(f"Demoting {card.id}: box {card.box_number} -> 0")
    return replace(
        card,
        box_number=0,
        last_review_date=now,
        next_review_date=now + config.interval_for(0),
        review_count=card.review_count + 1,
        incorrect_count=card.incorrect_count + 1,
    )


def replace_card(cards: Sequence[FlashCard], updated: FlashCard) -> list[FlashCard]:
    return [updated if c.id == updated.id else c for c in cards]


def statistics(cards: Sequence[FlashCard], now: int | None = None) -> ProgressStatistics:
    return MetricsCalculator().summarize(cards, now)


def filter_by_mode(cards: Sequence[FlashCard], catalog: Sequence[Lesson], mode: str) -> list[FlashCard]:
    """
    Cards belonging to lessons of ``mode``.

    Cards without a lesson id are always kept; cards whose lesson is no longer
    in the catalog are dropped.
    """
    modes = {lesson.id: lesson.mode for lesson in catalog}
    return [c for c in cards if c.lesson_id is None or modes.get(c.lesson_id) == mode]
