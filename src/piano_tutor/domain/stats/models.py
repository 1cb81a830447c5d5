"""
Domain models for deck statistics.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BoxCount:
    box_number: int
    count: int


@dataclass(frozen=True)
class ProgressStatistics:
    """
    Aggregate view over a card collection.

    Attributes:
        total_cards: Every card in the collection, introduced or not.
        active_count: Cards with box_number >= 0.
        new_count: Cards still waiting to be introduced.
        due_count: Active cards whose next review date has passed.
        total_reviews: Sum of review counts over active cards.
        total_correct: Sum of correct counts over active cards.
        accuracy_pct: 100 * total_correct / total_reviews, 0 with no reviews.
        per_box_counts: Active card count for each box 0-4.
    """

    total_cards: int = 0
    active_count: int = 0
    new_count: int = 0
    due_count: int = 0
    total_reviews: int = 0
    total_correct: int = 0
    accuracy_pct: float = 0.0
    per_box_counts: tuple[BoxCount, ...] = field(default_factory=tuple)
