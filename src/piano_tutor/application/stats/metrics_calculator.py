"""
Metrics calculator for deck-level progress statistics.

This is a pure computation module with no I/O.
"""

import time
from collections.abc import Sequence

from piano_tutor.domain.constants import BOX_COUNT
from piano_tutor.domain.models import FlashCard
from piano_tutor.domain.stats.models import BoxCount, ProgressStatistics


class MetricsCalculator:
    """
    Aggregates a card collection into ProgressStatistics.

    Stateless and side-effect free.
    """

    def summarize(self, cards: Sequence[FlashCard], now: int | None = None) -> ProgressStatistics:
        """
        Summarize a collection at time ``now`` (epoch ms).

        Review totals only count introduced cards. An empty collection yields
        all-zero statistics.
        """
        now = int(time.time() * 1000) if now is None else now
        active = [c for c in cards if c.box_number >= 0]

        total_reviews = sum(c.review_count for c in active)
        total_correct = sum(c.correct_count for c in active)

        return ProgressStatistics(
            total_cards=len(cards),
            active_count=len(active),
            new_count=len(cards) - len(active),
            due_count=sum(1 for c in active if c.next_review_date <= now),
            total_reviews=total_reviews,
            total_correct=total_correct,
            accuracy_pct=self._compute_accuracy(total_correct, total_reviews),
            per_box_counts=self._compute_box_counts(active),
        )

    def _compute_accuracy(self, correct: int, reviews: int) -> float:
        if reviews <= 0:
            return 0.0
        return 100.0 * correct / reviews

    def _compute_box_counts(self, active: Sequence[FlashCard]) -> tuple[BoxCount, ...]:
        counts = [0] * BOX_COUNT
        for card in active:
            if card.box_number < BOX_COUNT:
                counts[card.box_number] += 1
        return tuple(BoxCount(box_number=i, count=n) for i, n in enumerate(counts))
