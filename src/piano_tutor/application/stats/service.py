"""
Progress stats service: application layer orchestrator.

Loads a user's saved progress through the repository port and summarizes it.
"""

import logging

from piano_tutor.domain.interfaces import ProgressRepository
from piano_tutor.domain.stats.models import ProgressStatistics

from .metrics_calculator import MetricsCalculator

logger = logging.getLogger(__name__)


class ProgressStatsService:
    """
    Application service for reading deck statistics.

    Depends on the ProgressRepository abstraction, not a concrete adapter.
    """

    def __init__(
        self,
        progress_repo: ProgressRepository,
        calculator: MetricsCalculator | None = None,
    ):
        """
        Args:
            progress_repo: The repository (port) for loading saved progress.
            calculator: Optional custom calculator; uses default if not provided.
        """
        self._repo = progress_repo
        self._calc = calculator or MetricsCalculator()

    def get_statistics(self, user_id: str | None = None, now: int | None = None) -> ProgressStatistics:
        """
        Summarize the saved deck for ``user_id``.

        Missing or unreadable progress counts as an empty deck.
        """
        progress = self._repo.load(user_id)
        if progress is None:
            logger.debug(f"No saved progress for user {user_id!r}")
            return self._calc.summarize([], now)
        return self._calc.summarize(progress.cards, now)
