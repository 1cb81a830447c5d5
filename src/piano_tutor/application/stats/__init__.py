# Application Stats Package
from .metrics_calculator import MetricsCalculator
from .service import ProgressStatsService

__all__ = ["MetricsCalculator", "ProgressStatsService"]
