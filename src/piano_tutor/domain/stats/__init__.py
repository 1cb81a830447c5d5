# Domain Stats Package
from .models import BoxCount, ProgressStatistics

__all__ = ["BoxCount", "ProgressStatistics"]
