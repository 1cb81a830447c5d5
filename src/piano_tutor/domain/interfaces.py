"""
Ports (interfaces) the application layer depends on.

Infrastructure adapters implement these; application services never import
an adapter directly.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any, Protocol

from .models import LearningProgress

if TYPE_CHECKING:
    import numpy as np

    from piano_tutor.application.config import UserSettings


class AudioSource(ABC):
    """
    Port for a live mono audio input.

    Implementations:
        - MicrophoneSource: sounddevice input stream with a ring buffer.
    """

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the input stream.

        Raises:
            MicrophoneUnavailable: permission denied or no input device.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the stream. Safe to call when already closed."""
        pass

    @abstractmethod
    def read_latest(self, frames: int) -> "np.ndarray | None":
        """
        Return the most recent ``frames`` samples as float32.

        Returns None until enough audio has been captured.
        """
        pass


class ProgressRepository(ABC):
    """Port for per-user learning progress."""

    @abstractmethod
    def load(self, user_id: str | None = None) -> LearningProgress | None:
        """Return saved progress, or None when absent or unreadable."""
        pass

    @abstractmethod
    def save(self, progress: LearningProgress, user_id: str | None = None) -> None:
        pass


class SettingsRepository(ABC):
    """Port for per-user settings."""

    @abstractmethod
    def load(self, user_id: str | None = None) -> "UserSettings":
        """Return saved settings, falling back to defaults."""
        pass

    @abstractmethod
    def save(self, settings: "UserSettings", user_id: str | None = None) -> None:
        pass


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class TimerService(ABC):
    """
    Port for deferred callbacks and background tasks.

    Implementations:
        - AsyncioTimers: the running asyncio event loop.
    """

    @abstractmethod
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> Cancellable:
        """Run ``callback`` once after ``delay_s`` seconds unless cancelled."""
        pass

    @abstractmethod
    def create_task(self, coro: Coroutine[Any, Any, Any]) -> Cancellable:
        pass
