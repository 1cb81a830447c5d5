"""
Review Session Factory
Centralizes wiring of repositories, the audio source and the session.
"""

from piano_tutor.application.audio.pitch_detector import PitchDetector
from piano_tutor.application.config import AppConfig, UserSettings
from piano_tutor.application.session import ReviewSession
from piano_tutor.application.timers import AsyncioTimers
from piano_tutor.domain.interfaces import (
    AudioSource,
    ProgressRepository,
    SettingsRepository,
    TimerService,
)
from piano_tutor.infrastructure.adapters.json_store import (
    JsonProgressRepository,
    JsonSettingsRepository,
)
from piano_tutor.infrastructure.adapters.microphone import MicrophoneSource


def get_progress_repository(config: AppConfig) -> ProgressRepository:
    return JsonProgressRepository(config.data_dir)


def get_settings_repository(config: AppConfig) -> SettingsRepository:
    return JsonSettingsRepository(config.data_dir)


def get_audio_source(config: AppConfig) -> AudioSource:
    """
    Returns the microphone adapter. The device is not opened until the
    detector starts.
    """
    return MicrophoneSource(sample_rate=config.sample_rate, device=config.input_device)


def build_detector(config: AppConfig, settings: UserSettings) -> PitchDetector:
    return PitchDetector(get_audio_source(config), settings.audio_detection)


def build_session(
    config: AppConfig,
    *,
    mode: str = "music",
    audio: bool = True,
    timers: TimerService | None = None,
) -> ReviewSession:
    """
    Returns a loaded ReviewSession for ``config.user``.

    Without ``audio`` no detector is attached and only typed answers are judged.
    """
    settings = get_settings_repository(config).load(config.user)
    session = ReviewSession(
        get_progress_repository(config),
        settings,
        timers or AsyncioTimers(),
        build_detector(config, settings) if audio else None,
        user_id=config.user,
        mode=mode,
    )
    session.load()
    return session
