from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from piano_tutor.domain.constants import (
    DEFAULT_BOX_INTERVALS_MS,
    DEFAULT_HARMONIC_RATIO_THRESHOLD,
    DEFAULT_LOCALE,
    SAMPLE_RATE,
)
from piano_tutor.domain.models import LeitnerBoxConfig

CONFIG_FILES = [
    Path.home() / ".config/piano-tutor/config.toml",
    Path.home() / ".piano-tutor.toml",
]


class AppConfig(BaseSettings):
    """
    Application-wide configuration.
    Supports loading from:
    1. Environment variables (PIANO_TUTOR_*)
    2. Config file (~/.config/piano-tutor/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="PIANO_TUTOR_",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".config/piano-tutor/data")

    # Profile selection; None uses the shared default keys
    user: str | None = None

    # Audio input
    input_device: int | str | None = None
    sample_rate: int = SAMPLE_RATE

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        # Later sources lose: CLI overrides beat env, env beats the file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/piano-tutor/config.toml (if exists)
    3. Environment variables (PIANO_TUTOR_*)
    4. cli_overrides (passed from Typer, None values dropped)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)


# ---------------------------------------------------------------------------
# Per-user settings (persisted next to the user's progress)
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RehearsalSettings(_CamelModel):
    """Review interval per Leitner box, in milliseconds."""

    box0_interval: int = Field(default=DEFAULT_BOX_INTERVALS_MS[0], gt=0)
    box1_interval: int = Field(default=DEFAULT_BOX_INTERVALS_MS[1], gt=0)
    box2_interval: int = Field(default=DEFAULT_BOX_INTERVALS_MS[2], gt=0)
    box3_interval: int = Field(default=DEFAULT_BOX_INTERVALS_MS[3], gt=0)
    box4_interval: int = Field(default=DEFAULT_BOX_INTERVALS_MS[4], gt=0)

    def to_box_config(self) -> LeitnerBoxConfig:
        return LeitnerBoxConfig(
            intervals_ms=(
                self.box0_interval,
                self.box1_interval,
                self.box2_interval,
                self.box3_interval,
                self.box4_interval,
            )
        )


class AudioDetectionSettings(_CamelModel):
    enable_harmonic_ratio: bool = True
    harmonic_ratio_threshold: float = Field(default=DEFAULT_HARMONIC_RATIO_THRESHOLD, ge=0.0, le=1.0)


class UserSettings(_CamelModel):
    """
    Settings record for one learner.

    ``timeout`` is the per-card answer time in seconds; 0 means unlimited.
    With ``silent_timeout`` the countdown is hidden and answers are still
    accepted after it, but only an answer before the deadline advances a box.
    """

    rehearsal: RehearsalSettings = Field(default_factory=RehearsalSettings)
    audio_detection: AudioDetectionSettings = Field(default_factory=AudioDetectionSettings)
    timeout: float = Field(default=0, ge=0)
    silent_timeout: bool = False
    locale: Literal["no", "en"] = DEFAULT_LOCALE

    @model_validator(mode="before")
    @classmethod
    def migrate_flat_rehearsal(cls, data: Any) -> Any:
        # Older records stored the rehearsal intervals at the top level
        if isinstance(data, dict) and "box0Interval" in data and "rehearsal" not in data:
            return {"rehearsal": data}
        return data

    @property
    def box_config(self) -> LeitnerBoxConfig:
        return self.rehearsal.to_box_config()


def format_interval(ms: int) -> str:
    """Human-readable interval, largest whole unit only ("2 hours")."""
    seconds = ms // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7

    for value, unit in ((weeks, "week"), (days, "day"), (hours, "hour"), (minutes, "minute")):
        if value > 0:
            return f"{value} {unit}{'s' if value > 1 else ''}"
    return f"{seconds} second{'s' if seconds > 1 else ''}"
