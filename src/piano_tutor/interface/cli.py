"""piano-tutor CLI: lesson management, statistics and a terminal review loop."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Literal

import typer
from pydantic import ValidationError

from piano_tutor.application.config import AppConfig, format_interval, resolve_config
from piano_tutor.consts import APP_NAME, VERSION

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=f"{APP_NAME}: Leitner flash cards for notes, chords, arithmetic and clocks.",
    no_args_is_help=True,
)

config_app = typer.Typer(help="Inspect piano-tutor configuration.")
app.add_typer(config_app, name="config")

Mode = Literal["music", "math", "clock"]

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def _apply_verbosity(verbose: int) -> None:
    level = logging.WARNING if verbose <= 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.getLogger().setLevel(level)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."),
    ] = 1,
    user: Annotated[str | None, typer.Option("--user", "-u", help="Learner profile id.")] = None,
    data_dir: Annotated[Path | None, typer.Option(help="Directory for progress and settings files.")] = None,
):
    """Global settings for piano-tutor."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"user": user, "data_dir": data_dir, "verbose": verbose}
    _apply_verbosity(verbose)


def _config(ctx: typer.Context) -> AppConfig:
    return resolve_config((ctx.obj or {}).get("overrides"))


def _load_session(config: AppConfig, mode: str = "music", audio: bool = False):
    from piano_tutor.application.factory import build_session

    return build_session(config, mode=mode, audio=audio)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def version():
    """Show the installed version."""
    typer.echo(f"{APP_NAME} {VERSION}")


@app.command()
def lessons(
    ctx: typer.Context,
    mode: Annotated[Mode | None, typer.Option(help="Only list lessons of this mode.")] = None,
):
    """List the lesson catalog. Injected lessons are marked with '*'."""
    from piano_tutor.application.factory import get_progress_repository, get_settings_repository
    from piano_tutor.application.lessons import build_catalog

    config = _config(ctx)
    settings = get_settings_repository(config).load(config.user)
    progress = get_progress_repository(config).load(config.user)
    injected = set(progress.injected_lesson_ids) if progress else set()

    for lesson in build_catalog(settings.locale):
        if mode and lesson.mode != mode:
            continue
        marker = "*" if lesson.id in injected else " "
        typer.echo(f"{marker} {lesson.id:<40} {lesson.name} ({len(lesson.items)} cards)")


@app.command()
def inject(
    ctx: typer.Context,
    lesson_ids: Annotated[list[str], typer.Argument(help="Lesson id(s) to add to the deck.")],
):
    """Add lessons to the deck as new cards, in shuffled order."""
    config = _config(ctx)
    session = _load_session(config)

    failed = False
    for lesson_id in lesson_ids:
        try:
            added = session.inject_lesson(lesson_id)
        except KeyError:
            typer.secho(f"Unknown lesson: {lesson_id}", fg="red")
            failed = True
            continue
        if added:
            typer.secho(f"Injected {lesson_id}: {added} cards.", fg="green")
        else:
            typer.secho(f"{lesson_id} is already in the deck.", fg="yellow")

    if failed:
        raise typer.Exit(1)


@app.command()
def stats(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show deck statistics."""
    from piano_tutor.application.factory import get_progress_repository, get_settings_repository
    from piano_tutor.application.stats import ProgressStatsService

    config = _config(ctx)
    result = ProgressStatsService(get_progress_repository(config)).get_statistics(config.user)

    if json_output:
        payload = {
            "total": result.total_cards,
            "active": result.active_count,
            "new": result.new_count,
            "due": result.due_count,
            "reviews": result.total_reviews,
            "correct": result.total_correct,
            "accuracy": round(result.accuracy_pct, 1),
            "boxes": {str(b.box_number): b.count for b in result.per_box_counts},
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    intervals = get_settings_repository(config).load(config.user).box_config.intervals_ms
    typer.echo(f"Cards: {result.total_cards}  Active: {result.active_count}  New: {result.new_count}")
    typer.echo(f"Due now: {result.due_count}")
    typer.echo(
        f"Reviews: {result.total_reviews}  Correct: {result.total_correct}"
        f"  Accuracy: {result.accuracy_pct:.1f}%"
    )
    for box in result.per_box_counts:
        typer.echo(f"  Box {box.box_number + 1} (every {format_interval(intervals[box.box_number])}): {box.count}")


@app.command()
def reset(
    ctx: typer.Context,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip the confirmation prompt.")] = False,
):
    """Delete all cards and injected lessons for the current profile."""
    config = _config(ctx)
    if not force and not typer.confirm(f"Reset all progress for {config.user or 'the default profile'}?"):
        raise typer.Abort()

    _load_session(config).reset()
    typer.secho("Progress reset.", fg="green")


@app.command()
def practice(
    ctx: typer.Context,
    mode: Annotated[Mode, typer.Option(help="Lesson mode to review.")] = "music",
    audio: Annotated[
        bool, typer.Option("--audio/--typed", help="Answer by playing (microphone) or by typing.")
    ] = False,
    count: Annotated[int, typer.Option(help="Stop after this many reviews.")] = 20,
):
    """Review due and new cards in the terminal."""
    from piano_tutor.interface.terminal import run_practice

    config = _config(ctx)
    if mode != "music" and audio:
        typer.secho("Audio answers are only available for music lessons; using typed answers.", fg="yellow")
        audio = False

    try:
        reviewed = asyncio.run(run_practice(config, mode=mode, audio=audio, limit=count))
    except KeyboardInterrupt:
        typer.echo("")
        raise typer.Exit(130)
    typer.echo(f"Reviewed {reviewed} card(s).")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration and the profile's settings."""
    from piano_tutor.application.factory import get_settings_repository

    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    d["settings"] = get_settings_repository(config).load(config.user).model_dump(by_alias=True)
    typer.echo(json.dumps(d, indent=2))


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    timeout: Annotated[float | None, typer.Option(help="Seconds per card; 0 disables.")] = None,
    silent_timeout: Annotated[
        bool | None, typer.Option("--silent-timeout/--visible-timeout", help="Hide the countdown.")
    ] = None,
    locale: Annotated[Literal["no", "en"] | None, typer.Option(help="Clock phrase language.")] = None,
    harmonic_ratio: Annotated[
        float | None, typer.Option(help="Harmonic ratio threshold (0-1); 0 disables the filter.")
    ] = None,
):
    """Update the profile's settings."""
    from piano_tutor.application.factory import get_settings_repository

    config = _config(ctx)
    repo = get_settings_repository(config)
    settings = repo.load(config.user)

    changes = {}
    if timeout is not None:
        changes["timeout"] = timeout
    if silent_timeout is not None:
        changes["silent_timeout"] = silent_timeout
    if locale is not None:
        changes["locale"] = locale
    if harmonic_ratio is not None:
        changes["audio_detection"] = {
            **settings.audio_detection.model_dump(),
            "enable_harmonic_ratio": harmonic_ratio > 0,
            "harmonic_ratio_threshold": harmonic_ratio,
        }

    if not changes:
        typer.secho("Nothing to change.", fg="yellow")
        return

    try:
        updated = type(settings).model_validate({**settings.model_dump(), **changes})
    except ValidationError as e:
        typer.secho(f"Invalid settings: {e}", fg="red")
        raise typer.Exit(1)
    repo.save(updated, config.user)
    typer.secho("Settings saved.", fg="green")


if __name__ == "__main__":
    app()
