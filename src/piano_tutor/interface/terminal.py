"""Terminal rendering and the interactive review loop behind ``piano-tutor practice``."""

import asyncio

import typer

from piano_tutor.application.config import AppConfig
from piano_tutor.application.session import ReviewSession, SessionState
from piano_tutor.domain.models import Chord, ClockProblem, FlashCard, MathProblem, Note

QUIT_WORDS = {"q", "quit", "exit"}


def card_prompt(card: FlashCard) -> str:
    payload = card.payload
    if isinstance(payload, Note):
        return f"Play {payload.key}"
    if isinstance(payload, Chord):
        spelled = " ".join(n.key for n in payload.notes)
        return f"Play the {payload.name} {payload.type} chord ({spelled})"
    if isinstance(payload, MathProblem):
        return f"{payload.question} = ?"
    if isinstance(payload, ClockProblem):
        return f"The clock shows {payload.hour}:{payload.minute:02d}. What time is it?"
    raise TypeError(f"Unsupported card payload: {type(payload).__name__}")


def describe_candidate(candidate) -> str:
    if isinstance(candidate, Note):
        return candidate.key
    if isinstance(candidate, str):
        return candidate
    return " ".join(n.key for n in candidate)


class TerminalView:
    """Prints session changes; counts verdicts and signals when to stop."""

    def __init__(self, limit: int):
        self.limit = limit
        self.reviewed = 0
        self.finished = asyncio.Event()
        self._last_state: SessionState | None = None
        self._last_card_id: str | None = None
        self._last_countdown: int | None = None
        self._last_candidate: str | None = None

    def __call__(self, session: ReviewSession) -> None:
        state = session.state
        card = session.current_card

        if state is SessionState.COUNTING_DOWN and session.countdown_remaining != self._last_countdown:
            self._last_countdown = session.countdown_remaining
            typer.echo(f"Starting in {session.countdown_remaining}...")

        if state is SessionState.LISTENING and card is not None and card.id != self._last_card_id:
            self._last_card_id = card.id
            self._last_candidate = None
            typer.secho(f"\n[box {card.box_number + 1}] {card_prompt(card)}", bold=True)

        if state is SessionState.LISTENING and session.candidate is not None:
            heard = describe_candidate(session.candidate)
            if heard != self._last_candidate:
                self._last_candidate = heard
                typer.echo(f"  heard: {heard}")

        if state in (SessionState.FEEDBACK_CORRECT, SessionState.FEEDBACK_INCORRECT) and state != self._last_state:
            verdict = session.last_verdict
            self.reviewed += 1
            self._last_card_id = None
            if verdict.correct:
                suffix = " (too late, the card stays in box 1)" if not verdict.promoted else ""
                typer.secho(f"  Correct!{suffix}", fg="green")
            elif verdict.timed_out:
                typer.secho(f"  Time is up. The answer was {verdict.expected}.", fg="red")
            else:
                typer.secho(f"  Not quite. The answer was {verdict.expected}.", fg="red")
            if self.reviewed >= self.limit:
                self.finished.set()

        if state is SessionState.AWAITING_START and session.last_error:
            typer.secho(f"Cannot listen: {session.last_error}", fg="red")
            self.finished.set()

        if card is None:
            self.finished.set()

        self._last_state = state


async def run_practice(config: AppConfig, mode: str = "music", audio: bool = False, limit: int = 20) -> int:
    """
    Run a review loop until ``limit`` verdicts, an empty deck, or the learner quits.

    Returns the number of cards reviewed.
    """
    from piano_tutor.application.factory import build_session

    session = build_session(config, mode=mode, audio=audio)
    if session.current_card is None:
        typer.secho("Nothing to review. Inject a lesson first (see `piano-tutor lessons`).", fg="yellow")
        return 0

    view = TerminalView(limit)
    session.subscribe(view)
    try:
        if audio:
            session.start(audio=True)
            await view.finished.wait()
        else:
            await _typed_loop(session, view)
    finally:
        session.stop()
    return view.reviewed


def submit_for_card(session: ReviewSession, card_id: str, answer: str):
    """Judge ``answer`` only if ``card_id`` is still the card being listened for."""
    card = session.current_card
    if session.state is not SessionState.LISTENING or card is None or card.id != card_id:
        typer.secho("  (answer dropped, the card changed while typing)", fg="yellow")
        return None
    return session.submit_typed(answer)


async def _typed_loop(session: ReviewSession, view: TerminalView) -> None:
    session.start(audio=False)
    while not view.finished.is_set() and session.current_card is not None:
        card_id = session.current_card.id
        answer = await asyncio.to_thread(input, "> ")
        if answer.strip().lower() in QUIT_WORDS:
            return
        if submit_for_card(session, card_id, answer) is None:
            continue
        # Typed answers skip the feedback delay
        session.advance()
