"""
Spoken clock phrases and accepted answer forms.

Norwegian counts toward the next half hour ("halv tre" is 2:30); English
counts past/to the whole hour. Digital forms are accepted in both the morning
and afternoon reading of the clock face, since an analog clock shows no AM/PM.
"""

import re

from piano_tutor.domain.constants import DEFAULT_LOCALE, SUPPORTED_LOCALES
from piano_tutor.domain.models import ClockProblem

# ---------- Number words ----------

NORWEGIAN_HOURS = ["tolv", "ett", "to", "tre", "fire", "fem", "seks", "sju", "åtte", "ni", "ti", "elleve"]
ENGLISH_HOURS = ["twelve", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten", "eleven"]
ENGLISH_MINUTES = {5: "five", 10: "ten", 15: "quarter", 20: "twenty", 25: "twenty-five"}

NORWEGIAN_PREFIX = "klokken er "
ENGLISH_PREFIX = "it's "

_SEPARATORS = re.compile(r"[.\s]")


def _hour_word(words: list[str], hour: int) -> str:
    return words[hour % 12]


def _next_hour_word(words: list[str], hour: int) -> str:
    return words[(hour + 1) % 12]


# ---------- Norwegian ----------


def norwegian_phrase(hour: int, minute: int) -> str:
    """Long-form Norwegian phrase, e.g. "klokken er kvart på tre"."""
    hour_word = _hour_word(NORWEGIAN_HOURS, hour)
    next_word = _next_hour_word(NORWEGIAN_HOURS, hour)

    fixed = {
        0: hour_word,
        5: f"fem over {hour_word}",
        10: f"ti over {hour_word}",
        15: f"kvart over {hour_word}",
        20: f"ti på halv {next_word}",
        25: f"fem på halv {next_word}",
        30: f"halv {next_word}",
        35: f"fem over halv {next_word}",
        40: f"ti over halv {next_word}",
        45: f"kvart på {next_word}",
        50: f"ti på {next_word}",
        55: f"fem på {next_word}",
    }
    if minute in fixed:
        body = fixed[minute]
    elif minute < 30:
        body = f"{minute} over {hour_word}"
    else:
        body = f"{60 - minute} på {next_word}"
    return NORWEGIAN_PREFIX + body


# ---------- English ----------


def english_phrase(hour: int, minute: int) -> str:
    """Long-form English phrase, e.g. "it's quarter to three"."""
    hour_word = _hour_word(ENGLISH_HOURS, hour)
    next_word = _next_hour_word(ENGLISH_HOURS, hour)

    if minute == 0:
        body = f"{hour_word} o'clock"
    elif minute == 30:
        body = f"half past {hour_word}"
    elif minute < 30:
        body = f"{ENGLISH_MINUTES.get(minute, str(minute))} past {hour_word}"
    else:
        to = 60 - minute
        body = f"{ENGLISH_MINUTES.get(to, str(to))} to {next_word}"
    return ENGLISH_PREFIX + body


def phrase_for(hour: int, minute: int, locale: str = DEFAULT_LOCALE) -> str:
    if locale == "en":
        return english_phrase(hour, minute)
    return norwegian_phrase(hour, minute)


# ---------- Accepted forms ----------


def _digital_forms(hour: int, minute: int) -> list[str]:
    forms = []
    twelve = hour % 12 or 12
    for h in (twelve, (twelve + 12) % 24):
        forms.append(f"{h:02d}:{minute:02d}")
        forms.append(f"{h}:{minute:02d}")
        if minute < 10:
            forms.append(f"{h:02d}:{minute}")
            forms.append(f"{h}:{minute}")
        if minute == 0:
            forms.append(str(h))
    return forms


def valid_answers(hour: int, minute: int, locale: str = DEFAULT_LOCALE) -> list[str]:
    """
    Every textual form accepted for (hour, minute), deduplicated in order.

    Includes 24h and 12h digital forms with and without leading zeros, the
    locale phrase with and without its leading words, and the bare hour for
    whole hours.
    """
    if locale not in SUPPORTED_LOCALES:
        raise ValueError(f"Unsupported locale: {locale}")

    answers = _digital_forms(hour, minute)

    phrase = phrase_for(hour, minute, locale)
    prefix = ENGLISH_PREFIX if locale == "en" else NORWEGIAN_PREFIX
    answers.append(phrase)
    answers.append(phrase.removeprefix(prefix))
    if locale == "en":
        answers.append("it is " + phrase.removeprefix(prefix))
        if minute == 0:
            answers.append(_hour_word(ENGLISH_HOURS, hour))

    return list(dict.fromkeys(answers))


def create_clock_problem(hour: int, minute: int, locale: str = DEFAULT_LOCALE) -> ClockProblem:
    return ClockProblem(
        hour=hour,
        minute=minute,
        display_answer=phrase_for(hour, minute, locale),
        valid_answers=tuple(valid_answers(hour, minute, locale)),
    )


def normalize_separators(text: str) -> str:
    return _SEPARATORS.sub(":", text)


def is_valid_clock_answer(answer: str, accepted: list[str] | tuple[str, ...]) -> bool:
    """
    Case-insensitive match against the accepted forms.

    The raw input and its separator-normalized variant ("14.30", "14 30" ->
    "14:30") are both tried.
    """
    trimmed = answer.strip().lower()
    if not trimmed:
        return False
    normalized = normalize_separators(trimmed)
    return any(trimmed == form or normalized == form for form in (a.strip().lower() for a in accepted))
