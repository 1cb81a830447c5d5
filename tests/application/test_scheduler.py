import random

import pytest
from fakes import make_card

from piano_tutor.application import scheduler
from piano_tutor.domain.models import Lesson, LeitnerBoxConfig, MathProblem
from piano_tutor.domain.notes import make_note

NOW = 1_700_000_000_000
CONFIG = LeitnerBoxConfig(intervals_ms=(1_000, 60_000, 3_600_000, 86_400_000, 604_800_000))


@pytest.fixture
def three_notes():
    return [make_note("C", 4), make_note("D", 4), make_note("E", 4)]


def test_initialize_cards(three_notes):
    cards = scheduler.initialize_cards(three_notes, lesson_id="lesson-1")

    assert [c.payload for c in cards] == three_notes
    assert all(c.box_number == -1 for c in cards)
    assert all(c.review_count == c.correct_count == c.incorrect_count == 0 for c in cards)
    assert all(c.lesson_id == "lesson-1" for c in cards)
    assert len({c.id for c in cards}) == 3
    assert all(c.id.startswith("card_") for c in cards)


def test_fresh_deck_returns_first_card_then_introduces_it(three_notes):
    cards = scheduler.initialize_cards(three_notes)

    first = scheduler.next_card(cards, NOW)
    assert first is cards[0]

    introduced = scheduler.introduce_card(first, NOW)
    assert introduced.box_number == 0
    assert introduced.next_review_date == introduced.last_review_date == NOW


def test_due_cards_and_new_cards():
    cards = [
        make_card("new", box=-1),
        make_card("due", box=1, next_review=NOW),
        make_card("later", box=2, next_review=NOW + 1),
    ]
    assert [c.id for c in scheduler.due_cards(cards, NOW)] == ["due"]
    assert [c.id for c in scheduler.new_cards(cards)] == ["new"]


def test_new_cards_keep_insertion_order():
    cards = [make_card(f"n{i}", box=-1) for i in range(5)]
    assert [c.id for c in scheduler.new_cards(cards)] == ["n0", "n1", "n2", "n3", "n4"]


def test_next_card_prefers_due_over_new():
    cards = [make_card("new", box=-1), make_card("due", box=3, next_review=NOW - 5)]
    for seed in range(10):
        picked = scheduler.next_card(cards, NOW, rng=random.Random(seed))
        assert picked.id == "due"


def test_next_card_picks_randomly_among_due():
    cards = [make_card(f"d{i}", box=0, next_review=NOW) for i in range(4)]
    seen = {scheduler.next_card(cards, NOW, rng=random.Random(seed)).id for seed in range(50)}
    assert seen == {"d0", "d1", "d2", "d3"}


def test_next_card_honours_exclude():
    cards = [make_card("a", box=0), make_card("b", box=0)]
    for seed in range(10):
        assert scheduler.next_card(cards, NOW, exclude="a", rng=random.Random(seed)).id == "b"


def test_next_card_falls_back_to_new_when_only_due_card_excluded():
    cards = [make_card("a", box=0), make_card("fresh", box=-1)]
    assert scheduler.next_card(cards, NOW, exclude="a").id == "fresh"


def test_next_card_empty():
    assert scheduler.next_card([], NOW) is None
    assert scheduler.next_card([make_card(box=1, next_review=NOW + 10)], NOW) is None


@pytest.mark.parametrize("box", [0, 1, 2, 3])
def test_promote_advances_one_box(box):
    card = make_card(box=box)
    promoted = scheduler.promote(card, CONFIG, NOW)

    assert promoted.box_number == box + 1
    assert promoted.next_review_date == NOW + CONFIG.intervals_ms[box + 1]
    assert promoted.next_review_date > NOW
    assert promoted.correct_count == 1
    assert promoted.review_count == promoted.correct_count + promoted.incorrect_count


def test_promote_at_top_box_stays_but_moves_due_date():
    card = make_card(box=4, next_review=NOW - 100)
    promoted = scheduler.promote(card, CONFIG, NOW)
    assert promoted.box_number == 4
    assert promoted.next_review_date == NOW + CONFIG.intervals_ms[4]


@pytest.mark.parametrize("box", [0, 1, 2, 3, 4])
def test_demote_always_resets_to_box_zero(box):
    card = make_card(box=box, review_count=4, correct_count=4)
    demoted = scheduler.demote(card, CONFIG, NOW)

    assert demoted.box_number == 0
    assert demoted.incorrect_count == 1
    assert demoted.correct_count == 4
    assert demoted.review_count == demoted.correct_count + demoted.incorrect_count
    assert demoted.next_review_date == NOW + CONFIG.intervals_ms[0]


def test_transitions_do_not_mutate_input():
    card = make_card(box=2)
    scheduler.promote(card, CONFIG, NOW)
    scheduler.demote(card, CONFIG, NOW)
    assert card.box_number == 2
    assert card.review_count == 0


def test_failed_card_is_not_due_until_interval_elapses():
    card = make_card(box=2, next_review=NOW)
    demoted = scheduler.demote(card, CONFIG, NOW)

    assert demoted.box_number == 0
    assert demoted.next_review_date == NOW + 1_000
    assert scheduler.due_cards([demoted], NOW + 999) == []
    assert scheduler.due_cards([demoted], NOW + 1_000) == [demoted]


def test_review_counts_stay_consistent_over_a_run():
    rng = random.Random(7)
    card = make_card(box=0)
    for step in range(50):
        now = NOW + step
        card = scheduler.promote(card, CONFIG, now) if rng.random() < 0.6 else scheduler.demote(card, CONFIG, now)
        assert card.review_count == card.correct_count + card.incorrect_count
        assert 0 <= card.box_number <= 4


def test_never_returns_new_card_while_reviews_are_due():
    rng = random.Random(3)
    for _ in range(30):
        cards = [
            make_card(f"c{i}", box=rng.choice([-1, 0, 1, 2]), next_review=NOW + rng.randint(-5, 5))
            for i in range(6)
        ]
        picked = scheduler.next_card(cards, NOW, rng=rng)
        if scheduler.due_cards(cards, NOW):
            assert picked.box_number >= 0


def test_replace_card():
    cards = [make_card("a"), make_card("b")]
    updated = scheduler.promote(cards[1], CONFIG, NOW)
    replaced = scheduler.replace_card(cards, updated)
    assert replaced[0] is cards[0]
    assert replaced[1] is updated
    assert cards[1].box_number == 0


def test_filter_by_mode():
    catalog = [
        Lesson("music-1", "Notes", "", "music", (make_note("C", 4),)),
        Lesson("math-1", "Sums", "", "math", (MathProblem("1 + 1", "2"),)),
    ]
    cards = [
        make_card("m", lesson_id="music-1"),
        make_card("a", lesson_id="math-1"),
        make_card("loose"),
        make_card("gone", lesson_id="retired-lesson"),
    ]
    assert [c.id for c in scheduler.filter_by_mode(cards, catalog, "music")] == ["m", "loose"]
    assert [c.id for c in scheduler.filter_by_mode(cards, catalog, "math")] == ["a", "loose"]


def test_statistics_empty():
    stats = scheduler.statistics([], NOW)
    assert stats.accuracy_pct == 0
    assert stats.active_count == stats.new_count == stats.due_count == 0
    assert stats.total_reviews == stats.total_correct == 0
    assert [b.count for b in stats.per_box_counts] == [0, 0, 0, 0, 0]
