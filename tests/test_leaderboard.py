import pytest

from app.models.participant import Participant
from app.services.catalog import CATALOG
from app.services.leaderboard import compute_leaderboard, leaderboard_for, mask_display_name

from conftest import FACILITATOR, seed_participant

CORE = CATALOG.core_ids()


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("ab@example.com", "ab***@example.com"),
        ("a@example.com", "***@example.com"),
        ("alice@example.com", "al***@example.com"),
        ("Jane Doe", "Jane Doe"),
    ],
)
def test_mask_display_name(raw, expected):
    assert mask_display_name(raw) == expected


def _p(pid, *, lines=0, bonus=0, done=0, name=None):
    return Participant(
        id=pid,
        email=f"{pid}@example.com",
        name=name,
        completed_core=set(CORE[:done]),
        bingo_lines=lines,
        bonus_points=bonus,
    )


def test_ranking_precedence():
    entries = compute_leaderboard(
        [
            _p("many", done=15),
            _p("bonus", lines=1, bonus=100, done=3),
            _p("lines", lines=2, done=8),
            _p("tie", lines=1, bonus=100, done=5),
        ]
    )

    assert [e.rank for e in entries] == [1, 2, 3, 4]
    assert [e.score for e in entries] == [8, 5, 3, 15]
    for a, b in zip(entries, entries[1:]):
        assert (a.bingo_lines, a.bonus_points, a.score) >= (b.bingo_lines, b.bonus_points, b.score)


def test_full_ties_keep_input_order_and_positional_ranks():
    entries = compute_leaderboard([_p("first", name="First"), _p("second", name="Second"), _p("third", name="Third")])
    assert [(e.rank, e.name) for e in entries] == [(1, "First"), (2, "Second"), (3, "Third")]


def test_entries_mask_emails():
    entries = compute_leaderboard([_p("zoe"), _p("jo", name="Jo Real")])
    assert {e.name for e in entries} == {"zo***@example.com", "Jo Real"}


def test_leaderboard_for_participant_scope(store, session):
    other = store.create_session("other@example.com")
    viewer = seed_participant(store, session, "viewer@example.com", completed=CORE[:5], bingo_lines=1)
    seed_participant(store, session, "mate@example.com", name="Mate")
    seed_participant(store, other, "outsider@example.com", bingo_lines=4)

    view = leaderboard_for(store, viewer.id)

    assert view.session_code == session.code
    assert [e.name for e in view.entries] == ["vi***@example.com", "Mate"]
    assert view.entries[0].score == 5


def test_leaderboard_for_facilitator_uses_latest_session(store, session):
    facilitator = store.create_participant(FACILITATOR)
    newer = store.create_session(FACILITATOR)
    store.sessions[newer.id]["created_at"] = store.sessions[session.id]["created_at"] + 10
    seed_participant(store, newer, "fresh@example.com")
    seed_participant(store, session, "old@example.com")

    view = leaderboard_for(store, facilitator.id)

    assert view.session_code == newer.code
    assert [e.name for e in view.entries] == ["fr***@example.com"]


def test_leaderboard_without_scope_is_empty(store):
    lonely = store.create_participant("lonely@example.com")
    assert leaderboard_for(store, lonely.id).entries == []
    assert leaderboard_for(store, None).entries == []
    assert leaderboard_for(store, None).session_code is None
