"""Tests for the snapshot reconciliation engine."""

import pytest

from flashsync.application.reconcile import (
    fold_newer_events,
    latest_event_by_card,
    merge,
    merge_history,
    merge_progress,
    progress_rank,
)
from flashsync.application.replay import replay
from flashsync.application.scheduler import advance
from flashsync.domain.models import CardState, Outcome, ReviewEvent, Snapshot

T0 = 1_767_225_600_000


def ev(ts, card_id, outcome, seq=0):
    return ReviewEvent(timestamp=ts, card_id=card_id, outcome=Outcome(outcome), seq=seq)


def snapshot_from(events, updated_at=None):
    """A consistent snapshot: state replayed from its own history."""
    return Snapshot(
        state_map=replay(events),
        history=list(events),
        updated_at=updated_at if updated_at is not None else max((e.timestamp for e in events), default=0),
    )


class TestMergeHistory:
    def test_union_dedupes_exact_duplicates(self):
        a = [ev(T0, "x", "good"), ev(T0 + 5, "y", "bad")]
        b = [ev(T0, "x", "good"), ev(T0 + 9, "x", "mid")]
        merged = merge_history(a, b)

        assert [(e.timestamp, e.card_id, e.outcome.value) for e in merged] == [
            (T0, "x", "good"),
            (T0 + 5, "y", "bad"),
            (T0 + 9, "x", "mid"),
        ]

    def test_same_instant_different_outcome_is_kept(self):
        merged = merge_history([ev(T0, "x", "good")], [ev(T0, "x", "bad")])
        assert len(merged) == 2

    def test_sorted_by_timestamp_then_card(self):
        merged = merge_history([ev(T0, "b", "good")], [ev(T0, "a", "good"), ev(T0 - 1, "z", "mid")])
        assert [e.card_id for e in merged] == ["z", "a", "b"]

    def test_seq_is_renumbered(self):
        merged = merge_history([ev(T0, "a", "good", seq=40)], [ev(T0 + 1, "b", "bad", seq=3)])
        assert [e.seq for e in merged] == [0, 1]

    def test_truncates_to_newest(self):
        events = [ev(T0 + i, "a", "good") for i in range(20)]
        merged = merge_history(events[:12], events[8:], limit=5)

        assert len(merged) == 5
        assert merged[0].timestamp == T0 + 15
        assert merged[-1].timestamp == T0 + 19

    def test_commutative(self):
        a = [ev(T0, "x", "good"), ev(T0 + 5, "y", "bad")]
        b = [ev(T0 + 2, "x", "mid"), ev(T0 + 5, "y", "bad")]
        assert merge_history(a, b) == merge_history(b, a)

    def test_same_instant_same_card_is_commutative(self):
        a = [ev(T0, "x", "bad")]
        b = [ev(T0, "x", "good")]

        assert merge_history(a, b) == merge_history(b, a)
        assert [e.outcome for e in merge_history(b, a)] == [Outcome.BAD, Outcome.GOOD]

    def test_same_instant_same_card_is_associative(self):
        a = [ev(T0, "x", "good")]
        b = [ev(T0, "x", "mid")]
        c = [ev(T0, "x", "bad"), ev(T0 + 1, "y", "good")]

        left = merge_history(merge_history(a, b), c)
        right = merge_history(a, merge_history(b, c))
        assert left == right
        assert left == merge_history(c, merge_history(b, a))


class TestMergeProgress:
    def test_newer_event_wins_outright(self):
        stale = CardState(repetitions=50, streak=10, interval=300)
        fresh = CardState(repetitions=2, interval=1)
        remote = Snapshot({"a": stale}, [ev(T0, "a", "good")], T0)
        incoming = Snapshot({"a": fresh}, [ev(T0 + 10, "a", "bad")], T0 + 10)

        merged = merge_progress(remote, incoming, merge_history(remote.history, incoming.history))
        assert merged["a"] == fresh

    def test_remote_newer_wins_even_with_lower_rank(self):
        remote_state = CardState(repetitions=1)
        incoming_state = CardState(repetitions=9)
        remote = Snapshot({"a": remote_state}, [ev(T0 + 10, "a", "bad")], T0)
        incoming = Snapshot({"a": incoming_state}, [ev(T0, "a", "good")], T0 + 99)

        merged = merge_progress(remote, incoming, merge_history(remote.history, incoming.history))
        assert merged["a"] == remote_state

    def test_rank_breaks_equal_timestamps(self):
        low = CardState(repetitions=3, streak=0, interval=1)
        high = CardState(repetitions=3, streak=1, interval=2)
        remote = Snapshot({"a": high}, [], 5)
        incoming = Snapshot({"a": low}, [], 10)

        assert merge_progress(remote, incoming, [])["a"] == high

    def test_updated_at_breaks_rank_ties(self):
        r = CardState(repetitions=3, ease=2.5)
        i = CardState(repetitions=3, ease=1.5)
        assert merge_progress(Snapshot({"a": r}, [], 9), Snapshot({"a": i}, [], 5), [])["a"] == r
        assert merge_progress(Snapshot({"a": r}, [], 5), Snapshot({"a": i}, [], 9), [])["a"] == i
        # Equal watermark prefers incoming
        assert merge_progress(Snapshot({"a": r}, [], 5), Snapshot({"a": i}, [], 5), [])["a"] == i

    def test_one_sided_cards_are_kept(self):
        remote = Snapshot({"r": CardState(repetitions=1)}, [], 1)
        incoming = Snapshot({"i": CardState(repetitions=2)}, [], 1)
        merged = merge_progress(remote, incoming, [])
        assert set(merged) == {"r", "i"}

    def test_winner_without_state_is_rederived_from_history(self):
        remote = snapshot_from([ev(T0, "a", "good")])
        incoming = Snapshot({}, [ev(T0 + 1000, "a", "good")], T0 + 1000)
        history = merge_history(remote.history, incoming.history)

        merged = merge_progress(remote, incoming, history)
        assert merged["a"] == replay(history)["a"]
        assert merged["a"].streak == 2

    def test_single_action_extends_state_without_history(self):
        seeded = CardState(repetitions=40, ease=2.5, interval=120, due=20454 + 10, streak=6)
        remote = Snapshot({"a": seeded}, [], T0)
        incoming = Snapshot({}, [ev(T0 + 1000, "a", "good")], T0 + 1000)

        merged = merge(remote, incoming)
        assert merged.state_map["a"] == advance(seeded, Outcome.GOOD, T0 + 1000)
        assert merged.state_map["a"].repetitions == 41
        assert merged.state_map["a"].streak == 7
        assert merged.state_map["a"].interval == 365

    def test_single_action_extends_state_beyond_truncated_history(self):
        events = [ev(T0 + i, "a", "good") for i in range(6)]
        remote = merge(Snapshot(), snapshot_from(events), limit=3)
        assert remote.state_map["a"].repetitions == 6

        merged = merge(remote, Snapshot({}, [ev(T0 + 100, "a", "bad")], T0 + 100), limit=3)
        assert merged.state_map["a"].repetitions == 7
        assert merged.state_map["a"].streak == 0

    def test_stateless_winner_with_unseen_older_events_is_replayed(self):
        remote = snapshot_from([ev(T0 + 10, "a", "good")])
        incoming = Snapshot({}, [ev(T0, "a", "bad"), ev(T0 + 20, "a", "good")], T0 + 20)
        history = merge_history(remote.history, incoming.history)

        assert merge_progress(remote, incoming, history)["a"] == replay(history)["a"]

    def test_rank(self):
        assert progress_rank(None) == -1
        assert progress_rank(CardState(repetitions=2, streak=1, interval=7)) == 201007


def test_fold_newer_events_requires_strictly_newer_events():
    base = CardState(repetitions=2, interval=7, due=20461, streak=2)
    events = [ev(T0 + 5, "a", "good"), ev(T0 + 9, "b", "bad")]

    assert fold_newer_events(base, T0, events, "a").repetitions == 3
    assert fold_newer_events(base, T0 + 5, events, "a") is None
    assert fold_newer_events(None, 0, events, "a") is None
    assert fold_newer_events(base, T0, events, "zzz") is None


def test_latest_event_by_card():
    events = [ev(T0 + 5, "a", "good"), ev(T0, "a", "bad"), ev(T0 + 1, "b", "mid")]
    assert latest_event_by_card(events) == {"a": T0 + 5, "b": T0 + 1}


class TestMerge:
    def test_three_events_against_empty_remote(self):
        events = [ev(T0, "a", "good", 0), ev(T0 + 1, "b", "bad", 1), ev(T0 + 2, "a", "mid", 2)]
        incoming = Snapshot(replay(events), events, 0)

        merged = merge(Snapshot(), incoming)
        assert merged.history == events
        assert merged.updated_at == T0 + 2
        assert merged.state_map == replay(events)

    def test_idempotent(self):
        events = [ev(T0, "a", "good"), ev(T0 + 1, "b", "bad"), ev(T0 + 2, "a", "good")]
        s = merge(Snapshot(), snapshot_from(events))

        assert merge(s, s) == s
        assert merge(merge(s, s), s) == s

    def test_repeated_submission_changes_nothing(self):
        remote = merge(Snapshot(), snapshot_from([ev(T0, "a", "good")]))
        incoming = snapshot_from([ev(T0, "a", "good"), ev(T0 + 10, "b", "mid")])

        once = merge(remote, incoming)
        twice = merge(once, incoming)
        assert twice == once

    def test_duplicate_single_action_not_double_counted(self):
        action = Snapshot({}, [ev(T0, "a", "good")], T0)
        once = merge(Snapshot(), action)
        twice = merge(once, action)

        assert len(twice.history) == 1
        assert twice.state_map["a"].repetitions == 1

    def test_history_associative(self):
        a = snapshot_from([ev(T0, "x", "good"), ev(T0 + 3, "y", "bad")])
        b = snapshot_from([ev(T0 + 1, "x", "mid"), ev(T0 + 3, "y", "bad")])
        c = snapshot_from([ev(T0 + 2, "z", "good"), ev(T0 + 4, "x", "good")])

        left = merge(merge(a, b), c)
        right = merge(a, merge(b, c))
        assert left.history == right.history
        assert left.updated_at == right.updated_at

    def test_same_instant_actions_replay_the_same_either_way(self):
        a = Snapshot({}, [ev(T0, "x", "bad")], T0)
        b = Snapshot({}, [ev(T0, "x", "good")], T0)

        ab = merge(a, b)
        ba = merge(b, a)
        assert ab.history == ba.history
        assert replay(ab.history)["x"] == replay(ba.history)["x"]
        assert ab.state_map == ba.state_map

    def test_updated_at_is_max_of_watermarks_and_last_event(self):
        remote = Snapshot({}, [ev(T0, "a", "good")], T0 + 500)
        incoming = Snapshot({}, [ev(T0 + 100, "b", "good")], T0 + 50)
        assert merge(remote, incoming).updated_at == T0 + 500

        incoming = Snapshot({}, [ev(T0 + 900, "b", "good")], T0 + 50)
        assert merge(remote, incoming).updated_at == T0 + 900

    def test_offline_clients_converge(self):
        base = [ev(T0, "a", "good"), ev(T0 + 1, "b", "good")]
        phone = snapshot_from(base + [ev(T0 + 100, "a", "good")])
        laptop = snapshot_from(base + [ev(T0 + 200, "b", "bad")])

        server = merge(Snapshot(), phone)
        server = merge(server, laptop)

        assert server.state_map["a"] == phone.state_map["a"]
        assert server.state_map["b"] == laptop.state_map["b"]
        assert len(server.history) == 4

    @pytest.mark.parametrize("limit", [1, 3])
    def test_limit_applies(self, limit):
        events = [ev(T0 + i, "a", "good") for i in range(5)]
        merged = merge(Snapshot(), snapshot_from(events), limit=limit)
        assert len(merged.history) == limit
        assert merged.history[-1].timestamp == T0 + 4
