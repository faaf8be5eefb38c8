"""
Reconciliation engine: merge two independently evolved snapshots.

History is ground truth. Cached card states are only compared when event
level evidence is absent or ambiguous for a card. The merge is pure; callers
are responsible for serializing read-merge-write per scope.
"""

import logging

from flashsync.application.replay import order_events, replay_card
from flashsync.application.scheduler import advance
from flashsync.domain.constants import (
    HISTORY_LIMIT,
    OUTCOME_ORDER,
    RANK_REPETITIONS_WEIGHT,
    RANK_STREAK_WEIGHT,
)
from flashsync.domain.models import CardState, ReviewEvent, Snapshot

logger = logging.getLogger(__name__)


def history_sort_key(event: ReviewEvent) -> tuple[int, str, int, int]:
    return (event.timestamp, event.card_id, OUTCOME_ORDER.index(event.outcome.value), event.seq)


def merge_history(
    remote: list[ReviewEvent],
    incoming: list[ReviewEvent],
    limit: int = HISTORY_LIMIT,
) -> list[ReviewEvent]:
    """
    Union two histories.

    Exact duplicates (same timestamp, card and outcome) collapse to the first
    occurrence, remote before incoming. The result is sorted by
    (timestamp, card_id, outcome), which is total over the de-duplicated set,
    so argument order never changes the result. It is then cut to the newest
    `limit` events and given fresh sequence numbers 0..n-1.
    """
    unique: dict[tuple[int, str, str], ReviewEvent] = {}
    for event in [*remote, *incoming]:
        unique.setdefault(event.key, event)

    ordered = sorted(unique.values(), key=history_sort_key)
    if limit > 0:
        ordered = ordered[-limit:]
    else:
        ordered = []

    return [
        event if event.seq == seq else ReviewEvent(event.timestamp, event.card_id, event.outcome, seq)
        for seq, event in enumerate(ordered)
    ]


def latest_event_by_card(events: list[ReviewEvent]) -> dict[str, int]:
    latest: dict[str, int] = {}
    for event in events:
        if event.timestamp > latest.get(event.card_id, 0):
            latest[event.card_id] = event.timestamp
    return latest


def progress_rank(state: CardState | None) -> int:
    """Monotone in 'how many reviews have been folded in'."""
    if state is None:
        return -1
    return (
        state.repetitions * RANK_REPETITIONS_WEIGHT
        + state.streak * RANK_STREAK_WEIGHT
        + state.interval
    )


def fold_newer_events(
    base: CardState | None,
    base_ts: int,
    events: list[ReviewEvent],
    card_id: str,
) -> CardState | None:
    """
    Advance `base` by the card's events from `events`.

    Only applies when every such event is strictly newer than `base_ts`, the
    last event already reflected in `base`. Returns None otherwise, or when
    there is no base state to extend.
    """
    if base is None:
        return None
    card_events = [e for e in events if e.card_id == card_id]
    if not card_events or any(e.timestamp <= base_ts for e in card_events):
        return None

    state = base
    for event in order_events(card_events):
        state = advance(state, event.outcome, event.timestamp)
    return state


def merge_progress(
    remote: Snapshot,
    incoming: Snapshot,
    merged_history: list[ReviewEvent],
) -> dict[str, CardState]:
    """
    Pick one CardState per card.

    1. Strictly newer last-event timestamp for the card wins outright.
       If the winner has no cached state, its newer events are folded onto
       the other side's state; failing that, the state is replayed from the
       merged history.
    2. Otherwise a card known to only one side comes from that side.
    3. Otherwise the higher progress rank wins.
    4. Otherwise the newer updated_at wins (incoming on equality).
    """
    remote_latest = latest_event_by_card(remote.history)
    incoming_latest = latest_event_by_card(incoming.history)

    card_ids = list(
        dict.fromkeys([*remote.state_map, *incoming.state_map, *incoming_latest, *remote_latest])
    )
    merged: dict[str, CardState] = {}

    for card_id in card_ids:
        remote_row = remote.state_map.get(card_id)
        incoming_row = incoming.state_map.get(card_id)
        remote_ts = remote_latest.get(card_id, 0)
        incoming_ts = incoming_latest.get(card_id, 0)

        if incoming_ts != remote_ts:
            if incoming_ts > remote_ts:
                winner, loser, winner_events, loser_ts = (
                    incoming_row, remote_row, incoming.history, remote_ts
                )
            else:
                winner, loser, winner_events, loser_ts = (
                    remote_row, incoming_row, remote.history, incoming_ts
                )
            if winner is None:
                winner = (
                    fold_newer_events(loser, loser_ts, winner_events, card_id)
                    or replay_card(merged_history, card_id)
                    or loser
                )
            if winner is not None:
                merged[card_id] = winner
            continue

        if remote_row is None and incoming_row is None:
            # Events on both sides at the same instant but no cached state anywhere
            derived = replay_card(merged_history, card_id)
            if derived is not None:
                merged[card_id] = derived
            continue

        if incoming_row is None:
            merged[card_id] = remote_row
            continue
        if remote_row is None:
            merged[card_id] = incoming_row
            continue

        remote_rank = progress_rank(remote_row)
        incoming_rank = progress_rank(incoming_row)
        if incoming_rank != remote_rank:
            merged[card_id] = incoming_row if incoming_rank > remote_rank else remote_row
            continue

        merged[card_id] = incoming_row if incoming.updated_at >= remote.updated_at else remote_row

    return merged


def merge(remote: Snapshot, incoming: Snapshot, limit: int = HISTORY_LIMIT) -> Snapshot:
    """
    Merge a freshly submitted client view into the stored snapshot.

    Args:
        remote: The currently stored (authoritative) snapshot.
        incoming: The client's snapshot, already revalidated.
        limit: History retention bound.

    Returns:
        The snapshot to persist and hand back to every caller.
    """
    history = merge_history(remote.history, incoming.history, limit)
    state_map = merge_progress(remote, incoming, history)
    last_ts = history[-1].timestamp if history else 0

    merged = Snapshot(
        state_map=state_map,
        history=history,
        updated_at=max(remote.updated_at, incoming.updated_at, last_ts),
    )
    logger.debug(
        f"Merged {len(remote.history)}+{len(incoming.history)} events into {len(history)}, "
        f"{len(state_map)} card states"
    )
    return merged
