"""
History replay: rebuild per-card state by folding the schedule engine over
an ordered event sequence, starting every card from the identity state.
"""

from collections.abc import Iterable

from flashsync.application.scheduler import advance
from flashsync.domain.models import IDENTITY_STATE, CardState, ReviewEvent


def order_events(events: Iterable[ReviewEvent]) -> list[ReviewEvent]:
    """Sort by (timestamp, seq). The sort is stable, so full ties keep input order."""
    return sorted(events, key=lambda e: (e.timestamp, e.seq))


def replay(events: Iterable[ReviewEvent]) -> dict[str, CardState]:
    """
    Replay a review history into a card_id -> CardState map.

    Cards with no events are absent from the result; use state_for() to
    default them to the identity state.
    """
    states: dict[str, CardState] = {}
    for event in order_events(events):
        states[event.card_id] = advance(
            states.get(event.card_id, IDENTITY_STATE), event.outcome, event.timestamp
        )
    return states


def replay_card(events: Iterable[ReviewEvent], card_id: str) -> CardState | None:
    """Replay only the events of one card. Returns None if it has none."""
    return replay(e for e in events if e.card_id == card_id).get(card_id)


def state_for(states: dict[str, CardState], card_id: str) -> CardState:
    return states.get(card_id, IDENTITY_STATE)
