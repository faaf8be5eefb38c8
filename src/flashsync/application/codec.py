"""JSON wire encoding of snapshots (the inverse of sanitize)."""

from flashsync.domain.models import CardState, ReviewEvent, Snapshot


def state_to_wire(state: CardState) -> dict:
    return {
        "reps": state.repetitions,
        "ease": state.ease,
        "interval": state.interval,
        "due": state.due,
        "goodStreak": state.streak,
    }


def event_to_wire(event: ReviewEvent) -> dict:
    return {
        "ts": event.timestamp,
        "cardId": event.card_id,
        "grade": event.outcome.value,
        "seq": event.seq,
    }


def snapshot_to_wire(snapshot: Snapshot) -> dict:
    return {
        "progress": {card_id: state_to_wire(s) for card_id, s in snapshot.state_map.items()},
        "history": [event_to_wire(e) for e in snapshot.history],
        "updatedAt": snapshot.updated_at,
    }
