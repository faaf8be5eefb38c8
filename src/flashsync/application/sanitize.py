"""
Revalidation of untrusted snapshot payloads.

Everything arriving from a client or from storage passes through here before
the engines see it. Malformed records are dropped, never raised: partial
progress is better than none.
"""

import logging
import math
import re
from collections.abc import Collection
from typing import Any

from flashsync.application.scheduler import clamp_ease
from flashsync.domain.constants import DEFAULT_EASE, HISTORY_LIMIT, SCOPE_CODE_PATTERN
from flashsync.domain.models import CardState, Outcome, ReviewEvent, Snapshot

logger = logging.getLogger(__name__)

_SCOPE_CODE_RE = re.compile(SCOPE_CODE_PATTERN)
_OUTCOMES = {o.value: o for o in Outcome}


def is_valid_scope_code(code: Any) -> bool:
    return isinstance(code, str) and bool(_SCOPE_CODE_RE.match(code))


def to_number(value: Any, default: float) -> float | None:
    """
    Loose numeric coercion for JSON values.

    None falls back to `default`; numbers and numeric strings are accepted;
    anything else (including booleans, NaN and infinities) returns None.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def sanitize_state(row: Any) -> CardState | None:
    """Validate one wire progress row, clamping into the legal domain."""
    if not isinstance(row, dict):
        return None

    reps = to_number(row.get("reps"), 0)
    ease = to_number(row.get("ease"), DEFAULT_EASE)
    interval = to_number(row.get("interval"), 0)
    due = to_number(row.get("due"), 0)
    streak = to_number(row.get("goodStreak"), 0)

    if None in (reps, ease, interval, due, streak):
        return None

    return CardState(
        repetitions=max(0, math.floor(reps)),
        ease=clamp_ease(ease),
        interval=max(0, math.floor(interval)),
        due=max(0, math.floor(due)),
        streak=max(0, math.floor(streak)),
    )


def sanitize_progress(value: Any, known_cards: Collection[str] | None = None) -> dict[str, CardState]:
    """Validate a card_id -> progress row mapping."""
    if not isinstance(value, dict):
        return {}

    progress: dict[str, CardState] = {}
    for card_id, row in value.items():
        if not isinstance(card_id, str) or not card_id:
            continue
        if known_cards is not None and card_id not in known_cards:
            logger.warning(f"Dropping progress for unknown card {card_id!r}")
            continue
        state = sanitize_state(row)
        if state is None:
            logger.debug(f"Dropping malformed progress row for {card_id!r}: {row!r}")
            continue
        progress[card_id] = state
    return progress


def parse_timestamp(value: Any) -> int | None:
    """Positive finite integer timestamps only."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0 or int(value) != value:
        return None
    return int(value)


def parse_event(item: Any, default_seq: int = 0, known_cards: Collection[str] | None = None) -> ReviewEvent | None:
    """
    Validate one wire event.

    Accepts both the wire keys (`ts`, `cardId`, `grade`) and their long forms
    (`timestamp`, `card_id`, `outcome`).
    """
    if not isinstance(item, dict):
        return None

    ts = parse_timestamp(item.get("ts", item.get("timestamp")))
    card_id = item.get("cardId", item.get("card_id"))
    grade = item.get("grade", item.get("outcome"))

    if ts is None or not isinstance(card_id, str) or not card_id or grade not in _OUTCOMES:
        return None
    if known_cards is not None and card_id not in known_cards:
        logger.warning(f"Dropping review of unknown card {card_id!r}")
        return None

    seq = item.get("seq")
    if isinstance(seq, bool) or not isinstance(seq, int):
        seq = default_seq
    return ReviewEvent(timestamp=ts, card_id=card_id, outcome=_OUTCOMES[grade], seq=seq)


def sanitize_history(
    value: Any,
    known_cards: Collection[str] | None = None,
    limit: int = HISTORY_LIMIT,
) -> list[ReviewEvent]:
    """
    Validate an event list, keeping stored order and at most the last `limit` events.

    Events without an explicit seq get their list position, which preserves
    insertion order as the tiebreak.
    """
    if not isinstance(value, list):
        return []

    events: list[ReviewEvent] = []
    dropped = 0
    for index, item in enumerate(value):
        event = parse_event(item, default_seq=index, known_cards=known_cards)
        if event is None:
            dropped += 1
            continue
        events.append(event)

    if dropped:
        logger.debug(f"Dropped {dropped} malformed history entries")
    return events[-limit:] if limit > 0 else []


def normalize_updated_at(value: Any) -> int:
    number = to_number(value, 0)
    if number is None or number <= 0:
        return 0
    return math.floor(number)


def sanitize_snapshot(
    value: Any,
    known_cards: Collection[str] | None = None,
    limit: int = HISTORY_LIMIT,
) -> Snapshot:
    """Validate a whole wire snapshot. Anything unusable becomes the empty snapshot."""
    if not isinstance(value, dict):
        return Snapshot()

    return Snapshot(
        state_map=sanitize_progress(value.get("progress"), known_cards),
        history=sanitize_history(value.get("history"), known_cards, limit),
        updated_at=normalize_updated_at(value.get("updatedAt")),
    )


def is_single_action(value: Any) -> bool:
    """A bare review action carries a card id and no history/progress bundle."""
    return (
        isinstance(value, dict)
        and ("cardId" in value or "card_id" in value)
        and "history" not in value
        and "progress" not in value
    )
