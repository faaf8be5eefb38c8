"""
Schedule engine: (current card state, outcome) -> next card state.

This is a pure computation module with no I/O.
"""

import math

from flashsync.domain.constants import DAY_MS, EASE_FACTORS, EASE_MAX, EASE_MIN, MAX_INTERVAL
from flashsync.domain.models import CardState, Outcome


def day_number(at: int) -> int:
    """Absolute UTC day index of an epoch-milliseconds timestamp."""
    return int(at) // DAY_MS


def clamp_ease(ease: float) -> float:
    return max(EASE_MIN, min(EASE_MAX, ease))


def round_half_up(value: float) -> int:
    """Round halves away from zero (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def next_interval(previous_interval: int, outcome: Outcome, streak: int) -> int:
    """
    Interval in days after a review.

    Args:
        previous_interval: Interval before the review (clamped to >= 0).
        outcome: Grading result.
        streak: Consecutive good outcomes *including* this review.
    """
    if outcome is not Outcome.GOOD:
        return 1

    base = max(1, previous_interval)
    if streak == 1:
        return max(2, round_half_up(base * 1.6))
    if streak == 2:
        return max(7, round_half_up(base * 2.8))
    return min(MAX_INTERVAL, max(30, round_half_up(base * 4.5)) + (streak - 3) * 30)


def advance(state: CardState, outcome: Outcome, at: int) -> CardState:
    """
    Fold one review outcome into a card's state.

    Out-of-domain input (negative interval, ease outside [1.2, 3.0]) is
    clamped rather than rejected, so this is total.
    """
    outcome = Outcome(outcome)
    interval = max(0, state.interval)
    ease = clamp_ease(state.ease)

    streak = state.streak + 1 if outcome is Outcome.GOOD else 0
    new_interval = next_interval(interval, outcome, streak)

    return CardState(
        repetitions=max(0, state.repetitions) + 1,
        ease=clamp_ease(ease * EASE_FACTORS[outcome.value]),
        interval=new_interval,
        due=day_number(at) + new_interval,
        streak=streak,
    )
