"""
Queue builder for study sessions.

Builds ordered study queues by:
1. Scoring every catalog card from its state and the recent review window
2. Sorting by descending score, then ascending card id
3. Applying session policy (no immediate repeat, keep the current card)
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from flashsync.application.replay import state_for
from flashsync.domain.constants import (
    BASE_SCORE,
    DEMOTE_TO_INDEX,
    LAST_OUTCOME_ADJUST,
    MASTERY_STREAK_CAP,
    MAX_OVERDUE_DAYS_BONUS,
    NEW_CARD_BONUS,
    OVERDUE_BONUS,
    QUEUE_LOOKBACK,
    RECENCY_PENALTIES,
    SHORT_INTERVAL_CAP,
    UNSEEN_IN_WINDOW_BONUS,
)
from flashsync.domain.models import Card, CardState, Outcome, ReviewEvent

logger = logging.getLogger(__name__)


@dataclass
class RecentWindow:
    """
    What the last few hundred reviews say about each card.

    Steps are counted back from the end of the window: the final event is
    0 steps back.
    """

    last_outcome: dict[str, Outcome] = field(default_factory=dict)
    steps_back: dict[str, int] = field(default_factory=dict)
    last_card_id: str | None = None


@dataclass
class QueueBuildResult:
    """Result of queue building operation."""

    ordered: list[str]  # Full ordering over all cards, study first at index 0
    scores: dict[str, int]  # Raw score per card before policy steps
    demoted: str | None = None  # Card moved off the front to avoid a repeat
    kept_current: str | None = None  # Card re-promoted to the front


def build_recent_window(events: Iterable[ReviewEvent], lookback: int = QUEUE_LOOKBACK) -> RecentWindow:
    """Summarize the last `lookback` events (given in history order)."""
    recent = list(events)[-lookback:] if lookback > 0 else []
    window = RecentWindow()
    last_index = len(recent) - 1

    for index, event in enumerate(recent):
        window.last_outcome[event.card_id] = event.outcome
        window.steps_back[event.card_id] = last_index - index

    if recent:
        window.last_card_id = recent[-1].card_id
    return window


def _recency_adjustment(steps_back: int | None) -> int:
    if steps_back is None:
        return UNSEEN_IN_WINDOW_BONUS
    for max_steps, adjustment in RECENCY_PENALTIES:
        if steps_back <= max_steps:
            return adjustment
    return 0


def score_card(state: CardState, card_id: str, window: RecentWindow, today: int) -> int:
    """
    Priority score for one card. Higher is studied sooner.
    """
    score = BASE_SCORE

    if state.repetitions == 0:
        score += NEW_CARD_BONUS
    elif state.due <= today:
        score += OVERDUE_BONUS + min(MAX_OVERDUE_DAYS_BONUS, today - state.due)

    # Less-mastered cards are pulled forward
    score += 2 * max(0, MASTERY_STREAK_CAP - state.streak)
    score += max(0, SHORT_INTERVAL_CAP - state.interval)

    last = window.last_outcome.get(card_id)
    if last is not None:
        score += LAST_OUTCOME_ADJUST[last.value]

    score += _recency_adjustment(window.steps_back.get(card_id))
    return score


def build_queue(
    cards: Iterable[Card | str],
    states: dict[str, CardState],
    recent_events: Iterable[ReviewEvent],
    today: int,
    just_reviewed: str | None = None,
    keep_current: str | None = None,
    lookback: int = QUEUE_LOOKBACK,
) -> QueueBuildResult:
    """
    Build the study order for a session.

    Args:
        cards: Catalog cards (or bare card ids). Every one appears in the output.
        states: Current card states; missing cards default to the identity state.
        recent_events: Review history in stored order; only the tail is used.
        today: Current day number.
        just_reviewed: Card that must not be shown twice in a row. Defaults to
            the card of the last event in the window. If it ranks first it
            trades places with the card at index min(2, len - 1), so that
            card moves ahead of index 1 regardless of score.
        keep_current: Card to keep at the front (e.g. the one on screen when
            resuming a session).
        lookback: Maximum number of trailing events considered.

    Returns:
        QueueBuildResult with the ordered card ids and their scores.
    """
    card_ids = list(dict.fromkeys(c.id if isinstance(c, Card) else c for c in cards))
    if not card_ids:
        return QueueBuildResult(ordered=[], scores={})

    window = build_recent_window(recent_events, lookback)
    scores = {
        card_id: score_card(state_for(states, card_id), card_id, window, today)
        for card_id in card_ids
    }
    ordered = sorted(card_ids, key=lambda cid: (-scores[cid], cid))

    result = QueueBuildResult(ordered=ordered, scores=scores)

    # 1. Never show the card that was just graded as the very next one.
    # This is a swap, not a shift: the card at index 2 jumps over index 1
    # even when index 1 scores higher.
    repeat_id = just_reviewed if just_reviewed is not None else window.last_card_id
    if repeat_id is not None and len(ordered) > 1 and ordered[0] == repeat_id:
        target = min(DEMOTE_TO_INDEX, len(ordered) - 1)
        ordered[0], ordered[target] = ordered[target], ordered[0]
        result.demoted = repeat_id

    # 2. Resuming a session keeps what is on screen
    if keep_current is not None and keep_current in scores:
        ordered.remove(keep_current)
        ordered.insert(0, keep_current)
        result.kept_current = keep_current

    logger.debug(
        f"Built queue of {len(ordered)} cards (window={len(window.steps_back)} cards, today={today})"
    )
    return result


def due_cards(result: QueueBuildResult, states: dict[str, CardState], today: int) -> list[str]:
    """Subset of the ordered queue that is new or due by `today`, order preserved."""
    due = []
    for card_id in result.ordered:
        state = state_for(states, card_id)
        if state.repetitions == 0 or state.due <= today:
            due.append(card_id)
    return due
