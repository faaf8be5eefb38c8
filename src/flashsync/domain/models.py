"""
Domain models for review events, scheduling state and sync snapshots.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from enum import Enum

from .constants import DEFAULT_EASE


class Outcome(str, Enum):
    """Grading result of a single review."""

    BAD = "bad"
    MID = "mid"
    GOOD = "good"


@dataclass(frozen=True)
class Card:
    """
    A catalog card. Owned by the catalog and immutable from the engine's view.

    Attributes:
        id: Opaque stable identifier.
        question: Prompt text.
        answer: Response text.
        question_number: Catalog sequence number (must be positive).
    """

    id: str
    question: str = ""
    answer: str = ""
    question_number: int = 1


@dataclass(frozen=True)
class CardState:
    """
    Scheduling state of a card, derived by replaying its review events.

    Attributes:
        repetitions: Completed reviews.
        ease: Difficulty multiplier in [1.2, 3.0].
        interval: Days until the next due date.
        due: Absolute day number when the card becomes eligible again.
        streak: Consecutive "good" outcomes.
    """

    repetitions: int = 0
    ease: float = DEFAULT_EASE
    interval: int = 0
    due: int = 0
    streak: int = 0


IDENTITY_STATE = CardState()


@dataclass(frozen=True)
class ReviewEvent:
    """
    A single review outcome. Immutable once created.

    Attributes:
        timestamp: Epoch milliseconds of the grading decision.
        card_id: The card that was reviewed.
        outcome: Grading result.
        seq: Sequence number assigned at append time; breaks timestamp ties.
    """

    timestamp: int
    card_id: str
    outcome: Outcome
    seq: int = 0

    @property
    def key(self) -> tuple[int, str, str]:
        """Identity used for de-duplication (seq excluded)."""
        return (self.timestamp, self.card_id, self.outcome.value)


@dataclass(frozen=True)
class Snapshot:
    """
    The unit exchanged during synchronization.

    `updated_at` is a logical high-water mark, at least the timestamp of the
    last event folded in.
    """

    state_map: dict[str, CardState] = field(default_factory=dict)
    history: list[ReviewEvent] = field(default_factory=list)
    updated_at: int = 0
