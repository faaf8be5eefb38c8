"""Centralized constants for flashsync.

All magic numbers and scheduling weights live here so every layer
imports from a single source of truth.
"""

# ---------- Time ----------
DAY_MS = 86_400_000

# ---------- Schedule Engine ----------
EASE_MIN = 1.2
EASE_MAX = 3.0
DEFAULT_EASE = 2.0
EASE_FACTORS = {"bad": 0.88, "mid": 0.96, "good": 1.08}
MAX_INTERVAL = 365

# ---------- Reconciliation ----------
HISTORY_LIMIT = 5000
RANK_REPETITIONS_WEIGHT = 100_000
RANK_STREAK_WEIGHT = 1_000
# Same-instant events for one card are stored in this outcome order
OUTCOME_ORDER = ("bad", "mid", "good")

# ---------- Queue Builder ----------
QUEUE_LOOKBACK = 500
BASE_SCORE = 10
NEW_CARD_BONUS = 24
OVERDUE_BONUS = 14
MAX_OVERDUE_DAYS_BONUS = 10
MASTERY_STREAK_CAP = 5
SHORT_INTERVAL_CAP = 3
LAST_OUTCOME_ADJUST = {"bad": 18, "mid": 8, "good": -4}
UNSEEN_IN_WINDOW_BONUS = 8
# (max steps back from the end of the window, adjustment)
RECENCY_PENALTIES = ((1, -12), (3, -6), (7, -2))
DEMOTE_TO_INDEX = 2

# ---------- Sync boundary ----------
SCOPE_CODE_PATTERN = r"^\d{6}$"
DEFAULT_PORT = 8777
