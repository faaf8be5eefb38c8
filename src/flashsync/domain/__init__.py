# Domain Package
from .exceptions import (
    CatalogUnavailableError,
    FlashsyncError,
    InvalidScopeCodeError,
    StorageUnavailableError,
)
from .models import IDENTITY_STATE, Card, CardState, Outcome, ReviewEvent, Snapshot
from .ports import CardCatalog, SnapshotStore

__all__ = [
    "Card",
    "CardState",
    "IDENTITY_STATE",
    "Outcome",
    "ReviewEvent",
    "Snapshot",
    "CardCatalog",
    "SnapshotStore",
    "CatalogUnavailableError",
    "FlashsyncError",
    "InvalidScopeCodeError",
    "StorageUnavailableError",
]
