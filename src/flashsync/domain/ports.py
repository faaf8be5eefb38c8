"""
Ports (interfaces) for snapshot storage and the card catalog.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Card, Snapshot


class SnapshotStore(ABC):
    """
    Port for persisting one Snapshot per synchronization scope.

    Implementations:
        - JsonFileSnapshotStore: One JSON document per scope code on disk.
        - InMemorySnapshotStore: Process-local dict, for tests and ephemeral servers.
    """

    @abstractmethod
    async def load(self, scope: str) -> dict | None:
        """
        Read the raw stored payload for a scope.

        Returns:
            The decoded JSON object, or None if nothing is stored yet.

        Raises:
            StorageUnavailableError: If the backing storage cannot be read.
        """
        pass

    @abstractmethod
    async def save(self, scope: str, payload: dict) -> None:
        """
        Replace the stored payload for a scope.

        Raises:
            StorageUnavailableError: If the backing storage cannot be written.
        """
        pass

    @abstractmethod
    async def delete(self, scope: str) -> None:
        """Remove the stored payload for a scope. Missing scopes are ignored."""
        pass


class CardCatalog(ABC):
    """Port for looking up catalog cards."""

    @abstractmethod
    def list_cards(self) -> list[Card]:
        """
        Return every valid card, ordered by question number.

        Raises:
            CatalogUnavailableError: If the backing catalog cannot be read.
        """
        pass

    def card_ids(self) -> set[str]:
        return {card.id for card in self.list_cards()}
