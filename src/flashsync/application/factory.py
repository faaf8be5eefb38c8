"""
Sync Service Factory
Centralizes the logic for selecting the storage and catalog adapters.
"""

from flashsync.application.config import AppConfig
from flashsync.application.sync_service import SyncService
from flashsync.domain.ports import CardCatalog, SnapshotStore
from flashsync.infrastructure.adapters.json_store import JsonFileSnapshotStore
from flashsync.infrastructure.adapters.memory_store import InMemorySnapshotStore
from flashsync.infrastructure.adapters.yaml_catalog import YamlCardCatalog


def get_snapshot_store(config: AppConfig) -> SnapshotStore:
    """
    Returns the SnapshotStore implementation selected by config.
    """
    if config.backend == "memory":
        return InMemorySnapshotStore()
    return JsonFileSnapshotStore(config.data_dir)


def get_card_catalog(config: AppConfig) -> CardCatalog | None:
    """
    Returns the catalog if one is configured. Without one, card ids are not checked.
    """
    if config.catalog_path is None:
        return None
    return YamlCardCatalog(config.catalog_path)


def get_sync_service(config: AppConfig) -> SyncService:
    return SyncService(
        store=get_snapshot_store(config),
        catalog=get_card_catalog(config),
        history_limit=config.history_limit,
        queue_lookback=config.queue_lookback,
    )
