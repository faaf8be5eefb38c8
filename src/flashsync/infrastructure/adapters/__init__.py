# Infrastructure Adapters Package
from .json_store import JsonFileSnapshotStore
from .memory_store import InMemorySnapshotStore
from .yaml_catalog import StaticCardCatalog, YamlCardCatalog

__all__ = [
    "JsonFileSnapshotStore",
    "InMemorySnapshotStore",
    "YamlCardCatalog",
    "StaticCardCatalog",
]
