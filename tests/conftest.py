import pytest

from flashsync.application.sync_service import SyncService
from flashsync.infrastructure.adapters.memory_store import InMemorySnapshotStore


@pytest.fixture
def store():
    return InMemorySnapshotStore()


@pytest.fixture
def service(store):
    return SyncService(store=store)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/data
    monkeypatch.setenv("HOME", str(home))
    for var in ("FLASHSYNC_DATA_DIR", "FLASHSYNC_CATALOG_PATH", "FLASHSYNC_BACKEND"):
        monkeypatch.delenv(var, raising=False)
    return home
