"""
JSON file snapshot store: one `<code>.json` document per scope.

Writes go to a temporary file first and are moved into place with
os.replace, so readers never observe a half-written snapshot.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from flashsync.domain.exceptions import StorageUnavailableError
from flashsync.domain.ports import SnapshotStore

logger = logging.getLogger(__name__)


class JsonFileSnapshotStore(SnapshotStore):
    """Stores snapshots as JSON files under a data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, scope: str) -> Path:
        return self.data_dir / f"{scope}.json"

    async def load(self, scope: str) -> dict | None:
        path = self.path_for(scope)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Could not read {path}: {e}", exc_info=True)
            raise StorageUnavailableError(f"Could not read snapshot for {scope}: {e}") from e

        if not raw.strip():
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Corrupt snapshot at {path}; treating as empty")
            return None
        return data if isinstance(data, dict) else None

    async def save(self, scope: str, payload: dict) -> None:
        path = self.path_for(scope)
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.data_dir, suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                json.dump(payload, tmp, separators=(",", ":"))
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error(f"Could not write {path}: {e}", exc_info=True)
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageUnavailableError(f"Could not write snapshot for {scope}: {e}") from e

    async def delete(self, scope: str) -> None:
        path = self.path_for(scope)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not delete {path}: {e}", exc_info=True)
            raise StorageUnavailableError(f"Could not delete snapshot for {scope}: {e}") from e
