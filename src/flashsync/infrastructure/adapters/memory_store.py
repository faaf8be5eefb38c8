import copy

from flashsync.domain.ports import SnapshotStore


class InMemorySnapshotStore(SnapshotStore):
    """
    Process-local snapshot store.

    Payloads are deep-copied in and out so callers cannot mutate stored state.
    """

    def __init__(self, initial: dict[str, dict] | None = None):
        self._data: dict[str, dict] = copy.deepcopy(initial or {})

    async def load(self, scope: str) -> dict | None:
        payload = self._data.get(scope)
        return copy.deepcopy(payload) if payload is not None else None

    async def save(self, scope: str, payload: dict) -> None:
        self._data[scope] = copy.deepcopy(payload)

    async def delete(self, scope: str) -> None:
        self._data.pop(scope, None)

    def scopes(self) -> list[str]:
        return sorted(self._data)
