"""
Sync Service: Application layer orchestrator.

Coordinates the snapshot store, the card catalog and the reconciliation
engine for the fetch / submit / reset boundary.
"""

import asyncio
import logging
import time
import weakref
from typing import Any

from flashsync.application.codec import snapshot_to_wire
from flashsync.application.queue_builder import QueueBuildResult, build_queue, due_cards
from flashsync.application.reconcile import merge
from flashsync.application.sanitize import (
    is_single_action,
    is_valid_scope_code,
    normalize_updated_at,
    parse_event,
    sanitize_history,
    sanitize_progress,
    sanitize_snapshot,
)
from flashsync.application.scheduler import day_number
from flashsync.domain.constants import HISTORY_LIMIT, QUEUE_LOOKBACK
from flashsync.domain.exceptions import InvalidScopeCodeError
from flashsync.domain.models import Snapshot
from flashsync.domain.ports import CardCatalog, SnapshotStore

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SyncService:
    """
    Application service for synchronizing study progress per scope.

    Depends on the SnapshotStore and CardCatalog abstractions, not concrete
    adapter implementations. Each scope's read-merge-write runs under its own
    lock so concurrent submits cannot lose updates within one process.
    """

    def __init__(
        self,
        store: SnapshotStore,
        catalog: CardCatalog | None = None,
        history_limit: int = HISTORY_LIMIT,
        queue_lookback: int = QUEUE_LOOKBACK,
    ):
        """
        Args:
            store: The repository (port) holding one snapshot per scope.
            catalog: Optional catalog; when set, unknown card ids are dropped.
            history_limit: Retention bound for merged histories.
            queue_lookback: Trailing events considered by the queue builder.
        """
        self._store = store
        self._catalog = catalog
        self._history_limit = history_limit
        self._queue_lookback = queue_lookback
        # Entries vanish once no coroutine holds or waits on a scope's lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, code: str) -> asyncio.Lock:
        lock = self._locks.get(code)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[code] = lock
        return lock

    def _check_code(self, code: str) -> str:
        code = str(code or "").strip()
        if not is_valid_scope_code(code):
            raise InvalidScopeCodeError(code)
        return code

    def _known_cards(self) -> set[str] | None:
        return self._catalog.card_ids() if self._catalog is not None else None

    async def _load(self, code: str) -> Snapshot:
        raw = await self._store.load(code)
        if raw is None:
            return Snapshot()
        return sanitize_snapshot(raw, self._known_cards(), self._history_limit)

    async def fetch(self, code: str) -> Snapshot:
        """
        Read the authoritative snapshot for a scope.

        Returns the empty snapshot when nothing is stored yet.
        """
        code = self._check_code(code)
        return await self._load(code)

    def parse_incoming(self, payload: Any) -> Snapshot:
        """
        Turn a submitted payload into a validated incoming snapshot.

        A single review action becomes a one-event snapshot with no cached
        state; a full snapshot is revalidated field by field.
        """
        if not isinstance(payload, dict):
            payload = {}
        known = self._known_cards()

        if is_single_action(payload):
            event = parse_event(payload, known_cards=known)
            if event is None:
                logger.debug(f"Dropping malformed review action: {payload!r}")
                return Snapshot(updated_at=now_ms())
            return Snapshot(history=[event], updated_at=event.timestamp)

        return Snapshot(
            state_map=sanitize_progress(payload.get("progress"), known),
            history=sanitize_history(payload.get("history"), known, self._history_limit),
            updated_at=normalize_updated_at(payload.get("updatedAt")) or now_ms(),
        )

    async def submit(self, code: str, payload: Any) -> dict:
        """
        Merge a client snapshot or a single review action into the stored snapshot.

        If `payload["reset"]` is true the incoming snapshot replaces the stored
        one without merging. Storage failures propagate and leave the stored
        snapshot untouched, so retrying the same payload is safe.
        """
        code = self._check_code(code)
        incoming = self.parse_incoming(payload)
        replace = isinstance(payload, dict) and payload.get("reset") is True

        if not replace and not incoming.history and not incoming.state_map:
            logger.debug(f"Scope {code}: nothing to merge; stored snapshot left as is")
            return {"ok": True}

        lock = self._lock_for(code)
        async with lock:
            if replace:
                result = incoming
            else:
                remote = await self._load(code)
                result = merge(remote, incoming, self._history_limit)
            await self._store.save(code, snapshot_to_wire(result))

        logger.info(
            f"Scope {code}: {'replaced' if replace else 'merged'} "
            f"{len(incoming.history)} incoming events -> {len(result.history)} stored"
        )
        return {"ok": True}

    async def reset(self, code: str) -> dict:
        """Clear history and state for a scope."""
        code = self._check_code(code)
        lock = self._lock_for(code)
        async with lock:
            await self._store.delete(code)
        logger.info(f"Scope {code}: reset")
        return {"ok": True}

    async def queue(
        self,
        code: str,
        today: int | None = None,
        keep_current: str | None = None,
        due_only: bool = False,
    ) -> QueueBuildResult:
        """
        Build the study queue for a scope from its stored snapshot.

        Without a catalog, the queue covers every card the snapshot knows about.
        With `due_only`, cards that are neither new nor due by `today` are left
        out of the ordering; scores still cover every card.
        """
        snapshot = await self.fetch(code)
        if today is None:
            today = day_number(now_ms())

        if self._catalog is not None:
            cards = self._catalog.list_cards()
        else:
            cards = list(
                dict.fromkeys([*snapshot.state_map, *(e.card_id for e in snapshot.history)])
            )

        result = build_queue(
            cards,
            snapshot.state_map,
            snapshot.history,
            today,
            keep_current=keep_current,
            lookback=self._queue_lookback,
        )
        if due_only:
            result.ordered = due_cards(result, snapshot.state_map, today)
        return result
