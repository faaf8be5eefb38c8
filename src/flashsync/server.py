import logging
import time
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel

from flashsync.application.codec import snapshot_to_wire
from flashsync.application.sync_service import SyncService
from flashsync.consts import VERSION
from flashsync.domain.exceptions import (
    CatalogUnavailableError,
    InvalidScopeCodeError,
    StorageUnavailableError,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("flashsync.server")

_service: SyncService | None = None


def get_service() -> SyncService:
    """Process-wide sync service, built from the resolved config on first use."""
    global _service
    if _service is None:
        from flashsync.application.config import resolve_config
        from flashsync.application.factory import get_sync_service

        _service = get_sync_service(resolve_config())
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"flashsync server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("flashsync server shutting down...")


app = FastAPI(
    title="flashsync",
    description="Study progress sync for flashcard sessions.",
    version=VERSION,
    lifespan=lifespan,
)

ServiceDep = Annotated[SyncService, Depends(get_service)]


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class OkResponse(BaseModel):
    ok: bool


class QueueResponse(BaseModel):
    queue: list[str]
    scores: dict[str, int]
    total: int


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/session-progress")
async def fetch_progress(service: ServiceDep, code: str = ""):
    """
    Read the stored snapshot for a session code.
    Unknown codes return the empty snapshot, never 404.
    """
    try:
        snapshot = await service.fetch(code)
    except InvalidScopeCodeError as e:
        raise HTTPException(status_code=400, detail="Invalid code") from e
    except CatalogUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except StorageUnavailableError as e:
        logger.error(f"Fetch failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    return snapshot_to_wire(snapshot)


@app.post("/session-progress", response_model=OkResponse)
async def submit_progress(req: dict, service: ServiceDep):
    """
    Merge a client snapshot, or a single {cardId, grade, ts} review action,
    into the stored snapshot.
    """
    code = str(req.get("code", "")).strip()
    try:
        return await service.submit(code, req)
    except InvalidScopeCodeError as e:
        raise HTTPException(status_code=400, detail="Invalid code") from e
    except CatalogUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except StorageUnavailableError as e:
        logger.error(f"Submit failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.delete("/session-progress", response_model=OkResponse)
async def reset_progress(service: ServiceDep, code: str = ""):
    """Clear history and state for a session code."""
    try:
        return await service.reset(code)
    except InvalidScopeCodeError as e:
        raise HTTPException(status_code=400, detail="Invalid code") from e
    except StorageUnavailableError as e:
        logger.error(f"Reset failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/queue", response_model=QueueResponse)
async def get_queue(
    service: ServiceDep,
    code: str = "",
    today: int | None = None,
    keep_current: str | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
    due_only: bool = False,
):
    """
    Ordered study queue for a session code.
    `limit` only trims the response; scoring always covers every card.
    """
    try:
        result = await service.queue(
            code, today=today, keep_current=keep_current, due_only=due_only
        )
    except InvalidScopeCodeError as e:
        raise HTTPException(status_code=400, detail="Invalid code") from e
    except CatalogUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except StorageUnavailableError as e:
        logger.error(f"Queue build failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    ordered = result.ordered[:limit] if limit else result.ordered
    return QueueResponse(
        queue=ordered,
        scores={cid: result.scores[cid] for cid in ordered},
        total=len(result.ordered),
    )
