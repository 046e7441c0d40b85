"""
FastAPI ingestion surface: add, get-by-key, search and health.

Startup replays the append log (when IMPORT_LOG is set) before the app serves
any request, so a live write can never race a replay write for the same key.
"""

import secrets
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Header, Request

from .schemas import (
    AddRecordRequest,
    AddRecordResponse,
    RecordResponse,
    SearchResponse,
    HealthResponse
)
from ..core.append_log import AppendLog
from ..core.config import Settings, VERSION, get_record_store, get_search_index, validate_config
from ..core.errors import ReplayAborted, StoreWriteFailure, WriteFailure
from ..core.reconciler import Reconciler
from ..core.replay import ReplayEngine
from ..core.service import RecordService
from ..search.rebuild import rebuild_index
from ..util.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    store = get_record_store(settings)
    index = get_search_index(settings)
    reconciler = Reconciler(store, index)
    log = AppendLog(settings.log_path, queue_size=settings.log_queue_size)

    app.state.replay = None
    if settings.import_log:
        logger.info(f"Importing from log file: {settings.log_path}")
        engine = ReplayEngine(reconciler, worker_count=settings.replay_workers,
                              queue_size=settings.replay_queue_size)
        try:
            app.state.replay = engine.replay(log).to_dict()
        except ReplayAborted as e:
            # Startup continues with whatever was applied before the read error
            logger.error(f"Error importing log file: {e}")
            app.state.replay = e.result.to_dict() if e.result else None
            if app.state.replay is not None:
                app.state.replay["aborted"] = True

    # An in-memory index starts empty; repopulate it from the store before serving
    app.state.index_rebuild = None
    if settings.index_provider == "memory":
        indexed, failed = rebuild_index(store, index)
        app.state.index_rebuild = {"indexed": indexed, "failed": failed}

    log.start()
    app.state.store = store
    app.state.log = log
    app.state.service = RecordService(reconciler, log, store, index)

    try:
        yield
    finally:
        log.close()
        logger.info("Append log closed")


def get_service(request: Request) -> RecordService:
    return request.app.state.service


def require_api_key(request: Request, x_api_key: Optional[str] = Header(None)):
    """Reject requests whose X-API-Key header does not match the configured key."""
    expected = request.app.state.settings.api_key
    if x_api_key is None or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or Settings.from_env()

    issues = validate_config(settings)
    if issues:
        raise ValueError(f"Configuration invalid: {issues}")

    logger.set_debug(settings.debug)

    app = FastAPI(
        title="Record Store API",
        version=VERSION,
        description="Key/topic/content record store with search and append-log recovery",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )
    app.state.settings = settings

    def _add(topic: Optional[str], req: AddRecordRequest, service: RecordService) -> AddRecordResponse:
        try:
            result = service.add(key=req.key, content=req.content, topic=topic)
        except StoreWriteFailure as e:
            logger.error(f"Store write failed for key '{req.key}': {e}")
            raise HTTPException(status_code=500, detail="Error saving item to database")
        except WriteFailure as e:
            logger.error(f"Append log unavailable for key '{req.key}': {e}")
            raise HTTPException(status_code=503, detail="Append log is shutting down")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return AddRecordResponse(
            status="ok",
            action=result.action,
            indexed=result.indexed,
            record=RecordResponse.from_record(result.record)
        )

    @app.post("/add", response_model=AddRecordResponse, status_code=201, dependencies=[Depends(require_api_key)])
    def add_default_endpoint(req: AddRecordRequest, service: RecordService = Depends(get_service)):
        """Add or update a record in the default topic."""
        return _add(None, req, service)

    @app.post("/add/{topic}", response_model=AddRecordResponse, status_code=201, dependencies=[Depends(require_api_key)])
    def add_endpoint(topic: str, req: AddRecordRequest, service: RecordService = Depends(get_service)):
        """Add or update a record in `topic`."""
        return _add(topic, req, service)

    @app.get("/get-by-key", response_model=RecordResponse, dependencies=[Depends(require_api_key)])
    def get_by_key_endpoint(key: str = "", topic: str = "default", service: RecordService = Depends(get_service)):
        if not key:
            raise HTTPException(status_code=400, detail="Missing key param")

        record = service.get(key, topic)
        if record is None:
            raise HTTPException(status_code=404, detail="Not found")
        return RecordResponse.from_record(record)

    @app.get("/search", response_model=SearchResponse, dependencies=[Depends(require_api_key)])
    def search_endpoint(q: str = "", topic: str = "default", limit: Optional[int] = None, offset: Optional[int] = None,
                        service: RecordService = Depends(get_service)):
        """Topic-scoped substring/fuzzy search over record content."""
        if not q:
            raise HTTPException(status_code=400, detail="Missing 'q' param")

        # Out-of-range pagination falls back to defaults instead of failing
        if limit is None or limit <= 0 or limit > settings.search_max_limit:
            limit = settings.search_default_limit
        if offset is None or offset < 0:
            offset = 0

        records = service.search(q, topic=topic, limit=limit, offset=offset)
        return SearchResponse(
            results=[RecordResponse.from_record(r) for r in records],
            limit=limit,
            offset=offset
        )

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(request: Request):
        """Check system health."""
        store = request.app.state.store
        log = request.app.state.log
        db_health = store.health_check() if hasattr(store, "health_check") else True

        return HealthResponse(
            status="healthy" if db_health else "unhealthy",
            version=VERSION,
            db_health=db_health,
            record_count=store.count(),
            log_pending=log.pending(),
            log_write_failures=log.write_failures,
            replay=request.app.state.replay,
            index_rebuild=request.app.state.index_rebuild
        )

    return app
