import logging
import time

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timeledger.core.config import settings
from timeledger.core.errors import LedgerError
from timeledger.api.v1.auth import router as auth_router
from timeledger.api.v1.employees import router as employees_router
from timeledger.api.v1.time_entries import router as time_router
from timeledger.db.ledger_store import MemoryLedgerStore
from timeledger.db.mongo import get_mongo_db, close_mongo_client
from timeledger.db.mongo_indexes import ensure_indexes
from timeledger.db.mongo_ledger_store import MongoLedgerStore
from timeledger.db.user_store import MemoryUserStore, MongoUserStore
from timeledger.services.user_service import create_admin_if_missing

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("timeledger")

app = FastAPI(title="Time Ledger Backend")

# Build CORS allowlist from local dev + configured origins
_base_origins = {
    "http://localhost:5173",
    "http://127.0.0.1:5173",
}
if settings.FRONTEND_BASE_URL:
    _base_origins.add(settings.FRONTEND_BASE_URL)
for o in settings.ALLOWED_ORIGINS:
    _base_origins.add(o)
# Normalize by stripping trailing slashes to match Origin header format
_allowed_origins = sorted({o.rstrip('/') for o in _base_origins if o})

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_origin_regex=r"^http(s)?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s %s - %.0fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.get("/")
def read_root():
    return {"message": "Time Ledger API is running. Use /api/v1 endpoints."}


@app.get("/health")
def health_check():
    return {"status": "ok"}


# Mount API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(employees_router, prefix="/api/v1")
app.include_router(time_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup():
    if settings.STORE_BACKEND == "memory":
        logger.warning("Using the in-memory store; data is lost on restart")
        app.state.ledger_store = MemoryLedgerStore()
        app.state.user_store = MemoryUserStore()
    else:
        db = get_mongo_db()
        # The open-entry index backs clock-in, so a failure here stops startup
        try:
            await ensure_indexes(db)
        except Exception as exc:
            logger.error("Mongo index initialization failed: %s", exc)
            raise
        app.state.ledger_store = MongoLedgerStore(db)
        app.state.user_store = MongoUserStore(db)
    await create_admin_if_missing(app.state.user_store, settings.DEFAULT_ADMIN_PASS)


@app.on_event("shutdown")
async def on_shutdown():
    # Close Mongo client
    close_mongo_client()
