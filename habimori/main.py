"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from habimori.config import settings
from habimori.database import database, ensure_indexes
from habimori.errors import (
    ConflictError,
    HabimoriError,
    NotFoundError,
    TransientIOError,
)
from habimori.routers import auth, contexts, events, goals, stats, tags, timers
from habimori.services.auth_service import InvalidCredentialsError
from habimori.services.mutations import MutationHub

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    await database.connect()
    await ensure_indexes(database.db)
    app.state.mutations = MutationHub(database.db)
    yield
    # Shutdown
    await app.state.mutations.shutdown()
    await database.disconnect()


app = FastAPI(
    title="Habimori API",
    description="Goal tracking with per-period status",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": {"code": exc.signal, "message": str(exc)}},
    )


@app.exception_handler(TransientIOError)
async def transient_io_handler(request: Request, exc: TransientIOError):
    logger.error("Persistence failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.exception_handler(PyMongoError)
async def pymongo_handler(request: Request, exc: PyMongoError):
    error = TransientIOError.from_pymongo(exc)
    logger.error("Persistence failure on %s: %s", request.url.path, error)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(error)})


@app.exception_handler(HabimoriError)
async def bad_request_handler(request: Request, exc: HabimoriError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


# Include routers
app.include_router(auth.router)
app.include_router(contexts.router)
app.include_router(tags.router)
app.include_router(goals.router)
app.include_router(timers.router)
app.include_router(events.counters_router)
app.include_router(events.checks_router)
app.include_router(stats.router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "message": "Habimori API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
