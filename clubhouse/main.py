"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from clubhouse.core.config import settings
from clubhouse.core.middleware import setup_middleware
from clubhouse.core.exceptions import ClubhouseError, StorageFailureError

from clubhouse.api.auth import router as auth_router
from clubhouse.api.users import router as users_router
from clubhouse.api.roles import router as roles_router
from clubhouse.api.role_groups import router as role_groups_router
from clubhouse.api.messages import router as messages_router
from clubhouse.api.polls import router as polls_router
from clubhouse.api.events import router as events_router
from clubhouse.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("clubhouse")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API", settings.APP_NAME)

    # Redis check
    from clubhouse.services.cache_service import cache_service
    if cache_service.health_check():
        logger.info("Redis connected, realtime fan-out enabled")
    else:
        logger.warning("Redis not available, realtime fan-out disabled")

    yield

    logger.info("Shutting down %s API", settings.APP_NAME)


app = FastAPI(
    title="Clubhouse API",
    description="Club chat, polls and events with rank-based access",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


# Exception handler for domain errors
@app.exception_handler(ClubhouseError)
async def clubhouse_exception_handler(request: Request, exc: ClubhouseError):
    request.state.error_code = exc.code
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    request.state.error_code = StorageFailureError.code
    logger.exception("storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=StorageFailureError.status_code,
        content={"detail": "Storage failure", "code": StorageFailureError.code},
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(role_groups_router, prefix="/api")
app.include_router(messages_router, prefix="/api")
app.include_router(polls_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
