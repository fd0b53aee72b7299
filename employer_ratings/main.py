import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from employer_ratings.config import settings
from employer_ratings.database import engine
from employer_ratings.exceptions import (
    ConfigurationError,
    OrganizationNotFoundError,
    RatingConflictError,
)
from employer_ratings.middleware.logging_config import configure_logging

configure_logging(settings.log_level, settings.log_format)

from employer_ratings.api.ratings import router as ratings_router  # noqa: E402
from employer_ratings.api.policy import router as policy_router  # noqa: E402
from employer_ratings.middleware.request_context import RequestContextMiddleware  # noqa: E402

logger = logging.getLogger("employer_ratings")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: verify DB connection
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    yield
    await engine.dispose()


app = FastAPI(
    title="Employer Ratings",
    description="Multi-source weighted rating engine for employer compliance ratings",
    version="0.1.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Request-ID", "X-Actor"],
)

# ── Request context middleware (request ID + timing) ─────────────────────────
app.add_middleware(RequestContextMiddleware)


# ── Domain errors ────────────────────────────────────────────────────────────

@app.exception_handler(OrganizationNotFoundError)
async def organization_not_found_handler(request: Request, exc: OrganizationNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": "configuration_error"})


@app.exception_handler(RatingConflictError)
async def rating_conflict_handler(request: Request, exc: RatingConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc), "error": "rating_conflict"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return detailed error info in development mode so 500s are debuggable."""
    tb = traceback.format_exc()
    logger.error(
        "Unhandled %s on %s %s: %s\n%s",
        type(exc).__name__, request.method, request.url.path, exc, tb,
    )
    detail = f"{type(exc).__name__}: {exc}"
    if settings.environment == "development":
        return JSONResponse(
            status_code=500,
            content={"detail": detail, "traceback": tb.splitlines()[-5:]},
        )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(ratings_router)
app.include_router(policy_router)


@app.get("/api/health")
async def health_check():
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        database = {"status": "connected"}
    except Exception as exc:
        database = {"status": "disconnected", "error": str(exc)}

    return {
        "status": "healthy" if database["status"] == "connected" else "unhealthy",
        "environment": settings.environment,
        "components": {"database": database},
    }
