"""
Partisipro Identity Registry — FastAPI Application Entry Point

Aggregates all routers, configures middleware, maps domain errors to HTTP
responses, and initializes the database and claim topic catalog on startup.
"""
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from partisipro_identity.config import get_settings
from partisipro_identity.database import SessionLocal, init_db
from partisipro_identity.errors import IdentityRegistryError
from partisipro_identity.logger import configure_logging, get_logger
from partisipro_identity.routes import (
    topics_router, issuers_router, identities_router, claims_router, compliance_router,
)
from partisipro_identity.schemas.schemas import HealthResponse
from partisipro_identity.services.topic_registry import ClaimTopicRegistry

settings = get_settings()
logger = get_logger(__name__)

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Identity and claims registry for the Partisipro platform. "
        "Covers the claim topic catalog, trusted issuers, claim issuance and revocation, "
        "identity verification against required topics, and compliance reporting."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Initialize logging, database tables and the default topic catalog."""
    configure_logging()
    init_db()

    if settings.SEED_DEFAULT_TOPICS:
        db = SessionLocal()
        try:
            ClaimTopicRegistry.seed_defaults(db)
        finally:
            db.close()

    logger.info(
        f"\n{'='*60}\n"
        f"  {settings.APP_NAME} v{settings.APP_VERSION}\n"
        f"  TIME: {datetime.now().isoformat()}\n"
        f"  DATABASE: {settings.DATABASE_URL}\n"
        f"  DEBUG: {settings.DEBUG}\n"
        f"{'='*60}"
    )


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info(f"-> {request.method} {request.url.path} -> {response.status_code} ({duration}ms)")

    return response


# ─── Error Mapping ───────────────────────────────────────────────────
@app.exception_handler(IdentityRegistryError)
async def registry_error_handler(request: Request, exc: IdentityRegistryError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.error_code}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code},
    )


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(topics_router)
app.include_router(issuers_router)
app.include_router(identities_router)
app.include_router(claims_router)
app.include_router(compliance_router)


@app.get("/health", tags=["Health"], response_model=HealthResponse)
def deep_health():
    """Detailed health check including database connectivity."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {e}")
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        database="connected" if db_ok else "disconnected",
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
    )
