"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from practice_api.core.config import settings
from practice_api.core.errors import PracticeError, StorageError
from practice_api.core.structured_logging import build_log_context
from practice_api.db.session import engine

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Client records are PHI
    )
    logger.info("Sentry initialized for error tracking")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Practice API",
    description="Multi-tenant practice management: availability, assignments, and booking",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


# ============================================================================
# Error Handling
# ============================================================================

async def practice_error_handler(request: Request, exc: PracticeError) -> JSONResponse:
    """Map service errors to their HTTP status."""
    if isinstance(exc, StorageError):
        logger.error(
            "storage_error detail=%s",
            exc.detail,
            extra=build_log_context(route=request.url.path, method=request.method),
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Unguarded database failures (mostly reads) surface as a storage error."""
    logger.error(
        "database_error error_type=%s",
        type(exc).__name__,
        extra=build_log_context(route=request.url.path, method=request.method),
    )
    error = StorageError("Database unavailable")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.add_exception_handler(PracticeError, practice_error_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)


# ============================================================================
# Routers
# ============================================================================

from practice_api.routers import appointments, assignments, auth, availability, permissions  # noqa: E402

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(permissions.router)  # Router already has prefix="/permissions"
app.include_router(assignments.router)  # Router already has prefix="/practitioner-assignments"
app.include_router(availability.router)  # Router already has prefix="/availability"
app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
