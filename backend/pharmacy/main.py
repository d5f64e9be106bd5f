"""
Pharmacy back office API.

ARCHITECTURE:
- FastAPI routers: auth, medicines, customers, purchases, sales, admin
- SQLAlchemy: PostgreSQL in production, SQLite for development and tests
- Sales and purchases run as serializable units of work with row locks,
  retried on transient store failures

Domain errors are rendered as ``{"error": code, "message": ..., **detail}``.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from pharmacy.api.routes import auth, medicines, customers, purchases, sales, admin
from pharmacy.core.config import settings
from pharmacy.core.exceptions import InvariantViolation, PharmacyError, TransientStoreError
from pharmacy.core.rate_limiter import RateLimitMiddleware
from pharmacy.db.init_db import init_db

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: configure logging and create tables. Shutdown: nothing to release."""
    configure_logging()
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(
    title="Pharmacy API",
    description="Pharmacy shop back office: inventory, customers, purchases and sales.",
    version="1.0.0",
    lifespan=lifespan,
)

# Trust only specific hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "Idempotency-Key",
    ],
    max_age=600,
    expose_headers=["Content-Type", "Retry-After"],
)

app.add_middleware(RateLimitMiddleware)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.SECURE_COOKIES:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


@app.exception_handler(PharmacyError)
async def pharmacy_error_handler(request: Request, exc: PharmacyError):
    headers = {}
    if isinstance(exc, TransientStoreError):
        headers["Retry-After"] = "1"
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request: Request, exc: InvariantViolation):
    logger.critical(f"Invariant violated on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "An internal error occurred. Please try again later."},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "An internal error occurred. Please try again later."},
    )


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(medicines.router, prefix="/medicines", tags=["medicines"])
app.include_router(customers.router, prefix="/customers", tags=["customers"])
app.include_router(purchases.router, prefix="/purchases", tags=["purchases"])
app.include_router(sales.router, prefix="/sales", tags=["sales"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/health")
def health():
    return {"status": "ok", "database": settings.DATABASE_URL.split("://", 1)[0]}
