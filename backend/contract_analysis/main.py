"""
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from contract_analysis import models  # noqa: F401  registers all tables
from contract_analysis.api.routes import analysis, billing, documents, files, metrics, reports
from contract_analysis.config import settings
from contract_analysis.database import Base, engine, utcnow
from contract_analysis.logging_config import setup_logging
from contract_analysis.middleware import AuditMiddleware
from contract_analysis.rate_limiter import limiter, rate_limit_exceeded_handler

setup_logging(level=settings.LOG_LEVEL, scrub=not settings.is_development)

logger = logging.getLogger(__name__)

# Fallback codes for HTTP errors raised without an APIError detail
STATUS_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_type",
    429: "rate_limit_exceeded",
}


def internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")
    yield


# Initialize FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    version="1.0.0",
    description="Contract upload and AI risk analysis API",
    lifespan=lifespan,
)

# Innermost catch-all: unexpected route errors become a JSON 500
@app.middleware("http")
async def catch_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return internal_error_response()


# Blanket per-IP rate limit
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

# Request context for audit entries and logs
app.add_middleware(AuditMiddleware)

# Include routers
app.include_router(documents.router, prefix=settings.API_V1_PREFIX)
app.include_router(analysis.router, prefix=settings.API_V1_PREFIX)
app.include_router(reports.router, prefix=settings.API_V1_PREFIX)
app.include_router(metrics.router, prefix=settings.API_V1_PREFIX)
app.include_router(files.router, prefix=settings.API_V1_PREFIX)
app.include_router(billing.router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    """Flatten APIError details into the {error, message} body."""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {
            "error": STATUS_ERROR_CODES.get(exc.status_code, "error"),
            "message": str(exc.detail),
        }
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    details = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append({
            "field": ".".join(loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    logger.info(f"Validation error on {request.url.path}: {details}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_failed",
            "message": "Invalid request",
            "details": details,
        },
    )


# Errors raised by the outer middleware stack itself
@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return internal_error_response()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "time": utcnow().isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "contract_analysis.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
