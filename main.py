import time
import traceback

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from studia.core.config import settings
from studia.core.errors import ErrorType, failure_envelope
from studia.core.logging_config import setup_logging, get_logger, RequestLogger
from studia.core.rate_limit import limiter
from studia.db.database import Base, engine
from studia.api.routes import analysis, results

# Initialize logging first (auto-determines level based on environment)
setup_logging(
    app_name="studia",
    log_level=settings.log_level,  # Empty = auto (DEBUG in dev, WARNING in prod)
    environment=settings.environment,
    enable_console=True,
    enable_file=settings.log_to_file,
)

logger = get_logger(__name__)
request_logger = RequestLogger(get_logger("studia.requests"))

logger.info("Starting Studia backend...")

# Create database tables
from studia.models import StudyResult  # noqa: F401
Base.metadata.create_all(bind=engine)
logger.info("Database tables created/verified")


app = FastAPI(
    title=settings.app_name,
    description="Document analysis backend for the Studia study app",
    version="0.1.0",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Global exception handler: logs full tracebacks for 500 errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions, log full traceback, return 500."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}\n"
        f"{traceback.format_exc()}"
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Pipeline endpoints answer every failure with the HTTP 200 envelope
ENVELOPE_PATHS = {"/api/analyze-material", "/api/generate-exam"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    if request.url.path not in ENVELOPE_PATHS:
        return await request_validation_exception_handler(request, exc)

    errors = exc.errors()
    first = errors[0] if errors else {}
    names = [part for part in first.get("loc", ()) if isinstance(part, str) and part != "body"]
    field = ".".join(names) or "request body"
    message = f"Invalid {field}: {first.get('msg', 'invalid value')}"
    logger.warning(f"Rejected request on {request.url.path} | {message}")
    return JSONResponse(status_code=200, content=failure_envelope(ErrorType.MISSING_PARAMETER, message))


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing."""
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    request_logger.log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        client_ip=client_ip,
        user_id=getattr(request.state, "user_id", None),
    )
    return response


# Callers authenticate with bearer tokens only, never cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(analysis.router, prefix="/api")
app.include_router(results.router, prefix="/api")
logger.info("API routes registered at /api")


@app.get("/health")
def health_check():
    logger.debug("Health check requested")
    return {"status": "healthy"}


@app.get("/")
def root():
    return {"message": "Studia API", "app": settings.app_name, "docs": "/docs"}
