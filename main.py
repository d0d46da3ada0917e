# Essential imports
import time
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from routers import auth, users

# Import all models so Base.metadata knows every table
import models  # noqa: F401
from core.database import Base, engine

# Rate limiter imports
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging
from utils.logger import get_logger, log_request
from middleware import RequestIDMiddleware, get_request_id
from core.config import settings

# Token + event wiring
from services.errors import AuthServiceError, StoreUnavailable, ValidationError
from services.event_consumer import build_event_consumer
from services.event_publisher import build_event_publisher
from services.token_service import TokenCodec, TokenConfig

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

# Initialize logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    await app.state.event_publisher.start()
    if app.state.event_consumer is not None:
        await app.state.event_consumer.start()
    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    if app.state.event_consumer is not None:
        await app.state.event_consumer.stop()
    await app.state.event_publisher.stop()
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="Auth Service",
    description="Registration, login and refresh-token rotation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Signing configuration is read once here and injected everywhere else
app.state.token_codec = TokenCodec(TokenConfig.from_settings(settings))
app.state.event_publisher = build_event_publisher(
    settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_CLIENT_ID
)
app.state.event_consumer = build_event_consumer(
    settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_CONSUMER_TOPIC,
    settings.KAFKA_GROUP_ID, settings.KAFKA_CLIENT_ID
)


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every HTTP request with status code and duration.
    """
    start_time = time.time()
    response = await call_next(request)
    duration = (time.time() - start_time) * 1000

    log_request(
        logger,
        request.method,
        request.url.path,
        response.status_code,
        duration,
        client_ip=request.client.host if request.client else "unknown"
    )

    return response


# Added last so it wraps the logging middleware
app.add_middleware(RequestIDMiddleware)


@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "errors": exc.errors}
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers={"Retry-After": "1"}
    )


@app.exception_handler(AuthServiceError)
async def auth_error_handler(request: Request, exc: AuthServiceError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions, log them with stack trace and return a
    generic 500 without exposing internals.
    """
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise

    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "request_id": get_request_id(request)}
    )


# Including routers
app.include_router(auth.router)
app.include_router(users.router)


# Add rate limiter to the app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
