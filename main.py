"""Main FastAPI application"""
import logging
import logging.config
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config import AppConfig, load_config
from repositories.base import ExpenseRepository
from repositories.factory import create_repository
from routes import router as api_router
from services.expenses_service import ExpenseService

logger = logging.getLogger(__name__)

JSON_BODY_METHODS = ("POST", "PUT", "PATCH")


def logging_config(level: str = "INFO") -> dict:
    """Unified logging configuration: one RichHandler for the app and uvicorn."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                # RichHandler renders time and level itself
                "format": "%(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "class": "rich.logging.RichHandler",
                "formatter": "default",
                "level": "DEBUG",
                "rich_tracebacks": True,
                "show_time": True,
                "show_path": False,
                "log_time_format": "%Y-%m-%d %H:%M:%S",
                "markup": False,
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "": {"handlers": ["default"], "level": level, "propagate": False},
        },
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(logging_config(level))


# --- Middleware for Request Body Size Limit ---
class LimitBodySizeMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_body_size: int):
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next):
        if request.method in JSON_BODY_METHODS:
            content_length_header = request.headers.get("content-length")
            if content_length_header:
                try:
                    content_length = int(content_length_header)
                except ValueError:
                    logger.warning("Request rejected: Invalid Content-Length header.")
                    return _error_response(400, ["Invalid Content-Length header."])
                if content_length > self.max_body_size:
                    logger.warning(f"Request rejected: body size {content_length} exceeds limit {self.max_body_size}.")
                    return _error_response(413, [f"Maximum request body size ({self.max_body_size} bytes) exceeded."])
            # Chunked bodies without Content-Length are not checked here.

        return await call_next(request)


# --- Error payloads: {"code": <status>, "issues": [...]} ---
def _error_response(status_code: int, issues, headers=None) -> Response:
    if not issues:
        issues = []
    elif isinstance(issues, str):
        issues = [issues]
    return JSONResponse(status_code=status_code, content={"code": status_code, "issues": list(issues)}, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    issues = exc.detail if exc.detail else []
    return _error_response(exc.status_code, issues, headers=getattr(exc, "headers", None))


def _describe_validation_error(error: dict) -> str:
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(location)
    if field:
        return f"field '{field}': {error.get('msg', 'invalid value')}"
    return error.get("msg", "invalid request")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    issues = [_describe_validation_error(error) for error in exc.errors()]
    logger.warning(f"Request validation failed for {request.method} {request.url.path}: {issues}")
    return _error_response(400, issues)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}: {exc.detail}")
    return _error_response(429, [f"Rate limit exceeded: {exc.detail}"])


async def enforce_rate_limit(request: Request) -> None:
    """Apply the limiter's default limits to every /api request (raises RateLimitExceeded)."""
    limiter: Limiter = request.app.state.limiter
    endpoint = request.scope.get("endpoint")
    limiter._check_request_limit(request, endpoint, True)


def create_app(config: Optional[AppConfig] = None,repository: Optional[ExpenseRepository] = None) -> FastAPI:
    """
    Build the application.

    `repository` overrides the backend named in `config`; tests use it to
    inject an in-memory store.
    """
    config = config or load_config()
    configure_logging(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: connect the storage backend
        app.state.expense_service = None
        repo = repository
        try:
            if repo is None:
                repo = create_repository(config)
            logger.info(f"Connecting to '{repo.name}' storage backend...")
            await repo.connect()
            app.state.expense_service = ExpenseService(repo)
            logger.info(f"Storage backend '{repo.name}' ready.")
        except Exception as e:
            # Keep serving; routes answer 503 until storage is fixed
            logger.error(f"Failed to connect to storage backend: {e}")

        yield

        # Shutdown: release storage connections
        if app.state.expense_service is not None:
            logger.info("Closing storage backend...")
            await app.state.expense_service.repository.close()

    app = FastAPI(
        title="Expense Tracker API",
        description="API for recording and summarizing expenses.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config

    # --- Rate Limiter ---
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[config.rate_limit],
        enabled=config.rate_limit_enabled,
    )
    app.state.limiter = limiter

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # --- Middleware (last added runs first) ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LimitBodySizeMiddleware, max_body_size=config.max_body_size)

    @app.middleware("http")
    async def add_service_to_request(request: Request, call_next):
        """Exposes the expense service on the request state."""
        request.state.expense_service = getattr(request.app.state, "expense_service", None)
        return await call_next(request)

    app.include_router(api_router, prefix="/api", tags=["api"], dependencies=[Depends(enforce_rate_limit)])
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    settings = app.state.config
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=logging_config(settings.log_level),
    )
