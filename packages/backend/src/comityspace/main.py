"""FastAPI application factory.

Learn: create_app() returns a configured FastAPI instance. The lifespan
opens Redis (optional) and disposes the database engine on shutdown.
Middleware, CORS, error handlers, and routers are all registered here.

Error bodies share one shape everywhere: {error, message, code}.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from comityspace import __version__
from comityspace.api import api_router
from comityspace.api.health import router as health_router
from comityspace.cache import close_redis, init_redis
from comityspace.config import settings
from comityspace.errors import ComityError
from comityspace.logs import configure_logging
from comityspace.middleware.rate_limit import RateLimitMiddleware
from comityspace.middleware.request_id import RequestIdMiddleware
from comityspace.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "comityspace.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    try:
        await init_redis()
        logger.info("comityspace.redis_connected", url=settings.redis_url)
    except (RedisError, OSError) as e:
        # Without Redis the app runs unthrottled
        logger.warning("comityspace.redis_unavailable", error=str(e))

    yield

    logger.info("comityspace.shutdown")
    await close_redis()

    from comityspace.db.engine import engine

    await engine.dispose()


# ─── Error handlers ─────────────────────────────────────


def _error_body(error: str, message: str, code: str) -> dict:
    return {"error": error, "message": message, "code": code}


async def comity_error_handler(request: Request, exc: ComityError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.error, exc.message, exc.code),
        headers=headers,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies are 400s with the field messages joined together."""
    messages = []
    for err in exc.errors():
        msg = err.get("msg", "Invalid value")
        # pydantic prefixes model_validator messages with "Value error, "
        messages.append(msg.removeprefix("Value error, "))
    return JSONResponse(
        status_code=400,
        content=_error_body(
            "Validation error", "; ".join(messages) or "Invalid request", "VALIDATION_ERROR"
        ),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("comityspace.unhandled_error", error_type=type(exc).__name__)
    message = str(exc) if settings.is_development else "Something went wrong"
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", message, "INTERNAL_ERROR"),
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title="ComitySpace",
        description="Volunteer management platform: multi-tenant auth core",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ComityError, comity_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router)

    return app


# Default app instance (uvicorn comityspace.main:app)
app = create_app()
