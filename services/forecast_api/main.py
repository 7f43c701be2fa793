"""
Forecast API: cached OpenWeatherMap lookups with stale fallback.

Entrypoint: uvicorn services.forecast_api.main:app --host 0.0.0.0 --port 8000
"""

import logging
import uuid
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from services.forecast_api.config import settings
from services.forecast_api.db.engine import create_engine, create_schema, create_session_factory
from services.forecast_api.errors import (
    InvalidConfigurationError,
    NotFoundError,
    WeatherServiceError,
)
from services.forecast_api.jobs.refresh_popular import PopularCityRefreshJob
from services.forecast_api.jobs.scheduler import PeriodicJobRunner
from services.forecast_api.middleware.cors import setup_cors
from services.forecast_api.middleware.rate_limit import RateLimitMiddleware
from services.forecast_api.middleware.sentry import setup_sentry
from services.forecast_api.routers import health, weather
from services.forecast_api.weather.engine import build_engine

logger = logging.getLogger(__name__)

# Shared redis reference: set during lifespan, read by rate limiter
_redis_holder: dict = {"client": None}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    setup_sentry()

    if not settings.openweathermap_api_key:
        logger.warning("OPENWEATHERMAP_API_KEY is not set; uncached lookups will fail")

    # Redis for rate limiting
    redis_client = None
    if settings.redis_url:
        try:
            redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
            await redis_client.ping()
        except Exception as e:
            # Rate limiting degrades to pass-through
            logger.warning(f"Redis unavailable, rate limiting disabled: {e}")
            redis_client = None

    _redis_holder["client"] = redis_client
    app.state.redis = redis_client
    app.state.settings = settings

    # Database
    sa_engine = create_engine()
    try:
        await create_schema(sa_engine)
    except Exception as e:
        logger.warning(f"Schema bootstrap failed, lookups will error until the DB is reachable: {e}")
    session_factory = create_session_factory(sa_engine)
    app.state.db_engine = sa_engine
    app.state.db_session_factory = session_factory

    app.state.weather_engine = build_engine(session_factory, settings)

    # Popular-city refresh, in-process
    runner = None
    app.state.refresh_job = None
    if settings.refresh_enabled:
        refresh_job = PopularCityRefreshJob.from_settings(session_factory, settings)
        app.state.refresh_job = refresh_job
        runner = PeriodicJobRunner(refresh_job, settings.refresh_interval_s, name="refresh_popular")
        runner.start()

    yield

    if runner:
        await runner.stop()
    await sa_engine.dispose()
    if redis_client:
        await redis_client.aclose()


app = FastAPI(
    title="Forecast API",
    version=settings.app_version,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# -- Middleware (order matters: last added = outermost in Starlette) --

# Routers first (innermost)
app.include_router(health.router)
app.include_router(weather.router)

# CORS (needs to be outermost to handle preflight)
setup_cors(app)


# Request ID injection
@app.middleware("http")
async def request_envelope_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Rate limiting, using the lazy redis reference from lifespan
class _LazyRateLimitMiddleware(RateLimitMiddleware):
    """Rate limiter that picks up Redis client after lifespan init."""

    def __init__(self, app):
        super().__init__(app, redis_client=None)

    async def dispatch(self, request, call_next):
        self.redis = _redis_holder.get("client")
        return await super().dispatch(request, call_next)


app.add_middleware(_LazyRateLimitMiddleware)


# -- Exception Handlers --

def _error_response(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message},
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )


@app.exception_handler(WeatherServiceError)
async def weather_error_handler(request: Request, exc: WeatherServiceError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        return _error_response(request, 404, exc.code, str(exc))
    if isinstance(exc, InvalidConfigurationError):
        return _error_response(request, 400, exc.code, str(exc))
    logger.error("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc)
    return _error_response(request, 500, "INTERNAL_ERROR", "An unexpected error occurred.")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return _error_response(request, 422, "VALIDATION_ERROR", "; ".join(messages) or "Validation error.")


@app.exception_handler(404)
async def not_found_handler(request: Request, exc) -> JSONResponse:
    return _error_response(request, 404, "NOT_FOUND", "Resource not found.")


@app.exception_handler(422)
async def validation_error_handler(request: Request, exc) -> JSONResponse:
    message = str(exc.detail) if hasattr(exc, "detail") else "Validation error."
    return _error_response(request, 422, "VALIDATION_ERROR", message)


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return _error_response(request, 500, "INTERNAL_ERROR", "An unexpected error occurred.")
