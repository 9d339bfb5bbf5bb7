"""
StreamHub Policy Engine - Application Entry Point.

Hosts the policy services (theme, verification routing, comment moderation and
translation caching) inside a FastAPI process so they share one configured
logging setup, database engine, key-value store and provider set.

Key Responsibilities:
- Configure logging and load settings.
- Create the comment tables, the key-value backend and the policy services
  during the lifespan startup.
- Install correlation-id middleware and map `StreamHubException` to a JSON
  error envelope.
- Expose the health and monitoring routes.

Feature routes are owned by the consuming application, which obtains the
policy objects through `services.registry.get_services()`.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from api.health_router import health_router, monitoring_router
from core.cache import create_backend, get_cache, init_cache
from core.config import get_settings
from core.database import create_db_and_tables, engine
from core.exceptions import StreamHubException
from core.logging_config import get_correlation_id, get_logger, setup_logging
from core.middleware import CorrelationMiddleware, create_error_response
from services.registry import init_services


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger = get_logger("api.startup")
    settings = get_settings()

    try:
        await create_db_and_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    cache = init_cache(create_backend(settings))
    logger.info(f"Key-value store initialized ({settings.cache_backend})")

    init_services(settings, cache)

    logger.info(f"Service startup completed ({settings.environment})")
    yield

    # Cleanup on shutdown
    logger.info("Shutting down policy engine")
    backend = get_cache().backend
    if hasattr(backend, "close"):
        await backend.close()
    await engine.dispose()
    logger.info("Cleanup completed")


app = FastAPI(
    title="StreamHub Policy Engine",
    description="Theme, verification, moderation and translation policies",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationMiddleware)


@app.exception_handler(StreamHubException)
async def streamhub_exception_handler(request: Request, exc: StreamHubException):
    get_logger("api.errors").warning(
        f"{exc.error_code} on {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, "path": request.url.path},
    )
    return create_error_response(
        error_type=type(exc).__name__,
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        correlation_id=get_correlation_id(),
        details=exc.details,
    )


app.include_router(health_router)
app.include_router(monitoring_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
