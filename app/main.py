# app/main.py
"""
Application entry point: lifespan (database pool, Redis), routers,
middleware and error handlers.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.middleware import RequestContextMiddleware
from app.routes import health, identity_verification, multiplier_requests
from app.routes.error_handlers import register_exception_handlers
from app.services.redis_client import fast_redis

setup_logging(log_level="DEBUG" if settings.debug else "INFO")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool and Redis on startup, close them on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    startup_tasks = []

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
        startup_tasks.append("database_pool")

        logger.info("Initializing Redis connection")
        await fast_redis.initialize()
        startup_tasks.append("redis")

        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        if "redis" in startup_tasks:
            await fast_redis.close()
        if "database_pool" in startup_tasks:
            await db_pool.close()

        raise

    yield

    logger.info("Application shutting down")

    # Redis first, the pool may still be draining connections
    await fast_redis.close()
    await db_pool.close()

    logger.info("All services closed")


app = FastAPI(
    title="Connect Backend",
    description="Campaign multiplier requests and identity verification",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(multiplier_requests.router)
app.include_router(identity_verification.router)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


# Added last so it runs first and the request id is bound for log_requests
app.add_middleware(RequestContextMiddleware)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
