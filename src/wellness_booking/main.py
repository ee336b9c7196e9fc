"""
FastAPI application entry point
"""
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from wellness_booking.core.config import settings
from wellness_booking.core.database import engine
from wellness_booking.core.logging_config import setup_logging
from wellness_booking.core.metrics import get_metrics, CONTENT_TYPE_LATEST
from wellness_booking.core.redis import redis_client
from wellness_booking.api import admin, credits, cron, events, waitlist
from wellness_booking.middleware.rate_limiter import limiter
from wellness_booking.middleware.tracing import TracingMiddleware

setup_logging(logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise

    await redis_client.connect()

    yield

    logger.info("Shutting down...")
    await redis_client.close()
    await engine.dispose()
    logger.info("Cleanup complete")


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Event seat allocation, waitlist offers and booking cancellation",
        lifespan=lifespan if use_lifespan else None,
    )

    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {request.url.path}")
        return JSONResponse(
            status_code=429,
            content={"error": "Demasiadas solicitudes. Intenta de nuevo en un momento."},
            headers={"Retry-After": "60"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        return JSONResponse(
            status_code=400,
            content={"error": f"Solicitud inválida: {field or 'cuerpo'}"},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        detail = str(exc) if settings.DEBUG else "Error interno del servidor"
        return JSONResponse(status_code=500, content={"error": detail})

    app.add_middleware(TracingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    async def health_check():
        redis_status = "healthy" if redis_client.redis else "unavailable"
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "redis": redis_status,
        }

    @app.get("/metrics", tags=["Monitoring"])
    async def metrics():
        return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(events.router, prefix="/api/v1", tags=["Events"])
    app.include_router(waitlist.router, prefix="/api/v1", tags=["Waitlist"])
    app.include_router(credits.router, prefix="/api/v1", tags=["Credits"])
    app.include_router(admin.router, prefix="/api/v1", tags=["Admin"])
    app.include_router(cron.router, prefix="/api/v1", tags=["Cron"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "wellness_booking.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level="info"
    )
