"""
Admin Onboarding API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.database import engine, init_db
from app.core.errors import OnboardingError
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware
from app.api.v1 import router as api_v1_router

from onboarding_shared.schemas.common import ErrorBody, ErrorResponse

settings = get_settings()
log = structlog.get_logger()


async def onboarding_error_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    """Render domain errors as {"error": {"code", "message", "status"}}."""
    log.info("request.rejected", code=exc.code, status=exc.status_code, message=exc.message)
    body = ErrorResponse(error=ErrorBody(**exc.to_dict()["error"]))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Admin Onboarding",
        description="Places newly authenticated users into exactly one organization.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters: outermost first)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Filename"],
    )

    app.add_exception_handler(OnboardingError, onboarding_error_handler)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Admin onboarding starting", slug_max_attempts=settings.slug_max_attempts)
        if settings.create_tables_on_startup:
            await init_db()
            log.info("database.tables_created")

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Admin onboarding shutting down")
        await engine.dispose()

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )
