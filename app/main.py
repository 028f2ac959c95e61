from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, IntegrityError
from app.core.config import settings
from app.core.errors import MindMateError
from app.core.logging import configure_logging
from app.api.routes import health, checkins, mental_health, notifications, health_data
from app.schemas.common import ErrorResponse
from app.services.container import ServiceContainer, build_container
import logging

logger = logging.getLogger(__name__)

def create_app(services: ServiceContainer | None = None, *, init_database: bool = True) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if init_database:
            from app.db.init_db import init_db
            init_db()
        if settings.SCHEDULER_ENABLED:
            app.state.services.scheduler.start()
        try:
            yield
        finally:
            await app.state.services.scheduler.stop()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.services = services or build_container()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(MindMateError)
    async def mindmate_error_handler(request: Request, exc: MindMateError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.detail)
        else:
            logger.info("%s on %s: %s", exc.error_code, request.url.path, exc.detail)
        body = ErrorResponse(error=exc.title, detail=exc.detail, error_code=exc.error_code)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=headers)

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError):
        logger.error("Database operational error: %s", exc)
        return JSONResponse(
            status_code=503,
            content={
                "error": "Database connection error",
                "detail": "Unable to connect to the database. Please try again later.",
                "error_code": "DATABASE_CONNECTION_ERROR"
            }
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.error("Database integrity error: %s", exc)
        return JSONResponse(
            status_code=400,
            content={
                "error": "Data integrity violation",
                "detail": "The operation violates database constraints",
                "error_code": "DATA_INTEGRITY_ERROR"
            }
        )

    # routes
    app.include_router(health.router)
    app.include_router(checkins.router)
    app.include_router(health_data.router)
    app.include_router(mental_health.router)
    app.include_router(notifications.router)
    return app

app = create_app()
