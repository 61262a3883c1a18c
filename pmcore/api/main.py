"""
FastAPI app assembly: lifespan, middleware, error mapping and router wiring.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request
from starlette.responses import JSONResponse

from pmcore.db.database import Database
from pmcore.db.errors import ConstraintViolationError, NotFoundError, StorageError, ValidationError
from pmcore.utils.settings import get_cors_origins
from pmcore.api.users import router as users_router
from pmcore.api.projects import router as projects_router
from pmcore.api.tasks import router as tasks_router

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)


def _lifespan_for(database: Optional[Database]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # An injected handle belongs to the caller; only a handle built here is disposed here.
        owned = database is None
        if owned:
            app.state.database = Database()
        logger.info("app_startup: log_level=%s dialect=%s", LOG_LEVEL_NAME, app.state.database.dialect_name)
        try:
            yield
        finally:
            if owned:
                await app.state.database.dispose()

    return lifespan


async def _validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _constraint_error_handler(request: Request, exc: ConstraintViolationError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _storage_error_handler(request: Request, exc: StorageError):
    logger.error("storage_error: path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


async def _timeout_handler(request: Request, exc: TimeoutError):
    logger.warning("operation_timeout: path=%s", request.url.path)
    return JSONResponse(status_code=504, content={"detail": "Database operation timed out"})


def create_app(database: Optional[Database] = None) -> FastAPI:
    app = FastAPI(
        title="Project Management Service",
        description="Filterable, paginated access to users, projects and tasks.",
        version="1.0.0",
        lifespan=_lifespan_for(database),
    )
    if database is not None:
        app.state.database = database

    # Avoid implicit trailing-slash redirects for predictable URLs
    app.router.redirect_slashes = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(get_cors_origins()),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(ConstraintViolationError, _constraint_error_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)
    app.add_exception_handler(TimeoutError, _timeout_handler)

    @app.get("/health")
    async def health_check(request: Request):
        try:
            await request.app.state.database.ping()
        except SQLAlchemyError as e:
            logger.error("health_check_failed: %s", e)
            return JSONResponse(status_code=503, content={"status": "unavailable", "service": "pm-service"})
        return {"status": "ok", "service": "pm-service"}

    app.include_router(users_router)
    app.include_router(projects_router)
    app.include_router(tasks_router)
    return app


app = create_app()
