import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from taskboard.cache.layer import EntityCache
from taskboard.core.config import get_settings
from taskboard.core.exceptions import BadRequest, Internal, ServiceError
from taskboard.core.logging import setup_logging
from taskboard.database import create_db_and_tables
from taskboard.routers import auth, todos, users
from taskboard.services.auth_service import AuthService
from taskboard.services.user_service import UserService
from taskboard.validation import FieldError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)

    if settings.create_tables_on_startup:
        await create_db_and_tables()

    # One cache per process, owned by the user service for its lifetime
    user_service = UserService(
        EntityCache(maxsize=settings.user_cache_maxsize, namespace="user")
    )
    app.state.user_service = user_service
    app.state.auth_service = AuthService(user_service)
    logger.info("Services initialized")
    yield
    user_service.clear_all_cache()


app = FastAPI(
    title="Taskboard API",
    description="Multi-user todo API with role based access, on PostgreSQL and SQLModel",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(todos.router)


def _error_body(request: Request, error: ServiceError) -> dict:
    body = {
        "statusCode": error.status_code,
        "message": error.message,
        "error": error.error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }
    if error.details is not None:
        body["details"] = error.details
    request_id = request.headers.get("x-request-id")
    if request_id:
        body["requestId"] = request_id
    return body


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(_error_body(request, exc)),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"{request.method} {request.url.path} failed in the data store")
    error = Internal("Database operation failed")
    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder(_error_body(request, error)),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        FieldError(
            # drop the "body" / "query" / "path" prefix
            field=".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]),
            message=err["msg"],
            value=err.get("input"),
        ).as_dict()
        for err in exc.errors()
    ]
    error = BadRequest("Validation failed", details=details)
    logger.warning(f"{request.method} {request.url.path} -> 400: {len(details)} invalid field(s)")
    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder(_error_body(request, error)),
    )


@app.get("/")
async def root():
    return {
        "message": "Welcome to Taskboard API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/health/cache")
async def cache_stats(request: Request):
    return request.app.state.user_service.cache.get_stats()
