from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from changequeue import __version__
from changequeue.core.config import get_settings
from changequeue.core.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    ChangeQueueError,
    ConsistencyError,
    NotFoundError,
    ValidationError,
)
from changequeue.core.logger import configure_logging, get_logger
from changequeue.api.routers import change_items, change_requests, exports, health
from changequeue.api.schemas.common import ErrorResponse

logger = get_logger("api")

ERROR_STATUS_CODES = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (AlreadyResolvedError, 409),
    (AuthorizationError, 403),
    (ConsistencyError, 500),
)


def error_status_code(exc: ChangeQueueError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 500


async def change_queue_error_handler(request: Request, exc: ChangeQueueError) -> JSONResponse:
    status_code = error_status_code(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = ErrorResponse(
        error=exc.code,
        detail=exc.message,
        code=exc.code,
        issues=[issue.to_dict() for issue in getattr(exc, "issues", [])],
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Field-level change approval workflow with SEVIS export gating",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ChangeQueueError, change_queue_error_handler)

    app.include_router(health.router)
    app.include_router(change_requests.router, prefix="/api")
    app.include_router(change_items.router, prefix="/api")
    app.include_router(exports.router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs" if settings.debug else None,
        }

    return app


app = create_app()
