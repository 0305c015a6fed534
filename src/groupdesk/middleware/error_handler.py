"""Exception handlers: every error leaves as JSON with a ``detail`` field."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from groupdesk.errors import GroupdeskError

logger = structlog.get_logger()


def error_body(exc: GroupdeskError) -> dict[str, object]:
    """``{"detail": ..., **context}``; context never overrides ``detail``."""
    return {**exc.context, "detail": exc.detail}


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(GroupdeskError)
    async def domain_exception_handler(request: Request, exc: GroupdeskError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, detail=exc.detail, **exc.context)
        else:
            logger.info("request_rejected", path=request.url.path, status_code=exc.status_code, detail=exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors(), exclude={"ctx", "input"})},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", method=request.method, error=str(exc), exc_info=exc)
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        return JSONResponse(status_code=500, content={"detail": "Internal server error", "request_id": request_id})
