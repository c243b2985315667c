import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.errors import (
    ConflictError,
    NotFoundError,
    StoreError,
    StoreTimeoutError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[StoreError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    StoreTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        status_code = _STATUS_BY_ERROR.get(
            type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        if status_code >= 500:
            logger.error(
                "Store error on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
                exc_info=exc,
            )
            detail = (
                exc.message
                if isinstance(exc, StoreTimeoutError)
                else "the server encountered a problem"
            )
        else:
            logger.info(
                "%s on %s %s: %s",
                type(exc).__name__,
                request.method,
                request.url.path,
                exc.message,
            )
            detail = exc.message
        return JSONResponse(status_code=status_code, content={"detail": detail})
