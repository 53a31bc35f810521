"""
Maps application exceptions onto HTTP responses.

Services raise AppException subclasses; each carries its status code and
error code, so routes never translate errors themselves.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from common.core.exceptions import AppException, TransientProviderError
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
            extra={"error_code": exc.error_code, **exc.context},
        )
    else:
        logger.info(
            f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
            extra={"error_code": exc.error_code},
        )

    headers = None
    if isinstance(exc, TransientProviderError):
        headers = {"Retry-After": "5"}
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
