from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursepay.logger import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class ForbiddenError(AuthenticationError):
    status_code = 403


class ConflictError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class IntegrationError(AppError):
    status_code = 500


class InternalError(AppError):
    status_code = 500


class ConfigurationError(AppError):
    """Raised at startup when a required setting is missing."""


def envelope(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_body(message: str, detail: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if detail is not None:
        body["error"] = detail
    return body


def register_error_handlers(app: FastAPI) -> None:
    def detail_for(request: Request, exc: BaseException) -> Optional[str]:
        if not request.app.state.settings.expose_errors:
            return None
        return str(exc)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        detail = None
        if exc.status_code >= 500 and exc.__cause__ is not None:
            detail = detail_for(request, exc.__cause__)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=error_body("Invalid request body"))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content=error_body("API route not found"))
        return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body("Internal server error", detail_for(request, exc)),
        )
