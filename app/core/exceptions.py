from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidArgumentError(AppError):
    """Malformed input: non-numeric amount, unknown entity name, bad id."""

    def __init__(self, message: str = "Invalid argument", details: dict[str, Any] | None = None):
        super().__init__(message, code="INVALID_ARGUMENT", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class InvalidStateError(AppError):
    """Business rule violation (insufficient coins, already enrolled)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="INVALID_STATE", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class InternalError(AppError):
    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, code="INTERNAL", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _body(request: Request, message: str, code: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message, "code": code}
    if details:
        body.update(details)
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return body


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=exc.status_code,
        content=_body(request, exc.message, exc.code, exc.details),
    )


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "path", "query"))
    message = f"Invalid {field}: {first.get('msg', 'validation error')}" if field else "Validation error"
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body(request, message, "INVALID_ARGUMENT", {"errors": errors}),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from app.core.config import get_settings
    from app.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    details = None
    if not get_settings().is_production:
        details = {"error": str(exc)}
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body(request, "Internal server error", "INTERNAL", details),
    )
