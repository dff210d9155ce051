# app/errors.py

from __future__ import annotations

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class CoreError(Exception):
    """
    Base class of business-rule and infrastructure errors.
    Carries an HTTP status and a machine-readable code.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.code
        super().__init__(self.message)


class InvalidArgument(CoreError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_argument"


class Forbidden(CoreError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(CoreError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class DuplicateSwipe(CoreError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_swipe"


class AlreadyExists(CoreError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_exists"


class StorageUnavailable(CoreError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_unavailable"


async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return JSONResponse(
        status_code=InvalidArgument.status_code,
        content={
            "detail": {
                "code": InvalidArgument.code,
                "message": "Request validation failed",
                "errors": jsonable_encoder(exc.errors()),
            }
        },
    )
