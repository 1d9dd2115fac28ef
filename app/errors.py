from __future__ import annotations
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = logging.getLogger("app.errors")


class ApiError(Exception):
    """Base for failures that map onto the {success: false, message} envelope."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidFormat(ValidationError):
    default_message = "Invalid email format"


class OtpNotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No verification code found. Please request a new one."


class OtpExpired(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Verification code has expired. Please request a new one."


class AttemptsExhausted(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Too many failed attempts. Please request a new code."


class InvalidCode(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, remaining_attempts: int) -> None:
        self.remaining_attempts = remaining_attempts
        super().__init__(f"Invalid code. {remaining_attempts} attempts remaining.")


class ServiceUnavailable(ApiError):
    default_message = "Firebase not initialized"


class UpstreamFailure(ApiError):
    default_message = "Upstream service failed"


class VerificationFailed(UpstreamFailure):
    default_message = "Failed to verify OTP"


class UploadFailed(UpstreamFailure):
    default_message = "Failed to upload image. Please try again."


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            log.error("api_error", extra={"path": request.url.path, "error": exc.message})
        return _envelope(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = []
        for err in exc.errors():
            loc = err.get("loc") or ()
            if loc:
                fields.append(str(loc[-1]))
        message = "Invalid request body"
        if fields:
            message = f"Invalid or missing field(s): {', '.join(dict.fromkeys(fields))}"
        return _envelope(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log.error("unhandled_error", exc_info=exc, extra={"path": request.url.path})
        return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
