import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException


logger = logging.getLogger("messaging.errors")


class AppError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def body_fields(self) -> dict[str, Any]:
        return {}


class ValidationError(AppError):
    code = "validation_error"


class ConflictError(AppError):
    code = "conflict"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ExpiredError(AppError):
    code = "otp_expired"


class AttemptsExceededError(AppError):
    code = "otp_attempts_exceeded"


class InvalidCodeError(AppError):
    code = "otp_invalid"

    def __init__(self, message: str, remaining_attempts: int):
        super().__init__(message, details={"remaining_attempts": remaining_attempts})
        self.remaining_attempts = remaining_attempts

    def body_fields(self) -> dict[str, Any]:
        # Mobile clients read the counter beside the error object.
        return {"remaining_attempts": self.remaining_attempts}


class InvalidSessionError(AppError):
    code = "invalid_session"


class SessionExpiredError(AppError):
    code = "session_expired"


class UpdateFailedError(AppError):
    status_code = 500
    code = "update_failed"


class ProviderNotConfiguredError(AppError):
    code = "sms_not_configured"


def _envelope(code: str, message: str, details: Optional[dict] = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    content = _envelope(exc.code, exc.message, exc.details)
    content.update(exc.body_fields())
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        body = _envelope(detail.get("code", "http_error"), detail.get("message", ""), detail.get("details"))
    else:
        body = _envelope("http_error", str(detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    message = "Invalid or missing fields: " + ", ".join(f for f in fields if f) if fields else "Invalid request"
    return JSONResponse(status_code=400, content=_envelope("validation_error", message, {"fields": fields}))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=_envelope("internal_error", "Internal server error"))
