import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from exam_service.api.rate_limit import RateLimitDecision
from exam_service.api.schemas import ErrorDetail
from exam_service.core.exceptions import (
    GenerationError,
    InvalidAllocation,
    SessionIncomplete,
    UnknownCoreError,
)
from exam_service.persistence import InvalidKeyError

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionConflictError(Exception):
    """Operation not allowed in the session's current state."""

    def __init__(self, session_id: str, message: str) -> None:
        self.session_id = session_id
        self.message = message
        super().__init__(message)


class TooManyJobsError(Exception):
    pass


class RateLimitExceededError(Exception):
    def __init__(self, decision: RateLimitDecision) -> None:
        self.decision = decision
        super().__init__("Rate limit exceeded")


def _get_request_id(request: Request) -> str | None:
    if hasattr(request.state, "request_id"):
        result: str = request.state.request_id
        return result
    return None


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    detail = ErrorDetail(
        code=code, message=message, request_id=_get_request_id(request)
    )
    return JSONResponse(
        status_code=status_code, content=detail.model_dump(), headers=headers
    )


async def session_not_found_handler(
    request: Request, exc: SessionNotFoundError
) -> JSONResponse:
    return _error_response(request, 404, "SESSION_NOT_FOUND", str(exc))


async def session_conflict_handler(
    request: Request, exc: SessionConflictError
) -> JSONResponse:
    return _error_response(request, 409, "SESSION_CONFLICT", exc.message)


async def too_many_jobs_handler(
    request: Request, exc: TooManyJobsError
) -> JSONResponse:
    return _error_response(
        request, 429, "TOO_MANY_JOBS", "Too many concurrent jobs"
    )


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceededError
) -> JSONResponse:
    return _error_response(
        request,
        429,
        "RATE_LIMITED",
        "Rate limit exceeded. Please wait and retry.",
        headers=exc.decision.headers(),
    )


async def unknown_core_handler(
    request: Request, exc: UnknownCoreError
) -> JSONResponse:
    return _error_response(request, 400, "UNKNOWN_CORE", str(exc))


async def generation_error_handler(
    request: Request, exc: GenerationError
) -> JSONResponse:
    logger.warning(f"Generation failed: {exc.code}: {exc.message}")
    return _error_response(request, 502, exc.code, exc.message)


async def session_incomplete_handler(
    request: Request, exc: SessionIncomplete
) -> JSONResponse:
    return _error_response(request, 500, "SESSION_INCOMPLETE", str(exc))


async def invalid_allocation_handler(
    request: Request, exc: InvalidAllocation
) -> JSONResponse:
    logger.error(f"Invalid blueprint allocation: {exc}")
    return _error_response(request, 500, "INVALID_ALLOCATION", str(exc))


async def validation_error_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    return _error_response(request, 422, "VALIDATION_ERROR", str(exc))


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    logger.exception("Unhandled exception")
    return _error_response(
        request, 500, "INTERNAL_ERROR", "Internal server error"
    )


async def invalid_key_handler(
    request: Request, exc: InvalidKeyError
) -> JSONResponse:
    # Ids that cannot be stored cannot name an existing session.
    return _error_response(request, 404, "SESSION_NOT_FOUND", "Session not found")
