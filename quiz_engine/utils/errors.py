from fastapi import HTTPException, status

from quiz_engine.exceptions import (
    AccessDeniedError, AttemptClosedError, AuthError, NotFoundError, QuizEngineError,
    StoreUnavailableError,
)

STATUS_CODES = {
    AuthError: status.HTTP_401_UNAUTHORIZED,
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AttemptClosedError: status.HTTP_409_CONFLICT,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: QuizEngineError) -> HTTPException:
    """Map an engine error onto the HTTP status the UI expects"""
    code = STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)
    detail = {"message": getattr(error, "message", str(error))}
    reason = getattr(error, "reason", None)
    if reason is not None:
        detail["reason"] = reason.value
    return HTTPException(status_code=code, detail=detail)
