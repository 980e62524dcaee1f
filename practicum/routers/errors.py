from fastapi import HTTPException

from practicum.core.exceptions import (
    InvalidStateError,
    NetworkError,
    NotFoundError,
    PracticumError,
    ServerError,
    ValidationError,
)

STATUS_CODES = (
    (ValidationError, 422),
    (InvalidStateError, 409),
    (NotFoundError, 404),
    (NetworkError, 503),
    (ServerError, 502),
)


def to_http_exception(error: PracticumError) -> HTTPException:
    """도메인 오류를 {message, code} envelope 을 담은 HTTPException 으로 변환"""
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.to_envelope())
    return HTTPException(status_code=400, detail=error.to_envelope())
