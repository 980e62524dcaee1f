from typing import Optional


class PracticumError(Exception):
    """모든 도메인 오류의 기본 클래스"""

    default_code = "ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_envelope(self) -> dict:
        return {"message": self.message, "code": self.code}


class ValidationError(PracticumError):
    """caller input violates a precondition; never retried"""
    default_code = "VALIDATION_ERROR"


class InvalidStateError(PracticumError):
    """transition not legal from the current status"""
    default_code = "INVALID_STATE"


class NotFoundError(PracticumError):
    default_code = "NOT_FOUND"


class NetworkError(PracticumError):
    """transport failure talking to the backend"""
    default_code = "NETWORK_ERROR"


class ServerError(PracticumError):
    """backend answered with an error envelope"""
    default_code = "SERVER_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, code)
        self.status = status


class PersistenceError(PracticumError):
    """local read-state storage unavailable or full"""
    default_code = "PERSISTENCE_ERROR"
