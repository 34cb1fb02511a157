"""Application error type shared by the server domain, the HTTP layer and the client."""

from __future__ import annotations

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class HttpStatusCode(IntEnum):
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    GONE = 410
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504


class ErrorCategory(str, Enum):
    """Coarse error taxonomy used for retry decisions."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    DEPENDENCY_FAILURE = "dependency_failure"
    TIMEOUT = "timeout"
    INTERNAL = "internal"

    @classmethod
    def of(cls, errcode: "AppErrorCode") -> "ErrorCategory":
        return errcode.category


class AppErrorCode(str, Enum):
    E_INVALID_PARAMS = "E_INVALID_PARAMS"
    E_ROOM_NOT_FOUND = "E_ROOM_NOT_FOUND"
    E_JOB_NOT_FOUND = "E_JOB_NOT_FOUND"
    E_ROOM_ENDED = "E_ROOM_ENDED"
    E_ALREADY_RECORDING = "E_ALREADY_RECORDING"
    E_JOB_NOT_ACTIVE = "E_JOB_NOT_ACTIVE"
    E_INVALID_TRANSITION = "E_INVALID_TRANSITION"
    E_DEPENDENCY_UNAVAILABLE = "E_DEPENDENCY_UNAVAILABLE"
    E_DEPENDENCY_FAILURE = "E_DEPENDENCY_FAILURE"
    E_TIMEOUT = "E_TIMEOUT"
    E_NETWORK_ERROR = "E_NETWORK_ERROR"
    E_RETRIES_EXHAUSTED = "E_RETRIES_EXHAUSTED"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | None) -> AppErrorCode:
        try:
            return cls(value)
        except ValueError:
            return cls.E_INTERNAL_ERROR

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES.get(self, ErrorCategory.INTERNAL)

    @property
    def retryable(self) -> bool:
        return self.category in _RETRYABLE and self != AppErrorCode.E_RETRIES_EXHAUSTED


_CATEGORIES: dict[AppErrorCode, ErrorCategory] = {
    AppErrorCode.E_INVALID_PARAMS: ErrorCategory.VALIDATION,
    AppErrorCode.E_ROOM_NOT_FOUND: ErrorCategory.NOT_FOUND,
    AppErrorCode.E_JOB_NOT_FOUND: ErrorCategory.NOT_FOUND,
    AppErrorCode.E_ROOM_ENDED: ErrorCategory.CONFLICT,
    AppErrorCode.E_ALREADY_RECORDING: ErrorCategory.CONFLICT,
    AppErrorCode.E_JOB_NOT_ACTIVE: ErrorCategory.CONFLICT,
    AppErrorCode.E_INVALID_TRANSITION: ErrorCategory.CONFLICT,
    AppErrorCode.E_DEPENDENCY_UNAVAILABLE: ErrorCategory.DEPENDENCY_UNAVAILABLE,
    AppErrorCode.E_NETWORK_ERROR: ErrorCategory.DEPENDENCY_UNAVAILABLE,
    AppErrorCode.E_DEPENDENCY_FAILURE: ErrorCategory.DEPENDENCY_FAILURE,
    AppErrorCode.E_TIMEOUT: ErrorCategory.TIMEOUT,
}

_RETRYABLE = {
    ErrorCategory.DEPENDENCY_UNAVAILABLE,
    ErrorCategory.DEPENDENCY_FAILURE,
    ErrorCategory.TIMEOUT,
    ErrorCategory.INTERNAL,
}


def is_retryable(errcode: AppErrorCode) -> bool:
    return errcode.retryable


class AppError(Exception):
    """Error with a stable code, a human readable message and an HTTP status.

    `erresid` identifies this error instance in logs and in the response envelope.
    `caller_info` records where the error was raised.
    """

    def __init__(
        self,
        errcode: AppErrorCode,
        errmesg: str,
        status_code: int = HttpStatusCode.BAD_REQUEST,
        *,
        erresid: str | None = None,
    ) -> None:
        super().__init__(errmesg)
        self.errcode = errcode
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = erresid or uuid4().hex[:10]

        frame = inspect.currentframe()
        caller = frame.f_back if frame else None
        if caller is not None:
            module = caller.f_globals.get("__name__", "?")
            self.caller_info = f"{module}:{caller.f_code.co_name}:{caller.f_lineno}"
        else:
            self.caller_info = "unknown"

    @property
    def category(self) -> ErrorCategory:
        return self.errcode.category

    @property
    def retryable(self) -> bool:
        return self.errcode.retryable

    def __repr__(self) -> str:
        return f"AppError({self.errcode.value}, {self.errmesg!r}, status_code={self.status_code})"


__all__ = ["AppError", "AppErrorCode", "ErrorCategory", "HttpStatusCode", "is_retryable"]
