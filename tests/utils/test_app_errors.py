"""Tests for AppError and the error code taxonomy."""

import pytest

from livebroker.utils.app_errors import (
    AppError,
    AppErrorCode,
    ErrorCategory,
    HttpStatusCode,
    is_retryable,
)


@pytest.mark.parametrize(
    ("errcode", "category", "retryable"),
    [
        (AppErrorCode.E_INVALID_PARAMS, ErrorCategory.VALIDATION, False),
        (AppErrorCode.E_ROOM_NOT_FOUND, ErrorCategory.NOT_FOUND, False),
        (AppErrorCode.E_JOB_NOT_FOUND, ErrorCategory.NOT_FOUND, False),
        (AppErrorCode.E_ROOM_ENDED, ErrorCategory.CONFLICT, False),
        (AppErrorCode.E_ALREADY_RECORDING, ErrorCategory.CONFLICT, False),
        (AppErrorCode.E_JOB_NOT_ACTIVE, ErrorCategory.CONFLICT, False),
        (AppErrorCode.E_INVALID_TRANSITION, ErrorCategory.CONFLICT, False),
        (AppErrorCode.E_DEPENDENCY_UNAVAILABLE, ErrorCategory.DEPENDENCY_UNAVAILABLE, True),
        (AppErrorCode.E_NETWORK_ERROR, ErrorCategory.DEPENDENCY_UNAVAILABLE, True),
        (AppErrorCode.E_DEPENDENCY_FAILURE, ErrorCategory.DEPENDENCY_FAILURE, True),
        (AppErrorCode.E_TIMEOUT, ErrorCategory.TIMEOUT, True),
        (AppErrorCode.E_INTERNAL_ERROR, ErrorCategory.INTERNAL, True),
        (AppErrorCode.E_RETRIES_EXHAUSTED, ErrorCategory.INTERNAL, False),
    ],
)
def test_category_and_retryable(errcode, category, retryable):
    assert errcode.category == category
    assert ErrorCategory.of(errcode) == category
    assert is_retryable(errcode) is retryable


def test_parse_unknown_code():
    assert AppErrorCode.parse("E_TIMEOUT") == AppErrorCode.E_TIMEOUT
    assert AppErrorCode.parse("E_NOT_A_CODE") == AppErrorCode.E_INTERNAL_ERROR
    assert AppErrorCode.parse(None) == AppErrorCode.E_INTERNAL_ERROR


def test_app_error_fields():
    error = AppError(
        errcode=AppErrorCode.E_ROOM_ENDED,
        errmesg="This stream has ended",
        status_code=HttpStatusCode.GONE,
    )

    assert error.status_code == 410
    assert isinstance(error.status_code, int)
    assert str(error) == "This stream has ended"
    assert len(error.erresid) == 10
    assert error.caller_info.startswith(f"{__name__}:test_app_error_fields:")
    assert error.category == ErrorCategory.CONFLICT
    assert error.retryable is False


def test_app_error_defaults_to_bad_request():
    error = AppError(errcode=AppErrorCode.E_INVALID_PARAMS, errmesg="bad", erresid="fixed")

    assert error.status_code == 400
    assert error.erresid == "fixed"
