"""Input validators for identifiers crossing the gateway boundary."""

import re

from livebroker.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

ROOM_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")
DISPLAY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_ -]{1,50}$")


def _invalid(errmesg: str) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_INVALID_PARAMS,
        errmesg=errmesg,
        status_code=HttpStatusCode.BAD_REQUEST,
    )


def validate_room_id(value: object, field: str = "room_name") -> str:
    """Validate a room identifier: 1-100 characters of [A-Za-z0-9_-]."""
    if not isinstance(value, str) or not ROOM_ID_PATTERN.fullmatch(value):
        raise _invalid(
            f"Invalid {field}: must be 1-100 characters, alphanumeric, underscore, or dash only"
        )
    return value


def validate_display_name(value: object, field: str = "participant_name") -> str:
    """Validate a participant or owner display name: 1-50 characters of [A-Za-z0-9 _-]."""
    if not isinstance(value, str) or not DISPLAY_NAME_PATTERN.fullmatch(value):
        raise _invalid(
            f"Invalid {field}: must be 1-50 characters, alphanumeric, spaces, underscore, or dash only"
        )
    return value


def validate_role_flag(value: object, field: str = "is_host") -> bool:
    # bool only; 0/1 and "true" are rejected
    if not isinstance(value, bool):
        raise _invalid(f"Invalid {field}: must be a boolean value")
    return value


def validate_job_id(value: object, field: str = "egress_id") -> str:
    if not isinstance(value, str) or not value.strip():
        raise _invalid(f"Invalid {field}: must be a non-empty string")
    return value


__all__ = [
    "validate_display_name",
    "validate_job_id",
    "validate_role_flag",
    "validate_room_id",
]
