from fastapi import Request
from fastapi.responses import JSONResponse
from livekit.api.twirp_client import TwirpError
from loguru import logger

from livebroker.services.integrations.livekit_service import twirp_to_app_error
from livebroker.shared.api.utils import ApiFailure, make_response
from livebroker.utils.app_errors import AppError, AppErrorCode


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Custom exception handler for AppError.
    Converts AppError to ApiFailure and returns via make_response.
    """
    log_msg = f"{exc.errcode} {exc.erresid} msg={exc.errmesg} caller={exc.caller_info}"
    if exc.errcode == AppErrorCode.E_INTERNAL_ERROR or exc.status_code >= 500:
        logger.error(log_msg)
    else:
        logger.warning(log_msg)

    failure = ApiFailure(errcode=exc.errcode.value, errmesg=exc.errmesg, erresid=exc.erresid)
    return make_response(failure, status_code=exc.status_code)


async def twirp_error_handler(request: Request, exc: TwirpError) -> JSONResponse:
    """
    Exception handler for LiveKit API errors that escaped the integration layer.
    """
    log_msg = f"TwirpError: code={exc.code} status={exc.status} msg={exc.message}"
    if exc.status >= 500:
        logger.error(log_msg)
    else:
        logger.warning(log_msg)

    return await app_error_handler(request, twirp_to_app_error(exc, "call media server"))
