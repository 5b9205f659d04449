"""Map remote-call failures to HTTP errors at the call site."""

import logging

from fastapi import HTTPException

from auth.parse_session import SESSION_EXPIRED_MESSAGE
from services.parse_functions import ParseApiError, SessionExpiredError

logger = logging.getLogger(__name__)


def remote_error(exc: ParseApiError, message: str) -> HTTPException:
    """401 when the server rejected the session, otherwise 502 with a retry hint."""
    if isinstance(exc, SessionExpiredError):
        return HTTPException(status_code=401, detail=SESSION_EXPIRED_MESSAGE)
    logger.error("[routes] %s (function=%s status=%s): %s", message, exc.function, exc.status_code, exc.message)
    return HTTPException(status_code=502, detail=f"{message} Try again.")


def bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))
