# ABOUTME: Maps store/domain exceptions to JSON error responses with a {"message": ...} body.
# ABOUTME: 404 not found, 409 duplicate id or confirmation needed, 400 bad input, 500 database or unexpected.

import logging

from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from core.errors import ConfirmationRequired, DuplicateIdError, NotFoundError


def message(status_code: int, text: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": text})


def error_response(exc: Exception, action: str, failure_message: str) -> JSONResponse:
    """Translate an exception raised while handling `action` into a response.

    Client errors carry the exception text; server errors are logged and answered
    with failure_message so internals never leak.
    """
    if isinstance(exc, NotFoundError):
        return message(404, str(exc))
    if isinstance(exc, (ConfirmationRequired, DuplicateIdError)):
        return message(409, str(exc))
    if isinstance(exc, ValueError):
        return message(400, str(exc))
    if isinstance(exc, SQLAlchemyError):
        logging.exception("%s failed (database error)", action)
        return message(500, failure_message)
    logging.exception("%s: unexpected error", action)
    return message(500, failure_message)
