"""
Translate wagering errors into HTTP responses.
"""
from fastapi import HTTPException, status

from wagerbook.core.exceptions import (
    CancellationNotAllowed,
    InsufficientBalance,
    InvalidWager,
    NotFoundError,
    UsernameTaken,
    WagerError,
    WageringClosed,
)

_STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidWager: status.HTTP_400_BAD_REQUEST,
    InsufficientBalance: status.HTTP_400_BAD_REQUEST,
    WageringClosed: status.HTTP_409_CONFLICT,
    CancellationNotAllowed: status.HTTP_409_CONFLICT,
    UsernameTaken: status.HTTP_409_CONFLICT,
}


def http_error(exc: WagerError) -> HTTPException:
    """HTTPException for a WagerError; unknown subclasses map to 400."""
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
