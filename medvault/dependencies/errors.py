# medvault/dependencies/errors.py
import logging

from fastapi import HTTPException, status

from medvault.core.exceptions import (
    AuthorizationError,
    ConflictError,
    LedgerUnavailableError,
    MedVaultError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[MedVaultError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (LedgerUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(exc: MedVaultError) -> HTTPException:
    """
    Map a domain error to an HTTPException.

    Denials (403) and conflicts (409) stay distinct from 404 so a client can
    explain why access failed instead of implying the record is missing.
    """
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            if status_code >= 500:
                logger.error(f"Service error: {exc}")
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
