"""
Domain errors raised by the access-control services.

Endpoints translate these into HTTP responses (see
``medvault.dependencies.errors``); the status codes differ so a client can
tell "denied" apart from "does not exist".
"""


class MedVaultError(Exception):
    pass


class ConflictError(MedVaultError):
    """Operation attempted from a state that does not allow it."""


class NotFoundError(MedVaultError):
    """Unknown id or access code."""


class AuthorizationError(MedVaultError):
    """Role mismatch, ownership mismatch or emergency override refused."""


class LedgerUnavailableError(MedVaultError):
    """The audit ledger could not persist an entry."""
