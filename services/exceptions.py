"""
Error taxonomy for identity reconciliation
"""

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError


class IdentityReconciliationError(Exception):
    """Base class for errors raised by the reconciliation engine"""


class IdentityValidationError(IdentityReconciliationError):
    """Neither an email nor a phone number was supplied"""


class StoreError(IdentityReconciliationError):
    """
    Any failure from the backing store (connectivity, constraint violation,
    transaction conflict). The transaction has been rolled back, so the
    whole reconcile call is safe to retry.
    """

    @property
    def is_connection_error(self) -> bool:
        cause = self.__cause__
        if isinstance(cause, (OperationalError, InterfaceError, ConnectionError, TimeoutError)):
            return True
        return isinstance(cause, DBAPIError) and cause.connection_invalidated


class InvariantViolation(IdentityReconciliationError):
    """Stored linkage contradicts the group invariants; indicates a bug"""
