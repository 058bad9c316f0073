"""
Business logic services for Identity Reconciliation API
Contains the identity reconciliation engine, the contact store it
runs against and the errors it raises.
"""

from .contact_store import ContactStore
from .exceptions import (
    IdentityReconciliationError,
    IdentityValidationError,
    InvariantViolation,
    StoreError,
)
from .identity_service import IdentityProjection, IdentityService, build_projection, identity_service

__all__ = [
    "ContactStore",
    "IdentityProjection",
    "IdentityReconciliationError",
    "IdentityService",
    "IdentityValidationError",
    "InvariantViolation",
    "StoreError",
    "build_projection",
    "identity_service",
]
