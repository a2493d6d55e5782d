"""
Shared base classes for the billing service.

    core.models         BaseModel (timestamps)
    core.model_mixins   UUIDPrimaryKeyMixin, VersionedMixin
    core.services       BaseService, ServiceResult
    core.exceptions     BaseApplicationError and its HTTP-mapped subclasses
    core.views          /health/

Models are not re-exported here; importing them before the app registry
is ready raises AppRegistryNotReady.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseApplicationError",
    "BaseService",
    "ConflictError",
    "ExternalServiceError",
    "NotFoundError",
    "ServiceResult",
    "ValidationError",
]
