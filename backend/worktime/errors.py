"""
Error taxonomy for the worktime data layer.

Every error carries the HTTP status and machine-readable code it maps to at
the API boundary, so services can raise them without knowing about FastAPI.
"""
from typing import Any, Dict, Optional


class WorktimeError(Exception):
    """Base class for all errors raised by the data layer."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    # Internal errors never echo their message in production responses.
    internal: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def payload(self, expose_internal: bool = True) -> Dict[str, Any]:
        if self.internal and not expose_internal:
            return {"detail": "Internal server error", "code": self.code}
        payload: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(WorktimeError):
    """Resource is absent or soft-deleted."""

    status_code = 404
    code = "NOT_FOUND"


class ForbiddenTenantError(WorktimeError):
    """Resource exists but belongs to another organization."""

    status_code = 403
    code = "FORBIDDEN_TENANT"


class InsufficientRoleError(WorktimeError):
    status_code = 403
    code = "INSUFFICIENT_ROLE"


class ConflictError(WorktimeError):
    """Invalid state transition or duplicate unique key."""

    status_code = 409
    code = "CONFLICT"


class InvalidEntryError(WorktimeError):
    """Record violates an invariant and was rejected before any write."""

    status_code = 400
    code = "INVALID_ENTRY"


class DecryptionError(WorktimeError):
    """Ciphertext could not be decrypted with the configured key."""

    code = "DECRYPTION_FAILED"
    internal = True


class ConfigurationError(WorktimeError):
    """Required configuration is missing or malformed. Fatal at startup."""

    code = "CONFIGURATION_ERROR"
    internal = True


class StorageError(WorktimeError):
    """Underlying store failed: connection loss, malformed query, driver error."""

    code = "STORAGE_ERROR"
    internal = True
