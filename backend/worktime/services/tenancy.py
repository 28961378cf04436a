"""
Tenant isolation guard.

Every mutation that accepts a caller-supplied reference (project, task,
time log) first checks that the referenced row belongs to the caller's
organization. This runs in addition to the organization_id condition that
every query carries; both checks must hold independently.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..database.adapters import BackendAdapter
from ..errors import ForbiddenTenantError, InsufficientRoleError, NotFoundError, StorageError

logger = logging.getLogger(__name__)

# Tables that hold organization-owned rows with an ``id`` primary key.
GUARDED_TABLES = frozenset({"users", "projects", "tasks", "time_logs", "screenshots"})

MANAGER_ROLES = ("admin", "manager")


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, resolved by the auth collaborator before any core call."""
    id: str
    organization_id: str
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class OwnershipOutcome(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FOREIGN = "foreign"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class OwnershipCheck:
    valid: bool
    reason: Optional[str]
    outcome: OwnershipOutcome


class TenantGuard:
    """Validates that referenced resources belong to the acting organization."""

    def __init__(self, store: BackendAdapter):
        self.store = store

    async def validate_ownership(self, actor_org_id: str, resource_id: str, table: str) -> OwnershipCheck:
        """
        Look up ``resource_id`` in ``table`` among non-deleted rows.

        A storage failure during the lookup is reported as an invalid result,
        never as success.
        """
        if table not in GUARDED_TABLES:
            raise ValueError(f"Ownership checks are not supported for table '{table}'")
        if not self.store.is_valid_id(resource_id):
            return OwnershipCheck(False, "Resource not found", OwnershipOutcome.NOT_FOUND)

        try:
            result = await self.store.query(
                f"SELECT organization_id FROM {table} WHERE id = $1 AND deleted_at IS NULL",
                [resource_id],
            )
        except StorageError as exc:
            logger.error(f"Organization validation error for {table}/{resource_id}: {exc}")
            return OwnershipCheck(False, "Validation failed", OwnershipOutcome.LOOKUP_FAILED)

        row = result.first()
        if row is None:
            return OwnershipCheck(False, "Resource not found", OwnershipOutcome.NOT_FOUND)
        if row["organization_id"] != actor_org_id:
            logger.warning(
                f"Cross-organization reference rejected: {table}/{resource_id} requested by organization {actor_org_id}"
            )
            return OwnershipCheck(False, "Resource does not belong to your organization", OwnershipOutcome.FOREIGN)
        return OwnershipCheck(True, None, OwnershipOutcome.OK)

    async def require_ownership(self, actor_org_id: str, resource_id: str, table: str,
                                label: Optional[str] = None) -> None:
        """Raise unless the resource exists, is alive and belongs to the organization."""
        check = await self.validate_ownership(actor_org_id, resource_id, table)
        if check.valid:
            return
        name = label or table
        if check.outcome is OwnershipOutcome.NOT_FOUND:
            raise NotFoundError(f"{name} not found", details={"id": resource_id})
        raise ForbiddenTenantError(f"{name}: {check.reason}", details={"id": resource_id})

    async def fetch_owned(self, actor_org_id: str, table: str, resource_id: str,
                          columns: str = "*", label: Optional[str] = None) -> Dict[str, Any]:
        """
        Read one alive row scoped to the organization.

        When the scoped read finds nothing, the guard decides between
        NotFoundError and ForbiddenTenantError.
        """
        if table not in GUARDED_TABLES:
            raise ValueError(f"Ownership checks are not supported for table '{table}'")
        if not (self.store.is_valid_id(resource_id) and self.store.is_valid_id(actor_org_id)):
            raise NotFoundError(f"{label or table} not found", details={"id": resource_id})
        result = await self.store.query(
            f"SELECT {columns} FROM {table} WHERE id = $1 AND organization_id = $2 AND deleted_at IS NULL",
            [resource_id, actor_org_id],
        )
        row = result.first()
        if row is not None:
            return row
        await self.require_ownership(actor_org_id, resource_id, table, label)
        # Deleted between the two reads.
        raise NotFoundError(f"{label or table} not found", details={"id": resource_id})


def require_role(actor: Actor, *roles: str) -> None:
    """Raise unless the actor holds one of ``roles``."""
    if actor.role not in roles:
        raise InsufficientRoleError(f"Insufficient permissions. Required role: {' or '.join(roles)}")
