"""
Organizations and the organization-owned reference data time logs point at.
"""
import json
import logging
from uuid import uuid4

from ..database.adapters import BackendAdapter
from ..errors import ConflictError, InsufficientRoleError, InvalidEntryError, NotFoundError
from ..schemas.tenant import (
    Organization, OrganizationCreate, Project, ProjectCreate, Task, TaskCreate, User, UserCreate
)
from ..utils.time import utc_now
from .tenancy import MANAGER_ROLES, Actor, TenantGuard, require_role

logger = logging.getLogger(__name__)

# Rows any member may soft-delete when they own them; everything else needs a manager.
_USER_OWNED_TABLES = ("time_logs", "screenshots")


class DirectoryService:
    """Tenant onboarding plus project, task and user bookkeeping."""

    def __init__(self, store: BackendAdapter):
        self.store = store
        self.guard = TenantGuard(store)

    def _check_explicit_id(self, resource_id, label: str) -> None:
        if resource_id is not None and not self.store.is_valid_id(resource_id):
            raise InvalidEntryError(f"{label} ID is not valid for the {self.store.name} store",
                                    details={"id": resource_id})

    async def create_organization(self, data: OrganizationCreate) -> Organization:
        organization_id = str(uuid4())
        now = utc_now()
        try:
            await self.store.query(
                """INSERT INTO organizations (id, name, slug, plan, settings, created_at, updated_at)
                   VALUES ($1, $2, $3, $4, $5, $6, $6)""",
                [organization_id, data.name, data.slug, data.plan, json.dumps(data.settings), now],
            )
        except ConflictError:
            raise ConflictError("Organization with this slug already exists", details={"slug": data.slug})
        logger.info(f"Organization created: {data.slug} ({organization_id})")
        return Organization(id=organization_id, name=data.name, slug=data.slug, plan=data.plan,
                            created_at=now.isoformat())

    async def get_organization(self, organization_id: str) -> Organization:
        if not self.store.is_valid_id(organization_id):
            raise NotFoundError("Organization not found", details={"id": organization_id})
        result = await self.store.query(
            "SELECT id, name, slug, plan, created_at FROM organizations WHERE id = $1 AND deleted_at IS NULL",
            [organization_id],
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Organization not found", details={"id": organization_id})
        return Organization(**row)

    async def create_user(self, organization_id: str, data: UserCreate) -> User:
        await self.get_organization(organization_id)
        user_id = str(uuid4())
        now = utc_now()
        try:
            await self.store.query(
                """INSERT INTO users (id, organization_id, email, password_hash, first_name, last_name,
                                      role, is_active, created_at, updated_at)
                   VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $9)""",
                [user_id, organization_id, data.email.lower(), data.password_hash, data.first_name,
                 data.last_name, data.role.value, True, now],
            )
        except ConflictError:
            raise ConflictError("User with this email already exists in this organization",
                                details={"email": data.email})
        return User(id=user_id, organization_id=organization_id, email=data.email.lower(),
                    first_name=data.first_name, last_name=data.last_name, role=data.role.value)

    async def create_project(self, actor: Actor, data: ProjectCreate) -> Project:
        require_role(actor, *MANAGER_ROLES)
        self._check_explicit_id(data.id, "Project")
        project_id = data.id or str(uuid4())
        now = utc_now()
        try:
            await self.store.query(
                """INSERT INTO projects (id, organization_id, name, description, color, is_active,
                                         created_at, updated_at)
                   VALUES ($1, $2, $3, $4, $5, $6, $7, $7)""",
                [project_id, actor.organization_id, data.name, data.description, data.color, True, now],
            )
        except ConflictError:
            raise ConflictError("Project with this ID already exists", details={"id": project_id})
        return Project(id=project_id, organization_id=actor.organization_id, name=data.name,
                       description=data.description, color=data.color)

    async def get_project(self, actor: Actor, project_id: str) -> Project:
        row = await self.guard.fetch_owned(
            actor.organization_id, "projects", project_id,
            "id, organization_id, name, description, color, is_active", label="Project",
        )
        return Project(**row)

    async def create_task(self, actor: Actor, data: TaskCreate) -> Task:
        require_role(actor, *MANAGER_ROLES)
        await self.guard.require_ownership(actor.organization_id, data.project_id, "projects", "Project")
        self._check_explicit_id(data.id, "Task")
        task_id = data.id or str(uuid4())
        now = utc_now()
        try:
            await self.store.query(
                """INSERT INTO tasks (id, organization_id, project_id, name, description, is_active,
                                      created_at, updated_at)
                   VALUES ($1, $2, $3, $4, $5, $6, $7, $7)""",
                [task_id, actor.organization_id, data.project_id, data.name, data.description, True, now],
            )
        except ConflictError:
            raise ConflictError("Task with this ID already exists", details={"id": task_id})
        return Task(id=task_id, organization_id=actor.organization_id, project_id=data.project_id,
                    name=data.name, description=data.description)

    async def get_task(self, actor: Actor, task_id: str) -> Task:
        row = await self.guard.fetch_owned(
            actor.organization_id, "tasks", task_id,
            "id, organization_id, project_id, name, description, is_active", label="Task",
        )
        return Task(**row)

    async def soft_delete(self, actor: Actor, table: str, resource_id: str) -> None:
        """
        Mark an owned row as deleted. The row stays in place but disappears
        from every normal read.
        """
        row = await self.guard.fetch_owned(actor.organization_id, table, resource_id)
        if not actor.is_manager:
            if table not in _USER_OWNED_TABLES or row.get("user_id") != actor.id:
                raise InsufficientRoleError("Insufficient permissions to delete this resource")

        await self.store.query(
            f"""UPDATE {table} SET deleted_at = $1
                WHERE id = $2 AND organization_id = $3 AND deleted_at IS NULL""",
            [utc_now(), resource_id, actor.organization_id],
        )
        logger.info(f"Soft-deleted {table}/{resource_id} by user {actor.id}")
