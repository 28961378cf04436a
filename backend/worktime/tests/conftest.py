"""
Pytest configuration and fixtures for backend testing.

Provides an embedded store on a temporary database file, services bound to
it, and multi-tenant test data setup. Each test gets its own database.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import pytest

from worktime.auth.jwt_handler import JWTHandler
from worktime.config import Settings
from worktime.database.adapters import EmbeddedStore
from worktime.database.connection import StoreContext
from worktime.schemas.tenant import OrganizationCreate, ProjectCreate, TaskCreate, UserCreate
from worktime.schemas.time_tracking import ScreenshotCreate, TimeLogCreate
from worktime.services import (
    DirectoryService, ScreenshotService, SyncReader, TimeLogService, TimesheetService
)
from worktime.services.tenancy import Actor

TEST_ENCRYPTION_KEY = "5f" * 32
TEST_JWT_SECRET = "test-jwt-secret"


@dataclass
class Tenant:
    """One seeded organization with a member of each role and one project/task."""
    organization_id: str
    admin: Actor
    manager: Actor
    employee: Actor
    project_id: str
    task_id: str


class PlaintextEmbeddedStore(EmbeddedStore):
    """Embedded store with every column in plaintext, recording the statements it runs."""

    encrypts_at_rest = False

    def __init__(self, path: str):
        super().__init__(path)
        self.statements = []

    async def query(self, sql, params=()):
        self.statements.append(sql)
        return await super().query(sql, params)


async def seed_tenant(context: StoreContext, slug: str, project_id: Optional[str] = None) -> Tenant:
    directory = DirectoryService(context.store)
    organization = await directory.create_organization(OrganizationCreate(name=slug.title(), slug=slug))

    members = {}
    for role in ("admin", "manager", "employee"):
        user = await directory.create_user(organization.id, UserCreate(
            email=f"{role}@{slug}.io", password_hash="hashed", first_name=role.title(),
            last_name="Tester", role=role,
        ))
        members[role] = Actor(id=user.id, organization_id=organization.id, role=role)

    project = await directory.create_project(
        members["admin"], ProjectCreate(id=project_id, name=f"{slug} project"))
    task = await directory.create_task(
        members["admin"], TaskCreate(project_id=project.id, name=f"{slug} task"))
    return Tenant(organization.id, members["admin"], members["manager"], members["employee"],
                  project.id, task.id)


def time_log_data(tenant: Tenant, **overrides: Any) -> TimeLogCreate:
    """Sample time log data for testing."""
    data: Dict[str, Any] = {
        "project_id": tenant.project_id,
        "task_id": tenant.task_id,
        "start_time": "2024-03-01T09:00:00Z",
        "end_time": "2024-03-01T10:00:00Z",
        "duration_ms": 3_600_000,
        "activity_score": 87.5,
        "description": "Working on test features",
        "is_billable": True,
    }
    data.update(overrides)
    return TimeLogCreate(**data)


def screenshot_data(**overrides: Any) -> ScreenshotCreate:
    """Sample screenshot metadata for testing."""
    data: Dict[str, Any] = {
        "s3_key": "screenshots/2024/03/01/shot.png",
        "s3_url": "https://bucket.example.com/screenshots/2024/03/01/shot.png",
        "captured_at": "2024-03-01T09:30:00Z",
        "mime_type": "image/png",
        "width": 1920,
        "height": 1080,
    }
    data.update(overrides)
    return ScreenshotCreate(**data)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Embedded-store settings pointing at a per-test database file."""
    return Settings(
        environment="test",
        db_type="embedded",
        embedded_db_path=str(tmp_path / "worktime.sqlite"),
        encryption_key=TEST_ENCRYPTION_KEY,
        jwt_secret=TEST_JWT_SECRET,
    )


@pytest.fixture
async def store_context(settings):
    context = StoreContext(settings)
    await context.start()
    yield context
    await context.stop()


@pytest.fixture
def store(store_context):
    return store_context.store


@pytest.fixture
def codec(store_context):
    return store_context.codec


@pytest.fixture
async def plaintext_context(settings):
    """Context over an embedded store that keeps typed plaintext columns, like the server store."""
    context = StoreContext(settings, store=PlaintextEmbeddedStore(settings.embedded_db_path))
    await context.start()
    yield context
    await context.stop()


@pytest.fixture
async def tenant_a(store_context) -> Tenant:
    return await seed_tenant(store_context, "acme", project_id="P1")


@pytest.fixture
async def tenant_b(store_context) -> Tenant:
    return await seed_tenant(store_context, "globex")


@pytest.fixture
def directory(store):
    return DirectoryService(store)


@pytest.fixture
def time_logs(store, codec):
    return TimeLogService(store, codec)


@pytest.fixture
def timesheets(store, codec):
    return TimesheetService(store, codec)


@pytest.fixture
def screenshots(store, codec):
    return ScreenshotService(store, codec)


@pytest.fixture
def sync_reader(store, codec):
    return SyncReader(store, codec)


@pytest.fixture
def jwt_handler() -> JWTHandler:
    return JWTHandler(TEST_JWT_SECRET)


@pytest.fixture
def seeded_tenants(settings):
    """
    Seed two organizations before the app starts. Used by HTTP tests, which
    open their own store through the app lifespan.
    """
    async def _seed():
        async with StoreContext(settings) as context:
            return await seed_tenant(context, "acme", project_id="P1"), await seed_tenant(context, "globex")

    return asyncio.run(_seed())


def auth_headers(handler: JWTHandler, actor: Actor) -> Dict[str, str]:
    """Authentication headers with a signed JWT for ``actor``."""
    return {"Authorization": f"Bearer {handler.create_actor_token(actor)}"}
