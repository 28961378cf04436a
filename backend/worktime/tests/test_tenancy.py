"""
Tenant isolation guard tests.
"""
from contextlib import asynccontextmanager
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import DBAPIError

from worktime.crypto import FieldCodec
from worktime.database.adapters import ServerStore
from worktime.errors import (
    ForbiddenTenantError, InsufficientRoleError, InvalidEntryError, NotFoundError, StorageError
)
from worktime.schemas.tenant import ProjectCreate
from worktime.schemas.time_tracking import ApprovalAction, TimeLogFilters
from worktime.services import DirectoryService, ScreenshotService, SyncReader, TimeLogService, TimesheetService
from worktime.services.tenancy import Actor, OwnershipOutcome, TenantGuard, require_role

from .conftest import TEST_ENCRYPTION_KEY, time_log_data


class FailingStore:
    """Store whose every query fails."""

    encrypts_at_rest = True

    def is_valid_id(self, value):
        return True

    async def query(self, sql, params=()):
        raise StorageError("connection lost")


class TestOwnershipValidation:
    """Test cases for TenantGuard.validate_ownership."""

    async def test_own_resource(self, store, tenant_a):
        check = await TenantGuard(store).validate_ownership(tenant_a.organization_id, "P1", "projects")
        assert check.valid
        assert check.outcome is OwnershipOutcome.OK

    async def test_missing_resource(self, store, tenant_a):
        check = await TenantGuard(store).validate_ownership(tenant_a.organization_id, "nope", "projects")
        assert not check.valid
        assert check.outcome is OwnershipOutcome.NOT_FOUND
        assert check.reason == "Resource not found"

    async def test_foreign_resource(self, store, tenant_a, tenant_b):
        check = await TenantGuard(store).validate_ownership(tenant_b.organization_id, "P1", "projects")
        assert not check.valid
        assert check.outcome is OwnershipOutcome.FOREIGN
        assert check.reason == "Resource does not belong to your organization"

    async def test_soft_deleted_resource_is_not_found(self, store, directory, tenant_a):
        await directory.soft_delete(tenant_a.admin, "projects", "P1")
        check = await TenantGuard(store).validate_ownership(tenant_a.organization_id, "P1", "projects")
        assert check.outcome is OwnershipOutcome.NOT_FOUND

    async def test_lookup_failure_is_never_success(self):
        check = await TenantGuard(FailingStore()).validate_ownership("org-1", "P1", "projects")
        assert not check.valid
        assert check.outcome is OwnershipOutcome.LOOKUP_FAILED
        assert check.reason == "Validation failed"

    async def test_unknown_table_rejected(self, store):
        with pytest.raises(ValueError):
            await TenantGuard(store).validate_ownership("org-1", "x", "organizations; --")


class TestOwnershipEnforcement:
    """Test cases for the raising helpers."""

    async def test_require_ownership_foreign(self, store, tenant_a, tenant_b):
        with pytest.raises(ForbiddenTenantError):
            await TenantGuard(store).require_ownership(tenant_b.organization_id, "P1", "projects", "Project")

    async def test_require_ownership_missing(self, store, tenant_a):
        with pytest.raises(NotFoundError, match="Project not found"):
            await TenantGuard(store).require_ownership(tenant_a.organization_id, "nope", "projects", "Project")

    async def test_fetch_owned_foreign_time_log(self, store, time_logs, tenant_a, tenant_b):
        entry = await time_logs.create_time_log(tenant_a.employee, time_log_data(tenant_a))
        with pytest.raises(ForbiddenTenantError):
            await TenantGuard(store).fetch_owned(tenant_b.organization_id, "time_logs", entry.id)

    def test_require_role(self):
        manager = Actor(id="u-1", organization_id="org-1", role="manager")
        employee = Actor(id="u-2", organization_id="org-1", role="employee")
        require_role(manager, "admin", "manager")
        with pytest.raises(InsufficientRoleError):
            require_role(employee, "admin", "manager")


class EmptyResult:
    returns_rows = True
    rowcount = 0

    def mappings(self):
        return self

    def all(self):
        return []


class NoopTransaction:
    async def commit(self):
        pass

    async def rollback(self):
        pass


class UuidColumnConnection:
    """Rejects non-UUID text parameters the way PostgreSQL UUID columns do."""

    def __init__(self, log):
        self.log = log

    async def begin(self):
        return NoopTransaction()

    async def exec_driver_sql(self, statement, params=None):
        self.log.append((statement, params))
        for value in params or ():
            if isinstance(value, str):
                try:
                    UUID(value)
                except ValueError:
                    raise DBAPIError(statement, params, ValueError("invalid input syntax for type uuid"))
        return EmptyResult()

    async def close(self):
        pass


class UuidColumnEngine:
    """Stands in for an asyncpg engine over UUID-keyed tables with no rows."""

    def __init__(self):
        self.log = []

    @asynccontextmanager
    async def begin(self):
        yield UuidColumnConnection(self.log)

    async def connect(self):
        return UuidColumnConnection(self.log)

    async def dispose(self):
        pass


class TestServerStoreIdFormat:
    """Test cases for IDs the server store's UUID columns cannot hold."""

    @pytest.fixture
    def engine(self):
        return UuidColumnEngine()

    @pytest.fixture
    def server_store(self, engine):
        return ServerStore("postgresql+asyncpg://u:p@db/wt", engine=engine)

    @pytest.fixture
    def codec(self):
        return FieldCodec(bytes.fromhex(TEST_ENCRYPTION_KEY))

    @pytest.fixture
    def manager(self):
        return Actor(id=str(uuid4()), organization_id=str(uuid4()), role="manager")

    def test_id_format(self, server_store):
        assert server_store.is_valid_id(str(uuid4()))
        assert not server_store.is_valid_id("abc")
        assert not server_store.is_valid_id(None)

    async def test_malformed_id_is_not_found(self, server_store, engine, manager):
        guard = TenantGuard(server_store)
        check = await guard.validate_ownership(manager.organization_id, "abc", "time_logs")
        assert check.outcome is OwnershipOutcome.NOT_FOUND
        with pytest.raises(NotFoundError):
            await guard.fetch_owned(manager.organization_id, "time_logs", "abc")
        assert engine.log == []

    async def test_well_formed_missing_id_still_queries(self, server_store, engine, manager):
        check = await TenantGuard(server_store).validate_ownership(manager.organization_id, str(uuid4()), "projects")
        assert check.outcome is OwnershipOutcome.NOT_FOUND
        assert len(engine.log) == 1

    async def test_services_report_not_found(self, server_store, codec, manager):
        with pytest.raises(NotFoundError):
            await TimeLogService(server_store, codec).get_time_log(manager, "abc")
        with pytest.raises(NotFoundError):
            await TimesheetService(server_store, codec).approve(manager, "abc")
        with pytest.raises(NotFoundError):
            await ScreenshotService(server_store, codec).get_screenshot(manager, "abc")
        with pytest.raises(NotFoundError):
            await DirectoryService(server_store).get_organization("abc")

    async def test_bulk_with_malformed_ids(self, server_store, engine, codec, manager):
        service = TimesheetService(server_store, codec)
        with pytest.raises(NotFoundError) as exc_info:
            await service.bulk_transition(manager, ["abc", "def"], ApprovalAction.APPROVE)
        assert exc_info.value.details == {"ids": ["abc", "def"]}
        assert engine.log == []

        with pytest.raises(NotFoundError):
            await service.bulk_transition(manager, [str(uuid4()), "abc"], ApprovalAction.APPROVE)
        verify_params = engine.log[0][1]
        assert "abc" not in verify_params

    async def test_malformed_filters_match_nothing(self, server_store, engine, codec, manager):
        listing = await TimeLogService(server_store, codec).list_time_logs(
            manager, TimeLogFilters(project_id="P1"))
        assert listing.total == 0
        assert listing.summary.total_logs == 0

        pending = await TimesheetService(server_store, codec).list_pending(manager, user_id="abc")
        assert pending.total == 0

        shots = await ScreenshotService(server_store, codec).list_screenshots(manager, time_log_id="abc")
        assert shots.total == 0

        assert await SyncReader(server_store, codec).get_pending_sync_entries(organization_id="acme") == []
        assert engine.log == []

    async def test_explicit_project_id_must_fit_the_store(self, server_store, engine):
        admin = Actor(id=str(uuid4()), organization_id=str(uuid4()), role="admin")
        with pytest.raises(InvalidEntryError):
            await DirectoryService(server_store).create_project(admin, ProjectCreate(id="P1", name="Core"))
        assert engine.log == []

    async def test_non_uuid_parameter_would_be_storage_error(self, server_store):
        with pytest.raises(StorageError):
            await server_store.query("SELECT id FROM time_logs WHERE id = $1", ["abc"])
