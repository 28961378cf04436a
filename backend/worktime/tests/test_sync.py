"""
Sync reader tests: rows come back exactly as recorded.
"""
import pytest

from worktime.crypto import FieldCodec
from worktime.errors import DecryptionError, InvalidEntryError
from worktime.services.sync import SyncReader

from .conftest import screenshot_data, time_log_data


class TestSyncEntries:
    """Test cases for reading time logs for synchronization."""

    async def test_values_survive_encryption(self, store, time_logs, sync_reader, tenant_a):
        """A recorded entry is read back with identical values and types."""
        await time_logs.create_time_log(tenant_a.employee, time_log_data(
            tenant_a, start_time="2024-01-01T09:00:00Z", end_time="2024-01-01T17:00:00Z", duration_ms=28_800_000))

        entries = await sync_reader.get_pending_sync_entries()

        assert len(entries) == 1
        entry = entries[0]
        assert entry.project_id == "P1"
        assert entry.start_time == "2024-01-01T09:00:00Z"
        assert entry.end_time == "2024-01-01T17:00:00Z"
        assert entry.activity_score == 87.5
        assert isinstance(entry.activity_score, float)
        assert entry.duration_hours == 8.0
        assert entry.status == "pending"

    async def test_newest_first_and_paged(self, time_logs, sync_reader, tenant_a):
        created = [
            await time_logs.create_time_log(tenant_a.employee, time_log_data(tenant_a))
            for _ in range(3)
        ]

        first_page = await sync_reader.get_pending_sync_entries(limit=2)
        second_page = await sync_reader.get_pending_sync_entries(limit=2, offset=2)

        assert [entry.id for entry in first_page] == [created[2].id, created[1].id]
        assert [entry.id for entry in second_page] == [created[0].id]

    async def test_scoped_to_organization(self, time_logs, sync_reader, tenant_a, tenant_b):
        await time_logs.create_time_log(tenant_a.employee, time_log_data(tenant_a))
        await time_logs.create_time_log(tenant_b.employee, time_log_data(tenant_b))

        assert len(await sync_reader.get_pending_sync_entries()) == 2
        scoped = await sync_reader.get_pending_sync_entries(tenant_b.organization_id)
        assert [entry.organization_id for entry in scoped] == [tenant_b.organization_id]

    async def test_soft_deleted_excluded(self, directory, time_logs, sync_reader, tenant_a):
        kept = await time_logs.create_time_log(tenant_a.employee, time_log_data(tenant_a))
        removed = await time_logs.create_time_log(tenant_a.employee, time_log_data(tenant_a))
        await directory.soft_delete(tenant_a.manager, "time_logs", removed.id)

        entries = await sync_reader.get_pending_sync_entries()
        assert [entry.id for entry in entries] == [kept.id]

    async def test_invalid_paging(self, sync_reader):
        with pytest.raises(InvalidEntryError):
            await sync_reader.get_pending_sync_entries(limit=0)
        with pytest.raises(InvalidEntryError):
            await sync_reader.get_pending_sync_entries(offset=-1)

    async def test_wrong_key_fails_loudly(self, store, time_logs, tenant_a):
        await time_logs.create_time_log(tenant_a.employee, time_log_data(tenant_a))
        reader = SyncReader(store, FieldCodec(bytes.fromhex("99" * 32)))
        with pytest.raises(DecryptionError):
            await reader.get_pending_sync_entries()


class TestSyncScreenshots:
    """Test cases for reading screenshot metadata for synchronization."""

    async def test_screenshots_decrypted(self, time_logs, screenshots, sync_reader, tenant_a):
        entry = await time_logs.create_time_log(tenant_a.employee, time_log_data(tenant_a))
        await screenshots.record_screenshot(tenant_a.employee, screenshot_data(time_log_id=entry.id))

        shots = await sync_reader.get_pending_sync_screenshots(tenant_a.organization_id)

        assert len(shots) == 1
        assert shots[0].time_log_id == entry.id
        assert shots[0].captured_at == "2024-03-01T09:30:00Z"
        assert shots[0].width == 1920
