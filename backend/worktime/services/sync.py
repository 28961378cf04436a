"""
Read side for cloud synchronization.

The embedded store hands its rows to a sync collaborator in plaintext, with
encrypted fields decrypted so values arrive exactly as they were recorded.
"""
import logging
from typing import List, Optional

from ..crypto import FieldCodec
from ..database.adapters import BackendAdapter
from ..database.query import WhereClause
from ..errors import InvalidEntryError
from ..schemas.time_tracking import Screenshot, TimeLog
from .records import SCREENSHOT_COLUMNS, TIME_LOG_COLUMNS, decode_screenshot, decode_time_log

logger = logging.getLogger(__name__)


class SyncReader:
    """Pages through alive rows, newest first, optionally scoped to one organization."""

    def __init__(self, store: BackendAdapter, codec: FieldCodec):
        self.store = store
        self.codec = codec

    async def _page(self, table: str, columns: str, organization_id: Optional[str],
                    limit: int, offset: int):
        if limit < 1 or offset < 0:
            raise InvalidEntryError("limit must be positive and offset non-negative",
                                    details={"limit": limit, "offset": offset})
        if organization_id is not None and not self.store.is_valid_id(organization_id):
            return []
        where = WhereClause().alive()
        where.add_if(organization_id, "organization_id = {}")
        condition = where.sql()
        limit_marker = where.bind(limit)
        offset_marker = where.bind(offset)
        result = await self.store.query(
            f"""SELECT {columns} FROM {table} WHERE {condition}
                ORDER BY created_at DESC, id DESC LIMIT {limit_marker} OFFSET {offset_marker}""",
            where.params,
        )
        logger.debug(f"Sync page from {table}: {len(result.rows)} rows (offset {offset})")
        return result.rows

    async def get_pending_sync_entries(self, organization_id: Optional[str] = None,
                                       limit: int = 100, offset: int = 0) -> List[TimeLog]:
        rows = await self._page("time_logs", TIME_LOG_COLUMNS, organization_id, limit, offset)
        return [decode_time_log(self.store, self.codec, row) for row in rows]

    async def get_pending_sync_screenshots(self, organization_id: Optional[str] = None,
                                           limit: int = 100, offset: int = 0) -> List[Screenshot]:
        rows = await self._page("screenshots", SCREENSHOT_COLUMNS, organization_id, limit, offset)
        return [decode_screenshot(self.store, self.codec, row) for row in rows]
