"""
Screenshot metadata. Image bytes live in object storage; only the key, URLs
and capture details are recorded here.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from ..crypto import FieldCodec
from ..database.adapters import BackendAdapter
from ..database.query import WhereClause, insert_statement
from ..errors import InsufficientRoleError, InvalidEntryError
from ..schemas.time_tracking import Screenshot, ScreenshotCreate, ScreenshotListResponse
from ..utils.time import parse_timestamp, utc_now
from .records import SCREENSHOT_COLUMNS, decode_screenshot, encode_screenshot
from .tenancy import Actor, TenantGuard

logger = logging.getLogger(__name__)


def _bound(value: Optional[str], field: str) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        raise InvalidEntryError(f"{field} must be an ISO 8601 timestamp", details={field: value})


class ScreenshotService:

    def __init__(self, store: BackendAdapter, codec: FieldCodec):
        self.store = store
        self.codec = codec
        self.guard = TenantGuard(store)

    async def record_screenshot(self, actor: Actor, data: ScreenshotCreate) -> Screenshot:
        try:
            parse_timestamp(data.captured_at)
        except ValueError:
            raise InvalidEntryError("captured_at must be an ISO 8601 timestamp",
                                    details={"captured_at": data.captured_at})
        if data.time_log_id is not None:
            await self.guard.require_ownership(actor.organization_id, data.time_log_id, "time_logs", "Time log")

        now = utc_now()
        record = {
            "id": str(uuid4()),
            "organization_id": actor.organization_id,
            "user_id": actor.id,
            "time_log_id": data.time_log_id,
            "s3_key": data.s3_key,
            "s3_url": data.s3_url,
            "thumbnail_url": data.thumbnail_url,
            "file_size": data.file_size,
            "mime_type": data.mime_type,
            "width": data.width,
            "height": data.height,
            "captured_at": data.captured_at,
            "created_at": now,
        }
        sql, params = insert_statement("screenshots", encode_screenshot(self.store, self.codec, record))
        await self.store.query(sql, params)
        logger.info(f"Screenshot recorded: {record['id']} for user {actor.id}")
        return Screenshot(**{**record, "created_at": now.isoformat()})

    async def get_screenshot(self, actor: Actor, screenshot_id: str) -> Screenshot:
        row = await self.guard.fetch_owned(actor.organization_id, "screenshots", screenshot_id,
                                           SCREENSHOT_COLUMNS, label="Screenshot")
        if not actor.is_manager and row["user_id"] != actor.id:
            raise InsufficientRoleError("Insufficient permissions to view this screenshot")
        return decode_screenshot(self.store, self.codec, row)

    async def list_screenshots(self, actor: Actor, start_date: Optional[str] = None,
                               end_date: Optional[str] = None, time_log_id: Optional[str] = None,
                               limit: int = 50, offset: int = 0) -> ScreenshotListResponse:
        """
        The actor's own screenshots, newest capture first.

        ``start_date`` and ``end_date`` bound ``captured_at`` inclusively.
        On the embedded store capture time and time log are ciphertext, so
        those filters run on the decrypted records.
        """
        start_bound = _bound(start_date, "start_date")
        end_bound = _bound(end_date, "end_date")
        if time_log_id is not None and not self.store.is_valid_id(time_log_id):
            return ScreenshotListResponse(screenshots=[], total=0, limit=limit, offset=offset)

        where = WhereClause.scoped(actor.organization_id)
        where.add("user_id = {}", actor.id)

        if self.store.encrypts_at_rest:
            result = await self.store.query(f"SELECT {SCREENSHOT_COLUMNS} FROM screenshots WHERE {where.sql()}",
                                            where.params)
            shots = []
            for row in result.rows:
                shot = decode_screenshot(self.store, self.codec, row)
                captured = parse_timestamp(shot.captured_at)
                if start_bound is not None and captured < start_bound:
                    continue
                if end_bound is not None and captured > end_bound:
                    continue
                if time_log_id is not None and shot.time_log_id != time_log_id:
                    continue
                shots.append((captured, shot))
            shots.sort(key=lambda pair: pair[0], reverse=True)
            return ScreenshotListResponse(
                screenshots=[shot for _, shot in shots[offset:offset + limit]],
                total=len(shots),
                limit=limit,
                offset=offset,
            )

        where.add_if(start_bound, "captured_at >= {}")
        where.add_if(end_bound, "captured_at <= {}")
        where.add_if(time_log_id, "time_log_id = {}")
        condition = where.sql()
        count = await self.store.query(f"SELECT COUNT(*) AS total FROM screenshots WHERE {condition}", where.params)
        limit_marker = where.bind(limit)
        offset_marker = where.bind(offset)
        result = await self.store.query(
            f"""SELECT {SCREENSHOT_COLUMNS} FROM screenshots WHERE {condition}
                ORDER BY captured_at DESC, id DESC LIMIT {limit_marker} OFFSET {offset_marker}""",
            where.params,
        )
        return ScreenshotListResponse(
            screenshots=[decode_screenshot(self.store, self.codec, row) for row in result.rows],
            total=count.first()["total"],
            limit=limit,
            offset=offset,
        )
