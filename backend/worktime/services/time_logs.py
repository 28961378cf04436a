"""
Time log creation, retrieval and listing.

Entries are always written in the pending state. The embedded store keeps
project, start/end and activity score encrypted, so filters on those fields
are applied after decryption; plaintext columns are filtered in SQL.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from ..crypto import FieldCodec
from ..database.adapters import BackendAdapter
from ..database.query import WhereClause, insert_statement
from ..errors import InsufficientRoleError, InvalidEntryError
from ..schemas.time_tracking import TimeLog, TimeLogCreate, TimeLogFilters, TimeLogListResponse, TimeLogSummary
from ..utils.time import parse_timestamp, utc_now
from .records import TIME_LOG_COLUMNS, decode_time_log, encode_time_log
from .tenancy import Actor, TenantGuard

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000


def _parse(value: str, field: str) -> datetime:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        raise InvalidEntryError(f"{field} must be an ISO 8601 timestamp", details={field: value})


def validate_entry(data: TimeLogCreate) -> Tuple[datetime, datetime]:
    """Check the interval invariants and return the parsed start and end."""
    start = _parse(data.start_time, "start_time")
    end = _parse(data.end_time, "end_time")
    if end <= start:
        raise InvalidEntryError("end_time must be after start_time")
    if data.duration_ms <= 0:
        raise InvalidEntryError("duration_ms must be positive")
    return start, end


def summarize(entries: Iterable[TimeLog]) -> TimeLogSummary:
    entries = list(entries)
    if not entries:
        return TimeLogSummary(total_logs=0, total_hours=0.0, avg_activity_score=0.0, project_count=0, task_count=0)
    return TimeLogSummary(
        total_logs=len(entries),
        total_hours=round(sum(entry.duration_hours for entry in entries), 2),
        avg_activity_score=round(sum(entry.activity_score for entry in entries) / len(entries), 2),
        project_count=len({entry.project_id for entry in entries}),
        task_count=len({entry.task_id for entry in entries}),
    )


def matches(entry: TimeLog, filters: TimeLogFilters) -> bool:
    """Evaluate every filter against a decrypted entry."""
    if filters.project_id is not None and entry.project_id != filters.project_id:
        return False
    if filters.task_id is not None and entry.task_id != filters.task_id:
        return False
    if filters.status is not None and entry.status != filters.status:
        return False
    if filters.start_date is not None and parse_timestamp(entry.start_time) < _parse(filters.start_date, "start_date"):
        return False
    if filters.end_date is not None and parse_timestamp(entry.end_time) > _parse(filters.end_date, "end_date"):
        return False
    return True


class TimeLogService:
    """Time entries for the acting user's organization."""

    def __init__(self, store: BackendAdapter, codec: FieldCodec):
        self.store = store
        self.codec = codec
        self.guard = TenantGuard(store)

    async def create_time_log(self, actor: Actor, data: TimeLogCreate) -> TimeLog:
        """
        Record a finished work interval for the actor.

        Raises:
            InvalidEntryError: Bad timestamps, non-positive duration, or a task
                outside the given project
            NotFoundError / ForbiddenTenantError: Project or task not visible
                to the actor's organization
        """
        validate_entry(data)
        await self.guard.require_ownership(actor.organization_id, data.project_id, "projects", "Project")
        task = await self.guard.fetch_owned(actor.organization_id, "tasks", data.task_id, "id, project_id", label="Task")
        if task["project_id"] != data.project_id:
            raise InvalidEntryError("Task does not belong to the selected project",
                                    details={"task_id": data.task_id, "project_id": data.project_id})

        duration_hours = data.duration_hours
        if duration_hours is None:
            duration_hours = round(data.duration_ms / MS_PER_HOUR, 2)

        now = utc_now()
        record = {
            "id": str(uuid4()),
            "organization_id": actor.organization_id,
            "user_id": actor.id,
            "project_id": data.project_id,
            "task_id": data.task_id,
            "start_time": data.start_time,
            "end_time": data.end_time,
            "duration_ms": data.duration_ms,
            "duration_hours": duration_hours,
            "paused_duration_ms": data.paused_duration_ms,
            "activity_score": data.activity_score,
            "description": data.description,
            "is_billable": data.is_billable,
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        sql, params = insert_statement("time_logs", encode_time_log(self.store, self.codec, record))
        await self.store.query(sql, params)
        logger.info(f"Time log created: {record['id']} for user {actor.id} ({duration_hours}h)")

        return TimeLog(**{**record, "created_at": now.isoformat(), "updated_at": now.isoformat()})

    async def get_time_log(self, actor: Actor, time_log_id: str) -> TimeLog:
        row = await self.guard.fetch_owned(actor.organization_id, "time_logs", time_log_id,
                                           TIME_LOG_COLUMNS, label="Time log")
        if not actor.is_manager and row["user_id"] != actor.id:
            raise InsufficientRoleError("Insufficient permissions to view this time log")
        return decode_time_log(self.store, self.codec, row)

    async def list_time_logs(self, actor: Actor, filters: Optional[TimeLogFilters] = None,
                             limit: int = 50, offset: int = 0,
                             user_id: Optional[str] = None) -> TimeLogListResponse:
        """
        List the actor's entries, newest start first, with a summary over
        every matching entry. Managers may pass ``user_id`` to list a member
        of their organization.
        """
        filters = filters or TimeLogFilters()
        target_user = actor.id
        if user_id is not None and user_id != actor.id:
            if not actor.is_manager:
                raise InsufficientRoleError("Insufficient permissions to view other users' time logs")
            await self.guard.require_ownership(actor.organization_id, user_id, "users", "User")
            target_user = user_id

        start_bound = _parse(filters.start_date, "start_date") if filters.start_date else None
        end_bound = _parse(filters.end_date, "end_date") if filters.end_date else None

        if any(value is not None and not self.store.is_valid_id(value)
               for value in (filters.project_id, filters.task_id)):
            # An ID the store cannot hold matches nothing.
            return TimeLogListResponse(time_logs=[], total=0, limit=limit, offset=offset, summary=summarize([]))

        where = WhereClause.scoped(actor.organization_id)
        where.add("user_id = {}", target_user)
        where.add_if(filters.task_id, "task_id = {}")
        where.add_if(filters.status, "status = {}")
        if not self.store.encrypts_at_rest:
            where.add_if(filters.project_id, "project_id = {}")
            where.add_if(start_bound, "start_time >= {}")
            where.add_if(end_bound, "end_time <= {}")
            return await self._list_in_sql(where, limit, offset)

        result = await self.store.query(f"SELECT {TIME_LOG_COLUMNS} FROM time_logs WHERE {where.sql()}", where.params)
        entries: List[TimeLog] = [
            entry for entry in (decode_time_log(self.store, self.codec, row) for row in result.rows)
            if matches(entry, filters)
        ]
        entries.sort(key=lambda entry: parse_timestamp(entry.start_time), reverse=True)

        return TimeLogListResponse(
            time_logs=entries[offset:offset + limit],
            total=len(entries),
            limit=limit,
            offset=offset,
            summary=summarize(entries),
        )

    async def _list_in_sql(self, where: WhereClause, limit: int, offset: int) -> TimeLogListResponse:
        """Page and summarize with the store doing the work, for stores with plaintext columns."""
        condition = where.sql()
        stats = await self.store.query(
            f"""SELECT COUNT(*) AS total_logs,
                       COALESCE(SUM(duration_hours), 0) AS total_hours,
                       COALESCE(AVG(activity_score), 0) AS avg_activity_score,
                       COUNT(DISTINCT project_id) AS project_count,
                       COUNT(DISTINCT task_id) AS task_count
                FROM time_logs WHERE {condition}""",
            where.params,
        )
        row = stats.first()
        summary = TimeLogSummary(
            total_logs=row["total_logs"],
            total_hours=round(float(row["total_hours"]), 2),
            avg_activity_score=round(float(row["avg_activity_score"]), 2),
            project_count=row["project_count"],
            task_count=row["task_count"],
        )

        limit_marker = where.bind(limit)
        offset_marker = where.bind(offset)
        result = await self.store.query(
            f"""SELECT {TIME_LOG_COLUMNS} FROM time_logs WHERE {condition}
                ORDER BY start_time DESC, id DESC LIMIT {limit_marker} OFFSET {offset_marker}""",
            where.params,
        )
        return TimeLogListResponse(
            time_logs=[decode_time_log(self.store, self.codec, row) for row in result.rows],
            total=summary.total_logs,
            limit=limit,
            offset=offset,
            summary=summary,
        )
