"""
Approval lifecycle for time logs.

A time log moves pending -> approved or pending -> rejected exactly once.
Every transition is a conditional update on ``status = 'pending'``, so two
reviewers racing on the same entry cannot both succeed and an approved
entry never has its approval overwritten.
"""
import logging
from typing import List, Optional, Sequence

from ..crypto import FieldCodec
from ..database.adapters import BackendAdapter
from ..database.models import TimeLogStatus
from ..database.query import WhereClause
from ..errors import ConflictError, ForbiddenTenantError, InvalidEntryError, NotFoundError
from ..schemas.time_tracking import (
    ApprovalAction, ApprovalResult, BulkApprovalResult, PendingTimeLogsResponse
)
from ..utils.time import utc_now
from .records import TIME_LOG_COLUMNS, decode_time_log
from .tenancy import MANAGER_ROLES, Actor, OwnershipOutcome, TenantGuard, require_role

logger = logging.getLogger(__name__)

PENDING = TimeLogStatus.PENDING.value


class TimesheetService:
    """Manager-facing review of submitted time logs."""

    def __init__(self, store: BackendAdapter, codec: FieldCodec):
        self.store = store
        self.codec = codec
        self.guard = TenantGuard(store)

    async def approve(self, actor: Actor, time_log_id: str) -> ApprovalResult:
        return await self.transition(actor, time_log_id, ApprovalAction.APPROVE)

    async def reject(self, actor: Actor, time_log_id: str) -> ApprovalResult:
        return await self.transition(actor, time_log_id, ApprovalAction.REJECT)

    async def _current_status(self, organization_id: str, time_log_id: str) -> Optional[str]:
        result = await self.store.query(
            "SELECT status FROM time_logs WHERE id = $1 AND organization_id = $2 AND deleted_at IS NULL",
            [time_log_id, organization_id],
        )
        row = result.first()
        return row["status"] if row else None

    async def transition(self, actor: Actor, time_log_id: str, action: ApprovalAction) -> ApprovalResult:
        """
        Move one pending time log to the action's target status.

        Raises:
            InsufficientRoleError: Actor is not a manager or admin
            NotFoundError / ForbiddenTenantError: Entry missing or foreign
            ConflictError: Entry already approved or rejected
        """
        require_role(actor, *MANAGER_ROLES)
        await self.guard.require_ownership(actor.organization_id, time_log_id, "time_logs", "Time log")

        status = await self._current_status(actor.organization_id, time_log_id)
        if status is None:
            raise NotFoundError("Time log not found", details={"id": time_log_id})
        if status != PENDING:
            raise ConflictError(f"Time log is already {status}", details={"id": time_log_id})

        target = action.target_status
        now = utc_now()
        result = await self.store.query(
            """UPDATE time_logs
               SET status = $1, approved_by = $2, approved_at = $3, updated_at = $3
               WHERE id = $4 AND organization_id = $5 AND status = $6 AND deleted_at IS NULL""",
            [target, actor.id, now, time_log_id, actor.organization_id, PENDING],
        )
        if result.row_count == 0:
            # Another reviewer transitioned it between the read and the update.
            latest = await self._current_status(actor.organization_id, time_log_id)
            if latest is None:
                raise NotFoundError("Time log not found", details={"id": time_log_id})
            raise ConflictError(f"Time log is already {latest}", details={"id": time_log_id})

        logger.info(f"Time log {time_log_id} {target} by {actor.id}")
        return ApprovalResult(id=time_log_id, status=target, approved_by=actor.id, approved_at=now.isoformat())

    async def bulk_transition(self, actor: Actor, time_log_ids: Sequence[str],
                              action: ApprovalAction) -> BulkApprovalResult:
        """
        Transition many time logs at once with partial success.

        Ownership is all-or-nothing: if any ID is missing or belongs to another
        organization nothing is changed. Among owned entries, pending ones are
        transitioned and those already approved or rejected are skipped.
        """
        require_role(actor, *MANAGER_ROLES)
        unique_ids = list(dict.fromkeys(time_log_ids))
        if not unique_ids:
            raise InvalidEntryError("At least one time log ID is required")
        target = action.target_status

        # Malformed IDs can never match a row; they are reported as not found.
        candidates = [time_log_id for time_log_id in unique_ids if self.store.is_valid_id(time_log_id)]

        async with self.store.transaction() as tx:
            found = {}
            if candidates:
                verify = WhereClause.scoped(actor.organization_id).is_in("id", candidates)
                result = await tx.query(f"SELECT id, status FROM time_logs WHERE {verify.sql()}", verify.params)
                found = {row["id"]: row["status"] for row in result.rows}

            unverified = [time_log_id for time_log_id in unique_ids if time_log_id not in found]
            if unverified:
                await self._reject_unverified(actor, unverified)

            pending = [time_log_id for time_log_id in unique_ids if found[time_log_id] == PENDING]
            transitioned = 0
            if pending:
                where = WhereClause.scoped(actor.organization_id).is_in("id", pending)
                where.add("status = {}", PENDING)
                now = utc_now()
                status_marker = where.bind(target)
                actor_marker = where.bind(actor.id)
                time_marker = where.bind(now)
                update = await tx.query(
                    f"""UPDATE time_logs
                        SET status = {status_marker}, approved_by = {actor_marker},
                            approved_at = {time_marker}, updated_at = {time_marker}
                        WHERE {where.sql()}""",
                    where.params,
                )
                transitioned = update.row_count

        logger.info(
            f"Bulk {action.value} by {actor.id}: {transitioned} {target}, "
            f"{len(unique_ids) - transitioned} skipped"
        )
        return BulkApprovalResult(
            approved=transitioned,
            skipped=len(unique_ids) - transitioned,
            total=len(unique_ids),
            status=target,
        )

    async def _reject_unverified(self, actor: Actor, time_log_ids: List[str]) -> None:
        foreign = []
        for time_log_id in time_log_ids:
            check = await self.guard.validate_ownership(actor.organization_id, time_log_id, "time_logs")
            if check.outcome in (OwnershipOutcome.FOREIGN, OwnershipOutcome.LOOKUP_FAILED):
                foreign.append(time_log_id)
        if foreign:
            raise ForbiddenTenantError("Some time logs do not belong to your organization",
                                       details={"ids": foreign})
        raise NotFoundError("Some time logs were not found", details={"ids": time_log_ids})

    async def list_pending(self, actor: Actor, user_id: Optional[str] = None,
                           limit: int = 50, offset: int = 0) -> PendingTimeLogsResponse:
        """Pending entries in the actor's organization, newest first."""
        require_role(actor, *MANAGER_ROLES)
        if user_id is not None and not self.store.is_valid_id(user_id):
            return PendingTimeLogsResponse(time_logs=[], total=0, limit=limit, offset=offset)
        where = WhereClause.scoped(actor.organization_id)
        where.add("status = {}", PENDING)
        where.add_if(user_id, "user_id = {}")

        count = await self.store.query(f"SELECT COUNT(*) AS total FROM time_logs WHERE {where.sql()}", where.params)
        total = count.first()["total"]

        condition = where.sql()
        limit_marker = where.bind(limit)
        offset_marker = where.bind(offset)
        result = await self.store.query(
            f"""SELECT {TIME_LOG_COLUMNS} FROM time_logs WHERE {condition}
                ORDER BY created_at DESC, id DESC LIMIT {limit_marker} OFFSET {offset_marker}""",
            where.params,
        )
        return PendingTimeLogsResponse(
            time_logs=[decode_time_log(self.store, self.codec, row) for row in result.rows],
            total=total,
            limit=limit,
            offset=offset,
        )
