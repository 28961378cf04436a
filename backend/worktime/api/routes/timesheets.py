"""
Timesheet approval API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth.dependencies import get_current_manager
from ...database.connection import StoreContext, get_store_context
from ...schemas.time_tracking import (
    ApprovalRequest, ApprovalResult, BulkApprovalRequest, BulkApprovalResult, PendingTimeLogsResponse
)
from ...services.tenancy import Actor
from ...services.timesheets import TimesheetService

router = APIRouter(prefix="/timesheets", tags=["Timesheets"])


def get_timesheet_service(context: StoreContext = Depends(get_store_context)) -> TimesheetService:
    return TimesheetService(context.store, context.codec)


# PUBLIC_INTERFACE
@router.get("/pending", response_model=PendingTimeLogsResponse,
            summary="List pending time logs",
            description="Pending entries awaiting review in the manager's organization.")
async def list_pending(
    user_id: Optional[str] = Query(None, description="Filter by user"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_manager),
    service: TimesheetService = Depends(get_timesheet_service),
):
    return await service.list_pending(actor, user_id=user_id, limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.put("/approve", response_model=ApprovalResult,
            summary="Approve or reject a time log",
            description="Move one pending time log to approved or rejected. Terminal entries return 409.")
async def approve_time_log(
    request: ApprovalRequest,
    actor: Actor = Depends(get_current_manager),
    service: TimesheetService = Depends(get_timesheet_service),
):
    return await service.transition(actor, request.time_log_id, request.action)


# PUBLIC_INTERFACE
@router.put("/bulk-approve", response_model=BulkApprovalResult,
            summary="Bulk approve or reject time logs",
            description="Transition every pending entry in the list; entries already reviewed are skipped.")
async def bulk_approve_time_logs(
    request: BulkApprovalRequest,
    actor: Actor = Depends(get_current_manager),
    service: TimesheetService = Depends(get_timesheet_service),
):
    return await service.bulk_transition(actor, request.time_log_ids, request.action)
