"""
Time log API routes.

Thin HTTP wrappers over TimeLogService; all tenant scoping and validation
happens in the service.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ...auth.dependencies import get_current_actor
from ...database.connection import StoreContext, get_store_context
from ...schemas.time_tracking import TimeLog, TimeLogCreate, TimeLogFilters, TimeLogListResponse
from ...services.tenancy import Actor
from ...services.time_logs import TimeLogService

router = APIRouter(prefix="/time-logs", tags=["Time Logs"])


def get_time_log_service(context: StoreContext = Depends(get_store_context)) -> TimeLogService:
    return TimeLogService(context.store, context.codec)


# PUBLIC_INTERFACE
@router.post("/", response_model=TimeLog, status_code=status.HTTP_201_CREATED,
             summary="Create time log",
             description="Record a finished work interval for the current user. New entries are pending.")
async def create_time_log(
    request: TimeLogCreate,
    actor: Actor = Depends(get_current_actor),
    service: TimeLogService = Depends(get_time_log_service),
):
    return await service.create_time_log(actor, request)


# PUBLIC_INTERFACE
@router.get("/", response_model=TimeLogListResponse,
            summary="List time logs",
            description="List time logs with optional filters and a summary over all matching entries.")
async def list_time_logs(
    start_date: Optional[str] = Query(None, description="Entries starting at or after (ISO 8601)"),
    end_date: Optional[str] = Query(None, description="Entries ending at or before (ISO 8601)"),
    project_id: Optional[str] = Query(None, description="Filter by project"),
    task_id: Optional[str] = Query(None, description="Filter by task"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by approval status"),
    user_id: Optional[str] = Query(None, description="Another member's entries (managers only)"),
    limit: int = Query(50, ge=1, le=1000, description="Number of entries to return"),
    offset: int = Query(0, ge=0, description="Number of entries to skip"),
    actor: Actor = Depends(get_current_actor),
    service: TimeLogService = Depends(get_time_log_service),
):
    filters = TimeLogFilters(start_date=start_date, end_date=end_date, project_id=project_id,
                             task_id=task_id, status=status_filter)
    return await service.list_time_logs(actor, filters, limit=limit, offset=offset, user_id=user_id)


# PUBLIC_INTERFACE
@router.get("/{time_log_id}", response_model=TimeLog,
            summary="Get time log",
            description="Get one time log. Members can only read their own entries.")
async def get_time_log(
    time_log_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TimeLogService = Depends(get_time_log_service),
):
    return await service.get_time_log(actor, time_log_id)
