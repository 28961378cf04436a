"""
Sync read API routes.

Admins page through their organization's rows in plaintext for upload to
the server store.
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from ...auth.dependencies import get_current_admin
from ...database.connection import StoreContext, get_store_context
from ...schemas.time_tracking import Screenshot, TimeLog
from ...services.sync import SyncReader
from ...services.tenancy import Actor

router = APIRouter(prefix="/sync", tags=["Sync"])


def get_sync_reader(context: StoreContext = Depends(get_store_context)) -> SyncReader:
    return SyncReader(context.store, context.codec)


# PUBLIC_INTERFACE
@router.get("/time-logs", response_model=List[TimeLog], summary="Time logs awaiting sync")
async def sync_time_logs(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_admin),
    reader: SyncReader = Depends(get_sync_reader),
):
    return await reader.get_pending_sync_entries(actor.organization_id, limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.get("/screenshots", response_model=List[Screenshot], summary="Screenshots awaiting sync")
async def sync_screenshots(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_admin),
    reader: SyncReader = Depends(get_sync_reader),
):
    return await reader.get_pending_sync_screenshots(actor.organization_id, limit=limit, offset=offset)
