"""
Screenshot metadata API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ...auth.dependencies import get_current_actor
from ...database.connection import StoreContext, get_store_context
from ...schemas.time_tracking import Screenshot, ScreenshotCreate, ScreenshotListResponse
from ...services.screenshots import ScreenshotService
from ...services.tenancy import Actor

router = APIRouter(prefix="/screenshots", tags=["Screenshots"])


def get_screenshot_service(context: StoreContext = Depends(get_store_context)) -> ScreenshotService:
    return ScreenshotService(context.store, context.codec)


# PUBLIC_INTERFACE
@router.post("/", response_model=Screenshot, status_code=status.HTTP_201_CREATED,
             summary="Record screenshot metadata")
async def record_screenshot(
    request: ScreenshotCreate,
    actor: Actor = Depends(get_current_actor),
    service: ScreenshotService = Depends(get_screenshot_service),
):
    return await service.record_screenshot(actor, request)


# PUBLIC_INTERFACE
@router.get("/", response_model=ScreenshotListResponse,
            summary="List screenshots",
            description="List the current user's screenshots, newest capture first.")
async def list_screenshots(
    start_date: Optional[str] = Query(None, description="Captured at or after (ISO 8601)"),
    end_date: Optional[str] = Query(None, description="Captured at or before (ISO 8601)"),
    time_log_id: Optional[str] = Query(None, description="Filter by time log"),
    limit: int = Query(50, ge=1, le=1000, description="Number of screenshots to return"),
    offset: int = Query(0, ge=0, description="Number of screenshots to skip"),
    actor: Actor = Depends(get_current_actor),
    service: ScreenshotService = Depends(get_screenshot_service),
):
    return await service.list_screenshots(actor, start_date=start_date, end_date=end_date,
                                          time_log_id=time_log_id, limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.get("/{screenshot_id}", response_model=Screenshot, summary="Get screenshot metadata")
async def get_screenshot(
    screenshot_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ScreenshotService = Depends(get_screenshot_service),
):
    return await service.get_screenshot(actor, screenshot_id)
