"""
Core operations of the time-tracking data layer.
"""
from .directory import DirectoryService
from .screenshots import ScreenshotService
from .sync import SyncReader
from .tenancy import Actor, OwnershipCheck, OwnershipOutcome, TenantGuard, require_role
from .time_logs import TimeLogService, summarize
from .timesheets import TimesheetService

__all__ = [
    "Actor",
    "DirectoryService",
    "OwnershipCheck",
    "OwnershipOutcome",
    "ScreenshotService",
    "SyncReader",
    "TenantGuard",
    "TimeLogService",
    "TimesheetService",
    "require_role",
    "summarize",
]
