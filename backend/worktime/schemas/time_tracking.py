"""
Time tracking-related Pydantic schemas.

Defines the plaintext record models returned by the data layer and the
request models for time logs, approvals and screenshot metadata.
"""
import enum
from typing import Optional, List
from pydantic import BaseModel, Field


class ApprovalAction(str, enum.Enum):
    """Approval workflow actions."""
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def target_status(self) -> str:
        return "approved" if self is ApprovalAction.APPROVE else "rejected"


class TimeLogCreate(BaseModel):
    """Time log creation request schema. Timestamps are kept verbatim as ISO 8601 strings."""
    project_id: str = Field(..., min_length=1, description="Project ID")
    task_id: str = Field(..., min_length=1, description="Task ID")
    start_time: str = Field(..., description="Start time (ISO 8601)")
    end_time: str = Field(..., description="End time (ISO 8601)")
    duration_ms: int = Field(..., description="Worked duration in milliseconds")
    duration_hours: Optional[float] = Field(None, ge=0, description="Worked duration in hours, derived when omitted")
    paused_duration_ms: int = Field(default=0, ge=0, description="Total paused time in milliseconds")
    activity_score: float = Field(default=0.0, ge=0, le=100, description="Activity percentage")
    description: Optional[str] = Field(None, description="Work description")
    is_billable: bool = Field(default=False, description="Whether time is billable")


class TimeLog(BaseModel):
    """Time log record with all sensitive fields in plaintext."""
    id: str = Field(..., description="Time log ID")
    organization_id: str = Field(..., description="Owning organization ID")
    user_id: str = Field(..., description="User ID")
    project_id: str = Field(..., description="Project ID")
    task_id: str = Field(..., description="Task ID")
    start_time: str = Field(..., description="Start time")
    end_time: str = Field(..., description="End time")
    duration_ms: int = Field(..., description="Duration in milliseconds")
    duration_hours: float = Field(..., description="Duration in hours")
    paused_duration_ms: int = Field(default=0, description="Paused duration in milliseconds")
    activity_score: float = Field(default=0.0, description="Activity percentage")
    description: Optional[str] = Field(None, description="Work description")
    is_billable: bool = Field(default=False, description="Whether time is billable")
    status: str = Field(..., description="pending, approved or rejected")
    approved_by: Optional[str] = Field(None, description="Approver user ID")
    approved_at: Optional[str] = Field(None, description="Approval timestamp")
    created_at: Optional[str] = Field(None, description="Creation timestamp")
    updated_at: Optional[str] = Field(None, description="Last update timestamp")


class TimeLogFilters(BaseModel):
    """Optional filters for time log listings."""
    start_date: Optional[str] = Field(None, description="Entries starting at or after this time")
    end_date: Optional[str] = Field(None, description="Entries ending at or before this time")
    project_id: Optional[str] = Field(None, description="Filter by project")
    task_id: Optional[str] = Field(None, description="Filter by task")
    status: Optional[str] = Field(None, description="Filter by approval status")


class TimeLogSummary(BaseModel):
    """Aggregate statistics over a filtered set of time logs."""
    total_logs: int = Field(..., description="Number of entries")
    total_hours: float = Field(..., description="Sum of duration in hours")
    avg_activity_score: float = Field(..., description="Average activity percentage")
    project_count: int = Field(..., description="Distinct projects")
    task_count: int = Field(..., description="Distinct tasks")


class TimeLogListResponse(BaseModel):
    """Time log list response schema."""
    time_logs: List[TimeLog] = Field(..., description="Page of time logs")
    total: int = Field(..., description="Total matching entries")
    limit: int = Field(..., description="Page size")
    offset: int = Field(..., description="Page offset")
    summary: Optional[TimeLogSummary] = Field(None, description="Statistics over all matching entries")


class ApprovalRequest(BaseModel):
    """Single approval request schema."""
    time_log_id: str = Field(..., min_length=1, description="Time log ID")
    action: ApprovalAction = Field(..., description="approve or reject")
    notes: Optional[str] = Field(None, description="Reviewer notes")


class BulkApprovalRequest(BaseModel):
    """Bulk approval request schema."""
    time_log_ids: List[str] = Field(..., min_length=1, description="Time log IDs")
    action: ApprovalAction = Field(..., description="approve or reject")
    notes: Optional[str] = Field(None, description="Reviewer notes")


class ApprovalResult(BaseModel):
    """Outcome of a single approval transition."""
    id: str = Field(..., description="Time log ID")
    status: str = Field(..., description="New status")
    approved_by: str = Field(..., description="Approver user ID")
    approved_at: str = Field(..., description="Approval timestamp")


class BulkApprovalResult(BaseModel):
    """Outcome of a bulk approval: pending entries transitioned, terminal ones skipped."""
    approved: int = Field(..., description="Entries transitioned to the target status")
    skipped: int = Field(..., description="Entries already in a terminal state")
    total: int = Field(..., description="Distinct entries requested")
    status: str = Field(..., description="Target status")


class PendingTimeLogsResponse(BaseModel):
    """Pending approvals page."""
    time_logs: List[TimeLog] = Field(..., description="Pending time logs")
    total: int = Field(..., description="Total pending entries")
    limit: int = Field(..., description="Page size")
    offset: int = Field(..., description="Page offset")


class ScreenshotCreate(BaseModel):
    """Screenshot metadata; the image bytes are stored elsewhere."""
    s3_key: str = Field(..., min_length=1, description="Object storage key")
    s3_url: str = Field(..., min_length=1, description="Object storage URL")
    captured_at: str = Field(..., description="Capture timestamp (ISO 8601)")
    time_log_id: Optional[str] = Field(None, description="Related time log")
    thumbnail_url: Optional[str] = Field(None, description="Thumbnail URL")
    file_size: Optional[int] = Field(None, ge=0, description="Size in bytes")
    mime_type: Optional[str] = Field(None, description="MIME type")
    width: Optional[int] = Field(None, ge=0, description="Width in pixels")
    height: Optional[int] = Field(None, ge=0, description="Height in pixels")


class Screenshot(BaseModel):
    """Screenshot metadata record in plaintext."""
    id: str
    organization_id: str
    user_id: str
    time_log_id: Optional[str] = None
    s3_key: str
    s3_url: str
    thumbnail_url: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    captured_at: str
    created_at: Optional[str] = None


class ScreenshotListResponse(BaseModel):
    """Screenshot list response schema."""
    screenshots: List[Screenshot] = Field(..., description="Page of screenshots, newest capture first")
    total: int = Field(..., description="Total matching screenshots")
    limit: int = Field(..., description="Page size")
    offset: int = Field(..., description="Page offset")
