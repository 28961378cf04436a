"""
SQLAlchemy table definitions for the embedded store.

The embedded (offline/portable) store owns its schema and creates it on first
use. Column names match the server schema exactly. Timestamps are ISO-8601
text, and columns holding ciphertext are plain text without foreign keys.
"""
import enum

from sqlalchemy import (
    CheckConstraint, Column, Float, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, text
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

NOW = text("CURRENT_TIMESTAMP")


class UserRole(str, enum.Enum):
    """User roles within an organization."""
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class TimeLogStatus(str, enum.Enum):
    """Approval states of a time log. ``pending`` is the only non-terminal one."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Organization(Base):
    """Tenant root. Never hard-deleted."""
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    plan = Column(Text, server_default=text("'free'"))
    settings = Column(Text, server_default=text("'{}'"))
    created_at = Column(Text, server_default=NOW)
    updated_at = Column(Text, server_default=NOW)
    deleted_at = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_organizations_slug", "slug"),
    )

    def __repr__(self):
        return f"<Organization(id={self.id}, slug='{self.slug}')>"


class User(Base):
    """User owned by exactly one organization."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    email = Column(Text, nullable=False)
    password_hash = Column(Text, nullable=False)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    role = Column(Text, nullable=False, server_default=text("'employee'"))
    is_active = Column(Integer, server_default=text("1"))
    last_login_at = Column(Text, nullable=True)
    created_at = Column(Text, server_default=NOW)
    updated_at = Column(Text, server_default=NOW)
    deleted_at = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_users_organization_email"),
        Index("idx_users_organization_id", "organization_id"),
        Index("idx_users_email", "email"),
        Index("idx_users_role", "role"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', organization_id={self.organization_id})>"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text)
    color = Column(Text)
    is_active = Column(Integer, server_default=text("1"))
    created_at = Column(Text, server_default=NOW)
    updated_at = Column(Text, server_default=NOW)
    deleted_at = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_projects_organization_id", "organization_id"),
    )

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}', organization_id={self.organization_id})>"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text)
    is_active = Column(Integer, server_default=text("1"))
    created_at = Column(Text, server_default=NOW)
    updated_at = Column(Text, server_default=NOW)
    deleted_at = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_tasks_organization_id", "organization_id"),
        Index("idx_tasks_project_id", "project_id"),
    )

    def __repr__(self):
        return f"<Task(id={self.id}, name='{self.name}', project_id={self.project_id})>"


class TimeLog(Base):
    """Work-time entry. project_id, start_time, end_time and activity_score hold ciphertext."""
    __tablename__ = "time_logs"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(Text, nullable=False)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    duration_ms = Column(Integer, nullable=False)
    duration_hours = Column(Float, nullable=False)
    paused_duration_ms = Column(Integer, server_default=text("0"))
    activity_score = Column(Text, server_default=text("'0'"))
    description = Column(Text)
    is_billable = Column(Integer, server_default=text("0"))
    status = Column(Text, server_default=text("'pending'"))
    approved_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(Text, nullable=True)
    created_at = Column(Text, server_default=NOW)
    updated_at = Column(Text, server_default=NOW)
    deleted_at = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("duration_ms > 0", name="valid_duration"),
        Index("idx_time_logs_organization_id", "organization_id"),
        Index("idx_time_logs_user_id", "user_id"),
        Index("idx_time_logs_task_id", "task_id"),
        Index("idx_time_logs_status", "status"),
        Index("idx_time_logs_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<TimeLog(id={self.id}, user_id={self.user_id}, status='{self.status}')>"


class Screenshot(Base):
    """Screenshot metadata only; the image bytes live in external object storage."""
    __tablename__ = "screenshots"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    time_log_id = Column(Text, nullable=True)
    s3_key = Column(Text, nullable=False)
    s3_url = Column(Text, nullable=False)
    thumbnail_url = Column(Text)
    file_size = Column(Integer)
    mime_type = Column(Text)
    width = Column(Integer)
    height = Column(Integer)
    captured_at = Column(Text, nullable=False)
    created_at = Column(Text, server_default=NOW)
    deleted_at = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_screenshots_organization_id", "organization_id"),
        Index("idx_screenshots_user_id", "user_id"),
        Index("idx_screenshots_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<Screenshot(id={self.id}, user_id={self.user_id})>"


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    time_log_id = Column(String(36), ForeignKey("time_logs.id", ondelete="SET NULL"), nullable=True)
    activity_percentage = Column(Float, nullable=False)
    events_count = Column(Integer, server_default=text("0"))
    is_inactive = Column(Integer, server_default=text("0"))
    inactivity_duration_ms = Column(Integer, server_default=text("0"))
    logged_at = Column(Text, nullable=False)
    created_at = Column(Text, server_default=NOW)

    __table_args__ = (
        Index("idx_activity_logs_organization_id", "organization_id"),
        Index("idx_activity_logs_user_id", "user_id"),
        Index("idx_activity_logs_logged_at", "logged_at"),
    )


class WellnessLog(Base):
    __tablename__ = "wellness_logs"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    wellness_type = Column(Text, nullable=False)
    acknowledged_at = Column(Text, nullable=False)
    reminder_sent_at = Column(Text, nullable=False)
    wellness_score = Column(Float)
    notes = Column(Text)
    created_at = Column(Text, server_default=NOW)

    __table_args__ = (
        Index("idx_wellness_logs_organization_id", "organization_id"),
        Index("idx_wellness_logs_user_id", "user_id"),
    )


CORE_TABLES = ("organizations", "users", "projects", "tasks", "time_logs", "screenshots")
