"""
Tenant-related Pydantic schemas.

Defines models for organizations and the organization-owned reference data
(users, projects, tasks) that time logs point at.
"""
from typing import Optional, Dict, Any
from pydantic import BaseModel, EmailStr, Field

from ..database.models import UserRole


class OrganizationCreate(BaseModel):
    """Organization onboarding schema."""
    name: str = Field(..., min_length=1, max_length=255, description="Organization name")
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$", description="Globally unique slug")
    plan: str = Field(default="free", description="Plan tier (free, pro, enterprise)")
    settings: Dict[str, Any] = Field(default_factory=dict, description="Organization settings")


class Organization(BaseModel):
    """Organization record."""
    id: str
    name: str
    slug: str
    plan: str = "free"
    created_at: Optional[str] = None


class UserCreate(BaseModel):
    """User creation schema. The credential hash is produced by the auth collaborator."""
    email: EmailStr = Field(..., description="Email, unique within the organization")
    password_hash: str = Field(..., min_length=1, description="Credential hash")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = Field(default=UserRole.EMPLOYEE, description="admin, manager or employee")


class User(BaseModel):
    """User record without the credential hash."""
    id: str
    organization_id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool = True


class ProjectCreate(BaseModel):
    """Project creation schema."""
    id: Optional[str] = Field(None, min_length=1, description="Explicit ID, generated when omitted")
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=7, description="Hex color code")


class Project(BaseModel):
    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True


class TaskCreate(BaseModel):
    """Task creation schema."""
    id: Optional[str] = Field(None, min_length=1, description="Explicit ID, generated when omitted")
    project_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class Task(BaseModel):
    id: str
    organization_id: str
    project_id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
