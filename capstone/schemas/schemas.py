"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
Free-text fields are run through sanitize_text (HTML stripped).
"""

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum

from capstone.core.security import (
    sanitize_text, check_password_strength, check_person_name,
    check_student_number, check_phone
)


# ============================================================
# ENUMS
# ============================================================

class UserType(str, Enum):
    student = "student"
    client = "client"
    admin = "admin"


class ProjectStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    active = "active"
    inactive = "inactive"
    rejected = "rejected"
    completed = "completed"


class ReviewDecision(str, Enum):
    approved = "approved"
    rejected = "rejected"


class Semester(str, Enum):
    semester1 = "semester1"
    semester2 = "semester2"
    both = "both"


class GalleryStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class LogLevel(str, Enum):
    error = "error"
    warning = "warning"
    critical = "critical"
    info = "info"


class SanitizedModel(BaseModel):
    """Base model that strips HTML from every string field."""

    @field_validator("*", mode="before")
    @classmethod
    def _sanitize_strings(cls, value, info: ValidationInfo):
        # passwords are hashed verbatim
        if isinstance(value, str) and info.field_name not in ("password", "email"):
            return sanitize_text(value)
        return value


# ============================================================
# AUTH SCHEMAS
# ============================================================

class StudentRegisterRequest(SanitizedModel):
    email: EmailStr
    password: str
    full_name: str = Field(..., min_length=2, max_length=100)
    student_number: Optional[str] = None
    course: Optional[str] = Field(None, max_length=150)
    year_level: Optional[int] = Field(None, ge=1, le=10)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("full_name")
    @classmethod
    def name_format(cls, v: str) -> str:
        return check_person_name(v)

    @field_validator("student_number")
    @classmethod
    def student_number_format(cls, v: Optional[str]) -> Optional[str]:
        return check_student_number(v)


class RegistrationProject(SanitizedModel):
    """Optional first project submitted with a client registration."""
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=20, max_length=2000)
    required_skills: Optional[str] = Field(None, max_length=1000)
    tools_technologies: Optional[str] = Field(None, max_length=1000)
    deliverables: Optional[str] = Field(None, max_length=1000)
    semester_availability: Semester = Semester.both
    project_type: Optional[str] = Field(None, max_length=50)
    duration_weeks: Optional[int] = Field(None, ge=1, le=52)
    max_students: Optional[int] = Field(None, ge=1, le=10)
    prerequisites: Optional[str] = Field(None, max_length=1000)
    additional_info: Optional[str] = Field(None, max_length=1000)


class ClientRegisterRequest(SanitizedModel):
    email: EmailStr
    password: str
    organization_name: str = Field(..., min_length=2, max_length=150)
    contact_name: str = Field(..., min_length=2, max_length=100)
    contact_title: Optional[str] = Field(None, max_length=100)
    industry: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    phone: Optional[str] = None
    website: Optional[str] = Field(None, max_length=300)
    address: Optional[str] = Field(None, max_length=500)
    discuss_first: bool = False
    project: Optional[RegistrationProject] = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: Optional[str]) -> Optional[str]:
        return check_phone(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserInfo(BaseModel):
    id: int
    email: str
    type: str
    name: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class ClientRegisterResponse(BaseModel):
    success: bool = True
    message: str
    organization_name: str
    contact_name: str
    email: str
    has_project: bool
    project_id: Optional[int] = None
    discuss_first: bool
    status: str = "pending_review"


# ============================================================
# PROJECT SCHEMAS
# ============================================================

class ProjectCreate(SanitizedModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=50, max_length=5000)
    required_skills: str = Field(..., min_length=5, max_length=1000)
    tools_technologies: str = Field(..., min_length=5, max_length=1000)
    deliverables: str = Field(..., min_length=10, max_length=2000)
    semester_availability: Semester
    project_type: Optional[str] = Field(None, max_length=50)
    duration_weeks: Optional[int] = Field(None, ge=1, le=52)
    max_students: Optional[int] = Field(None, ge=1, le=10)
    prerequisites: Optional[str] = Field(None, max_length=1000)
    additional_info: Optional[str] = Field(None, max_length=1000)


class ProjectUpdate(SanitizedModel):
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=50, max_length=5000)
    required_skills: Optional[str] = Field(None, min_length=5, max_length=1000)
    tools_technologies: Optional[str] = Field(None, min_length=5, max_length=1000)
    deliverables: Optional[str] = Field(None, min_length=10, max_length=2000)
    semester_availability: Optional[Semester] = None
    project_type: Optional[str] = Field(None, max_length=50)
    duration_weeks: Optional[int] = Field(None, ge=1, le=52)
    max_students: Optional[int] = Field(None, ge=1, le=10)
    prerequisites: Optional[str] = Field(None, max_length=1000)
    additional_info: Optional[str] = Field(None, max_length=1000)

    @field_validator("title", "description", "required_skills", "tools_technologies",
                     "deliverables", "semester_availability")
    @classmethod
    def _required_not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class ProjectStatusUpdate(SanitizedModel):
    status: ReviewDecision
    feedback: Optional[str] = Field(None, max_length=1000)


class ProjectCompleteRequest(BaseModel):
    preserve_client_data: bool = True


class ProjectResponse(BaseModel):
    id: int
    client_id: int
    parent_project_id: Optional[int] = None
    phase_number: int = 1
    title: str
    description: str
    required_skills: Optional[str] = None
    tools_technologies: Optional[str] = None
    deliverables: Optional[str] = None
    semester_availability: str
    project_type: Optional[str] = None
    duration_weeks: Optional[int] = None
    max_students: Optional[int] = None
    prerequisites: Optional[str] = None
    additional_info: Optional[str] = None
    status: ProjectStatus
    rejection_reason: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    completed_by: Optional[int] = None
    completed_at: Optional[datetime] = None
    client_name_snapshot: Optional[str] = None
    client_org_snapshot: Optional[str] = None
    organization_name: Optional[str] = None
    contact_name: Optional[str] = None
    interest_count: int = 0
    is_favorite: Optional[bool] = None
    has_expressed_interest: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class ProjectListResponse(BaseModel):
    projects: List[ProjectResponse]
    pagination: Pagination


class ProjectDetailResponse(BaseModel):
    project: ProjectResponse
    interests: Optional[List[Dict[str, Any]]] = None


class ProjectMutationResponse(BaseModel):
    success: bool = True
    message: str
    project: ProjectResponse


# ============================================================
# INTEREST & FAVORITE SCHEMAS
# ============================================================

class InterestCreate(SanitizedModel):
    project_id: int = Field(..., ge=1)
    message: Optional[str] = Field(None, max_length=1000)


class BulkWithdrawRequest(BaseModel):
    project_ids: List[int] = Field(..., min_length=1, max_length=50)


class FavoriteCreate(BaseModel):
    project_id: int = Field(..., ge=1)


# ============================================================
# GALLERY SCHEMAS
# ============================================================

class GalleryCreate(SanitizedModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=20, max_length=2000)
    year: int = Field(..., ge=2000, le=datetime.now().year)
    category: str = Field(..., min_length=2, max_length=100)
    client_name: str = Field(..., min_length=2, max_length=150)
    team_members: Optional[str] = Field(None, max_length=500)
    outcomes: Optional[str] = Field(None, max_length=1000)
    image_urls: List[str] = Field(default_factory=list, max_length=10)
    status: GalleryStatus = GalleryStatus.approved


class GalleryUpdate(SanitizedModel):
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=20, max_length=2000)
    year: Optional[int] = Field(None, ge=2000, le=datetime.now().year)
    category: Optional[str] = Field(None, min_length=2, max_length=100)
    client_name: Optional[str] = Field(None, min_length=2, max_length=150)
    team_members: Optional[str] = Field(None, max_length=500)
    outcomes: Optional[str] = Field(None, max_length=1000)
    image_urls: Optional[List[str]] = Field(None, max_length=10)

    @field_validator("title", "description", "year", "category", "client_name")
    @classmethod
    def _required_not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class GalleryFromProject(SanitizedModel):
    gallery_title: Optional[str] = Field(None, min_length=5, max_length=200)
    gallery_description: Optional[str] = Field(None, min_length=20, max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    team_members: Optional[str] = Field(None, max_length=500)
    outcomes: Optional[str] = Field(None, max_length=1000)
    image_urls: List[str] = Field(default_factory=list, max_length=10)
    status: GalleryStatus = GalleryStatus.pending


class GalleryStatusUpdate(BaseModel):
    status: GalleryStatus


# ============================================================
# ADMIN SCHEMAS
# ============================================================

class AdminUserCreate(SanitizedModel):
    user_type: UserType
    email: EmailStr
    password: str
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    student_number: Optional[str] = None
    organization_name: Optional[str] = Field(None, min_length=2, max_length=150)
    contact_name: Optional[str] = Field(None, min_length=2, max_length=100)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("student_number")
    @classmethod
    def student_number_format(cls, v: Optional[str]) -> Optional[str]:
        return check_student_number(v)


class BulkArchiveRequest(BaseModel):
    user_type: UserType
    user_ids: List[int] = Field(..., min_length=1, max_length=100)


class DeleteUserRequest(BaseModel):
    confirm_delete: bool = False


class SettingsUpdateRequest(BaseModel):
    settings: Dict[str, Any] = Field(..., min_length=1)


class SettingsImportRequest(BaseModel):
    settings: Dict[str, Any]


class SettingsResetRequest(BaseModel):
    confirm: str


# ============================================================
# GENERIC
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
