from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    role: str
    tenant_id: Optional[str] = None


class IdentityOut(BaseModel):
    user_id: str
    role: str
    tenant_id: Optional[str] = None
    capabilities: list[str]


class SchoolCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class SchoolOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: str
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    created_at: datetime


class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    admission_number: Optional[str] = None
    grade_level: Optional[str] = None
    class_id: Optional[str] = None
    # Only a global admin may name a school; everyone else gets their own.
    tenant_id: Optional[str] = None


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    admission_number: Optional[str] = None
    grade_level: Optional[str] = None
    class_id: Optional[str] = None
    active: Optional[bool] = None
    tenant_id: Optional[str] = None


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    first_name: str
    last_name: str
    admission_number: Optional[str] = None
    grade_level: Optional[str] = None
    class_id: Optional[str] = None
    active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class StudentPage(BaseModel):
    items: list[StudentOut]
    total: int


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1)
    grade: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    capacity: int = Field(..., ge=1)
    teacher_id: Optional[str] = None
    description: Optional[str] = None


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    grade: Optional[str] = Field(None, min_length=1)
    section: Optional[str] = Field(None, min_length=1)
    capacity: Optional[int] = Field(None, ge=1)
    teacher_id: Optional[str] = None
    description: Optional[str] = None


class ClassOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    name: str
    grade: str
    section: str
    capacity: int
    teacher_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ClassDetail(ClassOut):
    students: list[StudentOut] = []


class ClassPage(BaseModel):
    items: list[ClassOut]
    total: int


class GuardianCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    occupation: Optional[str] = None
    relation_type: Optional[str] = None
    student_ids: list[str] = []


class GuardianOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    relation_type: Optional[str] = None
    student_ids: list[str]
    created_at: datetime


class GuardianPage(BaseModel):
    items: list[GuardianOut]
    total: int


class ClassCount(BaseModel):
    class_id: str
    name: str
    grade: str
    section: str
    count: int


class StudentStats(BaseModel):
    total: int
    active: int
    inactive: int
    without_class: int
    recent_enrollments: int
    by_grade: dict[str, int]
    by_class: list[ClassCount]
