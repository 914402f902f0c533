"""
Pydantic schemas for the conduct (violation) catalog and student violations.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

Severity = Literal["minor", "moderate", "serious", "severe"]

SEVERITY_LABELS = {
    "minor": "Minor",
    "moderate": "Moderate",
    "serious": "Serious",
    "severe": "Severe",
}


# ---- Categories ----
class ViolationCategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class ViolationCategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None


# ---- Types ----
class ViolationTypeCreate(BaseModel):
    category_id: str
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    default_severity: Severity = "minor"
    points: int = Field(default=0, ge=0)


class ViolationTypeUpdate(BaseModel):
    category_id: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    default_severity: Optional[Severity] = None
    points: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


# ---- Student violations ----
class StudentViolationCreate(BaseModel):
    student_id: str
    class_id: str
    violation_type_id: str
    severity: Severity
    points: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=1000)
    violation_date: Optional[date] = None
    academic_year_id: str
    semester_id: str


class BulkViolationCreate(BaseModel):
    student_ids: list[str] = Field(min_length=1)
    class_id: str
    violation_type_id: str
    severity: Severity
    points: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=1000)
    violation_date: date
    academic_year_id: str
    semester_id: str


class StudentViolationUpdate(BaseModel):
    severity: Optional[Severity] = None
    description: Optional[str] = Field(default=None, max_length=1000)


class ViolationNotificationCreate(BaseModel):
    violation_id: str
    parent_id: str
