"""
Pydantic schemas for subjects and teacher teaching assignments.
"""

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

SUBJECT_CODE_RE = re.compile(r"^[A-Z0-9_]{1,20}$")

SubjectType = Literal["mandatory", "elective"]
SubjectCategory = Literal[
    "language_arts", "mathematics", "natural_sciences", "social_sciences", "physical_education",
    "arts", "technology", "civic_education", "experiential_activities",
]


def _check_code(value: str) -> str:
    code = value.strip().upper()
    if not SUBJECT_CODE_RE.match(code):
        raise ValueError("Subject code may only contain letters, digits and underscores (max 20)")
    return code


# ---- Subjects ----
class SubjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: str
    subject_type: SubjectType = "mandatory"
    category: Optional[SubjectCategory] = None
    periods_per_week: Optional[int] = Field(default=None, ge=1, le=10)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return _check_code(v)


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    code: Optional[str] = None
    subject_type: Optional[SubjectType] = None
    category: Optional[SubjectCategory] = None
    periods_per_week: Optional[int] = Field(default=None, ge=1, le=10)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return _check_code(v) if v is not None else None


# ---- Teacher assignments ----
class TeacherAssignmentCreate(BaseModel):
    teacher_id: str
    class_id: str
    subject_id: str
    notes: Optional[str] = Field(default=None, max_length=500)
