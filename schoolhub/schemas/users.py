"""
Pydantic schemas for user profiles and parent-student links.
"""

from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["admin", "teacher", "student", "parent"]


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    role: Role
    student_code: Optional[str] = None
    employee_code: Optional[str] = None
    phone: Optional[str] = None
    homeroom_enabled: bool = False
    password: Optional[str] = Field(default=None, min_length=8)


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = None
    student_code: Optional[str] = None
    employee_code: Optional[str] = None
    homeroom_enabled: Optional[bool] = None
    is_active: Optional[bool] = None


class ParentStudentLink(BaseModel):
    parent_id: str
    student_id: str
    relationship: Literal["father", "mother", "guardian"]
