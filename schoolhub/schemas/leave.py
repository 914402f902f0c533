"""
Pydantic schemas for leave applications.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

LeaveType = Literal["sick", "family", "emergency", "vacation", "other"]


class LeaveApplicationCreate(BaseModel):
    student_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=1000)
    attachment_url: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self


class LeaveApplicationResponse(BaseModel):
    status: Literal["approved", "rejected"]
    teacher_response: Optional[str] = Field(default=None, max_length=1000)
