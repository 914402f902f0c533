"""
Pydantic schemas for academic years and semesters.
"""

import re
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

YEAR_NAME_RE = re.compile(r"^\d{4}-\d{4}$")


def _check_year_name(value: str) -> str:
    if not YEAR_NAME_RE.match(value):
        raise ValueError("Academic year name must look like YYYY-YYYY")
    first, second = (int(part) for part in value.split("-"))
    if second != first + 1:
        raise ValueError("Academic year must span two consecutive years")
    return value


# ---- Academic Year ----
class AcademicYearCreate(BaseModel):
    name: str
    start_date: date
    end_date: date
    is_current: bool = False

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return _check_year_name(v.strip())

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class AcademicYearUpdate(BaseModel):
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_year_name(v.strip()) if v is not None else v

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


# ---- Semester ----
class SemesterCreate(BaseModel):
    academic_year_id: str
    name: str = Field(min_length=1, max_length=100)
    semester_number: int = Field(ge=1, le=2)
    start_date: date
    end_date: date
    weeks_count: int = Field(default=18, ge=1, le=52)
    is_current: bool = False

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class SemesterUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    weeks_count: Optional[int] = Field(default=None, ge=1, le=52)
    is_current: Optional[bool] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self
