"""
Pydantic schemas for grade reporting periods, detailed grades and the
grade submission workflow.
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from schoolhub.utils.calendar import to_datetime
from schoolhub.utils.grades import MAX_GRADE, MIN_GRADE, round_grade

PeriodType = Literal[
    "midterm_1", "final_1", "semester_1_summary",
    "midterm_2", "final_2", "semester_2_summary",
    "yearly_summary",
]


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


# ---- Reporting periods ----
class GradePeriodCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    academic_year_id: str
    semester_id: str
    period_type: PeriodType
    start_date: date
    end_date: date
    import_deadline: datetime
    edit_deadline: datetime
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("import_deadline", "edit_deadline")
    @classmethod
    def aware_deadline(cls, v: datetime) -> datetime:
        # Naive deadlines are taken as UTC
        return to_datetime(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.import_deadline > self.edit_deadline:
            raise ValueError("Import deadline must not be later than the edit deadline")
        if _as_date(self.import_deadline) > self.end_date:
            raise ValueError("Import deadline must not be later than the period end date")
        return self


class GradePeriodUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    import_deadline: Optional[datetime] = None
    edit_deadline: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("import_deadline", "edit_deadline")
    @classmethod
    def aware_deadline(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_datetime(v) if v is not None else None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.import_deadline and self.edit_deadline and self.import_deadline > self.edit_deadline:
            raise ValueError("Import deadline must not be later than the edit deadline")
        return self


# ---- Detailed grades ----
class DetailedGradeUpdate(BaseModel):
    grade_value: float = Field(ge=MIN_GRADE, le=MAX_GRADE)
    change_reason: str = Field(min_length=5, max_length=500)

    @field_validator("grade_value")
    @classmethod
    def one_decimal(cls, v: float) -> float:
        return round_grade(v)


# ---- Submission workflow ----
class GradeSubmissionCreate(BaseModel):
    academic_year_id: str
    semester_id: str
    class_id: str
    student_id: str


class SubjectGradeInput(BaseModel):
    subject_id: str
    midterm_grade: Optional[float] = Field(default=None, ge=MIN_GRADE, le=MAX_GRADE)
    final_grade: Optional[float] = Field(default=None, ge=MIN_GRADE, le=MAX_GRADE)
    notes: Optional[str] = Field(default=None, max_length=500)


class SubmissionGrades(BaseModel):
    grades: list[SubjectGradeInput] = Field(min_length=1)


class SendToHomeroom(BaseModel):
    class_id: str
    academic_year_id: str
    semester_id: str
