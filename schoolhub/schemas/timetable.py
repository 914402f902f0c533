"""
Pydantic schemas for timetable events and classrooms.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from schoolhub.utils.calendar import MAX_WEEKS, is_valid_hhmm, parse_hhmm

RoomType = Literal["standard", "lab", "computer", "auditorium", "gym", "library"]


def _check_time(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not is_valid_hhmm(value):
        raise ValueError("Time must be in HH:MM format")
    return value


class TimetableEventBase(BaseModel):
    @field_validator("start_time", "end_time", check_fields=False)
    @classmethod
    def check_time(cls, v):
        return _check_time(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time and self.end_time and parse_hhmm(self.end_time) <= parse_hhmm(self.start_time):
            raise ValueError("End time must be after start time")
        return self


class TimetableEventCreate(TimetableEventBase):
    class_id: str
    subject_id: str
    teacher_id: str
    classroom_id: str
    semester_id: str
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    week_number: int = Field(ge=1, le=MAX_WEEKS)
    notes: Optional[str] = Field(default=None, max_length=500)


class TimetableEventUpdate(TimetableEventBase):
    class_id: Optional[str] = None
    subject_id: Optional[str] = None
    teacher_id: Optional[str] = None
    classroom_id: Optional[str] = None
    semester_id: Optional[str] = None
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    week_number: Optional[int] = Field(default=None, ge=1, le=MAX_WEEKS)
    notes: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_not_null(self):
        # Only notes may be cleared; every other column is required on the event
        cleared = sorted(
            name for name in self.model_fields_set
            if name != "notes" and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class ConflictCheck(TimetableEventBase):
    teacher_id: str
    classroom_id: str
    semester_id: str
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: Optional[str] = None
    week_number: int = Field(ge=1, le=MAX_WEEKS)
    exclude_event_id: Optional[str] = None


class ClassroomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    building: Optional[str] = Field(default=None, max_length=100)
    floor: Optional[int] = Field(default=None, ge=1, le=20)
    capacity: int = Field(default=40, ge=1, le=200)
    room_type: RoomType = "standard"
    equipment: list[str] = []
    is_active: bool = True


class ClassroomUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    building: Optional[str] = Field(default=None, max_length=100)
    floor: Optional[int] = Field(default=None, ge=1, le=20)
    capacity: Optional[int] = Field(default=None, ge=1, le=200)
    room_type: Optional[RoomType] = None
    equipment: Optional[list[str]] = None
    is_active: Optional[bool] = None
