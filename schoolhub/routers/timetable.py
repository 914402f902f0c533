"""
Timetable router — weekly lesson events and the classrooms they use.

A slot is (semester, week, day, start time). Within one slot a classroom
and a teacher can each be booked only once; a classroom clash is reported
before a teacher clash.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from schoolhub.core.access import get_user_id
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.logging import get_logger
from schoolhub.core.security import get_current_user, require_role
from schoolhub.schemas.timetable import (
    ClassroomCreate, ClassroomUpdate, ConflictCheck, TimetableEventCreate, TimetableEventUpdate,
)
from schoolhub.utils.calendar import day_name, format_hhmm, parse_hhmm
from schoolhub.utils.response import success_response

logger = get_logger("timetable")

router = APIRouter(prefix="/api/timetable", tags=["Timetable"])

CONFLICT_MESSAGES = {
    "classroom": "Classroom is already booked at this time",
    "teacher": "Teacher is already assigned at this time",
}

EVENT_SELECT = (
    "*, classes(name), subjects(name, code), "
    "teacher:profiles!timetable_events_teacher_id_fkey(full_name), "
    "classrooms(name, building)"
)


def find_conflict(
    db,
    semester_id: str,
    week_number: int,
    day_of_week: int,
    start_time: str,
    classroom_id: str,
    teacher_id: str,
    exclude_event_id: Optional[str] = None,
) -> Optional[str]:
    """Return "classroom", "teacher" or None for the given slot."""
    query = (
        db.table("timetable_events")
        .select("id, classroom_id, teacher_id")
        .eq("semester_id", semester_id)
        .eq("week_number", week_number)
        .eq("day_of_week", day_of_week)
        .eq("start_time", start_time)
    )
    if exclude_event_id:
        query = query.neq("id", exclude_event_id)
    events = query.execute().data or []

    if any(e["classroom_id"] == classroom_id for e in events):
        return "classroom"
    if any(e["teacher_id"] == teacher_id for e in events):
        return "teacher"
    return None


def _normalize_time(value: str) -> str:
    # Postgres time columns come back as HH:MM:SS
    return format_hhmm(parse_hhmm(":".join(value.split(":")[:2])))


def _flatten(event: dict) -> dict:
    classes = event.get("classes") or {}
    subjects = event.get("subjects") or {}
    teacher = event.get("teacher") or {}
    classroom = event.get("classrooms") or {}
    return {
        **event,
        "class_name": classes.get("name"),
        "subject_name": subjects.get("name"),
        "teacher_name": teacher.get("full_name"),
        "classroom_name": classroom.get("name"),
        "day_name": day_name(event.get("day_of_week", -1)),
    }


# ═══════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════

@router.post("/events")
async def create_event(
    body: TimetableEventCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    data = body.model_dump()
    data["start_time"] = _normalize_time(body.start_time)
    data["end_time"] = _normalize_time(body.end_time)

    conflict = find_conflict(
        db, body.semester_id, body.week_number, body.day_of_week, data["start_time"],
        body.classroom_id, body.teacher_id,
    )
    if conflict:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_MESSAGES[conflict])

    try:
        result = db.table("timetable_events").insert(data).execute()
    except APIError as e:
        raise_for_db_error(e, "This timetable slot is already taken")
    return success_response(data=result.data[0], message="Timetable event created")


@router.get("/events")
async def list_events(
    class_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    week_number: Optional[int] = Query(None, ge=1, le=52),
    teacher_id: Optional[str] = None,
    classroom_id: Optional[str] = None,
    day_of_week: Optional[int] = Query(None, ge=0, le=6),
    user: dict = Depends(get_current_user),
):
    # Teachers see their own lessons unless they ask for a class or room
    if user["role"] == "teacher" and not (teacher_id or class_id or classroom_id):
        teacher_id = get_user_id(user)

    db = get_supabase()
    query = db.table("timetable_events").select(EVENT_SELECT)
    for column, value in (
        ("class_id", class_id),
        ("semester_id", semester_id),
        ("week_number", week_number),
        ("teacher_id", teacher_id),
        ("classroom_id", classroom_id),
        ("day_of_week", day_of_week),
    ):
        if value is not None:
            query = query.eq(column, value)

    result = query.order("day_of_week").order("start_time").execute()
    return success_response(data=[_flatten(e) for e in result.data or []])


@router.post("/events/check-conflicts")
async def check_conflicts(
    body: ConflictCheck,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    conflict = find_conflict(
        db, body.semester_id, body.week_number, body.day_of_week, _normalize_time(body.start_time),
        body.classroom_id, body.teacher_id, body.exclude_event_id,
    )
    return success_response(data={
        "has_conflict": conflict is not None,
        "conflict_type": conflict,
        "message": CONFLICT_MESSAGES.get(conflict),
    })


@router.patch("/events/{event_id}")
async def update_event(
    event_id: str,
    body: TimetableEventUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    current = fetch_one("timetable_events", event_id, not_found="Timetable event not found")
    update_data = body.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    for key in ("start_time", "end_time"):
        if update_data.get(key):
            update_data[key] = _normalize_time(update_data[key])

    merged = {**current, **update_data}
    merged["start_time"] = _normalize_time(merged["start_time"])
    merged["end_time"] = _normalize_time(merged["end_time"])
    if parse_hhmm(merged["end_time"]) <= parse_hhmm(merged["start_time"]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")

    conflict = find_conflict(
        db, merged["semester_id"], merged["week_number"], merged["day_of_week"], merged["start_time"],
        merged["classroom_id"], merged["teacher_id"], exclude_event_id=event_id,
    )
    if conflict:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_MESSAGES[conflict])

    result = db.table("timetable_events").update(update_data).eq("id", event_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Timetable event updated")


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    fetch_one("timetable_events", event_id, "id", not_found="Timetable event not found")
    db.table("timetable_events").delete().eq("id", event_id).execute()
    return success_response(message="Timetable event deleted")


# ═══════════════════════════════════════════════════════════
# CLASSROOMS
# ═══════════════════════════════════════════════════════════

@router.post("/classrooms")
async def create_classroom(
    body: ClassroomCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    name = body.name.strip()
    existing = db.table("classrooms").select("id").eq("name", name).execute()
    if existing.data:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Classroom '{name}' already exists")

    try:
        result = db.table("classrooms").insert({**body.model_dump(), "name": name}).execute()
    except APIError as e:
        raise_for_db_error(e, f"Classroom '{name}' already exists")
    return success_response(data=result.data[0], message="Classroom created")


@router.get("/classrooms")
async def list_classrooms(
    is_active: Optional[bool] = None,
    room_type: Optional[str] = None,
    user: dict = Depends(get_current_user),
):
    db = get_supabase()
    query = db.table("classrooms").select("*")
    if is_active is not None:
        query = query.eq("is_active", is_active)
    if room_type:
        query = query.eq("room_type", room_type)
    result = query.order("name").execute()
    return success_response(data=result.data)


@router.patch("/classrooms/{classroom_id}")
async def update_classroom(
    classroom_id: str,
    body: ClassroomUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    fetch_one("classrooms", classroom_id, "id", not_found="Classroom not found")
    update_data = body.model_dump(exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    result = db.table("classrooms").update(update_data).eq("id", classroom_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Classroom updated")
