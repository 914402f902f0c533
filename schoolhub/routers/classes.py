"""
Classes router — classes, homeroom teachers and student class assignments.

Rules:
- A class name is unique within its academic year and semester
- A homeroom teacher must be an active, homeroom-enabled teacher and may
  lead only one class per semester
- Students hold at most one "main" and one "combined" assignment; the
  assignment type must match the class kind
- classes.current_students mirrors the number of active assignments
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.logging import get_logger
from schoolhub.core.security import get_current_user, require_role
from schoolhub.schemas.classes import (
    ClassAssignmentCreate, ClassCreate, ClassUpdate, combination_name, validate_combination,
)
from schoolhub.utils.response import page_bounds, paginated_response, success_response

logger = get_logger("classes")

router = APIRouter(prefix="/api/classes", tags=["Classes"])


def _ensure_unique_name(db, name: str, academic_year_id: str, semester_id: str, exclude_id: Optional[str] = None):
    query = (
        db.table("classes")
        .select("id")
        .eq("name", name)
        .eq("academic_year_id", academic_year_id)
        .eq("semester_id", semester_id)
    )
    if exclude_id:
        query = query.neq("id", exclude_id)
    if query.execute().data:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Class '{name}' already exists in this semester",
        )


def _validate_homeroom_teacher(db, teacher_id: str, semester_id: str, exclude_class_id: Optional[str] = None):
    teacher = (
        db.table("profiles")
        .select("id, role, is_active, homeroom_enabled")
        .eq("id", teacher_id)
        .maybe_single()
        .execute()
    )
    teacher = teacher.data if teacher else None
    if not teacher or teacher["role"] != "teacher" or not teacher.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Homeroom teacher must be an active teacher")
    if not teacher.get("homeroom_enabled"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This teacher is not enabled for homeroom duty")

    query = (
        db.table("classes")
        .select("id, name")
        .eq("homeroom_teacher_id", teacher_id)
        .eq("semester_id", semester_id)
    )
    if exclude_class_id:
        query = query.neq("id", exclude_class_id)
    taken = query.execute().data
    if taken:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"This teacher is already homeroom teacher of class {taken[0]['name']} this semester",
        )


def _with_combination_name(row: dict) -> dict:
    if row.get("is_subject_combination"):
        row["subject_combination_name"] = combination_name(
            row.get("subject_combination_type") or "", row.get("subject_combination_variant") or "",
        )
    return row


# ═══════════════════════════════════════════════════════════
# CLASSES
# ═══════════════════════════════════════════════════════════

@router.post("")
async def create_class(
    body: ClassCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    name = body.name.strip()
    _ensure_unique_name(db, name, body.academic_year_id, body.semester_id)
    if body.homeroom_teacher_id:
        _validate_homeroom_teacher(db, body.homeroom_teacher_id, body.semester_id)

    data = {**body.model_dump(), "name": name, "current_students": 0}
    try:
        result = db.table("classes").insert(data).execute()
    except APIError as e:
        raise_for_db_error(e, f"Class '{name}' already exists in this semester")

    logger.info("Class %s created", name)
    return success_response(data=_with_combination_name(result.data[0]), message="Class created")


@router.get("")
async def list_classes(
    academic_year_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    search: Optional[str] = None,
    is_subject_combination: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(get_current_user),
):
    db = get_supabase()
    query = db.table("classes").select(
        "*, academic_years(name), semesters(name), "
        "homeroom_teacher:profiles!classes_homeroom_teacher_id_fkey(full_name, email)",
        count="exact",
    )
    if academic_year_id:
        query = query.eq("academic_year_id", academic_year_id)
    if semester_id:
        query = query.eq("semester_id", semester_id)
    if search:
        query = query.ilike("name", f"%{search}%")
    if is_subject_combination is not None:
        query = query.eq("is_subject_combination", is_subject_combination)

    start, end = page_bounds(page, limit)
    result = query.order("name").range(start, end).execute()
    items = [_with_combination_name(row) for row in result.data or []]
    return paginated_response(items, result.count or 0, page, limit)


@router.get("/{class_id}")
async def get_class(class_id: str, user: dict = Depends(get_current_user)):
    row = fetch_one("classes", class_id, not_found="Class not found")
    return success_response(data=_with_combination_name(row))


@router.patch("/{class_id}")
async def update_class(
    class_id: str,
    body: ClassUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    current = fetch_one("classes", class_id, not_found="Class not found")
    update_data = body.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    if update_data.get("name"):
        update_data["name"] = update_data["name"].strip()
        if update_data["name"] != current["name"]:
            _ensure_unique_name(
                db, update_data["name"], current["academic_year_id"], current["semester_id"], exclude_id=class_id,
            )

    teacher_id = update_data.get("homeroom_teacher_id")
    if teacher_id and teacher_id != current.get("homeroom_teacher_id"):
        _validate_homeroom_teacher(db, teacher_id, current["semester_id"], exclude_class_id=class_id)

    max_students = update_data.get("max_students")
    if max_students is not None and max_students < (current.get("current_students") or 0):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Class already has {current['current_students']} students; capacity cannot be lower",
        )

    merged = {**current, **update_data}
    try:
        validate_combination(
            merged.get("is_subject_combination"),
            merged.get("subject_combination_type"),
            merged.get("subject_combination_variant"),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not merged.get("is_subject_combination"):
        update_data["subject_combination_type"] = None
        update_data["subject_combination_variant"] = None

    result = db.table("classes").update(update_data).eq("id", class_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Class updated")


@router.delete("/{class_id}")
async def delete_class(
    class_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    current = fetch_one("classes", class_id, "id, name, current_students", not_found="Class not found")
    if (current.get("current_students") or 0) > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a class that still has students assigned",
        )
    db.table("classes").delete().eq("id", class_id).execute()
    logger.info("Class %s deleted", current["name"])
    return success_response(message="Class deleted")


@router.get("/{class_id}/students")
async def list_class_students(
    class_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    fetch_one("classes", class_id, "id", not_found="Class not found")
    assignments = (
        db.table("student_class_assignments")
        .select("*")
        .eq("class_id", class_id)
        .eq("is_active", True)
        .execute()
    ).data or []
    if not assignments:
        return success_response(data=[])

    students = (
        db.table("profiles")
        .select("id, full_name, email, student_code")
        .in_("id", [a["student_id"] for a in assignments])
        .execute()
    ).data or []
    by_id = {s["id"]: s for s in students}
    rows = [{**a, "student": by_id.get(a["student_id"])} for a in assignments]
    rows.sort(key=lambda r: (r["student"] or {}).get("full_name") or "")
    return success_response(data=rows)


# ═══════════════════════════════════════════════════════════
# STUDENT ASSIGNMENTS
# ═══════════════════════════════════════════════════════════

def _adjust_student_count(db, class_id: str, delta: int):
    """Keep classes.current_students in step with assignments; a failure here is logged only."""
    try:
        row = db.table("classes").select("current_students").eq("id", class_id).maybe_single().execute()
        data = row.data if row and row.data else {}
        current = data.get("current_students") or 0
        db.table("classes").update({"current_students": max(0, current + delta)}).eq("id", class_id).execute()
    except APIError as e:
        logger.error("Could not update student count for class %s: %s", class_id, e.message)


@router.post("/assignments")
async def assign_student(
    body: ClassAssignmentCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    student = fetch_one("profiles", body.student_id, "id, role, full_name", not_found="Student not found")
    if student["role"] != "student":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Selected user is not a student")

    cls = fetch_one("classes", body.class_id, not_found="Class not found")
    if (cls.get("current_students") or 0) >= cls["max_students"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Class {cls['name']} is full")

    if body.assignment_type == "main" and cls.get("is_subject_combination"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A main assignment must use a regular class, not a subject-combination class",
        )
    if body.assignment_type == "combined" and not cls.get("is_subject_combination"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A combined assignment must use a subject-combination class",
        )

    existing = (
        db.table("student_class_assignments")
        .select("id")
        .eq("student_id", body.student_id)
        .eq("assignment_type", body.assignment_type)
        .eq("is_active", True)
        .execute()
    )
    if existing.data:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Student already has a {body.assignment_type} class assignment",
        )

    data = {
        **body.model_dump(),
        "academic_year_id": cls["academic_year_id"],
        "semester_id": cls["semester_id"],
        "is_active": True,
    }
    try:
        result = db.table("student_class_assignments").insert(data).execute()
    except APIError as e:
        raise_for_db_error(e, "Student is already assigned to this class")

    _adjust_student_count(db, body.class_id, 1)
    logger.info("Student %s assigned to class %s (%s)", student["full_name"], cls["name"], body.assignment_type)
    return success_response(data=result.data[0], message="Student assigned to class")


@router.delete("/assignments/{assignment_id}")
async def remove_assignment(
    assignment_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    assignment = fetch_one("student_class_assignments", assignment_id, not_found="Assignment not found")
    db.table("student_class_assignments").delete().eq("id", assignment_id).execute()
    if assignment.get("is_active", True):
        _adjust_student_count(db, assignment["class_id"], -1)
    return success_response(message="Student removed from class")
