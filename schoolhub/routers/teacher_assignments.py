"""
Teacher assignments router — which teacher teaches which subject in which class.

These rows decide who may import and edit grades for a class/subject and
which classes appear in a teacher's timetable and violation views.

Rules:
- Only active teachers can be assigned, and only to active subjects
- One active assignment per (teacher, class, subject); assigning again
  after removal reactivates the old row
- Removing an assignment deactivates it so grade history keeps its author
"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from schoolhub.core.access import get_user_id
from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.logging import get_logger
from schoolhub.core.security import require_role
from schoolhub.schemas.subjects import TeacherAssignmentCreate
from schoolhub.utils.response import page_bounds, paginated_response, success_response

logger = get_logger("teacher_assignments")

router = APIRouter(prefix="/api/teacher-assignments", tags=["Teacher Assignments"])


def _validate_teacher(db, teacher_id: str) -> dict:
    result = (
        db.table("profiles")
        .select("id, full_name, role, is_active")
        .eq("id", teacher_id)
        .maybe_single()
        .execute()
    )
    teacher = result.data if result else None
    if not teacher or teacher["role"] != "teacher" or not teacher.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assignments need an active teacher")
    return teacher


@router.post("")
async def create_assignment(
    body: TeacherAssignmentCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    teacher = _validate_teacher(db, body.teacher_id)
    cls = fetch_one("classes", body.class_id, "id, name", not_found="Class not found")
    subject = fetch_one("subjects", body.subject_id, "id, name, is_active", not_found="Subject not found")
    if not subject.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Subject '{subject['name']}' is not active",
        )

    existing = (
        db.table("teacher_class_assignments")
        .select("id, is_active")
        .eq("teacher_id", body.teacher_id)
        .eq("class_id", body.class_id)
        .eq("subject_id", body.subject_id)
        .limit(1)
        .execute()
    ).data
    if existing and existing[0].get("is_active"):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{teacher['full_name']} already teaches {subject['name']} in class {cls['name']}",
        )

    data = {
        **body.model_dump(),
        "is_active": True,
        "assigned_by": get_user_id(user),
        "assigned_date": date.today().isoformat(),
    }
    try:
        if existing:
            data["updated_at"] = datetime.now(timezone.utc).isoformat()
            result = db.table("teacher_class_assignments").update(data).eq("id", existing[0]["id"]).execute()
        else:
            result = db.table("teacher_class_assignments").insert(data).execute()
    except APIError as e:
        raise_for_db_error(e, "This teacher already has this assignment")

    logger.info("%s assigned to %s in class %s", teacher["full_name"], subject["name"], cls["name"])
    return success_response(data=result.data[0] if result.data else None, message="Teacher assigned")


@router.get("")
async def list_assignments(
    teacher_id: Optional[str] = None,
    class_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    is_active: Optional[bool] = True,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    # Teachers only ever see their own assignments
    if user["role"] == "teacher":
        teacher_id = get_user_id(user)

    db = get_supabase()
    query = db.table("teacher_class_assignments").select(
        "*, classes(name), subjects(name, code), "
        "teacher:profiles!teacher_class_assignments_teacher_id_fkey(full_name, email)",
        count="exact",
    )
    if teacher_id:
        query = query.eq("teacher_id", teacher_id)
    if class_id:
        query = query.eq("class_id", class_id)
    if subject_id:
        query = query.eq("subject_id", subject_id)
    if is_active is not None:
        query = query.eq("is_active", is_active)

    start, end = page_bounds(page, limit)
    result = query.order("created_at", desc=True).range(start, end).execute()
    return paginated_response(result.data, result.count or 0, page, limit)


@router.delete("/{assignment_id}")
async def remove_assignment(
    assignment_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    assignment = fetch_one("teacher_class_assignments", assignment_id, not_found="Teacher assignment not found")
    if not assignment.get("is_active"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This assignment was already removed")

    db.table("teacher_class_assignments").update({
        "is_active": False,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }).eq("id", assignment_id).execute()
    logger.info("Teacher assignment %s removed", assignment_id)
    return success_response(message="Teacher assignment removed")
