"""
Violations router — conduct catalog, recorded student violations, parent
notices and weekly/monthly summaries.

Rules:
- Admin manages categories and types
- Admin records violations for any class; a homeroom teacher only for their own class
- week_index / month_index are counted from the semester start
- Parents see only their own children's violations
"""

from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from schoolhub.core.access import get_children_ids, get_homeroom_classes, get_user_id
from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.email import send_violation_notice_email
from schoolhub.core.logging import get_logger
from schoolhub.core.notify import notify_user
from schoolhub.core.security import get_current_user, require_role
from schoolhub.schemas.violations import (
    SEVERITY_LABELS, BulkViolationCreate, StudentViolationCreate, StudentViolationUpdate, ViolationCategoryCreate,
    ViolationCategoryUpdate, ViolationNotificationCreate, ViolationTypeCreate, ViolationTypeUpdate,
)
from schoolhub.utils.calendar import month_index, week_index
from schoolhub.utils.response import page_bounds, paginated_response, success_response

logger = get_logger("violations")

router = APIRouter(prefix="/api/violations", tags=["Violations"])

VIOLATION_SELECT = (
    "*, student:profiles!student_violations_student_id_fkey(full_name, student_code), "
    "classes(name), violation_types(name, points, violation_categories(name))"
)


def _with_label(violation: dict) -> dict:
    violation["severity_label"] = SEVERITY_LABELS.get(violation.get("severity"), violation.get("severity"))
    return violation


def _empty_page(page: int, limit: int) -> dict:
    return paginated_response([], 0, page, limit)


# ═══════════════════════════════════════════════════════════
# CATEGORIES & TYPES (Admin)
# ═══════════════════════════════════════════════════════════

@router.post("/categories")
async def create_category(
    body: ViolationCategoryCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    existing = db.table("violation_categories").select("id").eq("name", body.name).execute()
    if existing.data:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Category '{body.name}' already exists")
    try:
        result = db.table("violation_categories").insert({**body.model_dump(), "is_active": True}).execute()
    except APIError as e:
        raise_for_db_error(e, f"Category '{body.name}' already exists")
    return success_response(data=result.data[0], message="Violation category created")


@router.get("/categories")
async def list_categories(
    is_active: Optional[bool] = None,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    query = db.table("violation_categories").select("*")
    if is_active is not None:
        query = query.eq("is_active", is_active)
    result = query.order("name").execute()
    return success_response(data=result.data)


@router.patch("/categories/{category_id}")
async def update_category(
    category_id: str,
    body: ViolationCategoryUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    fetch_one("violation_categories", category_id, "id", not_found="Violation category not found")
    update_data = body.model_dump(exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    result = db.table("violation_categories").update(update_data).eq("id", category_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Violation category updated")


@router.post("/types")
async def create_type(
    body: ViolationTypeCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    category = fetch_one("violation_categories", body.category_id, "id, is_active", not_found="Violation category not found")
    if not category.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Violation category is inactive")

    try:
        result = db.table("violation_types").insert({**body.model_dump(), "is_active": True}).execute()
    except APIError as e:
        raise_for_db_error(e, f"Violation type '{body.name}' already exists")
    return success_response(data=result.data[0], message="Violation type created")


@router.get("/types")
async def list_types(
    category_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    query = db.table("violation_types").select("*, violation_categories(id, name)")
    if category_id:
        query = query.eq("category_id", category_id)
    if is_active is not None:
        query = query.eq("is_active", is_active)
    result = query.order("name").execute()
    return success_response(data=result.data)


@router.patch("/types/{type_id}")
async def update_type(
    type_id: str,
    body: ViolationTypeUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    fetch_one("violation_types", type_id, "id", not_found="Violation type not found")
    update_data = body.model_dump(exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    if "category_id" in update_data:
        fetch_one("violation_categories", update_data["category_id"], "id", not_found="Violation category not found")
    result = db.table("violation_types").update(update_data).eq("id", type_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Violation type updated")


@router.get("/catalog")
async def get_catalog(user: dict = Depends(get_current_user)):
    db = get_supabase()
    categories = db.table("violation_categories").select("*").eq("is_active", True).order("name").execute()
    types = db.table("violation_types").select("*").eq("is_active", True).order("name").execute()
    return success_response(data={"categories": categories.data, "types": types.data})


# ═══════════════════════════════════════════════════════════
# STUDENT VIOLATIONS
# ═══════════════════════════════════════════════════════════

def _ensure_can_record(user: dict, class_id: str) -> None:
    if user["role"] == "admin":
        return
    cls = fetch_one("classes", class_id, "id, homeroom_teacher_id", not_found="Class not found")
    if cls.get("homeroom_teacher_id") != get_user_id(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the homeroom teacher of this class can record violations",
        )


def _violation_rows(body, student_ids: list[str], recorded_by: str) -> list[dict]:
    vtype = fetch_one("violation_types", body.violation_type_id, "id, points, is_active", not_found="Violation type not found")
    if not vtype.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Violation type is inactive")
    semester = fetch_one("semesters", body.semester_id, "id, start_date", not_found="Semester not found")

    violation_date = body.violation_date or date.today()
    points = body.points if body.points is not None else vtype.get("points") or 0
    return [
        {
            "student_id": student_id,
            "class_id": body.class_id,
            "violation_type_id": body.violation_type_id,
            "severity": body.severity,
            "points": points,
            "description": body.description,
            "violation_date": violation_date.isoformat(),
            "academic_year_id": body.academic_year_id,
            "semester_id": body.semester_id,
            "week_index": week_index(semester["start_date"], violation_date),
            "month_index": month_index(semester["start_date"], violation_date),
            "recorded_by": recorded_by,
        }
        for student_id in student_ids
    ]


@router.post("")
async def create_violation(
    body: StudentViolationCreate,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    _ensure_can_record(user, body.class_id)
    student = fetch_one("profiles", body.student_id, "id, role", not_found="Student not found")
    if student["role"] != "student":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Selected user is not a student")

    db = get_supabase()
    rows = _violation_rows(body, [body.student_id], get_user_id(user))
    result = db.table("student_violations").insert(rows[0]).execute()
    logger.info("Violation recorded for student %s (week %s)", body.student_id, rows[0]["week_index"])
    return success_response(data=_with_label(result.data[0]), message="Violation recorded")


@router.post("/bulk")
async def create_violations_bulk(
    body: BulkViolationCreate,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    _ensure_can_record(user, body.class_id)
    student_ids = list(dict.fromkeys(body.student_ids))

    db = get_supabase()
    students = db.table("profiles").select("id").in_("id", student_ids).eq("role", "student").execute()
    found = {s["id"] for s in students.data or []}
    missing = [sid for sid in student_ids if sid not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown students: {', '.join(missing)}",
        )

    rows = _violation_rows(body, student_ids, get_user_id(user))
    result = db.table("student_violations").insert(rows).execute()
    logger.info("Recorded %d violations in class %s", len(rows), body.class_id)
    return success_response(
        data=[_with_label(v) for v in result.data or []],
        message=f"{len(rows)} violations recorded",
    )


@router.patch("/{violation_id}")
async def update_violation(
    violation_id: str,
    body: StudentViolationUpdate,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    violation = fetch_one("student_violations", violation_id, not_found="Violation not found")
    _ensure_can_record(user, violation["class_id"])
    update_data = body.model_dump(exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
    result = db.table("student_violations").update(update_data).eq("id", violation_id).execute()
    return success_response(data=_with_label(result.data[0]) if result.data else None, message="Violation updated")


@router.get("")
async def list_violations(
    search: Optional[str] = None,
    student_id: Optional[str] = None,
    class_id: Optional[str] = None,
    severity: Optional[str] = None,
    category_id: Optional[str] = None,
    academic_year_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    week_index: Optional[int] = Query(None, ge=1),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    query = db.table("student_violations").select(VIOLATION_SELECT, count="exact")

    if category_id:
        types = db.table("violation_types").select("id").eq("category_id", category_id).execute()
        type_ids = [t["id"] for t in types.data or []]
        if not type_ids:
            return _empty_page(page, limit)
        query = query.in_("violation_type_id", type_ids)

    if search:
        matches = (
            db.table("profiles")
            .select("id")
            .eq("role", "student")
            .ilike("full_name", f"%{search}%")
            .execute()
        )
        matched_ids = [m["id"] for m in matches.data or []]
        if not matched_ids:
            return _empty_page(page, limit)
        query = query.in_("student_id", matched_ids)

    for column, value in (
        ("student_id", student_id),
        ("class_id", class_id),
        ("severity", severity),
        ("academic_year_id", academic_year_id),
        ("semester_id", semester_id),
        ("week_index", week_index),
    ):
        if value is not None:
            query = query.eq(column, value)
    if date_from:
        query = query.gte("violation_date", date_from.isoformat())
    if date_to:
        query = query.lte("violation_date", date_to.isoformat())

    start, end = page_bounds(page, limit)
    result = query.order("violation_date", desc=True).range(start, end).execute()
    return paginated_response([_with_label(v) for v in result.data or []], result.count or 0, page, limit)


@router.get("/homeroom")
async def list_homeroom_violations(
    semester_id: Optional[str] = None,
    week_index: Optional[int] = Query(None, ge=1),
    student_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(require_role(["teacher"])),
):
    classes = get_homeroom_classes(get_user_id(user), semester_id)
    if not classes:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a homeroom teacher of any class")

    db = get_supabase()
    query = (
        db.table("student_violations")
        .select(VIOLATION_SELECT, count="exact")
        .in_("class_id", [c["id"] for c in classes])
    )
    if semester_id:
        query = query.eq("semester_id", semester_id)
    if week_index is not None:
        query = query.eq("week_index", week_index)
    if student_id:
        query = query.eq("student_id", student_id)

    start, end = page_bounds(page, limit)
    result = query.order("violation_date", desc=True).range(start, end).execute()
    return paginated_response([_with_label(v) for v in result.data or []], result.count or 0, page, limit)


@router.get("/parent")
async def list_parent_violations(
    student_id: Optional[str] = None,
    week: Optional[int] = Query(None, ge=1),
    severity: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(require_role(["parent"])),
):
    children = get_children_ids(get_user_id(user))
    if not children:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No students are linked to your account")
    if student_id and student_id not in children:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view violations of your own children",
        )

    db = get_supabase()
    query = db.table("student_violations").select(VIOLATION_SELECT, count="exact")
    query = query.eq("student_id", student_id) if student_id else query.in_("student_id", children)
    if week is not None:
        query = query.eq("week_index", week)
    if severity:
        query = query.eq("severity", severity)

    start, end = page_bounds(page, limit)
    result = query.order("violation_date", desc=True).range(start, end).execute()
    return paginated_response([_with_label(v) for v in result.data or []], result.count or 0, page, limit)


# ═══════════════════════════════════════════════════════════
# PARENT NOTICES (homeroom teacher)
# ═══════════════════════════════════════════════════════════

@router.post("/notifications")
async def notify_parent(
    body: ViolationNotificationCreate,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_user_id(user)
    violation = fetch_one("student_violations", body.violation_id, not_found="Violation not found")
    cls = fetch_one("classes", violation["class_id"], "id, name, homeroom_teacher_id", not_found="Class not found")
    if cls.get("homeroom_teacher_id") != teacher_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only send notices for violations in your homeroom class",
        )
    if violation["student_id"] not in get_children_ids(body.parent_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This parent is not linked to the student",
        )

    now = datetime.now(timezone.utc).isoformat()
    result = db.table("violation_notifications").insert({
        "violation_id": body.violation_id,
        "student_id": violation["student_id"],
        "parent_id": body.parent_id,
        "teacher_id": teacher_id,
        "sent_at": now,
        "is_read": False,
    }).execute()

    parent = fetch_one("profiles", body.parent_id, "id, full_name, email", not_found="Parent not found")
    student = fetch_one("profiles", violation["student_id"], "id, full_name", not_found="Student not found")
    vtype = fetch_one("violation_types", violation["violation_type_id"], "id, name", not_found="Violation type not found")
    severity_label = SEVERITY_LABELS.get(violation["severity"], violation["severity"])

    notify_user(
        teacher_id, body.parent_id, "parent",
        f"Conduct notice for {student['full_name']}",
        f"{vtype['name']} ({severity_label}) on {violation['violation_date']}.",
    )
    background_tasks.add_task(
        send_violation_notice_email,
        parent.get("email"), parent.get("full_name", ""), student["full_name"],
        vtype["name"], severity_label, violation["violation_date"],
    )

    return success_response(data=result.data[0], message="Notice sent to parent")


# ═══════════════════════════════════════════════════════════
# SUMMARIES
# ═══════════════════════════════════════════════════════════

def summarize_by_student(violations: list[dict]) -> list[dict]:
    """Per-student totals, highest points first."""
    totals = defaultdict(lambda: {"count": 0, "total_points": 0, "by_severity": {s: 0 for s in SEVERITY_LABELS}})
    for v in violations:
        entry = totals[v["student_id"]]
        entry["count"] += 1
        entry["total_points"] += v.get("points") or 0
        if v.get("severity") in entry["by_severity"]:
            entry["by_severity"][v["severity"]] += 1
    rows = [{"student_id": student_id, **entry} for student_id, entry in totals.items()]
    rows.sort(key=lambda r: (-r["total_points"], -r["count"]))
    return rows


def _summary(user: dict, semester_id: str, column: str, index: int, class_id: Optional[str]) -> list[dict]:
    db = get_supabase()
    query = (
        db.table("student_violations")
        .select("student_id, class_id, severity, points")
        .eq("semester_id", semester_id)
        .eq(column, index)
    )
    if class_id:
        query = query.eq("class_id", class_id)
    elif user["role"] == "teacher":
        class_ids = [c["id"] for c in get_homeroom_classes(get_user_id(user), semester_id)]
        if not class_ids:
            return []
        query = query.in_("class_id", class_ids)

    rows = summarize_by_student(query.execute().data or [])
    if rows:
        students = (
            db.table("profiles")
            .select("id, full_name, student_code")
            .in_("id", [r["student_id"] for r in rows])
            .execute()
        ).data or []
        by_id = {s["id"]: s for s in students}
        for row in rows:
            row["student"] = by_id.get(row["student_id"])
    return rows


@router.get("/summary/weekly")
async def weekly_summary(
    semester_id: str,
    week_index: int = Query(..., ge=1),
    class_id: Optional[str] = None,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    return success_response(data=_summary(user, semester_id, "week_index", week_index, class_id))


@router.get("/summary/monthly")
async def monthly_summary(
    semester_id: str,
    month_index: int = Query(..., ge=1),
    class_id: Optional[str] = None,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    return success_response(data=_summary(user, semester_id, "month_index", month_index, class_id))
