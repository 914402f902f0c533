"""
Grades router — reporting periods, Excel import/export, detailed grade edits
and the admin → homeroom teacher → parent submission workflow.

Grades are stored one component per row in student_detailed_grades:
regular_1..N, midterm, final, summary, semester_1, semester_2, yearly.

Deadlines:
- import_deadline closes spreadsheet imports for the period
- edit_deadline closes individual edits
Every individual edit leaves a row in grade_audit_logs.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from postgrest.exceptions import APIError

from schoolhub.core.access import ensure_parent_of, get_children_ids, get_homeroom_classes, get_user_id, teacher_teaches
from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.logging import get_logger
from schoolhub.core.notify import notify_user
from schoolhub.core.security import get_current_user, require_role
from schoolhub.schemas.grades import (
    DetailedGradeUpdate, GradePeriodCreate, GradePeriodUpdate, GradeSubmissionCreate, SendToHomeroom,
    SubmissionGrades,
)
from schoolhub.utils.calendar import ranges_overlap, to_date, to_datetime
from schoolhub.utils.grade_excel import (
    COMPONENT_TYPES, XLSX_MEDIA_TYPE, GradeSheetError, TemplateConfig, build_grade_export, build_template,
    parse_grade_sheet,
)
from schoolhub.utils.grades import (
    classify, grade_distribution, overall_average, period_average, regular_grade_count, subject_average,
)
from schoolhub.utils.response import attachment_headers, page_bounds, paginated_response, success_response

logger = get_logger("grades")

router = APIRouter(prefix="/api/grades", tags=["Grades"])

GRADE_CONFLICT_COLUMNS = "period_id,student_id,subject_id,class_id,component_type"
ATTRIBUTE_BY_COMPONENT = {component: attr for attr, component in COMPONENT_TYPES.items()}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_open(period: dict, operation: str) -> None:
    if not period.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This grade period is not active")
    deadline = period.get(f"{operation}_deadline")
    if deadline and _now() > to_datetime(deadline):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"The {operation} deadline for this grade period has passed",
        )


def _ensure_teaches(user: dict, class_id: str, subject_id: str) -> None:
    if user["role"] == "teacher" and not teacher_teaches(get_user_id(user), class_id, subject_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not assigned to teach this subject in this class",
        )


def _ensure_no_overlap(db, academic_year_id, semester_id, start, end, exclude_id: Optional[str] = None):
    query = (
        db.table("grade_reporting_periods")
        .select("id, name, start_date, end_date")
        .eq("academic_year_id", academic_year_id)
        .eq("semester_id", semester_id)
        .eq("is_active", True)
    )
    if exclude_id:
        query = query.neq("id", exclude_id)
    for other in query.execute().data or []:
        if ranges_overlap(start, end, other["start_date"], other["end_date"]):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Dates overlap with the active grade period '{other['name']}'",
            )


# ═══════════════════════════════════════════════════════════
# REPORTING PERIODS
# ═══════════════════════════════════════════════════════════

@router.post("/periods")
async def create_period(
    body: GradePeriodCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    _ensure_no_overlap(db, body.academic_year_id, body.semester_id, body.start_date, body.end_date)

    data = {**body.model_dump(mode="json"), "is_active": True, "created_by": get_user_id(user)}
    try:
        result = db.table("grade_reporting_periods").insert(data).execute()
    except APIError as e:
        raise_for_db_error(e, f"Grade period '{body.name}' already exists")

    logger.info("Grade period %s (%s) created", body.name, body.period_type)
    return success_response(data=result.data[0], message="Grade period created")


@router.get("/periods")
async def list_periods(
    academic_year_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    query = db.table("grade_reporting_periods").select("*, academic_years(name), semesters(name)", count="exact")
    if academic_year_id:
        query = query.eq("academic_year_id", academic_year_id)
    if semester_id:
        query = query.eq("semester_id", semester_id)
    if is_active is not None:
        query = query.eq("is_active", is_active)

    start, end = page_bounds(page, limit)
    result = query.order("start_date", desc=True).range(start, end).execute()
    return paginated_response(result.data, result.count or 0, page, limit)


@router.get("/periods/{period_id}")
async def get_period(period_id: str, user: dict = Depends(require_role(["admin", "teacher"]))):
    return success_response(data=fetch_one("grade_reporting_periods", period_id, not_found="Grade period not found"))


@router.patch("/periods/{period_id}")
async def update_period(
    period_id: str,
    body: GradePeriodUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    current = fetch_one("grade_reporting_periods", period_id, not_found="Grade period not found")
    update_data = body.model_dump(mode="json", exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    merged = {**current, **update_data}
    if to_date(merged["end_date"]) <= to_date(merged["start_date"]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")
    if to_datetime(merged["import_deadline"]) > to_datetime(merged["edit_deadline"]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Import deadline must not be later than the edit deadline",
        )
    if to_datetime(merged["import_deadline"]).date() > to_date(merged["end_date"]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Import deadline must not be later than the period end date",
        )

    if merged.get("is_active", True) and (
        "start_date" in update_data or "end_date" in update_data or update_data.get("is_active")
    ):
        _ensure_no_overlap(
            db, current["academic_year_id"], current["semester_id"],
            merged["start_date"], merged["end_date"], exclude_id=period_id,
        )

    update_data["updated_at"] = _now().isoformat()
    result = db.table("grade_reporting_periods").update(update_data).eq("id", period_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Grade period updated")


@router.delete("/periods/{period_id}")
async def delete_period(
    period_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    fetch_one("grade_reporting_periods", period_id, "id", not_found="Grade period not found")
    grades = db.table("student_detailed_grades").select("id").eq("period_id", period_id).limit(1).execute()
    if grades.data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This grade period already has grades; deactivate it instead",
        )
    db.table("grade_reporting_periods").delete().eq("id", period_id).execute()
    return success_response(message="Grade period deleted")


@router.get("/periods/{period_id}/permissions")
async def check_period_permissions(
    period_id: str,
    operation: Literal["import", "edit"] = "import",
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    period = fetch_one("grade_reporting_periods", period_id, not_found="Grade period not found")
    _ensure_open(period, operation)
    return success_response(data=period, message=f"Grade {operation} is open")


# ═══════════════════════════════════════════════════════════
# GRADE SHEETS (template, import, view, export)
# ═══════════════════════════════════════════════════════════

def _class_roster(db, class_id: str) -> list[dict]:
    assignments = (
        db.table("student_class_assignments")
        .select("student_id")
        .eq("class_id", class_id)
        .eq("is_active", True)
        .execute()
    ).data or []
    if not assignments:
        return []
    students = (
        db.table("profiles")
        .select("id, full_name, student_code")
        .in_("id", [a["student_id"] for a in assignments])
        .execute()
    ).data or []
    roster = [
        {"student_id": s["id"], "student_code": s.get("student_code") or "", "full_name": s.get("full_name") or ""}
        for s in students
    ]
    return sorted(roster, key=lambda s: s["full_name"])


def _sheet_context(period_id: str, class_id: str, subject_id: str) -> tuple[dict, dict, dict]:
    period = fetch_one("grade_reporting_periods", period_id, not_found="Grade period not found")
    cls = fetch_one("classes", class_id, "id, name", not_found="Class not found")
    subject = fetch_one("subjects", subject_id, "id, name, code", not_found="Subject not found")
    return period, cls, subject


def _empty_components(regular_count: int) -> dict:
    components = {attr: None for attr in COMPONENT_TYPES}
    components["regular_grades"] = [None] * regular_count
    components["grade_ids"] = {}
    return components


def _apply_component(components: dict, grade: dict) -> None:
    component = grade["component_type"]
    value = grade.get("grade_value")
    components["grade_ids"][component] = grade["id"]
    if component.startswith("regular_"):
        index = int(component.split("_", 1)[1]) - 1
        regular = components["regular_grades"]
        if index >= len(regular):
            regular.extend([None] * (index + 1 - len(regular)))
        regular[index] = value
    elif component in ATTRIBUTE_BY_COMPONENT:
        components[ATTRIBUTE_BY_COMPONENT[component]] = value


def _grade_sheet_rows(db, period: dict, class_id: str, subject_id: str, regular_count: int) -> list[dict]:
    roster = _class_roster(db, class_id)
    grades = (
        db.table("student_detailed_grades")
        .select("id, student_id, component_type, grade_value, is_locked")
        .eq("period_id", period["id"])
        .eq("class_id", class_id)
        .eq("subject_id", subject_id)
        .execute()
    ).data or []

    by_student = {s["student_id"]: {**s, **_empty_components(regular_count)} for s in roster}
    for grade in grades:
        row = by_student.get(grade["student_id"])
        if row is not None:
            _apply_component(row, grade)

    rows = list(by_student.values())
    for row in rows:
        row["average"] = period_average(period["period_type"], row)
    return rows


@router.get("/periods/{period_id}/template")
async def download_template(
    period_id: str,
    class_id: str,
    subject_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    period, cls, subject = _sheet_context(period_id, class_id, subject_id)
    _ensure_teaches(user, class_id, subject_id)

    content = build_template(TemplateConfig(
        period_type=period["period_type"],
        subject_name=subject["name"],
        class_name=cls["name"],
        students=_class_roster(db, class_id),
        regular_grade_count=regular_grade_count(subject.get("code")),
    ))
    filename = f"grades_{cls['name']}_{subject.get('code') or subject['name']}_{period['period_type']}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers=attachment_headers(filename),
    )


@router.post("/periods/{period_id}/import")
async def import_grades(
    period_id: str,
    class_id: str = Form(...),
    subject_id: str = Form(...),
    file: UploadFile = File(...),
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    period, cls, subject = _sheet_context(period_id, class_id, subject_id)
    _ensure_open(period, "import")
    _ensure_teaches(user, class_id, subject_id)

    if not (file.filename or "").lower().endswith(".xlsx"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only .xlsx files can be imported")
    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File exceeds the {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit",
        )

    try:
        sheet = parse_grade_sheet(
            content, period["period_type"], regular_grade_count(subject.get("code")), _class_roster(db, class_id),
        )
    except GradeSheetError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    locked = {
        (g["student_id"], g["component_type"])
        for g in (
            db.table("student_detailed_grades")
            .select("student_id, component_type")
            .eq("period_id", period_id)
            .eq("class_id", class_id)
            .eq("subject_id", subject_id)
            .eq("is_locked", True)
            .execute()
        ).data or []
    }

    errors = [e.as_dict() for e in sheet.errors]
    entries = []
    students = set()
    user_id = get_user_id(user)
    for row in sheet.rows:
        skipped = [component for component, _ in row.components() if (row.student_id, component) in locked]
        if skipped:
            errors.append({
                "row": row.row_number,
                "student": row.student_code or row.full_name,
                "errors": [f"{component}: grade is locked and was not changed" for component in skipped],
            })
        for component, value in row.components():
            if (row.student_id, component) in locked:
                continue
            entries.append({
                "period_id": period_id,
                "student_id": row.student_id,
                "subject_id": subject_id,
                "class_id": class_id,
                "component_type": component,
                "grade_value": value,
                "created_by": user_id,
            })
            students.add(row.student_id)

    if entries:
        db.table("student_detailed_grades").upsert(entries, on_conflict=GRADE_CONFLICT_COLUMNS).execute()

    logger.info(
        "Imported %d grades for %d students (%s, %s, %s); %d row errors",
        len(entries), len(students), cls["name"], subject["name"], period["period_type"], len(errors),
    )
    return success_response(
        data={
            "imported_students": len(students),
            "imported_grades": len(entries),
            "total_rows": sheet.total_rows,
            "errors": errors,
        },
        message="Grades imported" if not errors else "Grades imported with errors",
    )


@router.get("/periods/{period_id}/classes/{class_id}/subjects/{subject_id}")
async def get_grade_sheet(
    period_id: str,
    class_id: str,
    subject_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    period, cls, subject = _sheet_context(period_id, class_id, subject_id)
    regular_count = regular_grade_count(subject.get("code"))
    rows = _grade_sheet_rows(db, period, class_id, subject_id, regular_count)
    averages = [row["average"] for row in rows]

    return success_response(data={
        "period": period,
        "class": cls,
        "subject": subject,
        "regular_grade_count": regular_count,
        "students": rows,
        "statistics": {
            "total_students": len(rows),
            "graded_students": sum(1 for a in averages if a is not None),
            "class_average": overall_average(averages),
            "distribution": grade_distribution(averages),
        },
    })


@router.get("/periods/{period_id}/classes/{class_id}/subjects/{subject_id}/export")
async def export_grade_sheet(
    period_id: str,
    class_id: str,
    subject_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    period, cls, subject = _sheet_context(period_id, class_id, subject_id)
    regular_count = regular_grade_count(subject.get("code"))
    rows = _grade_sheet_rows(db, period, class_id, subject_id, regular_count)

    content = build_grade_export(
        TemplateConfig(
            period_type=period["period_type"],
            subject_name=subject["name"],
            class_name=cls["name"],
            regular_grade_count=regular_count,
        ),
        rows,
    )
    filename = f"grades_{cls['name']}_{subject.get('code') or subject['name']}_{period['period_type']}_export.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers=attachment_headers(filename),
    )


# ═══════════════════════════════════════════════════════════
# DETAILED GRADE EDITS
# ═══════════════════════════════════════════════════════════

@router.patch("/detailed/{grade_id}")
async def update_detailed_grade(
    grade_id: str,
    body: DetailedGradeUpdate,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    grade = fetch_one("student_detailed_grades", grade_id, not_found="Grade not found")
    period = fetch_one("grade_reporting_periods", grade["period_id"], not_found="Grade period not found")
    _ensure_open(period, "edit")
    _ensure_teaches(user, grade["class_id"], grade["subject_id"])
    if grade.get("is_locked"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This grade is locked and cannot be edited")

    user_id = get_user_id(user)
    now = _now().isoformat()
    result = (
        db.table("student_detailed_grades")
        .update({"grade_value": body.grade_value, "updated_by": user_id, "updated_at": now})
        .eq("id", grade_id)
        .execute()
    )
    db.table("grade_audit_logs").insert({
        "grade_id": grade_id,
        "old_value": grade.get("grade_value"),
        "new_value": body.grade_value,
        "change_reason": body.change_reason,
        "changed_by": user_id,
        "changed_at": now,
    }).execute()

    logger.info("Grade %s changed %s -> %s by %s", grade_id, grade.get("grade_value"), body.grade_value, user["email"])
    return success_response(data=result.data[0] if result.data else None, message="Grade updated")


@router.get("/detailed/{grade_id}/audit")
async def get_grade_audit(
    grade_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    fetch_one("student_detailed_grades", grade_id, "id", not_found="Grade not found")
    result = (
        db.table("grade_audit_logs")
        .select("*, changed_by_profile:profiles!grade_audit_logs_changed_by_fkey(full_name)")
        .eq("grade_id", grade_id)
        .order("changed_at", desc=True)
        .execute()
    )
    return success_response(data=result.data)


# ═══════════════════════════════════════════════════════════
# STUDENT SUMMARY
# ═══════════════════════════════════════════════════════════

@router.get("/students/{student_id}/summary")
async def get_student_summary(
    student_id: str,
    period_id: str,
    user: dict = Depends(get_current_user),
):
    if user["role"] == "student" and student_id != get_user_id(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own grades")
    if user["role"] == "parent":
        ensure_parent_of(get_user_id(user), student_id)

    db = get_supabase()
    student = fetch_one("profiles", student_id, "id, full_name, student_code", not_found="Student not found")
    period = fetch_one("grade_reporting_periods", period_id, not_found="Grade period not found")

    grades = (
        db.table("student_detailed_grades")
        .select("id, subject_id, component_type, grade_value")
        .eq("period_id", period_id)
        .eq("student_id", student_id)
        .execute()
    ).data or []
    subject_ids = list({g["subject_id"] for g in grades})
    subjects = (
        db.table("subjects").select("id, name, code").in_("id", subject_ids).execute().data or []
    ) if subject_ids else []

    per_subject = {}
    for subject in subjects:
        per_subject[subject["id"]] = {
            "subject": subject,
            **_empty_components(regular_grade_count(subject.get("code"))),
        }
    for grade in grades:
        if grade["subject_id"] in per_subject:
            _apply_component(per_subject[grade["subject_id"]], grade)

    rows = sorted(per_subject.values(), key=lambda r: r["subject"]["name"])
    for row in rows:
        row["average"] = period_average(period["period_type"], row)
    overall = overall_average(row["average"] for row in rows)

    return success_response(data={
        "student": student,
        "period": period,
        "subjects": rows,
        "overall_average": overall,
        "classification": classify(overall) if overall is not None else None,
    })


# ═══════════════════════════════════════════════════════════
# SUBMISSION WORKFLOW (admin → homeroom teacher → parent)
# ═══════════════════════════════════════════════════════════

SUBMISSION_SELECT = (
    "*, student:profiles!student_grade_submissions_student_id_fkey(full_name, student_code), "
    "classes(name), individual_subject_grades(*, subjects(name, code))"
)


def _with_overall(submission: dict) -> dict:
    grades = submission.get("individual_subject_grades") or []
    submission["overall_average"] = overall_average(g.get("average_grade") for g in grades)
    return submission


@router.post("/submissions")
async def create_submission(
    body: GradeSubmissionCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    existing = (
        db.table("student_grade_submissions")
        .select("id")
        .eq("academic_year_id", body.academic_year_id)
        .eq("semester_id", body.semester_id)
        .eq("class_id", body.class_id)
        .eq("student_id", body.student_id)
        .execute()
    )
    if existing.data:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A grade submission already exists for this student this semester",
        )

    data = {**body.model_dump(), "status": "draft", "created_by": get_user_id(user)}
    try:
        result = db.table("student_grade_submissions").insert(data).execute()
    except APIError as e:
        raise_for_db_error(e, "A grade submission already exists for this student this semester")
    return success_response(data=result.data[0], message="Grade submission created")


@router.post("/submissions/{submission_id}/grades")
async def submit_subject_grades(
    submission_id: str,
    body: SubmissionGrades,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    submission = fetch_one("student_grade_submissions", submission_id, not_found="Grade submission not found")
    if submission["status"] == "sent_to_teacher":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This submission was already sent to the homeroom teacher",
        )

    rows = [
        {
            "submission_id": submission_id,
            "subject_id": g.subject_id,
            "midterm_grade": g.midterm_grade,
            "final_grade": g.final_grade,
            "average_grade": subject_average([], g.midterm_grade, g.final_grade),
            "notes": g.notes,
        }
        for g in body.grades
    ]
    result = db.table("individual_subject_grades").upsert(rows, on_conflict="submission_id,subject_id").execute()
    db.table("student_grade_submissions").update({
        "status": "submitted",
        "submitted_at": _now().isoformat(),
    }).eq("id", submission_id).execute()

    return success_response(data=result.data, message="Grades submitted")


@router.get("/submissions")
async def list_submissions(
    class_id: Optional[str] = None,
    academic_year_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    query = db.table("student_grade_submissions").select(SUBMISSION_SELECT)
    if class_id:
        query = query.eq("class_id", class_id)
    if academic_year_id:
        query = query.eq("academic_year_id", academic_year_id)
    if semester_id:
        query = query.eq("semester_id", semester_id)
    result = query.order("created_at", desc=True).execute()
    return success_response(data=[_with_overall(s) for s in result.data or []])


@router.post("/submissions/send-to-homeroom")
async def send_to_homeroom(
    body: SendToHomeroom,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    cls = fetch_one("classes", body.class_id, "id, name, homeroom_teacher_id", not_found="Class not found")
    teacher_id = cls.get("homeroom_teacher_id")
    if not teacher_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Class {cls['name']} has no homeroom teacher")

    submitted = (
        db.table("student_grade_submissions")
        .select("id")
        .eq("class_id", body.class_id)
        .eq("academic_year_id", body.academic_year_id)
        .eq("semester_id", body.semester_id)
        .eq("status", "submitted")
        .execute()
    ).data or []
    if not submitted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="There are no submitted grades to send")

    now = _now().isoformat()
    user_id = get_user_id(user)
    summary = db.table("class_grade_summaries").insert({
        "class_id": body.class_id,
        "academic_year_id": body.academic_year_id,
        "semester_id": body.semester_id,
        "homeroom_teacher_id": teacher_id,
        "total_students": len(submitted),
        "sent_by": user_id,
        "sent_at": now,
    }).execute()

    (
        db.table("student_grade_submissions")
        .update({"status": "sent_to_teacher", "sent_to_teacher_at": now})
        .in_("id", [s["id"] for s in submitted])
        .execute()
    )

    notify_user(
        user_id, teacher_id, "teacher",
        f"Grades for class {cls['name']} are ready",
        f"The school office has sent the grades of {len(submitted)} students in class {cls['name']} for review.",
    )

    logger.info("Sent %d grade submissions of class %s to homeroom teacher", len(submitted), cls["name"])
    return success_response(
        data={"summary": summary.data[0] if summary.data else None, "sent_count": len(submitted)},
        message="Grades sent to homeroom teacher",
    )


@router.get("/submissions/homeroom")
async def list_homeroom_submissions(user: dict = Depends(require_role(["teacher"]))):
    class_ids = [c["id"] for c in get_homeroom_classes(get_user_id(user))]
    if not class_ids:
        return success_response(data=[])

    db = get_supabase()
    result = (
        db.table("student_grade_submissions")
        .select(SUBMISSION_SELECT)
        .in_("class_id", class_ids)
        .eq("status", "sent_to_teacher")
        .order("sent_to_teacher_at", desc=True)
        .execute()
    )
    return success_response(data=[_with_overall(s) for s in result.data or []])


@router.get("/submissions/parent")
async def list_parent_submissions(user: dict = Depends(require_role(["parent"]))):
    children = get_children_ids(get_user_id(user))
    if not children:
        return success_response(data=[])

    db = get_supabase()
    result = (
        db.table("student_grade_submissions")
        .select(SUBMISSION_SELECT)
        .in_("student_id", children)
        .eq("status", "sent_to_teacher")
        .order("sent_to_teacher_at", desc=True)
        .execute()
    )
    return success_response(data=[_with_overall(s) for s in result.data or []])
