"""
Subjects router — the school's subject catalogue.

Rules:
- Subject codes are unique and stored upper-case
- Only admins change the catalogue; every signed-in user can read it
- A subject already used by grades, timetable events or teaching
  assignments cannot be deleted, only deactivated
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.logging import get_logger
from schoolhub.core.security import get_current_user, require_role
from schoolhub.schemas.subjects import SubjectCreate, SubjectUpdate
from schoolhub.utils.response import page_bounds, paginated_response, success_response

logger = get_logger("subjects")

router = APIRouter(prefix="/api/subjects", tags=["Subjects"])

# Tables whose rows keep a subject alive
SUBJECT_REFERENCES = {
    "student_detailed_grades": "grades",
    "timetable_events": "timetable events",
    "teacher_class_assignments": "teaching assignments",
}


def _ensure_unique_code(db, code: str, exclude_id: Optional[str] = None):
    query = db.table("subjects").select("id").eq("code", code)
    if exclude_id:
        query = query.neq("id", exclude_id)
    if query.execute().data:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Subject code '{code}' already exists")


@router.post("")
async def create_subject(
    body: SubjectCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    _ensure_unique_code(db, body.code)

    data = {**body.model_dump(), "name": body.name.strip()}
    try:
        result = db.table("subjects").insert(data).execute()
    except APIError as e:
        raise_for_db_error(e, f"Subject code '{body.code}' already exists")

    logger.info("Subject %s (%s) created", data["name"], body.code)
    return success_response(data=result.data[0], message="Subject created")


@router.get("")
async def list_subjects(
    search: Optional[str] = None,
    subject_type: Optional[str] = None,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(get_current_user),
):
    db = get_supabase()
    query = db.table("subjects").select("*", count="exact")
    if search:
        query = query.ilike("name", f"%{search}%")
    if subject_type:
        query = query.eq("subject_type", subject_type)
    if category:
        query = query.eq("category", category)
    if is_active is not None:
        query = query.eq("is_active", is_active)

    start, end = page_bounds(page, limit)
    result = query.order("name").range(start, end).execute()
    return paginated_response(result.data, result.count or 0, page, limit)


@router.get("/{subject_id}")
async def get_subject(subject_id: str, user: dict = Depends(get_current_user)):
    return success_response(data=fetch_one("subjects", subject_id, not_found="Subject not found"))


@router.patch("/{subject_id}")
async def update_subject(
    subject_id: str,
    body: SubjectUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    current = fetch_one("subjects", subject_id, "id, code", not_found="Subject not found")
    update_data = body.model_dump(exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    if "name" in update_data:
        update_data["name"] = update_data["name"].strip()
    if update_data.get("code") and update_data["code"] != current.get("code"):
        _ensure_unique_code(db, update_data["code"], exclude_id=subject_id)

    update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
    try:
        result = db.table("subjects").update(update_data).eq("id", subject_id).execute()
    except APIError as e:
        raise_for_db_error(e, f"Subject code '{update_data.get('code')}' already exists")
    return success_response(data=result.data[0] if result.data else None, message="Subject updated")


@router.delete("/{subject_id}")
async def delete_subject(
    subject_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    subject = fetch_one("subjects", subject_id, "id, name", not_found="Subject not found")
    for table, label in SUBJECT_REFERENCES.items():
        if db.table(table).select("id").eq("subject_id", subject_id).limit(1).execute().data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Subject '{subject['name']}' is used by {label}; deactivate it instead",
            )

    db.table("subjects").delete().eq("id", subject_id).execute()
    logger.info("Subject %s deleted", subject["name"])
    return success_response(message="Subject deleted")
