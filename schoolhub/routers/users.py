"""
Users router — school profiles and parent/student links.

Admin can:
- Create profiles for teachers, students, parents and other admins
- Update whitelisted profile fields, deactivate profiles
- Link parents to their children
Parents can list their own children with their current class.
"""

import secrets
import string
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from schoolhub.core.access import get_children_ids, get_user_id
from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.email import send_welcome_email
from schoolhub.core.logging import get_logger
from schoolhub.core.security import get_password_hash, init_firebase, require_role
from schoolhub.schemas.users import ParentStudentLink, UserCreate, UserUpdate
from schoolhub.utils.response import page_bounds, paginated_response, success_response

logger = get_logger("users")

router = APIRouter(prefix="/api/users", tags=["Users"])

PUBLIC_COLUMNS = "id, email, full_name, role, student_code, employee_code, phone, homeroom_enabled, is_active, created_at"
TEMP_PASSWORD_LENGTH = 8


def _temp_password() -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(TEMP_PASSWORD_LENGTH))


def _discard_firebase_user(uid: str) -> None:
    """Remove a Firebase account whose profile row could not be written."""
    from firebase_admin import auth as fb_auth
    from firebase_admin.exceptions import FirebaseError

    try:
        fb_auth.delete_user(uid)
    except (ValueError, FirebaseError) as e:
        logger.error("Orphaned Firebase user %s could not be removed: %s", uid, e)
    else:
        logger.warning("Firebase user %s removed after the profile insert failed", uid)


# ═══════════════════════════════════════════════════════════
# PROFILES (Admin)
# ═══════════════════════════════════════════════════════════

@router.post("")
async def create_user(
    body: UserCreate,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    email = body.email.lower()

    existing = db.table("profiles").select("id").eq("email", email).maybe_single().execute()
    if existing and existing.data:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"User with email '{email}' already exists")

    generated = body.password is None
    password = body.password or _temp_password()
    firebase_uid = f"mock-{email}"

    # In Firebase mode, create the Firebase user too
    if settings.AUTH_MODE == "firebase":
        from firebase_admin import auth as fb_auth
        from firebase_admin.exceptions import FirebaseError

        init_firebase()
        try:
            fb_user = fb_auth.create_user(email=email, password=password, display_name=body.full_name)
        except (ValueError, FirebaseError) as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Firebase user creation failed: {e}")
        firebase_uid = fb_user.uid

    profile = {
        "email": email,
        "full_name": body.full_name,
        "role": body.role,
        "student_code": body.student_code,
        "employee_code": body.employee_code,
        "phone": body.phone,
        "homeroom_enabled": body.homeroom_enabled if body.role == "teacher" else False,
        "firebase_uid": firebase_uid,
        "is_active": True,
        "password_hash": get_password_hash(password),
        "requires_password_reset": generated,
    }
    try:
        result = db.table("profiles").insert(profile).execute()
    except APIError as e:
        if settings.AUTH_MODE == "firebase":
            _discard_firebase_user(firebase_uid)
        raise_for_db_error(e, f"User with email '{email}' already exists")
    created = {k: v for k, v in result.data[0].items() if k != "password_hash"}

    if generated:
        background_tasks.add_task(send_welcome_email, email, body.full_name, body.role, password)

    logger.info("Profile %s created with role %s", email, body.role)
    return success_response(
        data={"user": created, "temp_password": password if generated else None},
        message="User created",
    )


@router.get("")
async def list_users(
    role: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    query = db.table("profiles").select(PUBLIC_COLUMNS, count="exact")
    if role:
        query = query.eq("role", role)
    if is_active is not None:
        query = query.eq("is_active", is_active)
    if search:
        query = query.ilike("full_name", f"%{search}%")

    start, end = page_bounds(page, limit)
    result = query.order("full_name").range(start, end).execute()
    return paginated_response(result.data, result.count or 0, page, limit)


@router.get("/teachers/homeroom")
async def list_homeroom_teachers(user: dict = Depends(require_role(["admin"]))):
    db = get_supabase()
    result = (
        db.table("profiles")
        .select("id, full_name, email, employee_code")
        .eq("role", "teacher")
        .eq("homeroom_enabled", True)
        .eq("is_active", True)
        .order("full_name")
        .execute()
    )
    return success_response(data=result.data)


@router.get("/parent/children")
async def list_my_children(user: dict = Depends(require_role(["parent"]))):
    db = get_supabase()
    parent_id = get_user_id(user)

    links = (
        db.table("parent_student_relationships")
        .select("student_id, relationship")
        .eq("parent_id", parent_id)
        .execute()
    ).data or []
    if not links:
        return success_response(data=[])

    student_ids = [link["student_id"] for link in links]
    students = (
        db.table("profiles")
        .select("id, full_name, email, student_code")
        .in_("id", student_ids)
        .execute()
    ).data or []
    assignments = (
        db.table("student_class_assignments")
        .select("student_id, class_id")
        .in_("student_id", student_ids)
        .eq("assignment_type", "main")
        .eq("is_active", True)
        .execute()
    ).data or []
    class_ids = list({a["class_id"] for a in assignments})
    classes = (
        db.table("classes").select("id, name").in_("id", class_ids).execute().data or []
    ) if class_ids else []

    class_by_id = {c["id"]: c for c in classes}
    class_by_student = {a["student_id"]: class_by_id.get(a["class_id"]) for a in assignments}
    relationship_by_student = {link["student_id"]: link["relationship"] for link in links}

    children = [
        {
            **student,
            "relationship": relationship_by_student.get(student["id"]),
            "current_class": class_by_student.get(student["id"]),
        }
        for student in students
    ]
    return success_response(data=children)


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    profile = fetch_one("profiles", user_id, "id, role", not_found="User not found")

    update_data = body.model_dump(exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    if update_data.get("homeroom_enabled") and profile["role"] != "teacher":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only teachers can be homeroom teachers")

    result = db.table("profiles").update(update_data).eq("id", user_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="User updated")


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    if user_id == get_user_id(user):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")

    db = get_supabase()
    fetch_one("profiles", user_id, "id", not_found="User not found")
    db.table("profiles").update({"is_active": False}).eq("id", user_id).execute()
    logger.info("Profile %s deactivated by %s", user_id, user["email"])
    return success_response(message="User deactivated")


# ═══════════════════════════════════════════════════════════
# PARENT ↔ STUDENT LINKS (Admin)
# ═══════════════════════════════════════════════════════════

@router.post("/relationships")
async def link_parent_student(
    body: ParentStudentLink,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    parent = fetch_one("profiles", body.parent_id, "id, role", not_found="Parent not found")
    if parent["role"] != "parent":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Selected user is not a parent")
    student = fetch_one("profiles", body.student_id, "id, role", not_found="Student not found")
    if student["role"] != "student":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Selected user is not a student")

    if body.student_id in get_children_ids(body.parent_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This parent is already linked to the student")

    try:
        result = db.table("parent_student_relationships").insert(body.model_dump()).execute()
    except APIError as e:
        raise_for_db_error(e, "This parent is already linked to the student")
    return success_response(data=result.data[0], message="Parent linked to student")


@router.get("/relationships")
async def list_relationships(
    parent_id: Optional[str] = None,
    student_id: Optional[str] = None,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    query = db.table("parent_student_relationships").select(
        "*, parent:profiles!parent_student_relationships_parent_id_fkey(full_name, email), "
        "student:profiles!parent_student_relationships_student_id_fkey(full_name, student_code)"
    )
    if parent_id:
        query = query.eq("parent_id", parent_id)
    if student_id:
        query = query.eq("student_id", student_id)
    result = query.execute()
    return success_response(data=result.data)


@router.delete("/relationships/{relationship_id}")
async def unlink_parent_student(
    relationship_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    fetch_one("parent_student_relationships", relationship_id, "id", not_found="Relationship not found")
    db.table("parent_student_relationships").delete().eq("id", relationship_id).execute()
    return success_response(message="Relationship removed")
