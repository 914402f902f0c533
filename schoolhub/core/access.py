"""
Relationship lookups used for ownership checks.

Who may see what is derived from the database rather than from the token:
parents through parent_student_relationships, students through
student_class_assignments, teachers through teacher_class_assignments and
classes.homeroom_teacher_id.
"""

from fastapi import HTTPException, status

from schoolhub.core.database import get_supabase


def get_user_id(user: dict) -> str:
    return user.get("user_id", user.get("uid"))


def get_children_ids(parent_id: str) -> list[str]:
    db = get_supabase()
    result = (
        db.table("parent_student_relationships")
        .select("student_id")
        .eq("parent_id", parent_id)
        .execute()
    )
    return [row["student_id"] for row in result.data or []]


def ensure_parent_of(parent_id: str, student_id: str) -> None:
    if student_id not in get_children_ids(parent_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access information about your own children",
        )


def get_student_class_ids(student_ids: list[str]) -> list[str]:
    if not student_ids:
        return []
    db = get_supabase()
    result = (
        db.table("student_class_assignments")
        .select("class_id")
        .in_("student_id", student_ids)
        .eq("is_active", True)
        .execute()
    )
    return sorted({row["class_id"] for row in result.data or []})


def get_active_main_assignment(student_id: str) -> dict | None:
    db = get_supabase()
    result = (
        db.table("student_class_assignments")
        .select("*")
        .eq("student_id", student_id)
        .eq("assignment_type", "main")
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def get_homeroom_classes(teacher_id: str, semester_id: str | None = None) -> list[dict]:
    db = get_supabase()
    query = db.table("classes").select("*").eq("homeroom_teacher_id", teacher_id)
    if semester_id:
        query = query.eq("semester_id", semester_id)
    return query.execute().data or []


def get_teaching_class_ids(teacher_id: str) -> list[str]:
    db = get_supabase()
    result = (
        db.table("teacher_class_assignments")
        .select("class_id")
        .eq("teacher_id", teacher_id)
        .eq("is_active", True)
        .execute()
    )
    return sorted({row["class_id"] for row in result.data or []})


def teacher_teaches(teacher_id: str, class_id: str, subject_id: str) -> bool:
    db = get_supabase()
    result = (
        db.table("teacher_class_assignments")
        .select("id")
        .eq("teacher_id", teacher_id)
        .eq("class_id", class_id)
        .eq("subject_id", subject_id)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    return bool(result.data)


def get_teacher_class_ids(teacher_id: str) -> list[str]:
    """Classes a teacher teaches plus the ones they are homeroom teacher of."""
    homeroom = {c["id"] for c in get_homeroom_classes(teacher_id)}
    return sorted(homeroom | set(get_teaching_class_ids(teacher_id)))
