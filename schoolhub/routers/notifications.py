"""
Notifications router — announcements targeted by role and class, plus the
direct notifications other features raise for a single recipient.

Visibility:
- a direct notification (recipient_id set) is seen by its recipient only
- otherwise the caller's role must be in target_roles, and target_classes
  must be empty or share a class with the caller
- senders always see what they sent
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from schoolhub.core.access import (
    get_children_ids, get_homeroom_classes, get_student_class_ids, get_teacher_class_ids, get_teaching_class_ids,
    get_user_id,
)
from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase
from schoolhub.core.logging import get_logger
from schoolhub.core.security import get_current_user, require_role
from schoolhub.core.storage import IMAGE_TYPES, upload_to_bucket
from schoolhub.schemas.notifications import NotificationCreate
from schoolhub.utils.response import success_response

logger = get_logger("notifications")

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def caller_class_ids(user: dict) -> set[str]:
    user_id = get_user_id(user)
    role = user["role"]
    if role == "student":
        return set(get_student_class_ids([user_id]))
    if role == "parent":
        return set(get_student_class_ids(get_children_ids(user_id)))
    if role == "teacher":
        return set(get_teacher_class_ids(user_id))
    return set()


def is_visible(notification: dict, user_id: str, role: str, class_ids: set[str]) -> bool:
    if notification.get("sender_id") == user_id:
        return True
    recipient = notification.get("recipient_id")
    if recipient:
        return recipient == user_id
    if role not in (notification.get("target_roles") or []):
        return False
    targets = notification.get("target_classes") or []
    return not targets or bool(class_ids.intersection(targets))


def _visible_notifications(user: dict) -> list[dict]:
    db = get_supabase()
    rows = (
        db.table("notifications")
        .select("*, sender:profiles!notifications_sender_id_fkey(full_name, role)")
        .eq("is_active", True)
        .order("created_at", desc=True)
        .execute()
    ).data or []
    user_id = get_user_id(user)
    class_ids = caller_class_ids(user)
    return [n for n in rows if is_visible(n, user_id, user["role"], class_ids)]


def _read_ids(user_id: str) -> set[str]:
    db = get_supabase()
    reads = db.table("notification_reads").select("notification_id").eq("user_id", user_id).execute()
    return {r["notification_id"] for r in reads.data or []}


def _target_options(user: dict) -> dict:
    db = get_supabase()
    if user["role"] == "admin":
        classes = db.table("classes").select("id, name").order("name").execute().data or []
        return {"roles": ["teacher", "student", "parent"], "classes": classes}

    user_id = get_user_id(user)
    homeroom = get_homeroom_classes(user_id)
    class_ids = {c["id"] for c in homeroom} | set(get_teaching_class_ids(user_id))
    classes = (
        db.table("classes").select("id, name").in_("id", sorted(class_ids)).order("name").execute().data or []
    ) if class_ids else []
    roles = ["student", "parent"] if homeroom else ["student"]
    return {"roles": roles, "classes": classes}


@router.get("/target-options")
async def get_target_options(user: dict = Depends(require_role(["admin", "teacher"]))):
    return success_response(data=_target_options(user))


@router.post("")
async def create_notification(
    body: NotificationCreate,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    target_classes = list(dict.fromkeys(body.target_classes))
    if user["role"] == "teacher":
        options = _target_options(user)
        bad_roles = [r for r in body.target_roles if r not in options["roles"]]
        if bad_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You cannot send notifications to: {', '.join(bad_roles)}",
            )
        allowed = {c["id"] for c in options["classes"]}
        if any(c not in allowed for c in target_classes):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only target classes you teach or lead",
            )

    db = get_supabase()
    result = db.table("notifications").insert({
        "title": body.title,
        "content": body.content,
        "image_url": body.image_url,
        "target_roles": list(dict.fromkeys(body.target_roles)),
        "target_classes": target_classes,
        "sender_id": get_user_id(user),
        "is_active": True,
    }).execute()

    logger.info("Notification '%s' sent by %s to %s", body.title, user["email"], body.target_roles)
    return success_response(data=result.data[0], message="Notification sent")


@router.get("")
async def list_notifications(user: dict = Depends(get_current_user)):
    read = _read_ids(get_user_id(user))
    rows = [{**n, "is_read": n["id"] in read} for n in _visible_notifications(user)]
    return success_response(data=rows)


@router.get("/unread-count")
async def unread_count(user: dict = Depends(get_current_user)):
    read = _read_ids(get_user_id(user))
    count = sum(1 for n in _visible_notifications(user) if n["id"] not in read)
    return success_response(data={"count": count})


@router.post("/images")
async def upload_image(
    file: UploadFile = File(...),
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    uploaded = await upload_to_bucket(settings.NOTIFICATION_IMAGE_BUCKET, file, get_user_id(user), IMAGE_TYPES)
    return success_response(data=uploaded, message="Image uploaded")


@router.post("/{notification_id}/read")
async def mark_as_read(notification_id: str, user: dict = Depends(get_current_user)):
    db = get_supabase()
    fetch_one("notifications", notification_id, "id", not_found="Notification not found")
    db.table("notification_reads").upsert(
        {
            "notification_id": notification_id,
            "user_id": get_user_id(user),
            "read_at": datetime.now(timezone.utc).isoformat(),
        },
        on_conflict="notification_id,user_id",
    ).execute()
    return success_response(message="Notification marked as read")


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user: dict = Depends(get_current_user)):
    db = get_supabase()
    notification = fetch_one("notifications", notification_id, "id, sender_id", not_found="Notification not found")
    if user["role"] != "admin" and notification.get("sender_id") != get_user_id(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the sender can delete this notification")
    db.table("notifications").update({"is_active": False}).eq("id", notification_id).execute()
    return success_response(message="Notification deleted")
