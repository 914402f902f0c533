"""
Leave applications router — parents request leave for their children,
the homeroom teacher of the child's class approves or rejects.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status

from schoolhub.core.access import ensure_parent_of, get_active_main_assignment, get_user_id
from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase
from schoolhub.core.email import send_leave_response_email
from schoolhub.core.logging import get_logger
from schoolhub.core.notify import notify_user
from schoolhub.core.security import require_role
from schoolhub.core.storage import DOCUMENT_TYPES, upload_to_bucket
from schoolhub.schemas.leave import LeaveApplicationCreate, LeaveApplicationResponse
from schoolhub.utils.response import success_response

logger = get_logger("leave")

router = APIRouter(prefix="/api/leave-applications", tags=["Leave Applications"])

LEAVE_SELECT = (
    "*, student:profiles!leave_applications_student_id_fkey(full_name, student_code), "
    "homeroom_teacher:profiles!leave_applications_homeroom_teacher_id_fkey(full_name), "
    "classes(name)"
)


@router.post("")
async def create_leave_application(
    body: LeaveApplicationCreate,
    user: dict = Depends(require_role(["parent"])),
):
    parent_id = get_user_id(user)
    ensure_parent_of(parent_id, body.student_id)

    assignment = get_active_main_assignment(body.student_id)
    if not assignment:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Student is not currently assigned to any class",
        )
    cls = fetch_one("classes", assignment["class_id"], "id, name, homeroom_teacher_id", not_found="Class not found")

    db = get_supabase()
    data = {
        **body.model_dump(mode="json"),
        "parent_id": parent_id,
        "class_id": cls["id"],
        "homeroom_teacher_id": cls.get("homeroom_teacher_id"),
        "academic_year_id": assignment.get("academic_year_id"),
        "status": "pending",
    }
    result = db.table("leave_applications").insert(data).execute()

    if cls.get("homeroom_teacher_id"):
        notify_user(
            parent_id, cls["homeroom_teacher_id"], "teacher",
            "New leave application",
            f"A leave application from {body.start_date:%d/%m/%Y} to {body.end_date:%d/%m/%Y} is waiting for review.",
        )

    logger.info("Leave application created for student %s", body.student_id)
    return success_response(data=result.data[0], message="Leave application submitted")


@router.post("/attachments")
async def upload_attachment(
    file: UploadFile = File(...),
    user: dict = Depends(require_role(["parent"])),
):
    uploaded = await upload_to_bucket(settings.LEAVE_ATTACHMENT_BUCKET, file, get_user_id(user), DOCUMENT_TYPES)
    return success_response(data=uploaded, message="Attachment uploaded")


@router.get("/parent")
async def list_parent_applications(user: dict = Depends(require_role(["parent"]))):
    db = get_supabase()
    result = (
        db.table("leave_applications")
        .select(LEAVE_SELECT)
        .eq("parent_id", get_user_id(user))
        .order("created_at", desc=True)
        .execute()
    )
    return success_response(data=result.data)


@router.get("/teacher")
async def list_teacher_applications(user: dict = Depends(require_role(["teacher"]))):
    db = get_supabase()
    result = (
        db.table("leave_applications")
        .select(LEAVE_SELECT)
        .eq("homeroom_teacher_id", get_user_id(user))
        .order("created_at", desc=True)
        .execute()
    )
    return success_response(data=result.data)


@router.get("/{application_id}")
async def get_leave_application(
    application_id: str,
    user: dict = Depends(require_role(["admin", "teacher", "parent"])),
):
    application = fetch_one("leave_applications", application_id, LEAVE_SELECT, not_found="Leave application not found")
    user_id = get_user_id(user)
    if user["role"] != "admin" and user_id not in (application.get("parent_id"), application.get("homeroom_teacher_id")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot view this leave application")
    return success_response(data=application)


@router.post("/{application_id}/respond")
async def respond_to_application(
    application_id: str,
    body: LeaveApplicationResponse,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_user_id(user)
    application = fetch_one("leave_applications", application_id, not_found="Leave application not found")
    if application.get("homeroom_teacher_id") != teacher_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the homeroom teacher of the student's class can respond",
        )
    if application["status"] != "pending":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"This application has already been {application['status']}",
        )

    result = (
        db.table("leave_applications")
        .update({
            "status": body.status,
            "teacher_response": body.teacher_response,
            "responded_at": datetime.now(timezone.utc).isoformat(),
        })
        .eq("id", application_id)
        .execute()
    )

    parent = fetch_one("profiles", application["parent_id"], "id, full_name, email", not_found="Parent not found")
    student = fetch_one("profiles", application["student_id"], "id, full_name", not_found="Student not found")
    notify_user(
        teacher_id, parent["id"], "parent",
        f"Leave application {body.status}",
        f"The leave application for {student['full_name']} has been {body.status}.",
    )
    background_tasks.add_task(
        send_leave_response_email,
        parent.get("email"), parent.get("full_name", ""), student["full_name"], body.status, body.teacher_response,
    )

    logger.info("Leave application %s %s by %s", application_id, body.status, user["email"])
    return success_response(data=result.data[0] if result.data else None, message=f"Leave application {body.status}")
