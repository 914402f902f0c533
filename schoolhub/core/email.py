import httpx

from schoolhub.core.config import settings
from schoolhub.core.logging import get_logger

logger = get_logger("email")

RESEND_URL = "https://api.resend.com/emails"


async def send_email(to_email: str, subject: str, html: str) -> bool:
    """
    Sends a transactional email through the Resend REST API.
    Never raises: email is a side effect and must not fail the action that triggered it.
    """
    if not settings.RESEND_API_KEY:
        logger.info("Resend API key not configured. Skipping email to %s", to_email)
        return False

    if not to_email:
        logger.warning("No recipient address for email '%s'. Skipping.", subject)
        return False

    payload = {
        "from": settings.EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "html": html,
    }
    headers = {"Authorization": f"Bearer {settings.RESEND_API_KEY}"}

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(RESEND_URL, json=payload, headers=headers)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(
            "Failed to send email to %s. Status code: %s. Response: %s",
            to_email, e.response.status_code, e.response.text,
        )
        return False
    except httpx.HTTPError as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False

    logger.info("Email '%s' sent to %s", subject, to_email)
    return True


async def send_leave_response_email(
    to_email: str, parent_name: str, student_name: str, status: str, teacher_response: str | None,
):
    verdict = "approved" if status == "approved" else "rejected"
    note = f"<p>Teacher's note: {teacher_response}</p>" if teacher_response else ""
    html = (
        f"<p>Dear {parent_name},</p>"
        f"<p>The leave application for <strong>{student_name}</strong> has been <strong>{verdict}</strong>.</p>"
        f"{note}"
    )
    return await send_email(to_email, f"Leave application {verdict}", html)


async def send_violation_notice_email(
    to_email: str, parent_name: str, student_name: str, violation_name: str, severity_label: str, violation_date: str,
):
    html = (
        f"<p>Dear {parent_name},</p>"
        f"<p>A conduct violation was recorded for <strong>{student_name}</strong> on {violation_date}:</p>"
        f"<p><strong>{violation_name}</strong> (severity: {severity_label}).</p>"
        "<p>Please contact the homeroom teacher if you have any questions.</p>"
    )
    return await send_email(to_email, f"Conduct notice for {student_name}", html)


async def send_welcome_email(to_email: str, full_name: str, role: str, temp_password: str):
    html = (
        f"<p>Dear {full_name},</p>"
        f"<p>A {settings.APP_NAME} {role} account has been created for you.</p>"
        f"<p>Sign in with <strong>{to_email}</strong> and the temporary password "
        f"<strong>{temp_password}</strong>. You will be asked to choose a new password.</p>"
    )
    return await send_email(to_email, f"Your {settings.APP_NAME} account", html)
