"""
Direct (single-recipient) notifications raised as a side effect of other actions.
"""

from postgrest.exceptions import APIError

from schoolhub.core.database import get_supabase
from schoolhub.core.logging import get_logger

logger = get_logger("notify")


def notify_user(sender_id: str, recipient_id: str, recipient_role: str, title: str, content: str) -> bool:
    """Insert a notification addressed to one profile. Failures are logged, not raised."""
    db = get_supabase()
    try:
        db.table("notifications").insert({
            "title": title,
            "content": content,
            "sender_id": sender_id,
            "recipient_id": recipient_id,
            "target_roles": [recipient_role],
            "target_classes": [],
            "is_active": True,
        }).execute()
    except APIError as e:
        logger.error("Could not notify %s (%s): %s", recipient_id, title, e.message)
        return False
    return True
