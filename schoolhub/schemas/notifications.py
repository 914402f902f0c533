"""
Pydantic schemas for notifications.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

TargetRole = Literal["admin", "teacher", "student", "parent"]


class NotificationCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=5000)
    image_url: Optional[str] = None
    target_roles: list[TargetRole] = Field(min_length=1)
    target_classes: list[str] = []
