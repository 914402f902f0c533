"""
Pydantic schemas for authentication.
"""

from pydantic import BaseModel, Field


class UserLogin(BaseModel):
    email: str
    password: str


class PasswordReset(BaseModel):
    email: str
    old_password: str
    new_password: str = Field(min_length=8)
