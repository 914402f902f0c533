"""
Auth router — Login, current profile, password reset.

Rules:
- Only profiles pre-created by the school administrator can sign in
- Firebase JWT verified, then profile fetched from Supabase
- Deactivated profiles are rejected
- Mock mode: uses mock-{email} tokens for testing
"""

from fastapi import APIRouter, Depends, HTTPException, status

from schoolhub.core.config import settings
from schoolhub.core.database import get_supabase
from schoolhub.core.logging import get_logger
from schoolhub.core.security import PROFILE_COLUMNS, get_current_user, get_password_hash, verify_password
from schoolhub.schemas.auth import PasswordReset, UserLogin
from schoolhub.utils.response import success_response

logger = get_logger("auth")

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/login")
async def login(body: UserLogin):
    """
    Mock mode: look the profile up by email, check the password, return a mock token.
    Firebase mode: the client signs in with the Firebase SDK and calls /api/auth/me.
    """
    if settings.AUTH_MODE != "mock":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Use Firebase SDK for login, then call /api/auth/me with JWT.",
        )

    email = body.email.strip().lower()
    db = get_supabase()
    result = (
        db.table("profiles")
        .select(PROFILE_COLUMNS)
        .eq("email", email)
        .eq("is_active", True)
        .maybe_single()
        .execute()
    )
    profile = result.data if result else None
    if not profile:
        logger.warning("Login rejected for unknown email %s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No registered account found for this email. Contact the school administrator.",
        )

    hashed_pw = profile.get("password_hash")
    if hashed_pw and not verify_password(body.password, hashed_pw):
        logger.warning("Login rejected for %s: wrong password", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )

    user_response = {
        "uid": profile.get("firebase_uid") or profile["id"],
        "user_id": profile["id"],
        "email": profile["email"],
        "full_name": profile.get("full_name", ""),
        "role": profile["role"],
        "homeroom_enabled": bool(profile.get("homeroom_enabled", False)),
        "requires_password_reset": bool(profile.get("requires_password_reset", False)),
    }
    logger.info("User %s signed in (%s)", email, profile["role"])
    return success_response(
        data={"token": f"mock-{email}", "user": user_response},
        message="Login successful",
    )


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Return current authenticated user profile."""
    return success_response(data=user)


@router.post("/reset-password")
async def reset_password(body: PasswordReset):
    """
    Allows a user holding a temporary password to set a new one.
    """
    email = body.email.strip().lower()
    db = get_supabase()
    result = (
        db.table("profiles")
        .select("id, password_hash, requires_password_reset")
        .eq("email", email)
        .maybe_single()
        .execute()
    )
    if not result or not result.data:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    profile = result.data
    if not profile.get("requires_password_reset"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password reset not required for this user")

    hashed_pw = profile.get("password_hash")
    if hashed_pw and not verify_password(body.old_password, hashed_pw):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid old/temporary password")

    db.table("profiles").update({
        "password_hash": get_password_hash(body.new_password),
        "requires_password_reset": False,
    }).eq("id", profile["id"]).execute()

    logger.info("Password reset completed for %s", email)
    return success_response(
        data={"token": f"mock-{email}"},
        message="Password updated successfully. You are now logged in.",
    )
