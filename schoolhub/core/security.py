"""
Security module — Firebase JWT verification + Mock auth + Role guard + is_active enforcement.

Auth Flow:
1. User signs in via Firebase → gets JWT (or, in mock mode, a "mock-<email>" token)
2. Frontend sends the token as a Bearer header
3. FastAPI verifies the JWT using the Firebase Admin SDK
4. Backend fetches the profile from Supabase (by firebase_uid, or by email in mock mode)
5. Backend checks: is the profile active?
6. Backend injects: user_id, role, homeroom_enabled

Only profiles created by a school administrator can authenticate.
"""

import os

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from schoolhub.core.config import settings
from schoolhub.core.database import get_supabase
from schoolhub.core.logging import get_logger

logger = get_logger("security")

security_scheme = HTTPBearer(auto_error=False)

ROLES = ("admin", "teacher", "student", "parent")

PROFILE_COLUMNS = "id, email, full_name, role, firebase_uid, is_active, homeroom_enabled, password_hash, requires_password_reset"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash stored for this profile
        return False


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


# ---------------------------------------------------------------------------
# Firebase initialization (lazy)
# ---------------------------------------------------------------------------
_firebase_app = None


def init_firebase():
    global _firebase_app
    if _firebase_app is not None:
        return
    import firebase_admin
    from firebase_admin import credentials as fb_credentials

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if os.path.exists(cred_path):
        cred = fb_credentials.Certificate(cred_path)
        _firebase_app = firebase_admin.initialize_app(cred)
    else:
        # Try default credentials
        _firebase_app = firebase_admin.initialize_app()


def principal_from_profile(profile: dict, uid: str | None = None) -> dict:
    """The dict every route receives as `user`."""
    return {
        "uid": uid or profile.get("firebase_uid") or profile["id"],
        "user_id": profile["id"],
        "email": profile["email"],
        "full_name": profile.get("full_name", ""),
        "role": profile["role"],
        "homeroom_enabled": bool(profile.get("homeroom_enabled", False)),
    }


def _ensure_active(profile: dict | None) -> dict:
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is not registered. Contact the school administrator.",
        )
    if not profile.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated. Contact the school administrator.",
        )
    return profile


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------
async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
) -> dict:
    """
    Validate the Bearer token and return the principal dict.
    Only active profiles already registered in Supabase can authenticate.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    token = credentials.credentials

    if settings.AUTH_MODE == "mock":
        return await _mock_auth(token)

    return await _firebase_auth(token)


async def _mock_auth(token: str) -> dict:
    """Mock mode: token is "mock-<email>"."""
    if not token.startswith("mock-"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token. Only registered school users can sign in.",
        )

    email = token[5:].strip().lower()
    db = get_supabase()
    result = (
        db.table("profiles")
        .select(PROFILE_COLUMNS)
        .eq("email", email)
        .maybe_single()
        .execute()
    )
    profile = _ensure_active(result.data if result else None)
    return principal_from_profile(profile)


async def _firebase_auth(token: str) -> dict:
    """Firebase mode: verify JWT, fetch profile from Supabase, enforce is_active."""
    init_firebase()
    from firebase_admin import auth as fb_auth

    try:
        decoded = fb_auth.verify_id_token(token)
    except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.ExpiredIdTokenError, fb_auth.RevokedIdTokenError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    uid = decoded["uid"]

    db = get_supabase()
    result = (
        db.table("profiles")
        .select(PROFILE_COLUMNS)
        .eq("firebase_uid", uid)
        .maybe_single()
        .execute()
    )
    profile = _ensure_active(result.data if result else None)
    return principal_from_profile(profile, uid=uid)


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/admin-only")
        async def endpoint(user=Depends(require_role(["admin"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker
