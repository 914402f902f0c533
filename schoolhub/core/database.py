from fastapi import HTTPException, status
from postgrest.exceptions import APIError
from supabase import create_client, Client

from schoolhub.core.config import settings
from schoolhub.core.logging import get_logger

logger = get_logger("database")

_supabase_client: Client | None = None

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY,
        )
    return _supabase_client


def raise_for_db_error(exc: APIError, conflict_message: str = "Record already exists") -> None:
    """Translate a PostgREST error into an HTTPException the client can read."""
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    if code == UNIQUE_VIOLATION or "duplicate" in message.lower():
        logger.warning("Unique constraint hit: %s", message)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict_message)
    logger.error("Database error (%s): %s", code, message)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def fetch_one(table: str, row_id: str, columns: str = "*", not_found: str = "Record not found") -> dict:
    """Fetch a row by id or raise 404."""
    db = get_supabase()
    result = db.table(table).select(columns).eq("id", row_id).maybe_single().execute()
    if not result or not result.data:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    return result.data
