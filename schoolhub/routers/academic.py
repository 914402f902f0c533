"""
Academic router — academic years and their semesters.

Admin manages the calendar; every authenticated role can read it.
Only one academic year and one semester are current at any time.
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from schoolhub.core.config import settings
from schoolhub.core.database import fetch_one, get_supabase, raise_for_db_error
from schoolhub.core.logging import get_logger
from schoolhub.core.security import get_current_user, require_role
from schoolhub.schemas.academic import AcademicYearCreate, AcademicYearUpdate, SemesterCreate, SemesterUpdate
from schoolhub.utils.calendar import add_months, to_date, week_options
from schoolhub.utils.response import page_bounds, paginated_response, success_response

logger = get_logger("academic")

router = APIRouter(prefix="/api/academic", tags=["Academic Calendar"])

FIRST_SEMESTER_MONTHS = 4
FIRST_SEMESTER_WEEKS = 18
SECOND_SEMESTER_WEEKS = 17


def _unset_current_years(db, keep_id: Optional[str] = None):
    query = db.table("academic_years").update({"is_current": False}).eq("is_current", True)
    if keep_id:
        query = query.neq("id", keep_id)
    query.execute()


def _unset_current_semesters(db, keep_id: Optional[str] = None, outside_year: Optional[str] = None):
    query = db.table("semesters").update({"is_current": False}).eq("is_current", True)
    if keep_id:
        query = query.neq("id", keep_id)
    if outside_year:
        query = query.neq("academic_year_id", outside_year)
    query.execute()


# ═══════════════════════════════════════════════════════════
# ACADEMIC YEARS
# ═══════════════════════════════════════════════════════════

@router.post("/years")
async def create_academic_year(
    body: AcademicYearCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()

    # Every year is split into two semesters up front
    first_end = add_months(body.start_date, FIRST_SEMESTER_MONTHS)
    if body.end_date <= first_end + timedelta(days=1):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"An academic year must run past {first_end.isoformat()} to hold a second semester",
        )

    existing = db.table("academic_years").select("id").eq("name", body.name).maybe_single().execute()
    if existing and existing.data:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Academic year '{body.name}' already exists")

    if body.is_current:
        _unset_current_years(db)
        _unset_current_semesters(db)

    try:
        result = db.table("academic_years").insert(body.model_dump(mode="json")).execute()
    except APIError as e:
        raise_for_db_error(e, f"Academic year '{body.name}' already exists")
    year = result.data[0]

    semesters = [
        {
            "academic_year_id": year["id"],
            "name": "Semester 1",
            "semester_number": 1,
            "start_date": body.start_date.isoformat(),
            "end_date": first_end.isoformat(),
            "weeks_count": FIRST_SEMESTER_WEEKS,
            "is_current": body.is_current,
        },
        {
            "academic_year_id": year["id"],
            "name": "Semester 2",
            "semester_number": 2,
            "start_date": (first_end + timedelta(days=1)).isoformat(),
            "end_date": body.end_date.isoformat(),
            "weeks_count": SECOND_SEMESTER_WEEKS,
            "is_current": False,
        },
    ]
    sem_result = db.table("semesters").insert(semesters).execute()

    logger.info("Academic year %s created with %d semesters", body.name, len(sem_result.data or []))
    return success_response(
        data={**year, "semesters": sem_result.data},
        message="Academic year created",
    )


@router.get("/years")
async def list_academic_years(
    search: Optional[str] = None,
    is_current: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(get_current_user),
):
    db = get_supabase()
    query = db.table("academic_years").select("*, semesters(*)", count="exact")
    if search:
        query = query.ilike("name", f"%{search}%")
    if is_current is not None:
        query = query.eq("is_current", is_current)

    start, end = page_bounds(page, limit)
    result = query.order("start_date", desc=True).range(start, end).execute()
    return paginated_response(result.data, result.count or 0, page, limit)


@router.get("/years/current")
async def get_current_academic_year(user: dict = Depends(get_current_user)):
    db = get_supabase()
    year = (
        db.table("academic_years")
        .select("*, semesters(*)")
        .eq("is_current", True)
        .maybe_single()
        .execute()
    )
    if not year or not year.data:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No current academic year is set")

    semester = (
        db.table("semesters")
        .select("*")
        .eq("academic_year_id", year.data["id"])
        .eq("is_current", True)
        .maybe_single()
        .execute()
    )
    return success_response(data={
        "academic_year": year.data,
        "current_semester": semester.data if semester else None,
    })


@router.patch("/years/{year_id}")
async def update_academic_year(
    year_id: str,
    body: AcademicYearUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    year = fetch_one("academic_years", year_id, not_found="Academic year not found")
    update_data = body.model_dump(mode="json", exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    if body.name and body.name != year["name"]:
        clash = (
            db.table("academic_years")
            .select("id")
            .eq("name", body.name)
            .neq("id", year_id)
            .maybe_single()
            .execute()
        )
        if clash and clash.data:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Academic year '{body.name}' already exists")

    start = to_date(update_data.get("start_date", year["start_date"]))
    end = to_date(update_data.get("end_date", year["end_date"]))
    if end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")

    if body.is_current:
        _unset_current_years(db, keep_id=year_id)
        _unset_current_semesters(db, outside_year=year_id)

    result = db.table("academic_years").update(update_data).eq("id", year_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Academic year updated")


@router.delete("/years/{year_id}")
async def delete_academic_year(
    year_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    year = fetch_one("academic_years", year_id, "id, name", not_found="Academic year not found")
    db.table("academic_years").delete().eq("id", year_id).execute()
    logger.info("Academic year %s deleted", year["name"])
    return success_response(message="Academic year deleted")


# ═══════════════════════════════════════════════════════════
# SEMESTERS
# ═══════════════════════════════════════════════════════════

def _check_inside_year(year: dict, start, end):
    if to_date(start) < to_date(year["start_date"]) or to_date(end) > to_date(year["end_date"]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Semester dates must fall within the academic year",
        )


@router.post("/semesters")
async def create_semester(
    body: SemesterCreate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    year = fetch_one("academic_years", body.academic_year_id, not_found="Academic year not found")
    _check_inside_year(year, body.start_date, body.end_date)

    existing = (
        db.table("semesters")
        .select("id")
        .eq("academic_year_id", body.academic_year_id)
        .eq("semester_number", body.semester_number)
        .maybe_single()
        .execute()
    )
    if existing and existing.data:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Semester {body.semester_number} already exists in {year['name']}",
        )

    if body.is_current:
        _unset_current_semesters(db)

    try:
        result = db.table("semesters").insert(body.model_dump(mode="json")).execute()
    except APIError as e:
        raise_for_db_error(e, "Semester already exists")
    return success_response(data=result.data[0], message="Semester created")


@router.get("/semesters")
async def list_semesters(
    academic_year_id: Optional[str] = None,
    user: dict = Depends(get_current_user),
):
    db = get_supabase()
    query = db.table("semesters").select("*, academic_years(name)")
    if academic_year_id:
        query = query.eq("academic_year_id", academic_year_id)
    result = query.order("start_date", desc=True).execute()
    return success_response(data=result.data)


@router.patch("/semesters/{semester_id}")
async def update_semester(
    semester_id: str,
    body: SemesterUpdate,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    semester = fetch_one("semesters", semester_id, not_found="Semester not found")
    update_data = body.model_dump(mode="json", exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    if "start_date" in update_data or "end_date" in update_data:
        year = fetch_one("academic_years", semester["academic_year_id"], not_found="Academic year not found")
        start = update_data.get("start_date", semester["start_date"])
        end = update_data.get("end_date", semester["end_date"])
        if to_date(end) <= to_date(start):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")
        _check_inside_year(year, start, end)

    if body.is_current:
        _unset_current_semesters(db, keep_id=semester_id)

    result = db.table("semesters").update(update_data).eq("id", semester_id).execute()
    return success_response(data=result.data[0] if result.data else None, message="Semester updated")


@router.delete("/semesters/{semester_id}")
async def delete_semester(
    semester_id: str,
    user: dict = Depends(require_role(["admin"])),
):
    db = get_supabase()
    fetch_one("semesters", semester_id, "id", not_found="Semester not found")
    db.table("semesters").delete().eq("id", semester_id).execute()
    return success_response(message="Semester deleted")


@router.get("/semesters/{semester_id}/weeks")
async def get_semester_weeks(
    semester_id: str,
    user: dict = Depends(get_current_user),
):
    semester = fetch_one("semesters", semester_id, "id, start_date, end_date", not_found="Semester not found")
    return success_response(data=week_options(semester["start_date"], semester["end_date"]))
