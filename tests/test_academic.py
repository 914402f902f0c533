from __future__ import annotations

from tests.conftest import ADMIN, TEACHER

YEAR = {"name": "2025-2026", "start_date": "2025-09-05", "end_date": "2026-05-31", "is_current": True}


def test_create_year_splits_into_two_semesters(client, fake_db, login_as):
    login_as(ADMIN)
    res = client.post("/api/academic/years", json=YEAR)

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    s1, s2 = sorted(body["data"]["semesters"], key=lambda s: s["semester_number"])
    assert (s1["start_date"], s1["end_date"], s1["weeks_count"], s1["is_current"]) == (
        "2025-09-05", "2026-01-05", 18, True,
    )
    assert (s2["start_date"], s2["end_date"], s2["weeks_count"], s2["is_current"]) == (
        "2026-01-06", "2026-05-31", 17, False,
    )


def test_new_current_year_unsets_previous(client, fake_db, school, login_as):
    login_as(ADMIN)
    client.post("/api/academic/years", json=YEAR)

    old_year = fake_db.rows("academic_years", id=school["year"]["id"])[0]
    assert old_year["is_current"] is False
    assert fake_db.rows("semesters", id=school["semester"]["id"])[0]["is_current"] is False
    assert len(fake_db.rows("academic_years", is_current=True)) == 1
    assert len(fake_db.rows("semesters", is_current=True)) == 1


def test_duplicate_year_name_conflicts(client, school, login_as):
    login_as(ADMIN)
    res = client.post("/api/academic/years", json={**YEAR, "name": "2024-2025"})
    assert res.status_code == 409
    assert res.json() == {"success": False, "error": "Academic year '2024-2025' already exists"}


def test_year_payload_validation(client, fake_db, login_as):
    login_as(ADMIN)
    res = client.post("/api/academic/years", json={**YEAR, "name": "2025/2026"})
    assert res.status_code == 422
    assert "YYYY-YYYY" in res.json()["error"]

    res = client.post("/api/academic/years", json={**YEAR, "end_date": "2025-09-01"})
    assert res.status_code == 422
    assert "End date must be after start date" in res.json()["error"]


def test_teachers_cannot_create_years(client, fake_db, login_as):
    login_as(TEACHER)
    res = client.post("/api/academic/years", json=YEAR)
    assert res.status_code == 403
    assert res.json()["success"] is False


def test_list_years_is_paginated_newest_first(client, fake_db, school, login_as):
    fake_db.seed("academic_years", {"name": "2023-2024", "start_date": "2023-09-05", "end_date": "2024-05-31"})
    login_as(TEACHER)

    res = client.get("/api/academic/years", params={"limit": 1})
    data = res.json()["data"]
    assert data["total"] == 2
    assert data["total_pages"] == 2
    assert [y["name"] for y in data["items"]] == ["2024-2025"]


def test_current_year_includes_current_semester(client, school, login_as):
    login_as(TEACHER)
    data = client.get("/api/academic/years/current").json()["data"]
    assert data["academic_year"]["name"] == "2024-2025"
    assert data["current_semester"]["id"] == school["semester"]["id"]


def test_no_current_year_is_404(client, fake_db, login_as):
    login_as(ADMIN)
    assert client.get("/api/academic/years/current").status_code == 404


def test_rename_year_onto_existing_name_conflicts(client, fake_db, school, login_as):
    other = fake_db.seed("academic_years", {"name": "2023-2024", "start_date": "2023-09-05", "end_date": "2024-05-31"})[0]
    login_as(ADMIN)
    res = client.patch(f"/api/academic/years/{other['id']}", json={"name": "2024-2025"})
    assert res.status_code == 409


def test_update_missing_year_is_404(client, fake_db, login_as):
    login_as(ADMIN)
    res = client.patch("/api/academic/years/nope", json={"is_current": True})
    assert res.status_code == 404
    assert res.json()["error"] == "Academic year not found"


def test_semester_dates_must_fit_the_year(client, school, login_as):
    login_as(ADMIN)
    res = client.post("/api/academic/semesters", json={
        "academic_year_id": school["year"]["id"], "name": "Summer", "semester_number": 2,
        "start_date": "2025-05-01", "end_date": "2025-07-01", "weeks_count": 8,
    })
    assert res.status_code == 400


def test_duplicate_semester_number_conflicts(client, school, login_as):
    login_as(ADMIN)
    res = client.post("/api/academic/semesters", json={
        "academic_year_id": school["year"]["id"], "name": "Again", "semester_number": 1,
        "start_date": "2024-09-05", "end_date": "2024-12-01", "weeks_count": 12,
    })
    assert res.status_code == 409


def test_semester_weeks(client, school, login_as):
    login_as(TEACHER)
    weeks = client.get(f"/api/academic/semesters/{school['semester']['id']}/weeks").json()["data"]
    assert weeks[0]["week_number"] == 1
    assert weeks[0]["start"] == "2024-09-02"
    assert len(weeks) == 18


def test_year_too_short_for_two_semesters_is_rejected(client, fake_db, login_as):
    login_as(ADMIN)
    res = client.post("/api/academic/years", json={**YEAR, "end_date": "2026-01-06"})
    assert res.status_code == 400
    assert "second semester" in res.json()["error"]
    assert fake_db.rows("academic_years") == []
    assert fake_db.rows("semesters") == []

    res = client.post("/api/academic/years", json={**YEAR, "end_date": "2026-01-07"})
    assert res.status_code == 200
    s2 = next(s for s in res.json()["data"]["semesters"] if s["semester_number"] == 2)
    assert (s2["start_date"], s2["end_date"]) == ("2026-01-06", "2026-01-07")
