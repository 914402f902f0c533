from __future__ import annotations

from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from openpyxl import load_workbook

from tests.conftest import ADMIN, OTHER_TEACHER, PARENT, STUDENT, TEACHER

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _iso(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture
def period(fake_db, school):
    return fake_db.seed("grade_reporting_periods", {
        "name": "Semester 1 summary", "academic_year_id": school["year"]["id"],
        "semester_id": school["semester"]["id"], "period_type": "semester_1_summary",
        "start_date": "2024-12-01", "end_date": "2025-01-05",
        "import_deadline": _iso(5), "edit_deadline": _iso(10), "is_active": True,
    })[0]


def _filled_template(content: bytes, grades: list) -> bytes:
    wb = load_workbook(BytesIO(content))
    ws = wb.active
    for offset, value in enumerate(grades):
        ws.cell(row=4, column=4 + offset, value=value)
    out = BytesIO()
    wb.save(out)
    return out.getvalue()


def _sheet_url(period, school):
    return f"/api/grades/periods/{period['id']}/classes/{school['class']['id']}/subjects/{school['subject']['id']}"


# ── Reporting periods ────────────────────────────────────────

def test_create_period_rejects_overlap(client, school, period, login_as):
    login_as(ADMIN)
    payload = {
        "name": "Overlapping", "academic_year_id": school["year"]["id"], "semester_id": school["semester"]["id"],
        "period_type": "final_1", "start_date": "2024-12-20", "end_date": "2025-01-10",
        "import_deadline": "2025-01-08T00:00:00Z", "edit_deadline": "2025-01-10T00:00:00Z",
    }
    assert client.post("/api/grades/periods", json=payload).status_code == 409

    payload.update(start_date="2024-10-01", end_date="2024-11-15",
                   import_deadline="2024-11-10T00:00:00Z", edit_deadline="2024-11-15T00:00:00Z")
    assert client.post("/api/grades/periods", json=payload).status_code == 200


def test_period_deadline_validation(client, school, login_as):
    login_as(ADMIN)
    res = client.post("/api/grades/periods", json={
        "name": "Bad", "academic_year_id": school["year"]["id"], "semester_id": school["semester"]["id"],
        "period_type": "midterm_1", "start_date": "2024-10-01", "end_date": "2024-10-31",
        "import_deadline": "2024-10-30T00:00:00Z", "edit_deadline": "2024-10-20T00:00:00Z",
    })
    assert res.status_code == 422
    assert "edit deadline" in res.json()["error"]


def test_permissions_close_after_deadline(client, fake_db, period, login_as):
    login_as(TEACHER)
    url = f"/api/grades/periods/{period['id']}/permissions"
    assert client.get(url, params={"operation": "import"}).status_code == 200

    fake_db.rows("grade_reporting_periods", id=period["id"])[0]["import_deadline"] = _iso(-1)
    res = client.get(url, params={"operation": "import"})
    assert res.status_code == 400
    assert res.json()["error"] == "The import deadline for this grade period has passed"
    assert client.get(url, params={"operation": "edit"}).status_code == 200


def test_period_with_grades_cannot_be_deleted(client, fake_db, school, period, login_as):
    fake_db.seed("student_detailed_grades", {"period_id": period["id"], "student_id": STUDENT["user_id"],
                                             "subject_id": school["subject"]["id"], "class_id": school["class"]["id"],
                                             "component_type": "midterm", "grade_value": 7.0})
    login_as(ADMIN)
    assert client.delete(f"/api/grades/periods/{period['id']}").status_code == 400


# ── Template and import ──────────────────────────────────────

def test_template_lists_the_roster(client, school, period, login_as):
    login_as(TEACHER)
    res = client.get(f"/api/grades/periods/{period['id']}/template",
                     params={"class_id": school["class"]["id"], "subject_id": school["subject"]["id"]})
    assert res.status_code == 200
    assert res.headers["content-type"] == XLSX
    ws = load_workbook(BytesIO(res.content)).active
    assert ws.cell(row=4, column=3).value == STUDENT["full_name"]
    # TOAN has four regular grade columns
    assert ws.cell(row=3, column=7).value == "Regular 4"


def test_teacher_not_assigned_cannot_download_template(client, school, period, login_as):
    login_as(OTHER_TEACHER)
    res = client.get(f"/api/grades/periods/{period['id']}/template",
                     params={"class_id": school["class"]["id"], "subject_id": school["subject"]["id"]})
    assert res.status_code == 403


def _import(client, period, school, content: bytes, filename="grades.xlsx"):
    return client.post(
        f"/api/grades/periods/{period['id']}/import",
        data={"class_id": school["class"]["id"], "subject_id": school["subject"]["id"]},
        files={"file": (filename, content, XLSX)},
    )


def _template_bytes(client, period, school) -> bytes:
    return client.get(f"/api/grades/periods/{period['id']}/template",
                      params={"class_id": school["class"]["id"], "subject_id": school["subject"]["id"]}).content


def test_import_upserts_one_row_per_component(client, fake_db, school, period, login_as):
    login_as(TEACHER)
    content = _filled_template(_template_bytes(client, period, school), [8, 7, 9, None, 7, 8])

    res = _import(client, period, school, content)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["imported_students"] == 1
    assert data["imported_grades"] == 5
    assert data["errors"] == []

    stored = {g["component_type"]: g["grade_value"] for g in fake_db.rows("student_detailed_grades")}
    assert stored == {"regular_1": 8.0, "regular_2": 7.0, "regular_3": 9.0, "midterm": 7.0, "final": 8.0}

    # Re-importing updates in place
    _import(client, period, school, _filled_template(_template_bytes(client, period, school), [8, 7, 9, None, 9, 8]))
    assert len(fake_db.rows("student_detailed_grades")) == 5
    assert fake_db.rows("student_detailed_grades", component_type="midterm")[0]["grade_value"] == 9.0


def test_import_reports_invalid_rows(client, fake_db, school, period, login_as):
    login_as(TEACHER)
    content = _filled_template(_template_bytes(client, period, school), [8, "x", 9, None, 7, 8])
    data = _import(client, period, school, content).json()["data"]
    assert data["imported_grades"] == 0
    assert data["errors"][0]["errors"] == ["Regular 2: Grade may only contain digits and a decimal separator"]
    assert fake_db.rows("student_detailed_grades") == []


def test_import_rejects_non_xlsx_and_closed_periods(client, fake_db, school, period, login_as):
    login_as(TEACHER)
    assert _import(client, period, school, b"a,b", filename="grades.csv").status_code == 400

    fake_db.rows("grade_reporting_periods", id=period["id"])[0]["import_deadline"] = _iso(-1)
    assert _import(client, period, school, b"").status_code == 400


def test_import_skips_locked_grades(client, fake_db, school, period, login_as):
    fake_db.seed("student_detailed_grades", {
        "period_id": period["id"], "student_id": STUDENT["user_id"], "subject_id": school["subject"]["id"],
        "class_id": school["class"]["id"], "component_type": "final", "grade_value": 5.0, "is_locked": True,
    })
    login_as(TEACHER)
    content = _filled_template(_template_bytes(client, period, school), [None, None, None, None, 7, 8])
    data = _import(client, period, school, content).json()["data"]
    assert data["imported_grades"] == 1
    assert fake_db.rows("student_detailed_grades", component_type="final")[0]["grade_value"] == 5.0


# ── Detailed edits and audit ─────────────────────────────────

@pytest.fixture
def midterm(fake_db, school, period):
    return fake_db.seed("student_detailed_grades", {
        "period_id": period["id"], "student_id": STUDENT["user_id"], "subject_id": school["subject"]["id"],
        "class_id": school["class"]["id"], "component_type": "midterm", "grade_value": 6.0, "is_locked": False,
    })[0]


def test_edit_writes_audit_log(client, fake_db, midterm, login_as):
    login_as(TEACHER)
    res = client.patch(f"/api/grades/detailed/{midterm['id']}", json={"grade_value": 7.25, "change_reason": "Re-marked paper"})
    assert res.status_code == 200
    assert res.json()["data"]["grade_value"] == 7.3

    logs = client.get(f"/api/grades/detailed/{midterm['id']}/audit").json()["data"]
    assert [(l["old_value"], l["new_value"], l["change_reason"]) for l in logs] == [(6.0, 7.3, "Re-marked paper")]


def test_edit_requires_reason_and_open_period(client, fake_db, period, midterm, login_as):
    login_as(TEACHER)
    url = f"/api/grades/detailed/{midterm['id']}"
    assert client.patch(url, json={"grade_value": 7, "change_reason": "oops"}).status_code == 422

    fake_db.rows("grade_reporting_periods", id=period["id"])[0]["edit_deadline"] = _iso(-1)
    assert client.patch(url, json={"grade_value": 7, "change_reason": "Re-marked"}).status_code == 400
    assert fake_db.rows("grade_audit_logs") == []


def test_locked_grade_cannot_be_edited(client, fake_db, midterm, login_as):
    fake_db.rows("student_detailed_grades", id=midterm["id"])[0]["is_locked"] = True
    login_as(ADMIN)
    res = client.patch(f"/api/grades/detailed/{midterm['id']}", json={"grade_value": 7, "change_reason": "Re-marked"})
    assert res.status_code == 400


# ── Grade sheet and summaries ────────────────────────────────

def _seed_components(fake_db, school, period, values: dict):
    for component, value in values.items():
        fake_db.seed("student_detailed_grades", {
            "period_id": period["id"], "student_id": STUDENT["user_id"], "subject_id": school["subject"]["id"],
            "class_id": school["class"]["id"], "component_type": component, "grade_value": value,
        })


def test_grade_sheet_json(client, fake_db, school, period, login_as):
    _seed_components(fake_db, school, period, {"regular_1": 8, "regular_2": 7, "regular_4": 9, "midterm": 7, "final": 8})
    login_as(TEACHER)
    data = client.get(_sheet_url(period, school)).json()["data"]

    row = data["students"][0]
    assert row["regular_grades"] == [8, 7, None, 9]
    assert row["average"] == 7.8
    assert data["statistics"]["class_average"] == 7.8
    assert data["statistics"]["distribution"]["good"] == 1


def test_grade_sheet_export(client, fake_db, school, period, login_as):
    _seed_components(fake_db, school, period, {"midterm": 6, "final": 7})
    login_as(ADMIN)
    res = client.get(_sheet_url(period, school) + "/export")
    assert res.status_code == 200
    ws = load_workbook(BytesIO(res.content)).active
    headers = [c.value for c in ws[3]]
    assert ws.cell(row=4, column=headers.index("Average") + 1).value == 6.6


def test_student_summary_access(client, fake_db, school, period, login_as):
    _seed_components(fake_db, school, period, {"midterm": 9, "final": 9})
    url = f"/api/grades/students/{STUDENT['user_id']}/summary"

    login_as(PARENT)
    data = client.get(url, params={"period_id": period["id"]}).json()["data"]
    assert data["overall_average"] == 9.0
    assert data["classification"] == "excellent"
    assert data["subjects"][0]["subject"]["code"] == "TOAN"

    login_as(STUDENT)
    assert client.get(url, params={"period_id": period["id"]}).status_code == 200

    login_as({**PARENT, "user_id": "parent-2", "uid": "parent-2"})
    assert client.get(url, params={"period_id": period["id"]}).status_code == 403


# ── Submission workflow ──────────────────────────────────────

def test_submission_workflow(client, fake_db, school, login_as):
    ids = {"academic_year_id": school["year"]["id"], "semester_id": school["semester"]["id"],
           "class_id": school["class"]["id"]}
    login_as(ADMIN)
    submission = client.post("/api/grades/submissions", json={**ids, "student_id": STUDENT["user_id"]}).json()["data"]
    assert submission["status"] == "draft"
    assert client.post("/api/grades/submissions", json={**ids, "student_id": STUDENT["user_id"]}).status_code == 409

    # Nothing submitted yet
    assert client.post("/api/grades/submissions/send-to-homeroom", json=ids).status_code == 400

    res = client.post(f"/api/grades/submissions/{submission['id']}/grades", json={
        "grades": [{"subject_id": school["subject"]["id"], "midterm_grade": 7, "final_grade": 8}],
    })
    assert res.status_code == 200
    assert res.json()["data"][0]["average_grade"] == 7.6
    assert fake_db.rows("student_grade_submissions", id=submission["id"])[0]["status"] == "submitted"

    res = client.post("/api/grades/submissions/send-to-homeroom", json=ids)
    assert res.status_code == 200
    assert res.json()["data"]["sent_count"] == 1
    assert fake_db.rows("class_grade_summaries")[0]["homeroom_teacher_id"] == TEACHER["user_id"]
    assert fake_db.rows("notifications", recipient_id=TEACHER["user_id"])

    # Sent submissions are frozen
    res = client.post(f"/api/grades/submissions/{submission['id']}/grades", json={
        "grades": [{"subject_id": school["subject"]["id"], "midterm_grade": 9, "final_grade": 9}],
    })
    assert res.status_code == 400

    login_as(TEACHER)
    assert [s["id"] for s in client.get("/api/grades/submissions/homeroom").json()["data"]] == [submission["id"]]

    login_as(PARENT)
    assert [s["id"] for s in client.get("/api/grades/submissions/parent").json()["data"]] == [submission["id"]]

    login_as(OTHER_TEACHER)
    assert client.get("/api/grades/submissions/homeroom").json()["data"] == []


def test_submission_grades_require_at_least_one_subject(client, fake_db, school, login_as):
    login_as(ADMIN)
    assert client.post("/api/grades/submissions/any/grades", json={"grades": []}).status_code == 422


# ── Period deadlines on update ───────────────────────────────

def _october_period(client, school, **overrides):
    return client.post("/api/grades/periods", json={
        "name": "Midterm 1", "academic_year_id": school["year"]["id"], "semester_id": school["semester"]["id"],
        "period_type": "midterm_1", "start_date": "2024-10-01", "end_date": "2024-10-31",
        "import_deadline": "2024-10-25T00:00:00Z", "edit_deadline": "2024-10-31T00:00:00Z",
        **overrides,
    })


def test_period_accepts_naive_and_aware_deadlines_together(client, school, login_as):
    login_as(ADMIN)
    res = _october_period(
        client, school, import_deadline="2024-10-25T00:00:00", edit_deadline="2024-10-31T00:00:00+07:00",
    )
    assert res.status_code == 200
    period_id = res.json()["data"]["id"]

    res = client.patch(f"/api/grades/periods/{period_id}", json={"import_deadline": "2024-10-26T08:00:00"})
    assert res.status_code == 200

    res = client.patch(f"/api/grades/periods/{period_id}", json={
        "import_deadline": "2024-10-30T00:00:00", "edit_deadline": "2024-10-29T00:00:00+00:00",
    })
    assert res.status_code == 422


def test_period_update_keeps_import_deadline_inside_the_period(client, fake_db, school, login_as):
    login_as(ADMIN)
    period_id = _october_period(client, school).json()["data"]["id"]

    res = client.patch(f"/api/grades/periods/{period_id}", json={"end_date": "2024-10-20"})
    assert res.status_code == 400
    assert res.json()["error"] == "Import deadline must not be later than the period end date"

    res = client.patch(f"/api/grades/periods/{period_id}", json={
        "import_deadline": "2024-11-02T00:00:00Z", "edit_deadline": "2024-11-05T00:00:00Z",
    })
    assert res.status_code == 400
    assert fake_db.rows("grade_reporting_periods", id=period_id)[0]["end_date"] == "2024-10-31"


# ── Downloads with non-ASCII names ───────────────────────────

def test_template_download_with_vietnamese_subject_name(client, fake_db, school, period, login_as):
    literature = fake_db.seed("subjects", {"name": "Ngữ văn", "code": None})[0]
    login_as(ADMIN)
    res = client.get(f"/api/grades/periods/{period['id']}/template",
                     params={"class_id": school["class"]["id"], "subject_id": literature["id"]})
    assert res.status_code == 200
    disposition = res.headers["content-disposition"]
    assert 'filename="grades_10A1_Ngu_van_semester_1_summary.xlsx"' in disposition
    assert "filename*=UTF-8''grades_10A1_Ng%E1%BB%AF%20v%C4%83n_semester_1_summary.xlsx" in disposition

    res = client.get(
        f"/api/grades/periods/{period['id']}/classes/{school['class']['id']}/subjects/{literature['id']}/export"
    )
    assert res.status_code == 200
    assert "_export.xlsx" in res.headers["content-disposition"]


# ── Yearly summary sheets ────────────────────────────────────

@pytest.fixture
def yearly(fake_db, school):
    return fake_db.seed("grade_reporting_periods", {
        "name": "Yearly summary", "academic_year_id": school["year"]["id"],
        "semester_id": school["semester_2"]["id"], "period_type": "yearly_summary",
        "start_date": "2025-05-01", "end_date": "2025-05-31",
        "import_deadline": _iso(5), "edit_deadline": _iso(10), "is_active": True,
    })[0]


def test_yearly_sheet_import_and_export(client, fake_db, school, yearly, login_as):
    login_as(TEACHER)
    template = _template_bytes(client, yearly, school)
    headers = [c.value for c in load_workbook(BytesIO(template)).active[3]]
    assert headers[-3:] == ["Semester 1", "Semester 2", "Yearly Average"]

    # Four regular columns stay blank; both semester grades, no yearly grade
    res = _import(client, yearly, school, _filled_template(template, [None, None, None, None, 6.5, 8.0]))
    assert res.json()["data"]["imported_grades"] == 2
    stored = {g["component_type"]: g["grade_value"] for g in fake_db.rows("student_detailed_grades")}
    assert stored == {"semester_1": 6.5, "semester_2": 8.0}

    sheet = client.get(_sheet_url(yearly, school)).json()["data"]
    assert sheet["students"][0]["average"] == 7.5

    _import(client, yearly, school, _filled_template(template, [None, None, None, None, 6.5, 8.0, 9.0]))
    assert client.get(_sheet_url(yearly, school)).json()["data"]["students"][0]["average"] == 9.0

    ws = load_workbook(BytesIO(client.get(_sheet_url(yearly, school) + "/export").content)).active
    headers = [c.value for c in ws[3]]
    assert ws.cell(row=4, column=headers.index("Yearly Average") + 1).value == 9.0
    assert ws.cell(row=4, column=headers.index("Average") + 1).value == 9.0
