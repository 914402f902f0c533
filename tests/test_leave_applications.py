from __future__ import annotations

import pytest

from schoolhub.core.config import settings
from tests.conftest import ADMIN, OTHER_TEACHER, PARENT, STUDENT, TEACHER, profile_row


def _application(**extra) -> dict:
    return {
        "student_id": STUDENT["user_id"], "leave_type": "sick",
        "start_date": "2024-10-07", "end_date": "2024-10-08", "reason": "Fever", **extra,
    }


@pytest.fixture
def application(client, school, login_as):
    login_as(PARENT)
    return client.post("/api/leave-applications", json=_application()).json()["data"]


def test_parent_submits_for_own_child(client, fake_db, school, login_as):
    login_as(PARENT)
    res = client.post("/api/leave-applications", json=_application())
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "pending"
    assert data["class_id"] == school["class"]["id"]
    assert data["homeroom_teacher_id"] == TEACHER["user_id"]
    assert data["start_date"] == "2024-10-07"

    notice = fake_db.rows("notifications", recipient_id=TEACHER["user_id"])[0]
    assert "07/10/2024" in notice["content"]


def test_parent_cannot_submit_for_other_child(client, fake_db, school, login_as):
    fake_db.seed("profiles", profile_row({**STUDENT, "user_id": "student-2"}))
    login_as(PARENT)
    assert client.post("/api/leave-applications", json=_application(student_id="student-2")).status_code == 403


def test_child_without_class_is_rejected(client, fake_db, school, login_as):
    fake_db.rows("student_class_assignments")[0]["is_active"] = False
    login_as(PARENT)
    res = client.post("/api/leave-applications", json=_application())
    assert res.status_code == 400
    assert res.json()["error"] == "Student is not currently assigned to any class"


@pytest.mark.parametrize("override", [
    {"end_date": "2024-10-06"},
    {"reason": ""},
    {"leave_type": "holiday"},
])
def test_invalid_applications(client, school, login_as, override):
    login_as(PARENT)
    assert client.post("/api/leave-applications", json=_application(**override)).status_code == 422


def test_only_parents_submit(client, school, login_as):
    login_as(TEACHER)
    assert client.post("/api/leave-applications", json=_application()).status_code == 403


def test_lists_are_scoped(client, application, login_as):
    login_as(PARENT)
    assert [a["id"] for a in client.get("/api/leave-applications/parent").json()["data"]] == [application["id"]]

    login_as(TEACHER)
    assert [a["id"] for a in client.get("/api/leave-applications/teacher").json()["data"]] == [application["id"]]

    login_as(OTHER_TEACHER)
    assert client.get("/api/leave-applications/teacher").json()["data"] == []
    assert client.get(f"/api/leave-applications/{application['id']}").status_code == 403

    login_as(ADMIN)
    assert client.get(f"/api/leave-applications/{application['id']}").status_code == 200


def test_homeroom_teacher_responds_once(client, fake_db, application, login_as):
    login_as(OTHER_TEACHER)
    url = f"/api/leave-applications/{application['id']}/respond"
    assert client.post(url, json={"status": "approved"}).status_code == 403

    login_as(TEACHER)
    res = client.post(url, json={"status": "approved", "teacher_response": "Get well soon"})
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "approved"
    assert res.json()["data"]["responded_at"]

    notice = fake_db.rows("notifications", recipient_id=PARENT["user_id"])[0]
    assert notice["title"] == "Leave application approved"

    res = client.post(url, json={"status": "rejected"})
    assert res.status_code == 400
    assert res.json()["error"] == "This application has already been approved"


def test_response_status_is_restricted(client, application, login_as):
    login_as(TEACHER)
    res = client.post(f"/api/leave-applications/{application['id']}/respond", json={"status": "pending"})
    assert res.status_code == 422


def test_attachment_upload(client, fake_db, school, login_as):
    login_as(PARENT)
    res = client.post(
        "/api/leave-applications/attachments",
        files={"file": ("note.pdf", b"%PDF-1.4 doctor's note", "application/pdf")},
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["path"].startswith(f"{PARENT['user_id']}-") and data["path"].endswith(".pdf")
    assert (settings.LEAVE_ATTACHMENT_BUCKET, data["path"]) in fake_db.storage.objects


def test_attachment_type_is_checked(client, school, login_as):
    login_as(PARENT)
    res = client.post(
        "/api/leave-applications/attachments",
        files={"file": ("run.sh", b"echo hi", "text/x-shellscript")},
    )
    assert res.status_code == 400
