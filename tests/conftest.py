from __future__ import annotations

import itertools
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from schoolhub.core import database
from schoolhub.core.config import settings
from schoolhub.core.security import get_current_user
from schoolhub.main import app


# ---------------------------------------------------------------------------
# In-memory stand-in for the supabase client
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, data: Any, count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable query builder covering the subset of postgrest-py the app uses."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict = ""
        self.filters: list = []
        self.orders: list[tuple[str, bool]] = []
        self.bounds: Optional[tuple[int, int]] = None
        self.max_rows: Optional[int] = None
        self.single_mode: Optional[str] = None
        self.count_mode: Optional[str] = None

    # -- operations --------------------------------------------------------
    def select(self, columns: str = "*", count: Optional[str] = None):
        self.count_mode = count
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: str = ""):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    # -- filters -----------------------------------------------------------
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def ilike(self, column, pattern):
        regex = re.compile("^" + re.escape(pattern).replace("%", ".*") + "$", re.IGNORECASE)
        self.filters.append(lambda row: row.get(column) is not None and bool(regex.match(str(row.get(column)))))
        return self

    def contains(self, column, values):
        self.filters.append(lambda row: set(values).issubset(row.get(column) or []))
        return self

    # -- modifiers ---------------------------------------------------------
    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def range(self, start, end):
        self.bounds = (start, end)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def maybe_single(self):
        self.single_mode = "maybe"
        return self

    def single(self):
        self.single_mode = "single"
        return self

    # -- execution ---------------------------------------------------------
    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self.filters)

    def execute(self) -> FakeResponse:
        error = self.db.errors.pop((self.table, self.op), None)
        if error is not None:
            raise error

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.new_row(self.table, item) for item in items]
            return FakeResponse([dict(r) for r in created])

        if self.op == "upsert":
            keys = [k.strip() for k in self.on_conflict.split(",") if k.strip()]
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            out = []
            for item in items:
                existing = next(
                    (r for r in rows if keys and all(r.get(k) == item.get(k) for k in keys)), None,
                )
                if existing is not None:
                    existing.update(item)
                    out.append(dict(existing))
                else:
                    out.append(dict(self.db.new_row(self.table, item)))
            return FakeResponse(out)

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(r) for r in matched])

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if r not in matched]
            return FakeResponse([dict(r) for r in matched])

        result = [dict(r) for r in matched]
        for column, desc in reversed(self.orders):
            result.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        total = len(result)
        if self.bounds:
            result = result[self.bounds[0]:self.bounds[1] + 1]
        if self.max_rows is not None:
            result = result[:self.max_rows]

        if self.single_mode:
            if self.single_mode == "single" and len(result) != 1:
                raise APIError({"message": "JSON object requested, multiple (or no) rows returned", "code": "PGRST116"})
            return FakeResponse(result[0] if result else None)

        return FakeResponse(result, total if self.count_mode else None)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path, content, options=None):
        self.storage.objects[(self.name, path)] = {"content": content, "options": options or {}}
        return {"path": path}

    def get_public_url(self, path):
        return f"https://storage.school.test/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.objects: dict[tuple[str, str], dict] = {}

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.errors: dict[tuple[str, str], APIError] = {}
        self.storage = FakeStorage()
        self._clock = itertools.count()
        self._epoch = datetime(2024, 9, 1, tzinfo=timezone.utc)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def new_row(self, table: str, item: dict) -> dict:
        # Strictly increasing created_at so "newest first" ordering is deterministic
        row = {
            "id": str(uuid.uuid4()),
            "created_at": (self._epoch + timedelta(seconds=next(self._clock))).isoformat(),
            **item,
        }
        self.tables.setdefault(table, []).append(row)
        return row

    def seed(self, table: str, *rows: dict) -> list[dict]:
        return [self.new_row(table, dict(r)) for r in rows]

    def rows(self, table: str, **where) -> list[dict]:
        return [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in where.items())]

    def fail_next(self, table: str, op: str, code: str = "XX000", message: str = "boom"):
        self.errors[(table, op)] = APIError({"message": message, "code": code, "hint": None, "details": None})


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------

def principal(user_id: str, role: str, email: str, full_name: str, homeroom_enabled: bool = False) -> dict:
    return {
        "uid": user_id,
        "user_id": user_id,
        "email": email,
        "full_name": full_name,
        "role": role,
        "homeroom_enabled": homeroom_enabled,
    }


ADMIN = principal("admin-1", "admin", "admin@school.edu.vn", "Nguyen Van Admin")
TEACHER = principal("teacher-1", "teacher", "lan.tran@school.edu.vn", "Tran Thi Lan", homeroom_enabled=True)
OTHER_TEACHER = principal("teacher-2", "teacher", "minh.le@school.edu.vn", "Le Van Minh", homeroom_enabled=True)
PARENT = principal("parent-1", "parent", "hoa.pham@gmail.com", "Pham Thi Hoa")
STUDENT = principal("student-1", "student", "an.pham@school.edu.vn", "Pham Van An")


def profile_row(p: dict, **extra) -> dict:
    return {
        "id": p["user_id"],
        "email": p["email"],
        "full_name": p["full_name"],
        "role": p["role"],
        "homeroom_enabled": p["homeroom_enabled"],
        "is_active": True,
        **extra,
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_db(monkeypatch) -> FakeSupabase:
    fake = FakeSupabase()
    monkeypatch.setattr(database, "_supabase_client", fake)
    return fake


@pytest.fixture
def client(fake_db):
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    def _login(user: dict):
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _login
    app.dependency_overrides.clear()


@pytest.fixture
def school(fake_db) -> dict:
    """A current academic year with two semesters, a class led by TEACHER and one enrolled student."""
    for p in (ADMIN, TEACHER, OTHER_TEACHER, PARENT):
        fake_db.seed("profiles", profile_row(p))
    fake_db.seed("profiles", profile_row(STUDENT, student_code="HS001"))

    year = fake_db.seed("academic_years", {
        "name": "2024-2025", "start_date": "2024-09-05", "end_date": "2025-05-31", "is_current": True,
    })[0]
    s1, s2 = fake_db.seed(
        "semesters",
        {"academic_year_id": year["id"], "name": "Semester 1", "semester_number": 1,
         "start_date": "2024-09-05", "end_date": "2025-01-05", "weeks_count": 18, "is_current": True},
        {"academic_year_id": year["id"], "name": "Semester 2", "semester_number": 2,
         "start_date": "2025-01-06", "end_date": "2025-05-31", "weeks_count": 17, "is_current": False},
    )
    cls = fake_db.seed("classes", {
        "name": "10A1", "academic_year_id": year["id"], "semester_id": s1["id"],
        "homeroom_teacher_id": TEACHER["user_id"], "max_students": 40, "current_students": 1,
        "is_subject_combination": False,
    })[0]
    fake_db.seed("student_class_assignments", {
        "student_id": STUDENT["user_id"], "class_id": cls["id"], "assignment_type": "main",
        "academic_year_id": year["id"], "semester_id": s1["id"], "is_active": True,
    })
    fake_db.seed("parent_student_relationships", {
        "parent_id": PARENT["user_id"], "student_id": STUDENT["user_id"], "relationship": "mother",
    })
    math = fake_db.seed("subjects", {"name": "Mathematics", "code": "TOAN"})[0]
    fake_db.seed("teacher_class_assignments", {
        "teacher_id": TEACHER["user_id"], "class_id": cls["id"], "subject_id": math["id"], "is_active": True,
    })
    return {"year": year, "semester": s1, "semester_2": s2, "class": cls, "subject": math}


@pytest.fixture(autouse=True)
def no_outgoing_email(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
