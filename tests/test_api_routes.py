"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Drives the HTTP surface end-to-end with the FastAPI TestClient against the
in-memory database and a fake Google identity provider.

These tests verify:
- Auth guards (401 without a valid token, 403 for non-admins)
- Sign-in flow and user provisioning
- Session lifecycle over HTTP and the 404 / 403 / 409 error mapping
- Request validation (422)
- Admin listings, roster upload and CSV exports
"""

from __future__ import annotations

import jwt
import pytest
from sqlalchemy.orm import Session

from conftest import add_shots, auth, make_session, make_token, make_user
from factorshot.api.deps import JWT_ALGORITHM, JWT_SECRET
from factorshot.database.models import Role, User
from factorshot.services.account_service import IdentityClaims

START = {"started_at": "2026-03-02T09:00:00", "canvas_width": 1200, "canvas_height": 800}
FINISH = {
    "finished_at": "2026-03-02T09:03:00",
    "final_score": 120,
    "max_level_reached": 4,
    "duration_seconds": 180,
}


def _shot(correct: bool = True, **overrides) -> dict:
    body = {
        "shot_at": "2026-03-02T09:00:05",
        "coordinate_x": 640.0,
        "coordinate_y": 360.5,
        "factor_1": 7,
        "factor_2": 8,
        "correct_answer": 56,
        "card_value": 56 if correct else 54,
        "is_correct": correct,
    }
    body.update(overrides)
    return body


@pytest.fixture
def student(db_engine):
    return make_user(db_engine, "ana@example.com", google_id="g-ana", group="4A")


@pytest.fixture
def other(db_engine):
    return make_user(db_engine, "ben@example.com", google_id="g-ben", group="4B", name="Ben")


@pytest.fixture
def admin(db_engine):
    return make_user(
        db_engine, "boss@example.com", google_id="g-boss", role=Role.ADMIN, group=None,
        name="Root", lastname=None,
    )


@pytest.fixture
def student_headers(student):
    return auth(make_token(student))


@pytest.fixture
def admin_headers(admin):
    return auth(make_token(admin))


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("get", "/api/auth/me"),
            ("get", "/api/sessions"),
            ("post", "/api/sessions"),
            ("get", "/api/sessions/1"),
            ("put", "/api/sessions/1/finish"),
            ("post", "/api/sessions/1/shots"),
            ("get", "/api/admin/users"),
            ("get", "/api/admin/groups"),
            ("get", "/api/admin/export/users"),
        ],
    )
    def test_no_token_is_rejected(self, client, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 401

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers=auth("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_token_signed_with_other_secret(self, client, student):
        token = jwt.encode({"sub": str(student.id)}, "x" * 64, algorithm=JWT_ALGORITHM)
        assert client.get("/api/auth/me", headers=auth(token)).status_code == 401

    def test_token_for_deleted_user(self, client):
        token = jwt.encode({"sub": "9999"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
        resp = client.get("/api/auth/me", headers=auth(token))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Unknown user"

    def test_student_cannot_use_admin_surface(self, client, student_headers):
        for path in ("/api/admin/users", "/api/admin/groups", "/api/admin/export/users"):
            resp = client.get(path, headers=student_headers)
            assert resp.status_code == 403

    def test_teacher_is_not_admin(self, client, db_engine):
        teacher = make_user(db_engine, "t@example.com", google_id="g-t", role=Role.TEACHER)
        resp = client.get("/api/admin/users", headers=auth(make_token(teacher)))
        assert resp.status_code == 403

    def test_me(self, client, student, student_headers):
        resp = client.get("/api/auth/me", headers=student_headers)
        assert resp.status_code == 200
        assert resp.json()["email"] == "ana@example.com"
        assert resp.json()["role"] == "student"


# ===========================================================================
# Sign-in
# ===========================================================================
class TestVerify:
    def test_new_user_is_provisioned(self, client, identity_resolver):
        identity_resolver.tokens["google-token"] = IdentityClaims(
            google_id="g-new", email="new@example.com", name="New", lastname="Kid"
        )
        resp = client.post(
            "/api/auth/verify", json={"token": "google-token"},
            headers={"User-Agent": "pytest-browser"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "new@example.com"
        assert body["user"]["role"] == "student"

        me = client.get("/api/auth/me", headers=auth(body["access_token"]))
        assert me.status_code == 200
        assert me.json()["id"] == body["user"]["id"]

    def test_roster_user_is_linked(self, client, db_engine, identity_resolver):
        pending = make_user(db_engine, "ana@example.com", google_id=None, group="4A")
        identity_resolver.tokens["t"] = IdentityClaims(
            google_id="g-1", email="ana@example.com", email_verified=True
        )

        body = client.post("/api/auth/verify", json={"token": "t"}).json()
        assert body["user"]["id"] == pending.id
        assert body["user"]["group"] == "4A"
        assert body["user"]["has_google_identity"] is True

    def test_email_owned_by_other_google_account_is_unauthorized(
        self, client, db_engine, identity_resolver
    ):
        admin = make_user(db_engine, "boss@example.com", google_id="g-boss", role=Role.ADMIN)
        identity_resolver.tokens["t"] = IdentityClaims(
            google_id="g-other", email="boss@example.com", email_verified=True
        )

        resp = client.post("/api/auth/verify", json={"token": "t"})

        assert resp.status_code == 401
        with Session(db_engine) as s:
            assert s.get(User, admin.id).google_id == "g-boss"

    def test_invalid_google_token(self, client):
        resp = client.post("/api/auth/verify", json={"token": "forged"})
        assert resp.status_code == 401

    def test_empty_token_is_a_validation_error(self, client):
        assert client.post("/api/auth/verify", json={"token": ""}).status_code == 422


# ===========================================================================
# Sessions
# ===========================================================================
class TestSessionFlow:
    def test_full_round(self, client, student_headers):
        created = client.post("/api/sessions", json=START, headers=student_headers)
        assert created.status_code == 201
        session = created.json()["data"]
        assert session["is_active"] is True
        assert session["group_snapshot"] == "4A"
        sid = session["id"]

        for ok in (True, True, True, False, False):
            resp = client.post(f"/api/sessions/{sid}/shots", json=_shot(ok), headers=student_headers)
            assert resp.status_code == 201
            assert resp.json()["data"]["is_correct"] is ok

        finished = client.put(f"/api/sessions/{sid}/finish", json=FINISH, headers=student_headers)
        assert finished.status_code == 200
        data = finished.json()["data"]
        assert data["is_active"] is False
        assert data["final_score"] == 120
        assert data["total_shots"] == 5
        assert data["correct_shots"] == 3
        assert data["wrong_shots"] == 2
        assert data["accuracy"] == 60.0

        detail = client.get(f"/api/sessions/{sid}", headers=student_headers).json()["data"]
        assert detail["session"]["accuracy"] == 60.0
        assert len(detail["shots"]) == 5

        listing = client.get("/api/sessions", headers=student_headers).json()
        assert listing["pagination"]["total"] == 1
        assert listing["data"][0]["id"] == sid
        assert listing["data"][0]["accuracy"] == 60.0

    def test_second_finish_conflicts(self, client, student_headers):
        sid = client.post("/api/sessions", json=START, headers=student_headers).json()["data"]["id"]
        client.put(f"/api/sessions/{sid}/finish", json=FINISH, headers=student_headers)

        again = client.put(
            f"/api/sessions/{sid}/finish",
            json={**FINISH, "final_score": 999},
            headers=student_headers,
        )
        assert again.status_code == 409
        assert again.json()["error"] == "invalid_state"

        detail = client.get(f"/api/sessions/{sid}", headers=student_headers).json()["data"]
        assert detail["session"]["final_score"] == 120

    def test_shot_after_finish_conflicts(self, client, student_headers):
        sid = client.post("/api/sessions", json=START, headers=student_headers).json()["data"]["id"]
        client.put(f"/api/sessions/{sid}/finish", json=FINISH, headers=student_headers)
        resp = client.post(f"/api/sessions/{sid}/shots", json=_shot(), headers=student_headers)
        assert resp.status_code == 409

    def test_foreign_session(self, client, db_engine, student, other, student_headers):
        game = make_session(db_engine, other.id)
        finish = client.put(f"/api/sessions/{game.id}/finish", json=FINISH, headers=student_headers)
        assert finish.status_code == 403
        assert finish.json()["error"] == "forbidden"

        shot = client.post(f"/api/sessions/{game.id}/shots", json=_shot(), headers=student_headers)
        assert shot.status_code == 403

        detail = client.get(f"/api/sessions/{game.id}", headers=student_headers)
        assert detail.status_code == 404

    def test_missing_session(self, client, student_headers):
        resp = client.post("/api/sessions/4242/shots", json=_shot(), headers=student_headers)
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_list_only_shows_own_sessions(self, client, db_engine, student, other, student_headers):
        make_session(db_engine, student.id)
        make_session(db_engine, other.id)
        listing = client.get("/api/sessions", headers=student_headers).json()
        assert [s["user_id"] for s in listing["data"]] == [student.id]


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"canvas_width": 0},
            {"canvas_height": 10_001},
            {"canvas_width": "1200"},
            {"started_at": "yesterday"},
        ],
    )
    def test_bad_create(self, client, student_headers, overrides):
        resp = client.post("/api/sessions", json={**START, **overrides}, headers=student_headers)
        assert resp.status_code == 422

    @pytest.mark.parametrize(
        "overrides",
        [
            {"final_score": -1},
            {"max_level_reached": 0},
            {"duration_seconds": 601},
        ],
    )
    def test_bad_finish(self, client, student_headers, overrides):
        sid = client.post("/api/sessions", json=START, headers=student_headers).json()["data"]["id"]
        resp = client.put(
            f"/api/sessions/{sid}/finish", json={**FINISH, **overrides}, headers=student_headers
        )
        assert resp.status_code == 422
        detail = client.get(f"/api/sessions/{sid}", headers=student_headers).json()["data"]
        assert detail["session"]["is_active"] is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"factor_1": 0},
            {"factor_2": 13},
            {"correct_answer": 145},
            {"card_value": -1},
            {"coordinate_x": 1200.5},
            {"coordinate_y": -0.1},
            {"is_correct": "yes"},
        ],
    )
    def test_bad_shot(self, client, student_headers, overrides):
        sid = client.post("/api/sessions", json=START, headers=student_headers).json()["data"]["id"]
        resp = client.post(
            f"/api/sessions/{sid}/shots", json=_shot(**overrides), headers=student_headers
        )
        assert resp.status_code == 422

    def test_playfield_edges_are_accepted(self, client, student_headers):
        sid = client.post("/api/sessions", json=START, headers=student_headers).json()["data"]["id"]
        resp = client.post(
            f"/api/sessions/{sid}/shots",
            json=_shot(coordinate_x=1200, coordinate_y=0, factor_1=12, factor_2=12,
                       correct_answer=144, card_value=144),
            headers=student_headers,
        )
        assert resp.status_code == 201


# ===========================================================================
# Admin
# ===========================================================================
class TestAdminViews:
    def test_groups(self, client, student, other, admin_headers):
        resp = client.get("/api/admin/groups", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"] == ["4A", "4B"]

    def test_users_listing(self, client, db_engine, student, other, admin_headers):
        make_session(db_engine, student.id)
        resp = client.get(
            "/api/admin/users",
            params={"group": "4A", "sort_by": "email", "order": "asc"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [u["email"] for u in body["data"]] == ["ana@example.com"]
        assert body["data"][0]["sessions_count"] == 1
        assert body["data"][0]["best_score"] is None
        assert body["filters_applied"] == {"group": "4A", "role": None, "search": None}
        assert body["pagination"]["per_page"] == 40

    def test_users_bad_role_filter(self, client, admin_headers):
        resp = client.get("/api/admin/users", params={"role": "wizard"}, headers=admin_headers)
        assert resp.status_code == 422

    def test_user_sessions(self, client, db_engine, student, admin_headers):
        game = make_session(db_engine, student.id)
        add_shots(db_engine, game.id, correct=1, wrong=1)

        resp = client.get(f"/api/admin/users/{student.id}/sessions", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["user"]["email"] == "ana@example.com"
        assert body["data"][0]["row_number"] == 1
        assert body["data"][0]["accuracy"] == 50.0
        assert body["summary"]["total_sessions"] == 0

    def test_user_sessions_unknown_user(self, client, admin_headers):
        resp = client.get("/api/admin/users/999/sessions", headers=admin_headers)
        assert resp.status_code == 404


class TestRosterUpload:
    def test_import(self, client, student, admin_headers):
        csv_bytes = (
            "\ufeffemail,group,name\n"
            "ana@example.com,5A,\n"
            "new@example.com,5B,Nuevo\n"
            "broken,5C,\n"
        ).encode("utf-8")
        resp = client.post(
            "/api/admin/users/upload-csv",
            files={"file": ("roster.csv", csv_bytes, "text/csv")},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Import completed"
        assert body["stats"] == {"created": 1, "updated": 1, "errors": 1}
        assert body["error_details"] == ["Row 4: invalid email (broken)"]

    def test_wrong_extension(self, client, admin_headers):
        resp = client.post(
            "/api/admin/users/upload-csv",
            files={"file": ("roster.xlsx", b"email,group\n", "application/octet-stream")},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    def test_too_large(self, client, admin_headers):
        payload = b"email,group\n" + b"x" * (2 * 1024 * 1024)
        resp = client.post(
            "/api/admin/users/upload-csv",
            files={"file": ("roster.csv", payload, "text/csv")},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    def test_missing_columns(self, client, admin_headers):
        resp = client.post(
            "/api/admin/users/upload-csv",
            files={"file": ("roster.txt", b"mail,grupo\na@b.com,1\n", "text/plain")},
            headers=admin_headers,
        )
        assert resp.status_code == 422
        assert "email, group" in resp.json()["detail"]

    def test_requires_admin(self, client, student_headers):
        resp = client.post(
            "/api/admin/users/upload-csv",
            files={"file": ("roster.csv", b"email,group\n", "text/csv")},
            headers=student_headers,
        )
        assert resp.status_code == 403


class TestExports:
    def test_users_csv(self, client, student, admin_headers):
        resp = client.get("/api/admin/export/users", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        disposition = resp.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="users_')
        lines = resp.text.splitlines()
        assert lines[0].startswith("Email,Name,Lastname,Role,Group")
        assert len(lines) == 3  # header + student + admin

    def test_user_sessions_csv(self, client, db_engine, student, admin_headers):
        make_session(db_engine, student.id)
        resp = client.get(f"/api/admin/export/users/{student.id}/sessions", headers=admin_headers)
        assert resp.status_code == 200
        assert "sessions_ana_example_com_" in resp.headers["content-disposition"]
        assert resp.text.startswith("# Sessions of: Ana Lopez (ana@example.com)\n")

    def test_unknown_user(self, client, admin_headers):
        resp = client.get("/api/admin/export/users/999/sessions", headers=admin_headers)
        assert resp.status_code == 404
