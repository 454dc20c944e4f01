# ABOUTME: FastAPI TestClient tests for /auth, planning and tracking routes; in-memory DB, briefing agent mocked.
# ABOUTME: Covers confirmation gating, user scoping, status codes and the {"message"} error shape.

from contextlib import contextmanager
from datetime import datetime, timezone
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from api.main import app
from core.auth import create_access_token, create_confirmation_token, hash_password
from core.database import User
from core.schemas import BriefingModel

SESSION_PATCH_TARGETS = (
    "api.auth_routes.get_session",
    "api.plan_routes.get_session",
    "api.tracking_routes.get_session",
    "core.auth.get_session",
)


@contextmanager
def _with_fake_session(fake_get_session):
    """Patch get_session everywhere it is imported so all app code uses the in-memory DB."""
    patches = [patch(target, fake_get_session) for target in SESSION_PATCH_TARGETS]
    for p in patches:
        p.start()
    try:
        yield
    finally:
        for p in reversed(patches):
            p.stop()


@pytest.fixture
def client(fake_get_session):
    with _with_fake_session(fake_get_session):
        yield TestClient(app)


def _make_user(engine, email="sam@example.com", password="secret1", confirmed=True):
    with Session(engine) as session:
        user = User(
            email=email,
            name="Sam",
            password_hash=hash_password(password),
            email_confirmed_at=datetime.now(timezone.utc) if confirmed else None,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


@pytest.fixture
def auth_headers(in_memory_engine):
    """A confirmed user and headers with a valid Bearer token."""
    user = _make_user(in_memory_engine)
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def _create_goal(client, headers, **body):
    resp = client.post("/goals", json={"name": "Goal", **body}, headers=headers)
    assert resp.status_code == 201
    return resp.json()


# Auth


def test_signup_201_requires_confirmation(client, in_memory_engine):
    """Signup creates an unconfirmed user and returns no token while confirmation is required."""
    resp = client.post(
        "/auth/signup", json={"email": " New@Example.com ", "password": "secret1", "name": "New"}
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["user"]["email"] == "new@example.com"
    assert data["confirmation_required"] is True
    assert data["access_token"] is None


def test_signup_returns_token_when_confirmation_disabled(client):
    with patch("api.auth_routes.REQUIRE_EMAIL_CONFIRMATION", False):
        resp = client.post("/auth/signup", json={"email": "a@b.co", "password": "secret1", "name": "A"})
    assert resp.status_code == 201
    assert resp.json()["access_token"]
    assert resp.json()["user"]["email_confirmed_at"] is not None


@pytest.mark.parametrize(
    "body,fragment",
    [
        ({"email": "nope", "password": "secret1", "name": "A"}, "valid email"),
        ({"email": "a@b.co", "password": "short", "name": "A"}, "at least 6"),
        ({"email": "a@b.co", "password": "secret1", "name": " "}, "your name"),
    ],
)
def test_signup_400_on_invalid_input(client, body, fragment):
    resp = client.post("/auth/signup", json=body)
    assert resp.status_code == 400
    assert fragment in resp.json()["message"]


def test_signup_409_when_email_taken(client, in_memory_engine):
    _make_user(in_memory_engine, email="taken@example.com")
    resp = client.post("/auth/signup", json={"email": "TAKEN@example.com", "password": "secret1", "name": "T"})
    assert resp.status_code == 409
    assert "already exists" in resp.json()["message"]


def test_login_200_returns_token(client, in_memory_engine):
    _make_user(in_memory_engine)
    resp = client.post("/auth/login", json={"email": "Sam@Example.com", "password": "secret1"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["expires_in"] > 0
    assert data["confirmation_required"] is False


def test_login_flags_unconfirmed_user(client, in_memory_engine):
    """Unconfirmed users can log in but are told confirmation is still required."""
    _make_user(in_memory_engine, confirmed=False)
    resp = client.post("/auth/login", json={"email": "sam@example.com", "password": "secret1"})
    assert resp.status_code == 200
    assert resp.json()["confirmation_required"] is True


def test_login_401_wrong_password(client, in_memory_engine):
    _make_user(in_memory_engine)
    resp = client.post("/auth/login", json={"email": "sam@example.com", "password": "wrong!"})
    assert resp.status_code == 401


def test_login_401_unknown_email(client):
    resp = client.post("/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
    assert resp.status_code == 401


def test_session_works_for_unconfirmed_token(client, in_memory_engine):
    """Session lookup accepts any valid token so the client can see the confirmation state."""
    user = _make_user(in_memory_engine, confirmed=False)
    headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
    resp = client.get("/auth/session", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["email_confirmed_at"] is None


def test_data_routes_require_auth_and_confirmation(client, in_memory_engine):
    """401 without a token or with a bad one; 403 for an unconfirmed email."""
    assert client.get("/goals").status_code == 401
    assert client.get("/goals", headers={"Authorization": "Bearer junk"}).status_code == 401
    user = _make_user(in_memory_engine, confirmed=False)
    headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
    assert client.get("/goals", headers=headers).status_code == 403


def test_resend_confirmation_always_202(client, in_memory_engine):
    _make_user(in_memory_engine, confirmed=False)
    assert client.post("/auth/resend-confirmation", json={"email": "sam@example.com"}).status_code == 202
    assert client.post("/auth/resend-confirmation", json={"email": "ghost@example.com"}).status_code == 202


def _verification_status(resp):
    assert resp.status_code == 303
    query = parse_qs(urlparse(resp.headers["location"]).query)
    assert query["page"] == ["/app"]
    return query["verification_status"][0]


def test_confirm_link_success_then_already_verified(client, in_memory_engine):
    """First click confirms; a second click reports already_verified."""
    _make_user(in_memory_engine, confirmed=False)
    token = create_confirmation_token("sam@example.com")
    assert _verification_status(client.get(f"/auth/confirm?token={token}", follow_redirects=False)) == "success"
    with Session(in_memory_engine) as session:
        user = session.exec(select(User).where(User.email == "sam@example.com")).one()
        assert user.email_confirmed_at is not None
    second = client.get(f"/auth/confirm?token={token}", follow_redirects=False)
    assert _verification_status(second) == "already_verified"


def test_confirm_link_bad_token_reports_failure(client):
    """Invalid links use the established 'failiure' wire value."""
    resp = client.get("/auth/confirm?token=garbage", follow_redirects=False)
    assert _verification_status(resp) == "failiure"


# Planning


def test_goal_crud_and_order(client, auth_headers):
    a = _create_goal(client, auth_headers, name="A", measurement_configs=[{"name": "Revenue", "unit": "$", "target": 100}])
    b = _create_goal(client, auth_headers, name="B")
    assert a["measurement_configs"][0]["id"]

    resp = client.patch(f"/goals/{a['id']}", json={"description": "more"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "A"
    assert resp.json()["description"] == "more"

    resp = client.put("/goals/order", json={"ids": [b["id"], a["id"]]}, headers=auth_headers)
    assert resp.status_code == 200
    assert [g["id"] for g in resp.json()["goals"]] == [b["id"], a["id"]]

    resp = client.get("/goals", headers=auth_headers)
    assert [(g["name"], g["position"]) for g in resp.json()["goals"]] == [("B", 0), ("A", 1)]


def test_goal_order_400_when_not_a_permutation(client, auth_headers):
    a = _create_goal(client, auth_headers)
    resp = client.put("/goals/order", json={"ids": [a["id"], "other"]}, headers=auth_headers)
    assert resp.status_code == 400
    assert "message" in resp.json()


def test_goal_duplicate_client_id_409(client, auth_headers):
    _create_goal(client, auth_headers, id="g1")
    resp = client.post("/goals", json={"id": "g1", "name": "again"}, headers=auth_headers)
    assert resp.status_code == 409


def test_other_users_goal_id_409_without_owner_hint(client, auth_headers, in_memory_engine):
    own = _create_goal(client, auth_headers, id="g1")
    other = _make_user(in_memory_engine, email="other@example.com")
    other_headers = {"Authorization": f"Bearer {create_access_token(other.id)}"}
    taken = client.post("/goals", json={"id": "g1", "name": "guess"}, headers=other_headers)
    again = client.post("/goals", json={"id": "g1", "name": "again"}, headers=auth_headers)
    assert taken.status_code == 409
    assert taken.json() == again.json() == {"message": "Id unavailable; choose another."}
    assert client.get("/goals", headers=auth_headers).json()["goals"] == [own]


def test_other_users_goal_is_404(client, auth_headers, in_memory_engine):
    goal = _create_goal(client, auth_headers)
    other = _make_user(in_memory_engine, email="other@example.com")
    other_headers = {"Authorization": f"Bearer {create_access_token(other.id)}"}
    assert client.patch(f"/goals/{goal['id']}", json={"name": "x"}, headers=other_headers).status_code == 404
    assert client.get("/goals", headers=other_headers).json() == {"goals": []}


def test_delete_goal_cascades(client, auth_headers):
    goal = _create_goal(client, auth_headers, measurement_configs=[{"id": "c1", "name": "Calls"}])
    client.post("/tactics", json={"goal_id": goal["id"], "name": "t"}, headers=auth_headers)
    client.put(
        "/measurements",
        json={"goal_id": goal["id"], "config_id": "c1", "week_num": 1, "value": 3},
        headers=auth_headers,
    )
    assert client.delete(f"/goals/{goal['id']}", headers=auth_headers).status_code == 204
    assert client.get("/tactics", headers=auth_headers).json() == {"tactics": []}
    assert client.get("/measurements", headers=auth_headers).json() == {"measurements": []}


def test_tactic_completion_and_type_switch(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    tactic = client.post(
        "/tactics", json={"goal_id": goal["id"], "name": "Call", "type": "weekly"}, headers=auth_headers
    ).json()
    assert tactic["assigned_weeks"] == list(range(1, 13))

    resp = client.put(f"/tactics/{tactic['id']}/completions/2", json={"value": True}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["completions"] == {"2": True}

    bad = client.put(f"/tactics/{tactic['id']}/completions/2", json={"value": [True] * 7}, headers=auth_headers)
    assert bad.status_code == 400

    conflict = client.patch(f"/tactics/{tactic['id']}", json={"type": "daily"}, headers=auth_headers)
    assert conflict.status_code == 409

    switched = client.patch(
        f"/tactics/{tactic['id']}", json={"type": "daily", "confirm_reset": True}, headers=auth_headers
    )
    assert switched.status_code == 200
    assert switched.json()["type"] == "daily"
    assert switched.json()["completions"] == {}


def test_tactic_assigned_weeks_sorted_and_validated(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    tactic = client.post(
        "/tactics", json={"goal_id": goal["id"], "assigned_weeks": [3, 1, 3]}, headers=auth_headers
    ).json()
    assert tactic["assigned_weeks"] == [1, 3]
    resp = client.patch(f"/tactics/{tactic['id']}", json={"assigned_weeks": [14]}, headers=auth_headers)
    assert resp.status_code == 400


def test_tactic_order_within_goal(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    ids = [
        client.post("/tactics", json={"goal_id": goal["id"], "name": n}, headers=auth_headers).json()["id"]
        for n in ("x", "y")
    ]
    resp = client.put(f"/goals/{goal['id']}/tactics/order", json={"ids": ids[::-1]}, headers=auth_headers)
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()["tactics"]] == ids[::-1]


# Tracking


def test_measurement_upsert(client, auth_headers):
    goal = _create_goal(client, auth_headers, measurement_configs=[{"id": "c1", "name": "Revenue"}])
    body = {"goal_id": goal["id"], "config_id": "c1", "week_num": 4, "value": 10}
    client.put("/measurements", json=body, headers=auth_headers)
    client.put("/measurements", json={**body, "value": 12.5}, headers=auth_headers)
    rows = client.get("/measurements", headers=auth_headers).json()["measurements"]
    assert rows == [{**body, "value": 12.5}]


def test_measurement_400_when_config_belongs_to_other_goal(client, auth_headers):
    goal = _create_goal(client, auth_headers, measurement_configs=[{"id": "c1", "name": "Calls"}])
    _create_goal(client, auth_headers, measurement_configs=[{"id": "c2", "name": "Revenue"}])
    body = {"goal_id": goal["id"], "config_id": "c2", "week_num": 1, "value": 3}
    resp = client.put("/measurements", json=body, headers=auth_headers)
    assert resp.status_code == 400
    assert client.get("/measurements", headers=auth_headers).json() == {"measurements": []}


def test_vision_round_trip(client, auth_headers):
    assert client.get("/vision", headers=auth_headers).json() == {"long_term": "", "short_term": ""}
    client.put("/vision", json={"long_term": "Freedom"}, headers=auth_headers)
    assert client.get("/vision", headers=auth_headers).json()["long_term"] == "Freedom"


def test_cycle_created_on_first_read_and_reset_needs_confirm(client, auth_headers):
    cycle = client.get("/cycle", headers=auth_headers).json()
    assert cycle["current_week"] == 1
    assert "T00:00:00" in cycle["start_date"]

    assert client.post("/cycle/reset", json={}, headers=auth_headers).status_code == 409
    resp = client.post("/cycle/reset", json={"confirm": True}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["current_week"] == 1


def test_cycle_start_date_bad_input_400(client, auth_headers):
    resp = client.put("/cycle/start-date", json={"start_date": "not a date"}, headers=auth_headers)
    assert resp.status_code == 400


def test_scores_for_viewed_week(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    tactic = client.post("/tactics", json={"goal_id": goal["id"]}, headers=auth_headers).json()
    client.put(f"/tactics/{tactic['id']}/completions/1", json={"value": True}, headers=auth_headers)

    resp = client.get("/scores?week=1", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["weekly_score"] == 100.0
    assert data["previous_week_score"] is None
    assert data["tactic_scores"] == {tactic["id"]: 100.0}
    assert client.get("/scores?week=13", headers=auth_headers).status_code == 422


@patch("api.tracking_routes.generate_briefing")
def test_briefing_passes_scores_and_goal_names(mock_generate, client, auth_headers):
    mock_generate.return_value = BriefingModel(briefing="Keep going.")
    _create_goal(client, auth_headers, name="Scale agency")
    resp = client.post("/briefing", json={"week": 1}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"briefing": "Keep going.", "fallback": False}
    week, weekly, overall, names = mock_generate.call_args.args
    assert (week, weekly, overall, names) == (1, 0.0, 0.0, ["Scale agency"])


def test_briefing_rejects_out_of_range_week(client, auth_headers):
    assert client.post("/briefing", json={"week": 0}, headers=auth_headers).status_code == 400


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
