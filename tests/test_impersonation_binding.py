import pytest
from fastapi.testclient import TestClient

from src.auth.user_sessions import create_user_session, load_user_session
from src.config import settings
from src.domain.errors import AuthorizationError, NotFoundError, SessionStateError, TokenValidationError
from src.main import app
from src.observability import metrics_snapshot
from src.support import tokens
from src.support.binding import bind_impersonation
from src.support.tokens import issue_impersonation_token

T0 = 1_800_000_000


@pytest.fixture
def frozen_clock(monkeypatch):
    clock = {"now": T0}
    monkeypatch.setattr(tokens, "_now", lambda: clock["now"])
    return clock


def _actions(fake_db) -> list[str]:
    return [row["action"] for row in fake_db.rows("support_audit_logs")]


def _issue(mode: str = "read", session_id: str = "ss-1", organization_id: str = "org-1") -> str:
    return issue_impersonation_token(
        super_admin_id="sa-1",
        session_id=session_id,
        organization_id=organization_id,
        mode=mode,
    )["token"]


def test_token_bound_within_ttl_then_rejected_after_expiry(seed, frozen_clock) -> None:
    seed.organization("org-1")
    seed.support_session("ss-1")
    token = _issue()

    frozen_clock["now"] = T0 + 4 * 60
    bound = bind_impersonation(token)

    assert bound["organizationId"] == "org-1"
    assert bound["mode"] == "read"
    assert bound["sessionId"] == "ss-1"

    frozen_clock["now"] = T0 + 6 * 60
    with pytest.raises(TokenValidationError) as exc_info:
        bind_impersonation(token)
    assert exc_info.value.message == "Invalid or expired impersonation token"


def test_bind_regenerates_the_tenant_session(seed, fake_db, frozen_clock) -> None:
    seed.organization("org-1")
    seed.support_session("ss-1", scopes={"projectData": True, "reportsData": True})
    previous = create_user_session("user", "u-1")

    bound = bind_impersonation(_issue(), previous.session_id)

    assert load_user_session(previous.session_id) is None
    rows = {row["id"]: row for row in fake_db.rows("user_sessions")}
    assert rows[previous.session_id]["revoked_at"] is not None
    new_ids = [session_id for session_id in rows if session_id != previous.session_id]
    assert len(new_ids) == 1
    new_session = load_user_session(new_ids[0])
    assert new_session.principal_type == "support"
    assert new_session.subject_id == "sa-1"
    assert new_session.impersonation.session_id == "ss-1"
    assert new_session.impersonation.organization_id == "org-1"
    assert new_session.impersonation.scopes["reportsData"] is True
    assert bound["accessToken"]
    assert _actions(fake_db) == ["impersonation_token_issued", "impersonation_bound"]


def test_bind_fails_uniformly_once_session_ended(seed, fake_db, frozen_clock) -> None:
    seed.organization("org-1")
    seed.support_session("ss-1")
    token = _issue()
    fake_db.rows("support_sessions")[0]["is_active"] = False

    with pytest.raises(TokenValidationError) as exc_info:
        bind_impersonation(token)

    assert exc_info.value.message == "Invalid or expired impersonation token"
    assert "impersonation_bound" not in _actions(fake_db)


def test_bind_rejects_token_for_another_organization(seed, fake_db, frozen_clock) -> None:
    seed.organization("org-1")
    seed.organization("org-2")
    seed.support_session("ss-1", org_id="org-1")
    forged = tokens.generate_impersonation_token(
        settings.impersonation_signing_secret(), session_id="ss-1", organization_id="org-2", mode="read"
    )

    with pytest.raises(TokenValidationError):
        bind_impersonation(forged)


def test_write_token_requires_support_mode(seed, fake_db, frozen_clock) -> None:
    seed.organization("org-1")
    seed.support_session("ss-1", session_type="read_only")

    with pytest.raises(AuthorizationError):
        _issue(mode="write")

    fake_db.rows("support_sessions")[0]["session_type"] = "support_mode"
    assert bind_impersonation(_issue(mode="write"))["mode"] == "write"


def test_token_issue_checks_ownership_organization_and_liveness(seed, fake_db) -> None:
    seed.organization("org-1")
    seed.support_session("ss-1", super_admin_id="sa-2")
    seed.support_session("ss-2", org_id="org-1", is_active=False)
    seed.support_session("ss-3", org_id="org-1")

    with pytest.raises(NotFoundError):
        _issue(session_id="ss-1")
    with pytest.raises(SessionStateError):
        _issue(session_id="ss-2")
    with pytest.raises(AuthorizationError):
        _issue(session_id="ss-3", organization_id="org-9")
    assert fake_db.rows("support_audit_logs") == []


# --- HTTP surface ---

def test_operator_handoff_over_http(seed, fake_db) -> None:
    seed.organization("org-1")
    seed.super_admin("sa-1")
    seed.support_session("ss-1")
    seed._add("projects", {"id": "p-1", "organization_id": "org-1", "name": "Rollout", "status": "active"})
    client = TestClient(app)

    issued = client.post(
        "/api/support/impersonation/token",
        json={"sessionId": "ss-1", "organizationId": "org-1", "mode": "read"},
        headers=seed.super_admin_headers(),
    )
    assert issued.status_code == 200
    assert issued.json()["expiresIn"] == 300

    bound = client.post("/api/support/impersonation/bind", json={"token": issued.json()["token"]})
    assert bound.status_code == 200
    access_token = bound.json()["accessToken"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {access_token}"})
    projects = client.get("/api/projects/", headers={"Authorization": f"Bearer {access_token}"})

    assert me.status_code == 200
    assert me.json()["principal"] == "support"
    assert me.json()["organization_id"] == "org-1"
    assert me.json()["support_session_id"] == "ss-1"
    assert me.json()["bound_mode"] == "read"
    assert [p["id"] for p in projects.json()] == ["p-1"]


def test_bound_session_cannot_select_another_organization(seed) -> None:
    seed.organization("org-1")
    seed.organization("org-2")
    seed.super_admin("sa-1")
    seed.support_session("ss-1")
    client = TestClient(app)
    token = _issue()
    access_token = client.post("/api/support/impersonation/bind", json={"token": token}).json()["accessToken"]

    response = client.get(
        "/api/projects/",
        headers={"Authorization": f"Bearer {access_token}", "X-Organization-Id": "org-2"},
    )

    assert response.status_code == 403


def test_invalid_token_is_forbidden_with_uniform_message(seed) -> None:
    client = TestClient(app)

    response = client.post("/api/support/impersonation/bind", json={"token": "garbage.token"})

    assert response.status_code == 403
    assert response.json()["detail"] == "Invalid or expired impersonation token"


@pytest.mark.parametrize("token", ["é.abc", "abc.sïg", "€€€.€€€"])
def test_non_ascii_token_is_forbidden_with_uniform_message(seed, token) -> None:
    client = TestClient(app)

    response = client.post("/api/support/impersonation/bind", json={"token": token})

    assert response.status_code == 403
    assert response.json()["detail"] == "Invalid or expired impersonation token"
    assert metrics_snapshot()["support.impersonation.bind_rejected|reason=invalid_token"] == 1


def test_token_issue_requires_operator(seed) -> None:
    seed.organization("org-1")
    seed.user("u-1", orgs=("org-1",))
    client = TestClient(app)

    response = client.post(
        "/api/support/impersonation/token",
        json={"sessionId": "ss-1", "organizationId": "org-1"},
        headers=seed.user_headers("u-1"),
    )

    assert response.status_code == 401
