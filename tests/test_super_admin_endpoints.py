from fastapi.testclient import TestClient

from src.auth.context import SuperAdminContext
from src.auth.dependencies import get_current_super_admin
from src.auth.passwords import hash_password
from src.main import app
from src.observability import incr_metric


def test_super_admin_login_and_me(seed, fake_db) -> None:
    seed.super_admin("sa-1")
    fake_db.rows("super_admins")[0]["password_hash"] = hash_password("operator-pass")
    client = TestClient(app)

    login = client.post(
        "/api/super-admin/login",
        json={"email": "sa-1@platform.example.com", "password": "operator-pass"},
    )
    me = client.get(
        "/api/super-admin/me",
        headers={"Authorization": f"Bearer {login.json()['access_token']}"},
    )

    assert login.status_code == 200
    assert me.status_code == 200
    assert me.json() == {"super_admin_id": "sa-1", "email": "sa-1@platform.example.com"}


def test_super_admin_login_locks_out(seed, fake_db) -> None:
    seed.super_admin("sa-1")
    client = TestClient(app)
    body = {"email": "sa-1@platform.example.com", "password": "wrong"}

    statuses = [client.post("/api/super-admin/login", json=body).status_code for _ in range(6)]

    assert statuses == [401] * 5 + [429]


def test_create_organization_with_default_features(seed, fake_db) -> None:
    seed.super_admin("sa-1")
    client = TestClient(app)

    response = client.post(
        "/api/super-admin/organizations",
        json={"name": "Acme", "slug": "acme"},
        headers=seed.super_admin_headers(),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "active"
    assert body["enabled_features"]
    assert all(isinstance(value, bool) for value in body["enabled_features"].values())


def test_suspending_organization_blocks_tenant_users(seed) -> None:
    seed.super_admin("sa-1")
    seed.organization("org-1")
    seed.default_role("Admin")
    seed.user("u-1", role_id="role-admin", orgs=("org-1",))
    client = TestClient(app)
    user_headers = seed.user_headers("u-1")
    assert client.get("/api/projects/", headers=user_headers).status_code == 200

    suspended = client.patch(
        "/api/super-admin/organizations/org-1/status",
        json={"status": "suspended"},
        headers=seed.super_admin_headers(),
    )

    assert suspended.status_code == 200
    assert suspended.json()["status"] == "suspended"
    assert client.get("/api/projects/", headers=user_headers).status_code == 403


def test_feature_update_merges_and_rejects_unknown(seed) -> None:
    seed.super_admin("sa-1")
    seed.organization("org-1", features={"reports": True})
    client = TestClient(app)
    headers = seed.super_admin_headers()

    merged = client.patch(
        "/api/super-admin/organizations/org-1/features",
        json={"enabled_features": {"readinessSurveys": True}},
        headers=headers,
    )
    unknown = client.patch(
        "/api/super-admin/organizations/org-1/features",
        json={"enabled_features": {"timeTravel": True}},
        headers=headers,
    )
    missing = client.patch(
        "/api/super-admin/organizations/org-missing/features",
        json={"enabled_features": {"readinessSurveys": True}},
        headers=headers,
    )

    assert merged.status_code == 200
    assert merged.json()["enabled_features"] == {"reports": True, "readinessSurveys": True}
    assert unknown.status_code == 422
    assert missing.status_code == 404


def test_metrics_endpoint_returns_counters() -> None:
    async def _override():
        return SuperAdminContext(super_admin_id="sa-1", email="sa-1@platform.example.com")

    incr_metric("support.sessions.started", session_type="read_only")
    app.dependency_overrides[get_current_super_admin] = _override
    client = TestClient(app)
    response = client.get("/api/super-admin/metrics")

    assert response.status_code == 200
    assert response.json()["counters"]["support.sessions.started|session_type=read_only"] == 1


def test_super_admin_routes_reject_tenant_tokens(seed) -> None:
    seed.organization("org-1")
    seed.user("u-1", orgs=("org-1",))
    client = TestClient(app)

    response = client.get("/api/super-admin/organizations", headers=seed.user_headers("u-1"))

    assert response.status_code == 401
