"""
HTTP surface: auth, status codes, error envelope, cron trigger.
"""
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_provider, get_rate_limiter
from app.core.config import settings
from app.db.session import get_db
from app.main import app
from app.models.asset import Asset
from app.services.auth.tokens import issue_access_token, verify_access_token
from app.services.generation.rate_limit import InMemoryRateLimiter


@pytest.fixture
def client(session_factory, stub_provider):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    limiter = InMemoryRateLimiter(limit=10, window_seconds=60)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider] = lambda: stub_provider
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


def _auth(account_id):
    return {"Authorization": f"Bearer {issue_access_token(account_id)}"}


class TestTokens:
    def test_round_trip(self):
        assert verify_access_token(issue_access_token("acc-1")) == "acc-1"

    def test_tampered_token(self):
        token = issue_access_token("acc-1")
        assert verify_access_token(token[:-2] + "xx") is None

    def test_garbage(self):
        assert verify_access_token("not-a-token") is None


class TestGenerateEndpoint:
    def test_success(self, client, db, make_account, make_project):
        account = make_account(plan="pro", credits=2)
        project = make_project(account)

        resp = client.post(
            "/api/generate",
            json={"projectId": project.id, "assetType": "logo"},
            headers=_auth(account.id),
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert db.get(Asset, body["assetId"]).image_url == body["imageUrl"]

    def test_missing_token(self, client):
        resp = client.post("/api/generate", json={"projectId": "p", "assetType": "logo"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    def test_invalid_token(self, client):
        resp = client.post(
            "/api/generate",
            json={"projectId": "p", "assetType": "logo"},
            headers={"Authorization": "Bearer forged"},
        )
        assert resp.status_code == 401

    def test_invalid_asset_type(self, client, make_account):
        account = make_account(plan="pro", credits=2)
        resp = client.post(
            "/api/generate",
            json={"projectId": "p", "assetType": "billboard"},
            headers=_auth(account.id),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request data"
        assert resp.json()["details"]

    def test_trial_exhausted(self, client, make_account, make_project):
        account = make_account(plan="free", trials_used=2)
        project = make_project(account)
        resp = client.post(
            "/api/generate",
            json={"projectId": project.id, "assetType": "logo"},
            headers=_auth(account.id),
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "No free trials remaining. Please upgrade to continue."

    def test_foreign_project(self, client, make_account, make_project):
        owner = make_account(plan="pro", credits=2)
        other = make_account(plan="pro", credits=2)
        project = make_project(owner)
        resp = client.post(
            "/api/generate",
            json={"projectId": project.id, "assetType": "logo"},
            headers=_auth(other.id),
        )
        assert resp.status_code == 404

    def test_rate_limit(self, client, make_account, make_project):
        account = make_account(plan="pro", credits=50)
        project = make_project(account)
        payload = {"projectId": project.id, "assetType": "icon"}
        codes = [client.post("/api/generate", json=payload, headers=_auth(account.id)).status_code for _ in range(11)]
        assert codes == [200] * 10 + [429]

    def test_provider_failure(self, client, make_account, make_project, stub_provider):
        stub_provider.mode = "fail"
        account = make_account(plan="pro", credits=2)
        project = make_project(account)
        resp = client.post(
            "/api/generate",
            json={"projectId": project.id, "assetType": "logo"},
            headers=_auth(account.id),
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Image generation failed. Please try again."}

    def test_variation(self, client, make_account, make_project):
        account = make_account(plan="pro", credits=5)
        project = make_project(account)
        first = client.post(
            "/api/generate",
            json={"projectId": project.id, "assetType": "logo"},
            headers=_auth(account.id),
        ).json()
        resp = client.post(
            "/api/generate/variation",
            json={"assetId": first["assetId"], "promptDelta": "warmer"},
            headers=_auth(account.id),
        )
        assert resp.status_code == 200
        assert resp.json()["assetId"] != first["assetId"]


class TestProjectsAndAccount:
    def test_create_and_list(self, client, make_account):
        account = make_account(plan="free")
        resp = client.post("/api/projects", json={"brand_name": "Sahm"}, headers=_auth(account.id))
        assert resp.status_code == 201
        project = resp.json()
        assert project["palette"] == {"primary": "#1a365d", "secondary": "#c6a962", "accent": "#e2e8f0"}
        assert project["style"] == {"mood": "modern", "complexity": "simple"}

        listed = client.get("/api/projects", headers=_auth(account.id)).json()
        assert [p["id"] for p in listed] == [project["id"]]

    def test_invalid_palette(self, client, make_account):
        account = make_account(plan="free")
        resp = client.post(
            "/api/projects",
            json={"brand_name": "Sahm", "palette": {"primary": "blue", "secondary": "#000000", "accent": "#ffffff"}},
            headers=_auth(account.id),
        )
        assert resp.status_code == 400

    def test_update_foreign_project(self, client, make_account, make_project):
        owner = make_account(plan="free")
        other = make_account(plan="free")
        project = make_project(owner)
        resp = client.patch(f"/api/projects/{project.id}", json={"industry": "tea"}, headers=_auth(other.id))
        assert resp.status_code == 404

    def test_update_and_list_assets(self, client, make_account, make_project):
        account = make_account(plan="pro", credits=1)
        project = make_project(account)
        resp = client.patch(f"/api/projects/{project.id}", json={"industry": "tea"}, headers=_auth(account.id))
        assert resp.json()["industry"] == "tea"

        client.post("/api/generate", json={"projectId": project.id, "assetType": "logo"}, headers=_auth(account.id))
        assets = client.get(f"/api/projects/{project.id}/assets", headers=_auth(account.id)).json()
        assert len(assets) == 1
        assert assets[0]["status"] == "done"
        assert "metadata" in assets[0]

    def test_entitlement(self, client, make_account):
        account = make_account(plan="free", trials_used=1)
        resp = client.get("/api/account/entitlement", headers=_auth(account.id))
        assert resp.json() == {
            "plan": "free",
            "allowed": True,
            "kind": "trial",
            "credits_balance": 0,
            "trials_remaining": 1,
        }


class TestDownloadEndpoint:
    def test_requires_asset_id(self, client, make_account):
        account = make_account(plan="pro")
        resp = client.get("/api/download", headers=_auth(account.id))
        assert resp.status_code == 400
        assert resp.json() == {"error": "Asset ID required"}

    def test_unknown_asset(self, client, make_account):
        account = make_account(plan="pro")
        resp = client.get("/api/download?assetId=nope", headers=_auth(account.id))
        assert resp.status_code == 404


class TestCronEndpoint:
    def test_open_outside_production(self, client, monkeypatch):
        monkeypatch.setattr(settings, "app_env", "test")
        resp = client.get("/api/cron/reset-credits")
        assert resp.status_code == 200
        assert resp.json()["message"] == "No active subscriptions to reset"

    def test_production_requires_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "app_env", "production")
        monkeypatch.setattr(settings, "cron_secret", "s3cret")
        assert client.get("/api/cron/reset-credits").status_code == 401
        bad = client.get("/api/cron/reset-credits", headers={"Authorization": "Bearer wrong"})
        assert bad.status_code == 401
        ok = client.get("/api/cron/reset-credits", headers={"Authorization": "Bearer s3cret"})
        assert ok.status_code == 200
        assert ok.json()["success"] is True

    def test_non_ascii_authorization_is_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "app_env", "production")
        monkeypatch.setattr(settings, "cron_secret", "s3cret")
        resp = client.get(
            "/api/cron/reset-credits",
            headers={"Authorization": "Bearer s3cr\u00e9t".encode("utf-8")},
        )
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/ready").json() == {"status": "ready"}


def test_metrics(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "generations_total" in resp.text
