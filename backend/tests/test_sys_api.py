import asyncio
import uuid

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from modular_backend.auth import issue_token
from modular_backend.config import settings
from modular_backend.database import engine
from modular_backend.main import app
from modular_backend.modules.base.models import ApplicationSetting, SettingScope
from modular_backend.modules.sys.application import SessionService

client = TestClient(app)
BASE = "/api/rest/sys/v1"
IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


def _auth(subject="alice", **claims):
    return {"Authorization": f"Bearer {issue_token(subject, **claims)}"}


def test_health_endpoints_and_request_id():
    r = client.get(f"{BASE}/health/live")
    assert r.status_code == 200
    assert r.json() == {"status": "alive"}
    assert r.headers["X-Request-ID"]
    r2 = client.get(f"{BASE}/health/live", headers={"X-Request-ID": "abc123"})
    assert r2.headers["X-Request-ID"] == "abc123"
    assert client.get(f"{BASE}/health/ready").json() == {"status": "ready"}
    startup = client.get(f"{BASE}/health/startup")
    assert startup.status_code == 200
    assert startup.json()["status"] == "started"


def test_languages_are_seeded_and_ordered():
    r = client.get(f"{BASE}/refdata/languages")
    assert r.status_code == 200
    codes = [language["code"] for language in r.json()]
    assert codes == ["en", "fr", "de", "es"]
    assert client.get(f"{BASE}/refdata/languages/default").json()["code"] == "en"


def test_language_lookup_is_case_insensitive():
    r = client.get(f"{BASE}/refdata/languages/FR")
    assert r.status_code == 200
    assert r.json()["native_name"] == "Français"
    assert client.get(f"{BASE}/refdata/languages/xx").status_code == 404
    assert client.get(f"{BASE}/refdata/languages/%20").status_code == 400


def test_startup_diagnostics():
    r = client.get(f"{BASE}/diagnostics/startup")
    assert r.status_code == 200
    body = r.json()
    assert body["summary"]["error_count"] == 0
    assert body["summary"]["total_entries"] == len(body["entries"])
    assert "modular_backend.modules.sys.controllers" in body["modules"]
    phase2 = client.get(f"{BASE}/diagnostics/startup", params={"tag": "phase2"}).json()
    assert phase2["entries"]
    assert all(entry["tag"] == "phase2" for entry in phase2["entries"])


def test_smoke_tests_pass():
    r = client.get(f"{BASE}/diagnostics/smoketests")
    assert r.status_code == 200
    body = r.json()
    names = [result["name"] for result in body["results"]]
    assert names == ["startup_complete", "startup_errors", "database", "services_resolvable"]
    assert body["passed"], body


def test_code_quality_stub():
    report = client.get(f"{BASE}/diagnostics/code-quality").json()
    assert report["summary"]["status"] == "Not Implemented"
    assert report["health_score"] == 100
    capabilities = client.get(f"{BASE}/diagnostics/code-quality/capabilities").json()
    assert capabilities["is_enabled"] is False
    assert capabilities["environment"] == settings.ENV


def test_server_diagnostics():
    r = client.get(f"{BASE}/diagnostics/server")
    assert r.status_code == 200
    body = r.json()
    assert body["processor_count"] >= 1
    assert body["health"]["status"] in ("Healthy", "Degraded", "Unhealthy")


def test_effective_settings_merge_system_workspace_user():
    tenant = str(uuid.uuid4())
    assert client.get(f"{BASE}/settings/effective").json()["theme"] == "light"

    r = client.put(
        f"{BASE}/settings/workspace",
        json={"key": "theme", "value": "dark"},
        headers={"X-Tenant-Id": tenant, **_auth("carol")},
    )
    assert r.status_code == 200
    assert r.json()["values"] == {"theme": "dark"}
    workspace_view = client.get(f"{BASE}/settings/effective", headers={"X-Tenant-Id": tenant}).json()
    assert workspace_view["theme"] == "dark"
    assert workspace_view["language"] == "en"

    r = client.put(f"{BASE}/settings/user", json={"key": "theme", "value": "blue"}, headers=_auth("carol"))
    assert r.status_code == 200
    user_view = client.get(f"{BASE}/settings/effective", headers={"X-Tenant-Id": tenant, **_auth("carol")}).json()
    assert user_view["theme"] == "blue"
    assert client.get(f"{BASE}/settings/effective").json()["theme"] == "light"


def test_settings_writes_are_audited():
    r = client.put(f"{BASE}/settings/user", json={"key": "audited", "value": "yes"}, headers=_auth("dave"))
    assert r.status_code == 200
    with Session(engine) as session:
        stmt = select(ApplicationSetting).where(
            ApplicationSetting.scope == SettingScope.USER,
            ApplicationSetting.scope_key == "dave",
            ApplicationSetting.key == "audited",
        )
        setting = session.exec(stmt).one()
    assert setting.created_by == "dave"
    assert setting.last_modified_by == "dave"


def test_settings_guards():
    assert client.put(f"{BASE}/settings/system", json={"key": "x", "value": "y"}).status_code == 401
    assert client.get(f"{BASE}/settings/workspace").status_code == 400
    assert client.get(f"{BASE}/settings/user").status_code == 401
    r = client.put(f"{BASE}/settings/system", json={"key": "  ", "value": "y"}, headers=_auth())
    assert r.status_code == 400
    r = client.put(f"{BASE}/settings/system", json={"key": "motd", "value": "hi"}, headers=_auth())
    assert r.status_code == 200
    assert r.json()["values"]["motd"] == "hi"
    assert client.get(f"{BASE}/settings/system").json()["values"]["motd"] == "hi"


def test_sessions_lifecycle_and_operation_tracking():
    r = client.post(f"{BASE}/sessions", headers={"User-Agent": IPHONE, **_auth("erin")})
    assert r.status_code == 201
    created = r.json()
    assert created["is_active"] is True
    assert created["user_id"] == "erin"
    assert created["user_agent"] == IPHONE
    session_id = created["id"]

    assert client.get(f"{BASE}/sessions/{session_id}").json()["id"] == session_id

    client.get(f"{BASE}/health/live", headers={"X-Session-Id": session_id})
    operations = client.get(f"{BASE}/sessions/{session_id}/operations").json()
    assert [op["path"] for op in operations] == [f"{BASE}/health/live"]
    assert operations[0]["session_id"] == session_id
    assert operations[0]["status_code"] == 200

    ended = client.delete(f"{BASE}/sessions/{session_id}")
    assert ended.status_code == 200
    assert ended.json()["is_active"] is False


def test_session_tracking_runs_off_the_event_loop(monkeypatch):
    threads = []
    original = SessionService.track

    def track(self, *args):
        try:
            asyncio.get_running_loop()
            threads.append("event-loop")
        except RuntimeError:
            threads.append("worker")
        return original(self, *args)

    monkeypatch.setattr(SessionService, "track", track)
    session_id = client.post(f"{BASE}/sessions").json()["id"]
    client.get(f"{BASE}/health/live", headers={"X-Session-Id": session_id})
    assert threads == ["worker"]
    assert len(client.get(f"{BASE}/sessions/{session_id}/operations").json()) == 1


def test_session_listing_and_lookup_errors():
    for _ in range(2):
        client.post(f"{BASE}/sessions")
    r = client.get(f"{BASE}/sessions", params={"take": 500})
    assert r.status_code == 200
    assert 2 <= len(r.json()) <= 100
    assert client.get(f"{BASE}/sessions", params={"take": 0}).status_code == 422
    assert client.get(f"{BASE}/sessions/{uuid.uuid4()}").status_code == 404
    assert client.get(f"{BASE}/sessions/{uuid.uuid4()}/operations").status_code == 404
    assert client.get(f"{BASE}/sessions/not-a-uuid").status_code == 422


def test_unknown_session_header_is_ignored():
    r = client.get(f"{BASE}/health/live", headers={"X-Session-Id": str(uuid.uuid4())})
    assert r.status_code == 200
    r = client.get(f"{BASE}/health/live", headers={"X-Session-Id": "garbage"})
    assert r.status_code == 200


def test_application_context():
    anonymous = client.get(f"{BASE}/context").json()
    assert anonymous["user"] is None
    assert anonymous["system"]["name"] == settings.APP_NAME
    assert anonymous["settings"]["language"] == "en"
    assert anonymous["navigation"]["current_route"] == "/"

    session_id = client.post(f"{BASE}/sessions").json()["id"]
    r = client.get(
        f"{BASE}/context",
        params={"route": "/settings"},
        headers={"X-Session-Id": session_id, **_auth("frank", email="frank@example.com")},
    )
    body = r.json()
    assert body["user"]["id"] == "frank"
    assert body["user"]["email"] == "frank@example.com"
    assert body["session"]["id"] == session_id
    assert body["session"]["is_authenticated"] is True
    assert [item["is_active"] for item in body["navigation"]["primary_menu"]] == [False, True]


def test_permissions_require_a_valid_token():
    assert client.get(f"{BASE}/permissions").status_code == 401
    assert client.get(f"{BASE}/permissions", headers={"Authorization": "Bearer garbage"}).status_code == 401
    r = client.get(f"{BASE}/permissions", headers=_auth("gina", roles=["admin", "auditor"]))
    assert r.status_code == 200
    assert r.json() == {"is_authenticated": True, "user_id": "gina", "roles": ["admin", "auditor"]}


def test_invalid_token_leaves_request_anonymous():
    r = client.get(f"{BASE}/context", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 200
    assert r.json()["user"] is None


def test_client_device():
    r = client.get(
        f"{BASE}/device",
        headers={"User-Agent": IPHONE, "X-Forwarded-For": "203.0.113.5, 10.0.0.1", "Accept-Language": "en-GB"},
    )
    body = r.json()
    assert body["ip_address"] == "203.0.113.5"
    assert body["is_mobile"] is True
    assert body["device_type"] == "Mobile"
    assert body["operating_system"] == "iOS (iPhone)"
    assert body["browser"] == "Safari"
    assert body["accept_language"] == "en-GB"


def test_unhandled_errors_return_500_with_details_in_development():
    def boom():
        raise RuntimeError("boom")

    app.add_api_route("/__tests__/boom", boom)
    errors = TestClient(app, raise_server_exceptions=False)
    r = errors.get("/__tests__/boom")
    assert r.status_code == 500
    assert r.json()["detail"] == "internal server error"
    assert r.json()["error"] == "RuntimeError: boom"
