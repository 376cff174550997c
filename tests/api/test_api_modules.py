from types import SimpleNamespace

from fastapi.testclient import TestClient

from core.modules import ModuleLoader
from core.storage import LocalStore
from glucobalance.api.app import create_app


def _app(**kw):
    kw.setdefault("store", LocalStore())
    return create_app(ModuleLoader(**kw))


def test_startup_preloads_critical_modules():
    with TestClient(_app()) as client:
        r = client.get("/modules")
    info = r.json()
    assert info["started"] is True
    assert sorted(info["loaded"]) == ["auth", "database", "error-handler"]
    assert set(info["sources"].values()) == {"import"}


def test_require_reports_source():
    with TestClient(_app()) as client:
        r = client.post("/modules/nutrition-service/require")
        assert r.status_code == 200
        assert r.json() == {
            "module": "nutrition-service", "loaded": True, "source": "import",
        }
        perf = client.get("/modules/performance").json()["entries"]
    assert [e["module"] for e in perf][-1] == "nutrition-service"


def test_require_degrades_to_stub(tmp_path):
    async def importer(path):
        if path.endswith(".ai"):
            raise ImportError("ai build missing")
        return SimpleNamespace()

    with TestClient(_app(importer=importer, legacy_dir=tmp_path)) as client:
        r = client.post("/modules/ai/require")
    assert r.status_code == 200
    assert r.json()["source"] == "stub"


def test_invalid_module_name_rejected():
    with TestClient(_app()) as client:
        r = client.post("/modules/Not_Valid/require")
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "invalid-module-name"


def test_preload_and_prefetch():
    with TestClient(_app()) as client:
        r = client.post("/modules/preload", json={"modules": ["mental-health", "auth", "Bad!"]})
        assert r.status_code == 200
        body = r.json()
        statuses = {x["module"]: x["status"] for x in body["results"]}
        assert statuses == {"mental-health": "loaded", "auth": "cached"}
        assert body["skipped"] == ["Bad!"]
        again = client.post("/modules/mental-health/prefetch").json()
    assert again["status"] == "cached"


def test_clear_cache_endpoint():
    with TestClient(_app()) as client:
        r = client.delete("/modules/cache")
        assert r.json() == {"ok": True, "cleared": 3}
        info = client.get("/modules").json()
        perf = client.get("/modules/performance").json()
    assert info["loaded"] == []
    assert perf["entries"] == []
