from types import SimpleNamespace

from fastapi.testclient import TestClient

from core.modules import ModuleLoader
from core.storage import LocalStore
from glucobalance.api.app import create_app
from glucobalance.features.ai import AIServiceError


def _client(ai_module=None, **kw):
    async def importer(path):
        if path.endswith(".ai"):
            if ai_module is None:
                raise ImportError("ai build missing")
            return ai_module
        return SimpleNamespace()

    loader = ModuleLoader(store=LocalStore(), importer=importer, **kw)
    return TestClient(create_app(loader))


def test_generate_with_loaded_service():
    prompts = []

    async def generate_content(prompt, context=None):
        prompts.append((prompt, context))
        return "Keep up the walks!"

    with _client(SimpleNamespace(generate_content=generate_content)) as client:
        r = client.post(
            "/ai/generate",
            json={"prompt": "Any tips?", "feature": "health_insights", "context": {"days": 7}},
        )
    assert r.status_code == 200
    assert r.json() == {"text": "Keep up the walks!", "source": "import"}
    assert prompts == [("Any tips?", {"feature": "health_insights", "days": 7})]


def test_generate_with_stub(tmp_path):
    with _client(legacy_dir=tmp_path) as client:
        r = client.post("/ai/generate", json={"prompt": "Any tips?"})
    assert r.status_code == 200
    assert r.json() == {"text": "AI service unavailable", "source": "stub"}


def test_generate_upstream_failure_maps_to_502():
    async def generate_content(prompt, context=None):
        raise AIServiceError("API request failed: 500 Internal Server Error")

    with _client(SimpleNamespace(generate_content=generate_content)) as client:
        r = client.post("/ai/generate", json={"prompt": "Any tips?"})
    assert r.status_code == 502
    body = r.json()
    assert body["error_type"] == "ai-request-failed"
    assert "internet connection" in body["message"]


def test_generate_requires_prompt():
    with _client() as client:
        r = client.post("/ai/generate", json={"prompt": ""})
    assert r.status_code == 422
