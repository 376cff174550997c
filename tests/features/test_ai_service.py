import asyncio
import json

import httpx
import pytest

from core import metrics
from core.config.schemas.ai import AIConfig
from core.storage import LocalStore
from glucobalance.features.ai import (
    AIServiceError,
    DashboardAIService,
    GeminiTransport,
    build_prompt,
    calculate_mood_trend,
    get_error_message,
)
from glucobalance.features.database import HealthDatabase


def _service(transport, delays):
    async def sleep(seconds):
        delays.append(seconds)

    return DashboardAIService(
        transport=transport, config=AIConfig(queue_delay_ms=500), sleep=sleep
    )


def test_queue_runs_requests_one_at_a_time_in_order():
    seen = []
    active = []
    delays = []

    async def transport(text):
        assert not active, "requests overlapped"
        active.append(text)
        await asyncio.sleep(0.01)
        active.pop()
        seen.append(text)
        return f"answer {len(seen)}"

    async def run():
        svc = _service(transport, delays)
        return await asyncio.gather(
            svc.generate_content("first"),
            svc.generate_content("second"),
            svc.generate_content("third"),
        )

    answers = asyncio.run(run())
    assert answers == ["answer 1", "answer 2", "answer 3"]
    assert ["first" in seen[0], "second" in seen[1], "third" in seen[2]] == [True] * 3
    assert delays == [0.5, 0.5, 0.5]


def test_failed_request_does_not_stall_queue():
    delays = []

    async def transport(text):
        if "bad" in text:
            raise AIServiceError("API request failed: 503 Service Unavailable")
        return "ok"

    async def run():
        svc = _service(transport, delays)
        return await asyncio.gather(
            svc.generate_content("bad one", {"feature": "mood_analysis"}),
            svc.generate_content("good one", {"feature": "mood_analysis"}),
            return_exceptions=True,
        )

    bad, good = asyncio.run(run())
    assert isinstance(bad, AIServiceError)
    assert good == "ok"
    counters = metrics.snapshot()["counters"]
    assert counters["ai_requests_total{feature=mood_analysis,status=error}"] == 1
    assert counters["ai_requests_total{feature=mood_analysis,status=ok}"] == 1


def test_build_prompt_embeds_context():
    prompt = build_prompt("How am I doing?", {"feature": "health_insights", "avg": 3.5})
    assert "User Request: How am I doing?" in prompt
    assert json.dumps({"feature": "health_insights", "avg": 3.5}) in prompt
    assert "consult healthcare professionals" in prompt


def test_card_prompts_carry_user_data():
    prompts = []

    async def transport(text):
        prompts.append(text)
        return "insight"

    async def run():
        svc = _service(transport, [])
        await svc.generate_risk_assessment({"age": 52, "family_history": True})
        await svc.analyze_mood_pattern([{"mood": 4}, {"mood": 2}])
        await svc.generate_meal_plan({"restrictions": "vegan"})
        await svc.generate_progress_report({"goals_achieved": 3})

    asyncio.run(run())
    assert "Age: 52" in prompts[0] and "Family History: Yes" in prompts[0]
    assert "Average Mood: 3.0/5" in prompts[1]
    assert "Dietary Restrictions: vegan" in prompts[2]
    assert "Goals Achieved: 3" in prompts[3]


def test_insights_for_user_reads_health_summary():
    prompts = []
    db = HealthDatabase(LocalStore())
    db.save_mood("u1", 4, date="2026-10-01")
    db.save_risk_assessment("u1", 8)

    async def transport(text):
        prompts.append(text)
        return "keep going"

    async def run():
        svc = DashboardAIService(
            transport=transport, config=AIConfig(queue_delay_ms=0), db=db,
            sleep=lambda s: asyncio.sleep(0),
        )
        return await svc.insights_for_user("u1")

    assert asyncio.run(run()) == "keep going"
    assert "Recent Risk Score: 8" in prompts[0]
    assert "Mood Entries: 1 logged" in prompts[0]


@pytest.mark.parametrize(
    "moods, expected",
    [
        ([], "Insufficient data"),
        ([5], "Insufficient data"),
        ([4, 3, 5], "Stable"),
        ([5] * 7 + [2] * 7, "Improving"),
        ([1] * 7 + [4] * 7, "Declining"),
        ([3] * 7 + [3.4] * 7, "Stable"),
    ],
)
def test_calculate_mood_trend(moods, expected):
    assert calculate_mood_trend([{"mood": m} for m in moods]) == expected


def test_error_messages():
    assert "check your internet connection" in get_error_message(
        AIServiceError("API request failed: 500 Internal Server Error")
    )
    assert "unexpected response" in get_error_message(
        AIServiceError("Invalid response format from Gemini API", "ai-invalid-response")
    )
    assert "try again later" in get_error_message(RuntimeError("other"))


# --- transport ---------------------------------------------------------------

def _transport(handler, **cfg):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiTransport(AIConfig(**cfg), client=client)


def test_transport_posts_generate_content(monkeypatch):
    monkeypatch.setenv("GLUCO_AI_API_KEY", "secret")
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"candidates": [{"content": {"parts": [{"text": "Hi!"}]}}]}
        )

    text = asyncio.run(_transport(handler)("hello"))
    assert text == "Hi!"
    assert captured["url"].path.endswith("/models/gemini-pro:generateContent")
    assert captured["url"].params["key"] == "secret"
    assert captured["body"]["contents"] == [{"parts": [{"text": "hello"}]}]
    assert captured["body"]["generationConfig"] == {
        "temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 1024,
    }


def test_transport_http_error(monkeypatch):
    monkeypatch.setenv("GLUCO_AI_API_KEY", "secret")
    transport = _transport(lambda request: httpx.Response(500))
    with pytest.raises(AIServiceError) as exc:
        asyncio.run(transport("hello"))
    assert str(exc.value) == "API request failed: 500 Internal Server Error"
    assert exc.value.error_type == "ai-request-failed"


def test_transport_invalid_response(monkeypatch):
    monkeypatch.setenv("GLUCO_AI_API_KEY", "secret")
    transport = _transport(lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(AIServiceError) as exc:
        asyncio.run(transport("hello"))
    assert exc.value.error_type == "ai-invalid-response"


def test_transport_network_error(monkeypatch):
    monkeypatch.setenv("GLUCO_AI_API_KEY", "secret")

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AIServiceError) as exc:
        asyncio.run(_transport(handler)("hello"))
    assert "API request failed" in str(exc.value)


def test_transport_requires_api_key(monkeypatch):
    monkeypatch.delenv("GLUCO_AI_API_KEY", raising=False)
    transport = _transport(lambda request: httpx.Response(200))
    with pytest.raises(AIServiceError, match="not configured"):
        asyncio.run(transport("hello"))
