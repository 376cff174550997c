"""Dashboard AI insights over the generative-language API.

Prompt templates per dashboard card, a thin httpx transport for the
``generateContent`` endpoint, and a sequential request queue that spaces
calls by a fixed delay to stay under provider rate limits.

The stub that replaces this module when it cannot load exposes only
``generate_content``; consumers must accept both a plain string (stub) and
an awaitable (this module).
"""
from __future__ import annotations

import asyncio
import datetime as _dt
import json
import logging
import os
import time
from collections import deque
from functools import lru_cache
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

import httpx

from core.config import get_config
from core.config.schemas.ai import AIConfig
from core.errors import map_exception, validate_error_type
from core.events import AIRequestCompleted, emit
from core import metrics

from .database import HealthDatabase

Transport = Callable[[str], Awaitable[str]]
Sleep = Callable[[float], Awaitable[Any]]

logger = logging.getLogger("glucobalance.ai")


class AIServiceError(Exception):
    def __init__(self, message: str, error_type: str = "ai-request-failed") -> None:
        super().__init__(message)
        self.error_type = validate_error_type(error_type)


class GeminiTransport:
    """POST a single text prompt, return the first candidate's text."""

    def __init__(
        self,
        config: AIConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._cfg = config or get_config().ai
        self._client = client

    @property
    def url(self) -> str:
        return f"{self._cfg.base_url.rstrip('/')}/{self._cfg.model}:generateContent"

    def _body(self, text: str) -> Dict[str, Any]:
        s = self._cfg.sampling
        return {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "temperature": s.temperature,
                "topK": s.top_k,
                "topP": s.top_p,
                "maxOutputTokens": s.max_output_tokens,
            },
        }

    async def __call__(self, text: str) -> str:
        api_key = os.getenv(self._cfg.api_key_env)
        if not api_key:
            raise AIServiceError(
                f"AI API key not configured ({self._cfg.api_key_env})"
            )
        if self._client is not None:
            resp = await self._post(self._client, text, api_key)
        else:
            async with httpx.AsyncClient(timeout=self._cfg.timeout_s) as client:
                resp = await self._post(client, text, api_key)
        if resp.status_code >= 400:
            raise AIServiceError(
                f"API request failed: {resp.status_code} {resp.reason_phrase}"
            )
        try:
            data = resp.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIServiceError(
                "Invalid response format from Gemini API", "ai-invalid-response"
            ) from e

    async def _post(
        self, client: httpx.AsyncClient, text: str, api_key: str
    ) -> httpx.Response:
        try:
            return await client.post(
                self.url,
                params={"key": api_key},
                json=self._body(text),
                timeout=self._cfg.timeout_s,
            )
        except httpx.HTTPError as e:
            raise AIServiceError(f"API request failed: {e}") from e


class RequestQueue:
    """Sequential FIFO; waits ``delay_s`` after every request."""

    def __init__(self, delay_s: float, sleep: Sleep = asyncio.sleep) -> None:
        self.delay_s = delay_s
        self._sleep = sleep
        self._items: Deque[Tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None

    @property
    def depth(self) -> int:
        return len(self._items)

    @property
    def processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def submit(self, request: Callable[[], Awaitable[Any]]) -> Any:
        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        self._items.append((request, fut))
        metrics.observe("ai_queue_depth", len(self._items))
        if not self.processing:
            self._worker = loop.create_task(self._process())
        return await fut

    async def _process(self) -> None:
        while self._items:
            request, fut = self._items.popleft()
            try:
                result = await request()
            except Exception as e:  # noqa: BLE001
                if not fut.done():
                    fut.set_exception(e)
            else:
                if not fut.done():
                    fut.set_result(result)
            await self._sleep(self.delay_s)


def calculate_mood_trend(mood_data: List[Dict[str, Any]]) -> str:
    """Compare the latest 7 entries with the 7 before them (newest first)."""
    if len(mood_data) < 2:
        return "Insufficient data"
    recent = mood_data[:7]
    older = mood_data[7:14]
    if not older:
        return "Stable"
    recent_avg = sum(e["mood"] for e in recent) / len(recent)
    older_avg = sum(e["mood"] for e in older) / len(older)
    diff = recent_avg - older_avg
    if diff > 0.5:
        return "Improving"
    if diff < -0.5:
        return "Declining"
    return "Stable"


def get_error_message(error: BaseException) -> str:
    msg = str(error)
    if "API request failed" in msg:
        return (
            "Unable to connect to AI service. Please check your internet "
            "connection and try again."
        )
    if "Invalid response format" in msg:
        return "Received unexpected response from AI service. Please try again."
    return "An error occurred while generating AI insights. Please try again later."


def build_prompt(prompt: str, context: Dict[str, Any]) -> str:
    return (
        "You are a compassionate AI health assistant for GlucoBalance, a "
        "diabetes prevention and management app.\n\n"
        f"Context: {json.dumps(context, default=str)}\n\n"
        f"User Request: {prompt}\n\n"
        "Please provide a helpful, empathetic, and medically appropriate "
        "response. Always remind users to consult healthcare professionals "
        "for medical advice. Keep responses concise and actionable."
    )


def _or(value: Any, default: str) -> Any:
    return value if value not in (None, "") else default


class DashboardAIService:
    def __init__(
        self,
        transport: Transport | None = None,
        config: AIConfig | None = None,
        db: HealthDatabase | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        cfg = config or get_config().ai
        self._transport = transport or GeminiTransport(cfg)
        self._db = db
        self.queue = RequestQueue(cfg.queue_delay_ms / 1000.0, sleep=sleep)

    async def make_request(
        self, prompt: str, context: Dict[str, Any] | None = None
    ) -> str:
        context = dict(context or {})
        feature = str(context.get("feature", "generic"))
        t0 = time.perf_counter()
        try:
            text = await self._transport(build_prompt(prompt, context))
        except Exception as e:
            error_type = getattr(e, "error_type", None) or map_exception(e, "ai")
            logger.error("AI request failed (%s): %s", feature, e)
            emit(
                AIRequestCompleted(
                    feature=feature,
                    status="error",
                    latency_ms=(time.perf_counter() - t0) * 1000.0,
                    error_type=error_type,
                )
            )
            raise
        emit(
            AIRequestCompleted(
                feature=feature,
                status="ok",
                latency_ms=(time.perf_counter() - t0) * 1000.0,
            )
        )
        return text

    async def queue_request(self, request: Callable[[], Awaitable[Any]]) -> Any:
        return await self.queue.submit(request)

    async def generate_content(
        self, prompt: str, context: Dict[str, Any] | None = None
    ) -> str:
        return await self.queue_request(lambda: self.make_request(prompt, context))

    # --- dashboard cards -----------------------------------------------------
    def _context(self, feature: str, key: str, value: Any) -> Dict[str, Any]:
        return {
            "feature": feature,
            key: value,
            "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(),
        }

    async def generate_risk_assessment(self, profile: Dict[str, Any] | None = None) -> str:
        p = profile or {}
        prompt = (
            "Generate a comprehensive diabetes risk assessment for a user with "
            "the following profile:\n\n"
            f"Age: {_or(p.get('age'), 'Not specified')}\n"
            f"Gender: {_or(p.get('gender'), 'Not specified')}\n"
            f"BMI: {_or(p.get('bmi'), 'Not specified')}\n"
            f"Family History: {'Yes' if p.get('family_history') else 'No'}\n"
            f"Physical Activity: {_or(p.get('physical_activity'), 'Not specified')}\n"
            f"Diet Quality: {_or(p.get('diet_quality'), 'Not specified')}\n\n"
            "Please provide:\n1. A risk score explanation (0-100 scale)\n"
            "2. Key risk factors identified\n3. Personalized recommendations\n"
            "4. Encouragement and next steps\n\n"
            "Keep response under 300 words and maintain a supportive tone."
        )
        return await self.make_request(
            prompt, self._context("risk_assessment", "user_profile", p)
        )

    async def analyze_mood_pattern(
        self, mood_data: List[Dict[str, Any]] | None = None
    ) -> str:
        data = mood_data or []
        recent = data[:7]
        avg = sum(e["mood"] for e in recent) / len(recent) if recent else 0.0
        prompt = (
            "Analyze this user's mood pattern and provide supportive insights:\n\n"
            f"Recent Mood Data (last 7 days): {json.dumps(recent, default=str)}\n"
            f"Average Mood: {avg:.1f}/5\n"
            f"Trend: {calculate_mood_trend(data)}\n"
            f"Total Entries: {len(data)}\n\n"
            "Please provide:\n1. Encouraging analysis of their mood patterns\n"
            "2. Recognition of positive trends or stability\n"
            "3. Gentle suggestions for mood improvement if needed\n"
            "4. Connection between mood and diabetes prevention\n"
            "5. Actionable wellness tips\n\n"
            "Keep response supportive, under 250 words."
        )
        return await self.make_request(
            prompt, self._context("mood_analysis", "mood_data", data)
        )

    async def generate_meal_plan(
        self, preferences: Dict[str, Any] | None = None
    ) -> str:
        p = preferences or {}
        prompt = (
            "Create a personalized diabetes-prevention meal plan with these "
            "preferences:\n\n"
            f"Dietary Restrictions: {_or(p.get('restrictions'), 'None specified')}\n"
            f"Cuisine Preference: {_or(p.get('cuisine'), 'Any')}\n"
            f"Cooking Time: {_or(p.get('cooking_time'), 'Any')}\n"
            f"Budget Level: {_or(p.get('budget'), 'Moderate')}\n"
            "Health Goals: Diabetes prevention, blood sugar stability\n"
            f"Activity Level: {_or(p.get('activity_level'), 'Moderate')}\n\n"
            "Please provide:\n1. 3 balanced meal ideas (breakfast, lunch, dinner)\n"
            "2. 2 healthy snack options\n3. Portion guidance and timing tips\n"
            "4. Blood sugar impact explanation\n5. Shopping tips for ingredients\n\n"
            "Focus on low glycemic index foods. Keep under 400 words."
        )
        return await self.make_request(
            prompt, self._context("nutrition_planning", "preferences", p)
        )

    async def generate_health_insights(
        self, health: Dict[str, Any] | None = None
    ) -> str:
        h = health or {}
        prompt = (
            "Generate personalized health insights based on this user's data:\n\n"
            f"Risk Assessments: {h.get('risk_assessments', 0)} completed\n"
            f"Recent Risk Score: {_or(h.get('latest_risk_score'), 'Not available')}\n"
            f"Mood Entries: {h.get('mood_entries', 0)} logged\n"
            f"Average Mood: {_or(h.get('avg_mood'), 'Not available')}/5\n"
            f"Nutrition Plans: {h.get('nutrition_plans', 0)} created\n"
            f"Plan Adherence: {_or(h.get('adherence'), 'Not available')}%\n"
            f"Days Active: {h.get('days_active', 0)}\n\n"
            "Please provide:\n1. Celebration of their progress and engagement\n"
            "2. Key insights from their health patterns\n"
            "3. Personalized recommendations for improvement\n"
            "4. Motivation for continued engagement\n"
            "5. One specific action they can take this week\n\n"
            "Keep response encouraging, under 300 words."
        )
        context = {k: v for k, v in h.items() if k != "mood_data"}
        return await self.make_request(
            prompt, self._context("health_insights", "health_data", context)
        )

    async def generate_progress_report(
        self, user_data: Dict[str, Any] | None = None
    ) -> str:
        u = user_data or {}
        prompt = (
            "Create a comprehensive progress report for this user's diabetes "
            "prevention journey:\n\n"
            f"Time Period: {_or(u.get('time_period'), 'Last 30 days')}\n"
            f"Risk Score Change: {_or(u.get('risk_score_change'), 'Not available')}\n"
            f"Mood Stability: {_or(u.get('mood_stability'), 'Not available')}\n"
            f"Nutrition Adherence: {_or(u.get('nutrition_adherence'), 'Not available')}%\n"
            f"Goals Achieved: {u.get('goals_achieved', 0)}\n\n"
            "Please provide:\n1. Executive summary of progress\n"
            "2. Key achievements and milestones\n3. Areas of improvement identified\n"
            "4. Specific recommendations for next month\n"
            "5. Encouragement and motivation\n"
            "6. Professional consultation recommendations if needed\n\n"
            "Format as a structured report, keep under 500 words."
        )
        return await self.make_request(
            prompt, self._context("progress_report", "user_data", u)
        )

    async def insights_for_user(self, user_id: str) -> str:
        db = self._db or HealthDatabase()
        return await self.queue_request(
            lambda: self.generate_health_insights(db.health_summary(user_id))
        )


@lru_cache(maxsize=1)
def get_ai_service() -> DashboardAIService:
    return DashboardAIService()


async def generate_content(prompt: str, context: Dict[str, Any] | None = None) -> str:
    return await get_ai_service().generate_content(prompt, context)
