"""Chart series and headline stats for the progress dashboard."""
from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, List, Optional

from core.page import Element

from .database import HealthDatabase


def mood_trend(moods: List[Dict[str, Any]]) -> str:
    """Newer half against older half (entries newest first)."""
    if len(moods) < 2:
        return "Insufficient data"
    half = (len(moods) + 1) // 2
    recent, older = moods[:half], moods[half:]
    recent_avg = sum(m["mood"] for m in recent) / len(recent)
    older_avg = sum(m["mood"] for m in older) / len(older)
    if recent_avg > older_avg + 0.5:
        return "Improving"
    if recent_avg < older_avg - 0.5:
        return "Declining"
    return "Stable"


def streak_days(moods: List[Dict[str, Any]], today: _dt.date | None = None) -> int:
    """Consecutive days with a mood entry ending today (max 30)."""
    dates = {m.get("date") for m in moods}
    day = today or _dt.date.today()
    streak = 0
    for _ in range(30):
        if day.isoformat() not in dates:
            break
        streak += 1
        day -= _dt.timedelta(days=1)
    return streak


def risk_trend(assessments: List[Dict[str, Any]]) -> Dict[str, Any]:
    scores = [a["score"] for a in assessments if a.get("score") is not None]
    if len(scores) < 2:
        return {"trend": "Insufficient data", "change": 0}
    change = scores[0] - scores[-1]
    trend = "Stable"
    if change > 2:
        trend = "Increasing"
    elif change < -2:
        trend = "Decreasing"
    return {"trend": trend, "change": change, "latest": scores[0], "previous": scores[-1]}


def update_charts(
    user_id: str, db: HealthDatabase | None = None, days: int = 30
) -> Dict[str, Any]:
    db = db or HealthDatabase()
    moods = db.get_moods(user_id, days)
    risks = db.get_risk_assessments(user_id)
    plans = db.get_nutrition_plans(user_id)
    avg_mood: Optional[float] = (
        round(sum(m["mood"] for m in moods) / len(moods), 1) if moods else None
    )
    return {
        "user_id": user_id,
        # charts read oldest to newest
        "mood_series": [
            {"date": m["date"], "mood": m["mood"]} for m in reversed(moods)
        ],
        "risk_series": [
            {"date": r["created_at"][:10], "score": r["score"]} for r in reversed(risks)
        ],
        "average_mood": avg_mood,
        "mood_trend": mood_trend(moods),
        "risk_trend": risk_trend(risks),
        "streak_days": streak_days(moods),
        "nutrition_plans": len(plans),
    }


def init(element: Element) -> Dict[str, Any]:
    user_id = element.get_attribute("data-user-id") or "demo-user"
    charts = update_charts(user_id)
    element.props["progress-dashboard"] = charts
    element.text = f"{len(charts['mood_series'])} mood entries, {charts['mood_trend']}"
    return charts
