"""Clinician-facing health report.

The report is assembled from stored records only; no AI call is made here.
``DoctorReportWidget`` is constructed once per lazy element by the loader.
"""
from __future__ import annotations

import datetime as _dt
import math
from typing import Any, Dict, List

from core.page import Element

from .database import HealthDatabase
from .progress_dashboard import risk_trend

DISCLAIMER = (
    "This report is generated from self-reported data and is not a "
    "diagnosis. Review with a qualified healthcare professional."
)


def risk_category(score: int) -> str:
    if score < 7:
        return "Low Risk"
    if score < 15:
        return "Increased Risk"
    if score < 20:
        return "High Risk"
    return "Possible Diabetes"


def mood_statistics(moods: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not moods:
        return {}
    scores = [m["mood"] for m in moods]
    mean = sum(scores) / len(scores)
    trend = "Stable"
    if len(scores) >= 7:
        recent = sum(scores[:3]) / 3
        older = sum(scores[-3:]) / 3
        if recent > older + 0.5:
            trend = "Improving"
        elif recent < older - 0.5:
            trend = "Declining"
    variability = 0.0
    if len(scores) >= 2:
        variability = math.sqrt(sum((s - mean) ** 2 for s in scores) / len(scores))
    return {
        "average_mood": round(mean, 1),
        "range": {"min": min(scores), "max": max(scores)},
        "trend": trend,
        "total_entries": len(scores),
        "variability": round(variability, 2),
    }


def generate_report(
    user_id: str, db: HealthDatabase | None = None, days: int = 90
) -> Dict[str, Any]:
    db = db or HealthDatabase()
    user = db.get_user(user_id) or {}
    risks = db.get_risk_assessments(user_id)
    moods = db.get_moods(user_id, days)
    plans = db.get_nutrition_plans(user_id)
    latest = risks[0]["score"] if risks else None
    data_points = len(risks) + len(moods) + len(plans)
    return {
        "user_id": user_id,
        "patient": {
            "name": user.get("name", "Unknown"),
            "age": user.get("age"),
            "gender": user.get("gender"),
        },
        "generated_at": _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="seconds"),
        "period_days": days,
        "risk": {
            "assessments": len(risks),
            "latest_score": latest,
            "category": risk_category(latest) if latest is not None else None,
            **risk_trend(risks),
        },
        "mental_health": mood_statistics(moods),
        "nutrition": {
            "plans": len(plans),
            "adherence": (
                round(sum(p.get("adherence", 0) for p in plans) / len(plans))
                if plans else None
            ),
        },
        "data_points": data_points,
        "data": "complete" if risks and moods else "partial" if data_points else "none",
        "disclaimer": DISCLAIMER,
    }


class DoctorReportWidget:
    def __init__(self, element: Element) -> None:
        self.element = element
        self.user_id = element.get_attribute("data-user-id") or "demo-user"
        self.report: Dict[str, Any] | None = None
        element.text = "Doctor report ready to generate"

    def generate(self, db: HealthDatabase | None = None) -> Dict[str, Any]:
        self.report = generate_report(self.user_id, db)
        self.element.text = (
            f"Report for {self.report['patient']['name']}: "
            f"{self.report['data_points']} data points"
        )
        return self.report
