"""Per-user health records on top of the LocalStore (critical module).

Collections (newest first):
    glucobalance-users          {user_id: user}
    risk-assessments-<user_id>  [{id, score, category, answers, created_at}]
    mood-entries-<user_id>      [{id, date, mood, notes, affirmation, ...}]
    nutrition-plans-<user_id>   [{id, plan, adherence, created_at}]
"""
from __future__ import annotations

import datetime as _dt
import uuid
from functools import lru_cache
from typing import Any, Dict, List, Optional

from core.storage import LocalStore, get_local_store

USERS_KEY = "glucobalance-users"


def _now_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex


def risk_key(user_id: str) -> str:
    return f"risk-assessments-{user_id}"


def mood_key(user_id: str) -> str:
    return f"mood-entries-{user_id}"


def nutrition_key(user_id: str) -> str:
    return f"nutrition-plans-{user_id}"


def risk_category(score: int) -> str:
    if score < 3:
        return "low"
    if score < 10:
        return "increased"
    if score < 15:
        return "high"
    return "possible-diabetes"


class HealthDatabase:
    def __init__(self, store: LocalStore | None = None) -> None:
        self._store = store if store is not None else get_local_store()

    # --- users ---------------------------------------------------------------
    def create_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(user)
        record.setdefault("id", _new_id())
        record.setdefault("created_at", _now_iso())
        record["updated_at"] = record["created_at"]

        def _add(users: Any) -> Dict[str, Any]:
            users = users if isinstance(users, dict) else {}
            users[record["id"]] = record
            return users

        self._store.update_json(USERS_KEY, _add, {})
        return record

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get_json(USERS_KEY, {}).get(user_id)

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        needle = email.strip().lower()
        for user in self._store.get_json(USERS_KEY, {}).values():
            if user.get("email") == needle:
                return user
        return None

    def update_user(
        self, user_id: str, updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        updated: Dict[str, Any] = {}

        def _patch(users: Any) -> Dict[str, Any]:
            users = users if isinstance(users, dict) else {}
            if user_id in users:
                users[user_id].update(updates)
                users[user_id]["updated_at"] = _now_iso()
                updated.update(users[user_id])
            return users

        self._store.update_json(USERS_KEY, _patch, {})
        return updated or None

    # --- collections ---------------------------------------------------------
    def _prepend(self, key: str, record: Dict[str, Any]) -> Dict[str, Any]:
        self._store.update_json(
            key, lambda items: [record, *(items or [])], []
        )
        return record

    def save_risk_assessment(
        self,
        user_id: str,
        score: int,
        answers: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        return self._prepend(
            risk_key(user_id),
            {
                "id": _new_id(),
                "score": int(score),
                "category": risk_category(int(score)),
                "answers": dict(answers or {}),
                "created_at": _now_iso(),
            },
        )

    def get_risk_assessments(self, user_id: str) -> List[Dict[str, Any]]:
        return self._store.get_json(risk_key(user_id), [])

    def save_mood(
        self,
        user_id: str,
        mood: int,
        notes: str = "",
        date: str | None = None,
        affirmation: str | None = None,
    ) -> Dict[str, Any]:
        mood = int(mood)
        if not 1 <= mood <= 5:
            raise ValueError("Mood value must be between 1 and 5")
        entry = {
            "id": _new_id(),
            "date": date or _dt.date.today().isoformat(),
            "mood": mood,
            "notes": notes,
            "affirmation": affirmation,
            "created_at": _now_iso(),
        }

        # one entry per day: a new log for the same date replaces the old one
        def _upsert(items: Any) -> List[Dict[str, Any]]:
            items = [e for e in (items or []) if e.get("date") != entry["date"]]
            items.append(entry)
            return sorted(items, key=lambda e: e["date"], reverse=True)

        self._store.update_json(mood_key(user_id), _upsert, [])
        return entry

    def get_moods(
        self, user_id: str, days: int | None = None
    ) -> List[Dict[str, Any]]:
        entries = self._store.get_json(mood_key(user_id), [])
        return entries[:days] if days is not None else entries

    def save_nutrition_plan(
        self, user_id: str, plan: Dict[str, Any], adherence: int = 0
    ) -> Dict[str, Any]:
        return self._prepend(
            nutrition_key(user_id),
            {
                "id": _new_id(),
                "plan": plan,
                "adherence": int(adherence),
                "created_at": _now_iso(),
            },
        )

    def get_nutrition_plans(self, user_id: str) -> List[Dict[str, Any]]:
        return self._store.get_json(nutrition_key(user_id), [])

    def health_summary(self, user_id: str) -> Dict[str, Any]:
        """Aggregate metrics fed to AI insights and progress charts."""
        risks = self.get_risk_assessments(user_id)
        moods = self.get_moods(user_id)
        plans = self.get_nutrition_plans(user_id)
        recent = moods[:30]
        avg_mood = sum(e["mood"] for e in recent) / len(recent) if recent else 0.0
        adherence = (
            sum(p.get("adherence", 0) for p in plans) / len(plans) if plans else 0.0
        )
        return {
            "risk_assessments": len(risks),
            "latest_risk_score": risks[0]["score"] if risks else None,
            "mood_entries": len(moods),
            "avg_mood": round(avg_mood, 1),
            "nutrition_plans": len(plans),
            "adherence": round(adherence),
            "days_active": min(len(moods), 40),
            "mood_data": moods,
            "time_period": "Last 30 days",
        }


@lru_cache(maxsize=1)
def get_database() -> HealthDatabase:
    return HealthDatabase()
