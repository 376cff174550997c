"""Mood check-ins, affirmations and coping strategies."""
from __future__ import annotations

import random
from typing import Any, Dict, List

from core.page import Element

from .database import HealthDatabase

AFFIRMATIONS: Dict[int, List[str]] = {
    1: [
        "It's okay to have difficult days. Remember that your feelings are valid, and tomorrow brings new possibilities.",
        "You're brave for acknowledging how you feel. Taking care of your health during tough times shows real strength.",
        "Every small step you take for your health matters, especially on challenging days like today.",
    ],
    2: [
        "You're taking important steps for your health even when things feel tough. That takes courage.",
        "It's normal to have ups and downs. What matters is that you're staying engaged with your wellbeing.",
        "Your commitment to tracking your health shows you care about yourself, and that's something to be proud of.",
    ],
    3: [
        "You're doing well by staying engaged with your health journey. Consistency is key, and you're showing up.",
        "Neutral days are part of life's rhythm. You're maintaining good habits, and that's what counts.",
        "Taking time to check in with yourself is a healthy practice. Keep going with your wellness routine.",
    ],
    4: [
        "Great to see you're feeling positive! Your commitment to health is paying off in how you feel.",
        "Your positive energy is a wonderful foundation for maintaining healthy habits. Keep it up!",
        "It's beautiful to see you thriving. Your good mood can be a powerful motivator for continued wellness.",
    ],
    5: [
        "Wonderful! Your positive energy is a powerful tool for maintaining good health and inspiring others.",
        "Your joy is contagious! This is the perfect mindset for making healthy choices and staying motivated.",
        "Fantastic mood today! Use this positive energy to reinforce all the great health habits you're building.",
    ],
}

COPING_STRATEGIES: Dict[int, List[str]] = {
    1: [
        "Try deep breathing exercises: inhale for 4 counts, hold for 4, exhale for 6",
        "Consider reaching out to a trusted friend or family member for support",
        "Engage in gentle physical activity like a short walk or stretching",
        "Practice self-compassion - treat yourself with the same kindness you'd show a good friend",
    ],
    2: [
        "Take a few minutes for mindfulness or meditation",
        "Write down three things you're grateful for today",
        "Listen to calming music or nature sounds",
        "Try progressive muscle relaxation to release physical tension",
    ],
    3: [
        "Maintain your regular routine to provide stability",
        "Engage in a hobby or activity you enjoy",
        "Take breaks throughout the day to check in with yourself",
        "Stay hydrated and eat nourishing meals",
    ],
    4: [
        "Channel your positive energy into physical activity",
        "Share your good mood with others through acts of kindness",
        "Use this time to plan healthy activities for the week",
        "Practice gratitude by writing in a journal",
    ],
    5: [
        "Celebrate your positive mood and use it to motivate healthy choices",
        "Share your joy with others - positive emotions are contagious",
        "Take on a new healthy challenge or goal",
        "Use this energy to prepare healthy meals or plan exercise",
    ],
}

_rng = random.Random()


def _bucket(mood: Any) -> int:
    try:
        value = int(mood)
    except (TypeError, ValueError):
        return 3
    return value if value in AFFIRMATIONS else 3


def generate_affirmation(mood: Any = 3, rng: random.Random | None = None) -> str:
    """Pick an affirmation for a 1..5 mood; anything else reads as neutral."""
    return (rng or _rng).choice(AFFIRMATIONS[_bucket(mood)])


def coping_strategies(mood: Any = 3) -> List[str]:
    return list(COPING_STRATEGIES[_bucket(mood)])


def log_mood(
    user_id: str,
    mood: int,
    notes: str = "",
    date: str | None = None,
    db: HealthDatabase | None = None,
) -> Dict[str, Any]:
    db = db or HealthDatabase()
    entry = db.save_mood(
        user_id, mood, notes=notes, date=date, affirmation=generate_affirmation(mood)
    )
    return {**entry, "coping_strategies": coping_strategies(mood)}


def init(element: Element) -> None:
    mood = element.get_attribute("data-mood") or 3
    element.props["mental-health"] = {
        "affirmation": generate_affirmation(mood),
        "coping_strategies": coping_strategies(mood),
    }
    element.text = element.props["mental-health"]["affirmation"]
