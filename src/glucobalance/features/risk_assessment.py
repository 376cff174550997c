"""Type 2 diabetes risk questionnaire (WHO/ADA point scale).

Every answer is an option key; its points add up to a 0..23 total that
``database.risk_category`` maps to low / increased / high /
possible-diabetes. Unanswered questions score 0.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from core.page import Element

from .database import HealthDatabase, risk_category

# (option key, label, points)
Option = Tuple[str, str, int]

QUESTIONS: List[Dict[str, Any]] = [
    {
        "id": "age",
        "question": "What is your age?",
        "options": [
            ("under-45", "Under 45 years", 0),
            ("45-54", "45-54 years", 2),
            ("55-64", "55-64 years", 3),
            ("65-plus", "65 years or older", 4),
        ],
    },
    {
        "id": "gender",
        "question": "What is your gender?",
        "options": [("female", "Female", 0), ("male", "Male", 1)],
    },
    {
        "id": "family_history",
        "question": "Do you have a family history of diabetes?",
        "options": [
            ("none", "No family history", 0),
            ("extended", "Grandparent, aunt, uncle, or first cousin with diabetes", 2),
            ("immediate", "Parent, brother, or sister with diabetes", 5),
        ],
    },
    {
        "id": "high_blood_pressure",
        "question": "Have you ever been told by a doctor that you have high blood pressure?",
        "options": [("no", "No", 0), ("yes", "Yes", 2)],
    },
    {
        "id": "physical_activity",
        "question": "Are you physically active?",
        "description": (
            "Physical activity includes 30 minutes of brisk walking or "
            "similar activity most days of the week."
        ),
        "options": [
            ("inactive", "No, I am not physically active", 2),
            ("active", "Yes, I am physically active", 0),
        ],
    },
    {
        "id": "bmi",
        "question": "What is your Body Mass Index (BMI) category?",
        "description": "BMI = weight (kg) / height (m)^2.",
        "options": [
            ("normal", "Normal weight (BMI < 25)", 0),
            ("overweight", "Overweight (BMI 25-29.9)", 1),
            ("obese", "Obese (BMI >= 30)", 3),
        ],
    },
    {
        "id": "gestational_diabetes",
        "question": "For women: Have you ever been diagnosed with gestational diabetes?",
        "options": [("no", "No / Not applicable (male)", 0), ("yes", "Yes", 1)],
    },
    {
        "id": "prediabetes",
        "question": "Have you ever been told you have prediabetes or borderline diabetes?",
        "options": [("no", "No", 0), ("yes", "Yes", 5)],
    },
]

MAX_SCORE = sum(max(o[2] for o in q["options"]) for q in QUESTIONS)

CATEGORY_INFO: Dict[str, Dict[str, str]] = {
    "low": {
        "label": "Low",
        "description": "Your risk of developing type 2 diabetes is low.",
        "recommendation": (
            "Continue maintaining a healthy lifestyle with regular exercise "
            "and balanced nutrition."
        ),
    },
    "increased": {
        "label": "Increased",
        "description": "You have an increased risk of developing type 2 diabetes.",
        "recommendation": (
            "Consider lifestyle modifications including regular physical "
            "activity and healthy eating habits."
        ),
    },
    "high": {
        "label": "High",
        "description": "You have a high risk of developing type 2 diabetes.",
        "recommendation": (
            "It is recommended to consult with a healthcare provider for "
            "further evaluation and guidance."
        ),
    },
    "possible-diabetes": {
        "label": "Possible Diabetes",
        "description": "You may already have diabetes or prediabetes.",
        "recommendation": (
            "Please consult with a healthcare provider immediately for proper "
            "testing and diagnosis."
        ),
    },
}

_BY_ID = {q["id"]: q for q in QUESTIONS}


def _option(question: Dict[str, Any], answer: Any) -> Option:
    for opt in question["options"]:
        if opt[0] == answer:
            return opt
    raise ValueError(f"invalid answer {answer!r} for question '{question['id']}'")


def calculate_score(answers: Mapping[str, Any] | None) -> Dict[str, Any]:
    """Score a (possibly partial) questionnaire.

    Raises ValueError for an unknown question id or option key.
    """
    answers = dict(answers or {})
    unknown = sorted(set(answers) - set(_BY_ID))
    if unknown:
        raise ValueError(f"unknown question(s): {', '.join(unknown)}")
    factors = []
    for question in QUESTIONS:
        if question["id"] not in answers:
            continue
        key, label, points = _option(question, answers[question["id"]])
        factors.append(
            {"question_id": question["id"], "answer": key, "label": label, "points": points}
        )
    score = sum(f["points"] for f in factors)
    category = risk_category(score)
    return {
        "score": score,
        "max_score": MAX_SCORE,
        "category": category,
        **CATEGORY_INFO[category],
        "factors": [f for f in factors if f["points"] > 0],
        "answered": len(factors),
        "missing": [q["id"] for q in QUESTIONS if q["id"] not in answers],
    }


def assess(
    user_id: str, answers: Mapping[str, Any], db: HealthDatabase | None = None
) -> Dict[str, Any]:
    """Score ``answers`` and store the result for ``user_id``."""
    result = calculate_score(answers)
    db = db or HealthDatabase()
    record = db.save_risk_assessment(user_id, result["score"], dict(answers))
    return {**result, "id": record["id"], "created_at": record["created_at"]}


def questionnaire() -> List[Dict[str, Any]]:
    return [
        {
            **{k: v for k, v in q.items() if k != "options"},
            "options": [{"value": k, "text": t, "points": p} for k, t, p in q["options"]],
        }
        for q in QUESTIONS
    ]


def init(element: Element) -> Dict[str, Any]:
    user_id = element.get_attribute("data-user-id") or "demo-user"
    latest = next(iter(HealthDatabase().get_risk_assessments(user_id)), None)
    state = {"questions": questionnaire(), "latest": latest}
    element.props["risk-assessment"] = state
    if latest is None:
        element.text = f"{len(QUESTIONS)} questions, about 2 minutes"
    else:
        label = CATEGORY_INFO[risk_category(latest["score"])]["label"]
        element.text = f"Latest score: {latest['score']} ({label} risk)"
    return state
