"""Low-glycemic meal planning from a static food table.

Plans never depend on the AI service; ``ai.generate_meal_plan`` produces the
free-text variant.
"""
from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Iterable, List

from core.page import Element

MealItem = Dict[str, Any]

MEAL_SLOTS = ("breakfast", "morning_snack", "lunch", "afternoon_snack", "dinner")

RESTRICTIONS: Dict[str, Dict[str, List[str]]] = {
    "vegetarian": {"excludes": ["meat", "poultry", "fish"]},
    "vegan": {"excludes": ["meat", "poultry", "fish", "dairy", "eggs"]},
    "gluten-free": {"excludes": ["wheat", "barley", "rye"]},
}

_DAY_TEMPLATES: Dict[int, Dict[str, List[MealItem]]] = {
    1: {
        "breakfast": [
            {"name": "Steel-cut oatmeal with berries and almonds", "carbs": 30,
             "notes": "Use unsweetened almond milk"},
            {"name": "Greek yogurt (plain, low-fat)", "carbs": 12,
             "notes": "Add cinnamon for flavor"},
        ],
        "morning_snack": [
            {"name": "Apple slices with 1 tbsp almond butter", "carbs": 20,
             "notes": "Choose small apple"},
        ],
        "lunch": [
            {"name": "Grilled chicken salad with mixed vegetables", "carbs": 15,
             "notes": "Use olive oil vinaigrette"},
            {"name": "Quinoa (1/2 cup cooked)", "carbs": 22,
             "notes": "High protein grain"},
        ],
        "afternoon_snack": [
            {"name": "Handful of mixed nuts (unsalted)", "carbs": 5,
             "notes": "1 oz portion"},
        ],
        "dinner": [
            {"name": "Baked salmon with herbs", "carbs": 0, "notes": "Rich in omega-3"},
            {"name": "Steamed broccoli", "carbs": 8, "notes": "High in fiber"},
            {"name": "Brown rice (1/3 cup cooked)", "carbs": 15,
             "notes": "Portion controlled"},
        ],
    },
    2: {
        "breakfast": [
            {"name": "Vegetable omelette with spinach and peppers", "carbs": 6,
             "notes": "Two eggs, cooked in olive oil"},
            {"name": "Whole-grain toast (1 slice)", "carbs": 15,
             "notes": "Choose 100% whole grain"},
        ],
        "morning_snack": [
            {"name": "Carrot sticks with hummus", "carbs": 12, "notes": "2 tbsp hummus"},
        ],
        "lunch": [
            {"name": "Lentil soup", "carbs": 25, "notes": "Low sodium broth"},
            {"name": "Side salad with olive oil", "carbs": 5, "notes": "Leafy greens"},
        ],
        "afternoon_snack": [
            {"name": "Pear with a few walnuts", "carbs": 18, "notes": "Small pear"},
        ],
        "dinner": [
            {"name": "Grilled chicken breast with lemon", "carbs": 0,
             "notes": "Skinless"},
            {"name": "Roasted cauliflower", "carbs": 6, "notes": "Olive oil and herbs"},
            {"name": "Barley pilaf (1/3 cup cooked)", "carbs": 14,
             "notes": "Low glycemic grain"},
        ],
    },
    3: {
        "breakfast": [
            {"name": "Chia pudding with unsweetened almond milk", "carbs": 14,
             "notes": "Prepare the night before"},
        ],
        "morning_snack": [
            {"name": "Cottage cheese with cucumber", "carbs": 6, "notes": "Low-fat"},
        ],
        "lunch": [
            {"name": "Chickpea and vegetable bowl", "carbs": 30,
             "notes": "Tahini dressing"},
        ],
        "afternoon_snack": [
            {"name": "Celery with peanut butter", "carbs": 7, "notes": "1 tbsp"},
        ],
        "dinner": [
            {"name": "Baked cod with herbs", "carbs": 0, "notes": "Lean protein"},
            {"name": "Green beans", "carbs": 7, "notes": "Steamed"},
            {"name": "Sweet potato (1/2 medium)", "carbs": 13,
             "notes": "Bake with skin on"},
        ],
    },
}

_MEAT_SWAPS = {
    "chicken": ("Grilled tofu", "Marinated and grilled"),
    "salmon": ("Baked tempeh with herbs", "High protein plant option"),
    "cod": ("Baked tempeh with herbs", "High protein plant option"),
}
_ANIMAL_SWAPS = {
    "yogurt": ("Coconut yogurt (unsweetened)", "Plant-based alternative"),
    "cottage cheese": ("Silken tofu with cucumber", "Plant-based alternative"),
    "omelette": ("Chickpea flour omelette with spinach", "Egg-free"),
}
_GLUTEN_SWAPS = {
    "oatmeal": ("Gluten-free oatmeal with berries and almonds",
                "Certified gluten-free oats"),
    "toast": ("Gluten-free seeded toast (1 slice)", "Check the label"),
    "barley": ("Buckwheat pilaf (1/3 cup cooked)", "Naturally gluten-free"),
}

GUIDELINES = [
    "Include fiber-rich foods in each meal to help stabilize blood sugar levels",
    "Pair carbohydrates with protein or healthy fats",
    "Keep meal times regular and avoid skipping breakfast",
    "Prefer water or unsweetened drinks over juice and soda",
]


def _swap(items: List[MealItem], table: Dict[str, tuple]) -> List[MealItem]:
    out = []
    for item in items:
        lowered = item["name"].lower()
        for needle, (name, notes) in table.items():
            if needle in lowered:
                item = {**item, "name": name, "notes": notes}
                break
        out.append(item)
    return out


def adapt_meals(
    meals: Dict[str, List[MealItem]], restrictions: Iterable[str]
) -> Dict[str, List[MealItem]]:
    wanted = set(restrictions)
    adapted = copy.deepcopy(meals)
    for slot, items in adapted.items():
        if wanted & {"vegetarian", "vegan"}:
            items = _swap(items, _MEAT_SWAPS)
        if "vegan" in wanted:
            items = _swap(items, _ANIMAL_SWAPS)
        if "gluten-free" in wanted:
            items = _swap(items, _GLUTEN_SWAPS)
        adapted[slot] = items
    return adapted


def _normalize_restrictions(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    out = []
    for r in value:
        key = str(r).strip().lower().replace("_", "-")
        if key == "glutenfree":
            key = "gluten-free"
        if key in RESTRICTIONS and key not in out:
            out.append(key)
    return out


def generate_meal_plan(preferences: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Three-day plan; ``meals`` flattens day one for quick display."""
    prefs = preferences or {}
    restrictions = _normalize_restrictions(prefs.get("restrictions"))
    days = []
    for day, template in sorted(_DAY_TEMPLATES.items()):
        days.append({"day": day, "meals": adapt_meals(template, restrictions)})
    first = days[0]["meals"]
    return {
        "id": uuid.uuid4().hex,
        "type": "3-day",
        "cuisine": prefs.get("cuisine") or "general",
        "restrictions": restrictions,
        "days": days,
        "meals": [dict(item, slot=slot) for slot in MEAL_SLOTS for item in first[slot]],
        "guidelines": list(GUIDELINES),
    }


def daily_carbs(meals: Dict[str, List[MealItem]]) -> int:
    return sum(item["carbs"] for items in meals.values() for item in items)


def init(element: Element) -> Dict[str, Any]:
    plan = generate_meal_plan(
        {
            "cuisine": element.get_attribute("data-cuisine"),
            "restrictions": element.get_attribute("data-restrictions"),
        }
    )
    element.props["nutrition-service"] = plan
    element.text = (
        f"{plan['type']} plan, {daily_carbs(plan['days'][0]['meals'])}g carbs on day 1"
    )
    return plan
