import datetime as _dt
import random

from core.page import Document
from core.storage import LocalStore
from glucobalance.features import (
    doctor_report,
    mental_health,
    nutrition_service,
    progress_dashboard,
)
from glucobalance.features.database import HealthDatabase


def _names(meals):
    return [item["name"] for items in meals.values() for item in items]


def test_meal_plan_default_has_three_days():
    plan = nutrition_service.generate_meal_plan()
    assert plan["type"] == "3-day"
    assert [d["day"] for d in plan["days"]] == [1, 2, 3]
    assert plan["meals"][0]["slot"] == "breakfast"
    assert any("salmon" in n.lower() for n in _names(plan["days"][0]["meals"]))


def test_meal_plan_vegan_gluten_free():
    plan = nutrition_service.generate_meal_plan(
        {"restrictions": ["vegan", "gluten_free", "keto"]}
    )
    assert plan["restrictions"] == ["vegan", "gluten-free"]
    names = " ".join(n.lower() for d in plan["days"] for n in _names(d["meals"]))
    for banned in ("chicken", "salmon", "cod", "greek yogurt", "cottage cheese"):
        assert banned not in names
    assert "gluten-free oatmeal" in names
    assert "whole-grain toast" not in names


def test_meal_plan_restrictions_from_string():
    plan = nutrition_service.generate_meal_plan({"restrictions": "vegetarian"})
    names = " ".join(_names(plan["days"][0]["meals"])).lower()
    assert "tofu" in names and "chicken" not in names
    assert "greek yogurt" in names


def test_nutrition_init_renders_plan():
    doc = Document()
    el = doc.create_element(attrs={"data-restrictions": "vegan"})
    plan = nutrition_service.init(el)
    assert el.props["nutrition-service"] is plan
    assert el.text.startswith("3-day plan")


def test_affirmations_follow_mood():
    rng = random.Random(7)
    assert mental_health.generate_affirmation(1, rng) in mental_health.AFFIRMATIONS[1]
    assert mental_health.generate_affirmation("5", rng) in mental_health.AFFIRMATIONS[5]
    assert mental_health.generate_affirmation(42, rng) in mental_health.AFFIRMATIONS[3]
    assert mental_health.generate_affirmation(None, rng) in mental_health.AFFIRMATIONS[3]


def test_log_mood_persists_affirmation():
    db = HealthDatabase(LocalStore())
    entry = mental_health.log_mood("u1", 2, notes="tired", date="2026-10-18", db=db)
    assert entry["affirmation"] in mental_health.AFFIRMATIONS[2]
    assert entry["coping_strategies"] == mental_health.COPING_STRATEGIES[2]
    stored = db.get_moods("u1")[0]
    assert stored["affirmation"] == entry["affirmation"]


def test_progress_charts_oldest_first_and_streak():
    db = HealthDatabase(LocalStore())
    today = _dt.date.today()
    for offset, mood in [(0, 5), (1, 4), (2, 4), (5, 1)]:
        db.save_mood("u1", mood, date=(today - _dt.timedelta(days=offset)).isoformat())
    db.save_risk_assessment("u1", 10)
    db.save_risk_assessment("u1", 5)
    charts = progress_dashboard.update_charts("u1", db)
    assert [p["mood"] for p in charts["mood_series"]] == [1, 4, 4, 5]
    assert charts["streak_days"] == 3
    assert charts["mood_trend"] == "Improving"
    assert charts["risk_trend"]["trend"] == "Decreasing"
    assert charts["average_mood"] == 3.5


def test_progress_trend_edge_cases():
    assert progress_dashboard.mood_trend([{"mood": 3}]) == "Insufficient data"
    assert progress_dashboard.risk_trend([{"score": 4}]) == {
        "trend": "Insufficient data", "change": 0,
    }


def test_doctor_report_from_records():
    db = HealthDatabase(LocalStore())
    user = db.create_user({"name": "Dana", "age": 44, "email": "d@x.io"})
    for day, mood in enumerate([4, 4, 3, 5, 4, 3, 2], start=1):
        db.save_mood(user["id"], mood, date=f"2026-10-{day:02d}")
    db.save_risk_assessment(user["id"], 16)
    report = doctor_report.generate_report(user["id"], db)
    assert report["patient"]["name"] == "Dana"
    assert report["risk"]["category"] == "High Risk"
    assert report["mental_health"]["total_entries"] == 7
    assert report["mental_health"]["range"] == {"min": 2, "max": 5}
    assert report["data"] == "complete"
    assert report["data_points"] == 8


def test_doctor_report_without_data():
    report = doctor_report.generate_report("ghost", HealthDatabase(LocalStore()))
    assert report["data"] == "none"
    assert report["risk"]["category"] is None
    assert report["mental_health"] == {}


def test_doctor_report_widget_generates_on_demand():
    doc = Document()
    el = doc.create_element(attrs={"data-user-id": "ghost"})
    widget = doctor_report.DoctorReportWidget(el)
    assert widget.report is None
    report = widget.generate(HealthDatabase(LocalStore()))
    assert report["user_id"] == "ghost"
    assert el.text == "Report for Unknown: 0 data points"
