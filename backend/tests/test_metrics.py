# backend/tests/test_metrics.py
from bson import ObjectId

from fittrack.services.metrics import (
    bmi,
    bmi_category,
    calories_per_minute,
    daily_calorie_needs,
    profile_completion,
    round_half_up,
    user_view,
    workout_view,
)


class TestBmi:
    def test_bmi_one_decimal(self):
        assert bmi(70, 175) == 22.9

    def test_missing_input_is_null(self):
        assert bmi(None, 175) is None
        assert bmi(70, None) is None
        assert bmi_category(None) is None

    def test_categories(self):
        assert bmi_category(18.4) == "Underweight"
        assert bmi_category(18.5) == "Normal"
        assert bmi_category(24.9) == "Normal"
        assert bmi_category(25) == "Overweight"
        assert bmi_category(30) == "Obese"


class TestCalories:
    def test_daily_needs_mifflin_st_jeor(self):
        # 10*70 + 6.25*175 - 5*30 + 5 = 1648.75; * 1.55 = 2555.5625
        assert daily_calorie_needs(70, 175, 30, "moderately_active") == 2556

    def test_daily_needs_sedentary(self):
        # 1648.75 * 1.2 = 1978.5 -> rounds half up
        assert daily_calorie_needs(70, 175, 30, "sedentary") == 1979

    def test_daily_needs_missing_age(self):
        assert daily_calorie_needs(70, 175, None, "sedentary") is None

    def test_calories_per_minute(self):
        assert calories_per_minute(300, 30) == 10
        assert calories_per_minute(250, 45) == 5.6
        assert calories_per_minute(None, 30) is None


def test_profile_completion_five_of_seven():
    doc = {
        "name": "Jane",
        "email": "jane@example.com",
        "age": 30,
        "weight": 60,
        "activityLevel": "sedentary",
    }
    assert profile_completion(doc) == 71


def test_profile_completion_ignores_empty_values():
    assert profile_completion({"name": "Jane", "email": "", "age": None}) == 14


def test_round_half_up_matches_math_round():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.45, 1) == 0.5
    assert isinstance(round_half_up(7.0), int)


def test_user_view_adds_derived_fields():
    oid = ObjectId()
    view = user_view({"_id": oid, "name": "Jane", "weight": 70, "height": 175})
    assert view["id"] == str(oid)
    assert "_id" not in view
    assert view["bmi"] == 22.9
    assert view["bmiCategory"] == "Normal"
    assert view["dailyCalorieNeeds"] is None


def test_workout_view_stringifies_ids():
    oid, uid = ObjectId(), ObjectId()
    view = workout_view({"_id": oid, "userId": uid, "caloriesBurned": 300, "duration": 30})
    assert view["id"] == str(oid)
    assert view["userId"] == str(uid)
    assert view["caloriesPerMinute"] == 10
    assert "user" not in view
