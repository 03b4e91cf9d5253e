# fittrack/services/metrics.py
# Derived fields, computed from a document snapshot on every read. Never stored
# (except profileCompletion, which the user service rewrites on each write).

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional

ACTIVITY_MULTIPLIERS: Dict[str, float] = {
    "sedentary": 1.2,
    "lightly_active": 1.375,
    "moderately_active": 1.55,
    "very_active": 1.725,
    "extra_active": 1.9,
}
DEFAULT_MULTIPLIER = ACTIVITY_MULTIPLIERS["moderately_active"]

PROFILE_FIELDS = ("name", "email", "age", "weight", "height", "fitnessGoal", "activityLevel")


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like Math.round (halves go up), not banker's rounding."""
    q = Decimal(1).scaleb(-ndigits)
    out = Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP)
    return int(out) if ndigits == 0 else float(out)


def _present(v: Any) -> bool:
    return v is not None and v != ""


def bmi(weight: Optional[float], height: Optional[float]) -> Optional[float]:
    """BMI = weight(kg) / height(m)^2, 1 decimal. None if either input is missing."""
    if not weight or not height:
        return None
    meters = height / 100
    return round_half_up(weight / (meters * meters), 1)


def bmi_category(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    if value < 18.5:
        return "Underweight"
    if value < 25:
        return "Normal"
    if value < 30:
        return "Overweight"
    return "Obese"


def daily_calorie_needs(
    weight: Optional[float],
    height: Optional[float],
    age: Optional[int],
    activity_level: Optional[str],
) -> Optional[int]:
    """Mifflin-St Jeor BMR (sex-neutral +5 constant) times the activity multiplier."""
    if not weight or not height or not age:
        return None
    bmr = 10 * weight + 6.25 * height - 5 * age + 5
    multiplier = ACTIVITY_MULTIPLIERS.get(activity_level or "", DEFAULT_MULTIPLIER)
    return round_half_up(bmr * multiplier)


def profile_completion(doc: Mapping[str, Any]) -> int:
    filled = sum(1 for f in PROFILE_FIELDS if _present(doc.get(f)))
    return round_half_up(filled / len(PROFILE_FIELDS) * 100)


def calories_per_minute(calories: Optional[float], duration: Optional[float]) -> Optional[float]:
    if not calories or not duration:
        return None
    return round_half_up(calories / duration, 1)


def user_metrics(doc: Mapping[str, Any]) -> Dict[str, Any]:
    value = bmi(doc.get("weight"), doc.get("height"))
    return {
        "bmi": value,
        "bmiCategory": bmi_category(value),
        "dailyCalorieNeeds": daily_calorie_needs(
            doc.get("weight"), doc.get("height"), doc.get("age"), doc.get("activityLevel")
        ),
    }


def user_view(doc: Mapping[str, Any]) -> Dict[str, Any]:
    """Stored user -> API shape (string id + derived fields)."""
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    out.update(user_metrics(doc))
    return out


def user_summary(doc: Mapping[str, Any], *fields: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {"id": str(doc["_id"])}
    for f in fields or ("name", "email"):
        out[f] = doc.get(f)
    return out


def workout_view(doc: Mapping[str, Any], user: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    out["userId"] = str(doc["userId"])
    out["caloriesPerMinute"] = calories_per_minute(doc.get("caloriesBurned"), doc.get("duration"))
    if user is not None:
        out["user"] = user
    return out
