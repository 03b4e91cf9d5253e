# fittrack/db/models/user.py
# User request bodies. Stored documents are plain dicts (see services/users.py).
from __future__ import annotations

from typing import Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

FitnessGoal = Literal["weight_loss", "muscle_gain", "endurance", "flexibility", "general_fitness"]
ActivityLevel = Literal["sedentary", "lightly_active", "moderately_active", "very_active", "extra_active"]

FITNESS_GOALS = get_args(FitnessGoal)
ACTIVITY_LEVELS = get_args(ActivityLevel)
DEFAULT_ACTIVITY_LEVEL: ActivityLevel = "moderately_active"


def normalize_email(v):
    # runs before EmailStr; stored and compared lowercased
    return v.strip().lower() if isinstance(v, str) else v


class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    age: Optional[int] = Field(default=None, ge=13, le=120)
    weight: Optional[float] = Field(default=None, ge=20, le=500)   # kg
    height: Optional[float] = Field(default=None, ge=50, le=300)   # cm
    fitnessGoal: Optional[FitnessGoal] = None
    activityLevel: ActivityLevel = DEFAULT_ACTIVITY_LEVEL

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return normalize_email(v)


class UserUpdate(BaseModel):
    """Partial update: only fields present in the body are merged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    age: Optional[int] = Field(default=None, ge=13, le=120)
    weight: Optional[float] = Field(default=None, ge=20, le=500)
    height: Optional[float] = Field(default=None, ge=50, le=300)
    fitnessGoal: Optional[FitnessGoal] = None
    activityLevel: Optional[ActivityLevel] = None
    isActive: Optional[bool] = None

    @field_validator("name", "email", "activityLevel", "isActive", mode="before")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return normalize_email(v)
