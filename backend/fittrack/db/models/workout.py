# fittrack/db/models/workout.py
# Workout request bodies
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, get_args

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

ExerciseType = Literal[
    "cardio", "strength", "flexibility", "sports", "yoga",
    "pilates", "hiit", "crossfit", "swimming", "cycling",
    "running", "walking", "other",
]
Intensity = Literal["low", "moderate", "high", "extreme"]

EXERCISE_TYPES = get_args(ExerciseType)
INTENSITIES = get_args(Intensity)


def check_object_id(v: str) -> str:
    if not ObjectId.is_valid(v):
        raise ValueError("Invalid User ID format")
    return v


class Exercise(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    sets: Optional[int] = Field(default=None, ge=1)
    reps: Optional[int] = Field(default=None, ge=1)
    weight: Optional[float] = Field(default=None, ge=0)   # kg


class WorkoutCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    userId: str
    title: str = Field(..., min_length=3, max_length=100)
    exerciseType: ExerciseType
    duration: float = Field(..., ge=1, le=600)            # minutes
    caloriesBurned: float = Field(..., ge=1, le=5000)
    intensity: Intensity = "moderate"
    notes: Optional[str] = Field(default=None, max_length=500)
    workoutDate: Optional[datetime] = None                 # defaults to now; future dates rejected by the service
    completed: bool = True
    exercises: List[Exercise] = Field(default_factory=list)

    @field_validator("userId")
    @classmethod
    def validate_user_id(cls, v):
        return check_object_id(v)


class WorkoutUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    userId: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    exerciseType: Optional[ExerciseType] = None
    duration: Optional[float] = Field(default=None, ge=1, le=600)
    caloriesBurned: Optional[float] = Field(default=None, ge=1, le=5000)
    intensity: Optional[Intensity] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    workoutDate: Optional[datetime] = None
    completed: Optional[bool] = None
    exercises: Optional[List[Exercise]] = None

    @field_validator(
        "userId", "title", "exerciseType", "duration", "caloriesBurned",
        "intensity", "workoutDate", "completed", "exercises",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("userId")
    @classmethod
    def validate_user_id(cls, v):
        return check_object_id(v) if v is not None else v
