# ABOUTME: Pydantic records shared by API responses and the UI client (goals, tactics, measurements, cycle...).
# ABOUTME: TacticRecord validates the type-tagged completions union whenever data crosses the storage boundary.

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from core.completions import TacticType, normalize_completions
from core.database import new_id


class MeasurementConfigModel(BaseModel):
    """What a goal measures weekly. A missing or zero target means trend only."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    unit: str = ""
    target: Optional[float] = None


class GoalRecord(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    measurement_configs: list[MeasurementConfigModel] = Field(default_factory=list)
    position: int = 0

    @field_validator("measurement_configs", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return value or []


class TacticRecord(BaseModel):
    id: str
    goal_id: str
    name: str = ""
    type: TacticType = TacticType.WEEKLY
    assigned_weeks: list[int] = Field(default_factory=list)
    completions: dict[int, Union[list[bool], bool]] = Field(default_factory=dict)
    position: int = 0

    @model_validator(mode="before")
    @classmethod
    def _normalize_completions(cls, data: Any) -> Any:
        if isinstance(data, dict):
            tactic_type = data.get("type") or TacticType.WEEKLY
            data = {
                **data,
                "assigned_weeks": sorted(set(data.get("assigned_weeks") or [])),
                "completions": normalize_completions(tactic_type, data.get("completions")),
            }
        return data


class MeasurementRecord(BaseModel):
    goal_id: str
    config_id: str
    week_num: int
    value: float


class VisionRecord(BaseModel):
    long_term: str = ""
    short_term: str = ""


class CycleRecord(BaseModel):
    id: str
    start_date: str
    current_week: int = 1


class UserRecord(BaseModel):
    id: str
    email: str
    name: str = ""
    email_confirmed_at: Optional[datetime] = None


class ScoresModel(BaseModel):
    """Derived scores for one viewed week."""

    week: int
    actual_week: int
    weekly_score: float
    previous_week_score: Optional[float] = None
    overall_progress: float
    tactic_scores: dict[str, float] = Field(default_factory=dict)


BRIEFING_FALLBACK_EMPTY = "Could not generate briefing. Keep pushing!"
BRIEFING_FALLBACK_ERROR = "Error reaching the AI service. Your effort is still seen."


class BriefingModel(BaseModel):
    """Output of the execution-briefing agent (or its fallback)."""

    briefing: str = Field(description="Short motivational summary, at most ~150 words.")
    fallback: bool = Field(default=False, description="True when the AI service failed and static text was used.")


class VerificationStatus(str, Enum):
    """Outcome of following an email confirmation link, carried back to the client as a query param."""

    SUCCESS = "success"
    # Misspelling is the established wire value; existing links depend on it.
    FAILURE = "failiure"
    ALREADY_VERIFIED = "already_verified"
