from pydantic import BaseModel, field_validator
from typing import List, Literal, Optional, Union

ClarificationType = Literal[
    "unit_conversion",
    "habit_selection",
    "metric_value_needed",
    "boolean_confirmation_needed",
]


class ParsedHabit(BaseModel):
    habit_name: Optional[str] = None
    value: Optional[Union[float, bool]] = None
    needs_clarification: bool = False
    clarification_type: Optional[ClarificationType] = None
    user_unit: Optional[str] = None
    user_value: Optional[float] = None
    candidates: List[str] = []

    @field_validator("habit_name", "user_unit")
    @classmethod
    def strip_whitespace(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("candidates")
    @classmethod
    def drop_blank_candidates(cls, v: List[str]) -> List[str]:
        return [c.strip() for c in v if c and c.strip()]


class SmartParseResult(BaseModel):
    understood: bool
    habits: List[ParsedHabit] = []
    reply: Optional[str] = None

    @classmethod
    def not_understood(cls) -> "SmartParseResult":
        return cls(understood=False)
