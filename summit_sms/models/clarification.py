from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

UNIT_CONVERSION = "unit_conversion"
HABIT_SELECTION = "habit_selection"
METRIC_VALUE_NEEDED = "metric_value_needed"
BOOLEAN_CONFIRMATION_NEEDED = "boolean_confirmation_needed"

CLARIFICATION_KINDS = (
    UNIT_CONVERSION,
    HABIT_SELECTION,
    METRIC_VALUE_NEEDED,
    BOOLEAN_CONFIRMATION_NEEDED,
)


class UnitConversionContext(BaseModel):
    kind: Literal["unit_conversion"] = UNIT_CONVERSION
    habit_name: str
    user_unit: str
    user_value: float
    target_unit: str


class HabitSelectionContext(BaseModel):
    kind: Literal["habit_selection"] = HABIT_SELECTION
    candidates: List[str] = Field(min_length=1)
    # value parsed from the ambiguous message, if any
    value: Optional[Union[float, bool]] = None


class MetricValueContext(BaseModel):
    kind: Literal["metric_value_needed"] = METRIC_VALUE_NEEDED
    habit_name: str
    unit: Optional[str] = None


class BooleanConfirmationContext(BaseModel):
    kind: Literal["boolean_confirmation_needed"] = BOOLEAN_CONFIRMATION_NEEDED
    habit_name: str


ClarificationContext = Annotated[
    Union[UnitConversionContext, HabitSelectionContext, MetricValueContext, BooleanConfirmationContext],
    Field(discriminator="kind"),
]

clarification_adapter: TypeAdapter[ClarificationContext] = TypeAdapter(ClarificationContext)


def question_for(context: ClarificationContext) -> str:
    """The SMS that asks the user for what `context` is missing."""
    if isinstance(context, UnitConversionContext):
        return (
            f'Quick question: how many {context.target_unit} is 1 of your "{context.user_unit}"? '
            f"Reply with a number and I'll log \"{context.habit_name}\"."
        )
    if isinstance(context, HabitSelectionContext):
        options = "\n".join(f"{i}. {name}" for i, name in enumerate(context.candidates, start=1))
        return f"Which habit did you mean? Reply with a number:\n{options}"
    if isinstance(context, MetricValueContext):
        unit = context.unit or "units"
        return f'How many {unit} for "{context.habit_name}" today? Reply with a number'
    return f'Did you complete "{context.habit_name}" today? Reply Y or N'
