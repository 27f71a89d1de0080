from typing import Optional
from datetime import datetime, date, timezone
from sqlmodel import SQLModel, Field, UniqueConstraint
from sqlalchemy import DateTime, Column, JSON

TRACKING_BOOLEAN = "boolean"
TRACKING_METRIC = "metric"


class HabitTrackingConfig(SQLModel, table=True):
    """
    How a habit is tracked: yes/no or a number against an optional target.
    Read-only from the SMS engine.
    """
    __tablename__ = "habit_tracking_config"
    __table_args__ = (UniqueConstraint("user_id", "habit_name", name="uq_tracking_config_user_habit"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="profiles.id")
    habit_name: str = Field(max_length=200)

    tracking_enabled: bool = Field(default=True, index=True)
    tracking_type: str = Field(default=TRACKING_BOOLEAN, max_length=20)
    metric_unit: Optional[str] = Field(default=None, max_length=50)
    metric_target: Optional[float] = None

    # e.g. {"bottles": 16} -> one bottle is 16 metric_unit
    unit_conversions: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    @property
    def is_metric(self) -> bool:
        return self.tracking_type == TRACKING_METRIC


class ScheduledHabit(SQLModel, table=True):
    """
    A habit planned for one weekday (0-6, Sunday = 0).
    """
    __tablename__ = "weekly_habits"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="profiles.id")
    habit_name: str = Field(max_length=200)
    day_of_week: int = Field(index=True)


class HabitEntry(SQLModel, table=True):
    """
    One logged value per (user, habit, local calendar day).
    Exactly one of `completed` / `metric_value` is meaningful.
    """
    __tablename__ = "habit_tracking_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "habit_name", "entry_date", name="uq_tracking_entries_user_habit_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="profiles.id")
    habit_name: str = Field(max_length=200)
    entry_date: date = Field(index=True)

    completed: Optional[bool] = None
    metric_value: Optional[float] = None
    entry_source: str = Field(default="sms", max_length=30)

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @property
    def is_answered(self) -> bool:
        return self.metric_value is not None or self.completed is not None
