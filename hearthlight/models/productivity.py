"""Productivity domain records stored by the app."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hearthlight.models.messages import utc_now

Priority = Literal["low", "medium", "high"]
Quadrant = Literal[
    "urgent-important",
    "not-urgent-important",
    "urgent-not-important",
    "not-urgent-not-important",
]
Mood = Literal["happy", "neutral", "sad", "excited", "stressed"]
DiaryTemplate = Literal["free", "gratitude", "reflection", "goals"]
GoalCategory = Literal["personal", "career", "health", "finance", "learning", "relationship"]
GoalType = Literal["yearly", "monthly", "weekly"]
GoalStatus = Literal["active", "completed", "paused", "cancelled"]
HabitFrequency = Literal["daily", "weekly"]
ActivityType = Literal[
    "task_created",
    "task_completed",
    "diary_entry_created",
    "goal_created",
    "goal_updated",
    "habit_completed",
    "pomodoro_completed",
    "ai_interaction",
]


class Record(BaseModel):
    """Base for stored records; unknown keys from older data are ignored."""

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="after")
    @classmethod
    def _assume_utc(cls, value: Any) -> Any:
        # Older exports carry naive timestamps; they were written in UTC.
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Task(Record):
    id: str
    title: str
    description: str = ""
    quadrant: Quadrant = "not-urgent-important"
    completed: bool = False
    due_date: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    pomodoro_sessions: int = 0
    priority: Priority = "medium"
    estimated_time: int | None = None
    ai_generated: bool = False
    parent_goal_id: str | None = None


class DiaryEntry(Record):
    id: str
    date: datetime = Field(default_factory=utc_now)
    title: str
    content: str
    mood: Mood = "neutral"
    tags: list[str] = Field(default_factory=list)
    template: DiaryTemplate = "free"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    is_markdown: bool = True


class Milestone(Record):
    id: str
    title: str
    completed: bool = False
    completed_at: datetime | None = None


class Goal(Record):
    id: str
    title: str
    description: str = ""
    category: GoalCategory = "personal"
    type: GoalType = "monthly"
    target_date: datetime
    progress: int = Field(default=0, ge=0, le=100)
    milestones: list[Milestone] = Field(default_factory=list)
    status: GoalStatus = "active"
    priority: Priority = "medium"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    parent_goal_id: str | None = None


class Habit(Record):
    id: str
    name: str
    description: str = ""
    color: str = "#4f46e5"
    frequency: HabitFrequency = "daily"
    target_days: list[int] = Field(default_factory=list)
    current_streak: int = 0
    longest_streak: int = 0
    completed_dates: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)


class UserActivity(Record):
    id: str
    type: ActivityType
    title: str
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
