"""User activity tracking."""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from hearthlight.models.messages import utc_now
from hearthlight.models.productivity import ActivityType, UserActivity
from hearthlight.services.storage import PersistenceStore
from hearthlight.utils.ids import new_id
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

STAT_KEYS: dict[str, str] = {
    "task_completed": "tasks_completed",
    "diary_entry_created": "diary_entries",
    "goal_updated": "goals_updated",
    "habit_completed": "habits_completed",
    "pomodoro_completed": "pomodoro_sessions",
    "ai_interaction": "ai_interactions",
}


class ActivityTracker:
    """Records what the user (and the assistant on their behalf) did, newest first."""

    def __init__(self, store: PersistenceStore, max_activities: int = 1000):
        self.store = store
        self.max_activities = max_activities

    async def record(
        self,
        type: ActivityType,
        title: str,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> UserActivity:
        """Store a new activity, dropping the oldest ones past ``max_activities``."""
        activity = UserActivity(
            id=new_id("activity"),
            type=type,
            title=title,
            description=description,
            metadata=metadata or {},
        )
        await self.store.add_user_activity(activity, limit=self.max_activities)
        logger.debug(f"Recorded activity {activity.type}: {activity.title}")
        return activity

    async def recent(
        self,
        limit: int = 20,
        type: str | None = None,
        since: datetime | None = None,
    ) -> list[UserActivity]:
        activities = await self.store.get_user_activities()
        if type:
            activities = [a for a in activities if a.type == type]
        if since:
            activities = [a for a in activities if a.timestamp >= since]
        return activities[:limit]

    async def timeline(self, days: int = 7, now: datetime | None = None) -> dict[str, list[UserActivity]]:
        """Group the last ``days`` days of activity by ISO date, newest day first."""
        since = (now or utc_now()) - timedelta(days=days)
        grouped: dict[str, list[UserActivity]] = {}
        for activity in await self.recent(limit=self.max_activities, since=since):
            grouped.setdefault(activity.timestamp.date().isoformat(), []).append(activity)
        return grouped

    async def stats(self, since: datetime | None = None) -> dict[str, int]:
        activities = await self.recent(limit=self.max_activities, since=since)
        counts = Counter(activity.type for activity in activities)
        return {stat: counts.get(activity_type, 0) for activity_type, stat in STAT_KEYS.items()}
