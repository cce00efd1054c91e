"""Read-only insight tools over diary entries, goals and the activity log."""

from collections import Counter
from datetime import timedelta

from pydantic import BaseModel, Field

from hearthlight.tools.base import (
    ROLLING_DAYS,
    Period,
    ToolContext,
    ToolDefinition,
    dump_json,
    rolling_window_start,
)


class GetDiaryInsightsInput(BaseModel):
    """Input schema for the getDiaryInsights tool."""

    period: Period = Field(default="week")


class GetGoalProgressInput(BaseModel):
    """Input schema for the getGoalProgress tool."""

    period: Period = Field(default="month")


class GetUserActivitiesInput(BaseModel):
    """Input schema for the getUserActivities tool."""

    limit: int = Field(default=20, ge=1, le=200)
    type: str | None = Field(default=None, description="Only activities of this type, e.g. task_created")
    days: int = Field(default=7, ge=1, le=365)


def create_diary_insights_tool() -> ToolDefinition:
    async def get_diary_insights(params: GetDiaryInsightsInput, context: ToolContext) -> str:
        start = rolling_window_start(params.period, context.now())
        entries = [entry for entry in await context.store.get_diary_entries() if entry.created_at >= start]

        moods = Counter(entry.mood for entry in entries)
        tags = Counter(tag for entry in entries for tag in entry.tags)
        words = sum(len(entry.content.split()) for entry in entries)
        frequency = len(entries) / ROLLING_DAYS[params.period]

        insights = []
        if moods:
            insights.append(f"Dominant mood: {moods.most_common(1)[0][0]}")
        if frequency < 0.5:
            insights.append("Consider writing more regularly to better track your thoughts and feelings.")

        analysis = {
            "period": params.period,
            "totalEntries": len(entries),
            "averageWordsPerEntry": round(words / len(entries)) if entries else 0,
            "moodDistribution": dict(moods),
            "commonTags": tags.most_common(5),
            "writingFrequency": round(frequency, 2),
            "insights": insights,
        }
        return f"Diary insights: {dump_json(analysis)}"

    return ToolDefinition(
        name="getDiaryInsights",
        description="Get insights from diary entries and mood patterns",
        input_schema_class=GetDiaryInsightsInput,
        handler=get_diary_insights,
    )


def create_goal_progress_tool() -> ToolDefinition:
    async def get_goal_progress(params: GetGoalProgressInput, context: ToolContext) -> str:
        now = context.now()
        start = rolling_window_start(params.period, now)
        goals = await context.store.get_goals()

        average = sum(goal.progress for goal in goals) / len(goals) if goals else 0
        stagnant = [goal for goal in goals if goal.progress < 10 and goal.updated_at < now - timedelta(days=7)]

        insights = []
        if goals and average < 30:
            insights.append("Many goals have low progress. Consider breaking them into smaller, actionable steps.")
        elif average > 80:
            insights.append("Great progress on goals! Consider setting new challenging objectives.")
        if stagnant:
            insights.append(f"{len(stagnant)} goals haven't been updated recently. Consider reviewing them.")

        analysis = {
            "period": params.period,
            "totalGoals": len(goals),
            "activeGoals": sum(1 for goal in goals if goal.status == "active"),
            "completedGoals": sum(1 for goal in goals if goal.status == "completed"),
            "updatedInPeriod": sum(1 for goal in goals if goal.created_at >= start or goal.updated_at >= start),
            "averageProgress": round(average),
            "categoryDistribution": dict(Counter(goal.category for goal in goals)),
            "insights": insights,
        }
        return f"Goal progress analysis: {dump_json(analysis)}"

    return ToolDefinition(
        name="getGoalProgress",
        description="Analyze goal progress and achievement patterns",
        input_schema_class=GetGoalProgressInput,
        handler=get_goal_progress,
    )


def create_user_activities_tool() -> ToolDefinition:
    async def get_user_activities(params: GetUserActivitiesInput, context: ToolContext) -> str:
        since = context.now() - timedelta(days=params.days)
        activities = await context.activity.recent(limit=params.limit, type=params.type, since=since)
        stats = await context.activity.stats(since=since)
        timeline = await context.activity.timeline(days=params.days, now=context.now())

        busiest = max(stats, key=stats.get) if any(stats.values()) else "none"
        payload = {
            "activities": [activity.model_dump(mode="json") for activity in activities],
            "stats": stats,
            "timeline": {day: len(entries) for day, entries in timeline.items()},
            "summary": f"Found {len(activities)} activities. Most active in: {busiest}",
        }
        return f"Recent user activities: {dump_json(payload)}"

    return ToolDefinition(
        name="getUserActivities",
        description="Get the user's recent activities and interactions",
        input_schema_class=GetUserActivitiesInput,
        handler=get_user_activities,
    )
