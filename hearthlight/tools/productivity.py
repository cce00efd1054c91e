"""Task analytics tools."""

from typing import Literal

from pydantic import BaseModel, Field

from hearthlight.models.productivity import Quadrant
from hearthlight.tools.base import (
    Period,
    ToolContext,
    ToolDefinition,
    calendar_window_start,
    dump_json,
    percent,
    rolling_window_start,
)

QUADRANTS: tuple[Quadrant, ...] = (
    "urgent-important",
    "not-urgent-important",
    "urgent-not-important",
    "not-urgent-not-important",
)


class AnalyzeProductivityInput(BaseModel):
    """Input schema for the analyzeProductivity tool."""

    period: Period = Field(default="week", description="Window to analyze")


class GetTaskHistoryInput(BaseModel):
    """Input schema for the getTaskHistory tool."""

    period: Period = Field(default="week")
    status: Literal["completed", "pending"] | None = Field(default=None, description="Only list tasks in this state")


def productivity_insights(completion_rate: int, high_priority: int, completed_high_priority: int) -> list[str]:
    insights = []
    if completion_rate >= 80:
        insights.append("Excellent productivity! You're completing most of your tasks.")
    elif completion_rate >= 60:
        insights.append("Good productivity. Consider focusing on high-priority tasks.")
    else:
        insights.append("Room for improvement. Try breaking down large tasks into smaller ones.")

    if high_priority > 0 and completed_high_priority == 0:
        insights.append("Focus on completing your high-priority tasks first.")
    return insights


def create_analyze_productivity_tool() -> ToolDefinition:
    async def analyze_productivity(params: AnalyzeProductivityInput, context: ToolContext) -> str:
        start = calendar_window_start(params.period, context.now())
        tasks = [task for task in await context.store.get_tasks() if task.created_at >= start]

        completed = [task for task in tasks if task.completed]
        high_priority = [task for task in tasks if task.priority == "high"]
        completed_high_priority = [task for task in high_priority if task.completed]
        completion_rate = percent(len(completed), len(tasks))

        analysis = {
            "period": params.period,
            "totalTasks": len(tasks),
            "completedTasks": len(completed),
            "completionRate": completion_rate,
            "highPriorityTasks": len(high_priority),
            "completedHighPriority": len(completed_high_priority),
            "insights": productivity_insights(completion_rate, len(high_priority), len(completed_high_priority)),
        }
        return f"Productivity analysis for {params.period}: {dump_json(analysis)}"

    return ToolDefinition(
        name="analyzeProductivity",
        description="Analyze task completion for the current day, week or month",
        input_schema_class=AnalyzeProductivityInput,
        handler=analyze_productivity,
    )


def create_task_history_tool() -> ToolDefinition:
    async def get_task_history(params: GetTaskHistoryInput, context: ToolContext) -> str:
        start = rolling_window_start(params.period, context.now())
        tasks = await context.store.get_tasks()

        completed_in_period = [
            task for task in tasks if task.completed and task.completed_at is not None and task.completed_at >= start
        ]
        pending = [task for task in tasks if not task.completed]

        durations = [(task.completed_at - task.created_at).total_seconds() / 3600 for task in completed_in_period]
        analysis = {
            "period": params.period,
            "totalTasks": len(tasks),
            "completedInPeriod": len(completed_in_period),
            "pendingTasks": len(pending),
            "completionRate": percent(len(completed_in_period), len(tasks)),
            "quadrantDistribution": {q: sum(1 for t in completed_in_period if t.quadrant == q) for q in QUADRANTS},
            "averageCompletionHours": round(sum(durations) / len(durations), 1) if durations else 0,
        }
        if params.status == "completed":
            analysis["tasks"] = [task.title for task in completed_in_period]
        elif params.status == "pending":
            analysis["tasks"] = [task.title for task in pending]

        return f"Task history analysis: {dump_json(analysis)}"

    return ToolDefinition(
        name="getTaskHistory",
        description="Analyze task completion patterns over a rolling period",
        input_schema_class=GetTaskHistoryInput,
        handler=get_task_history,
    )
