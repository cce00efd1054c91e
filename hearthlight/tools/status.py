"""App status snapshot tool."""

import asyncio
from datetime import timedelta

from pydantic import BaseModel

from hearthlight.tools.base import ToolContext, ToolDefinition, dump_json, percent


class GetAppStatusInput(BaseModel):
    """The getAppStatus tool takes no arguments."""


def create_app_status_tool() -> ToolDefinition:
    async def get_app_status(params: GetAppStatusInput, context: ToolContext) -> str:
        tasks, goals, entries, habits = await asyncio.gather(
            context.store.get_tasks(),
            context.store.get_goals(),
            context.store.get_diary_entries(),
            context.store.get_habits(),
        )

        completed = sum(1 for task in tasks if task.completed)
        week_ago = context.now() - timedelta(days=7)
        status = {
            "tasks": {
                "total": len(tasks),
                "completed": completed,
                "pending": len(tasks) - completed,
                "completionRate": percent(completed, len(tasks)),
            },
            "goals": {
                "active": sum(1 for goal in goals if goal.status == "active"),
                "total": len(goals),
            },
            "diary": {
                "entriesThisWeek": sum(1 for entry in entries if entry.date > week_ago),
                "totalEntries": len(entries),
            },
            "habits": {"total": len(habits)},
        }
        return f"Current app status: {dump_json(status)}"

    return ToolDefinition(
        name="getAppStatus",
        description="Get a summary of tasks, goals, diary entries and habits",
        input_schema_class=GetAppStatusInput,
        handler=get_app_status,
    )
