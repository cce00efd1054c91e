"""Goal creation tool."""

from datetime import timedelta

from pydantic import BaseModel, Field, field_validator

from hearthlight.models.productivity import Goal, GoalCategory, GoalType, Priority
from hearthlight.tools.base import ToolContext, ToolDefinition, record_activity
from hearthlight.utils.ids import new_id

DEFAULT_GOAL_HORIZON = timedelta(days=30)


class CreateGoalInput(BaseModel):
    """Input schema for the createGoal tool."""

    title: str = Field(..., min_length=1, max_length=200, description="Goal title")
    description: str = Field(default="", description="What achieving the goal looks like")
    category: GoalCategory = Field(default="personal")
    type: GoalType = Field(default="monthly", description="Goal horizon")
    priority: Priority = Field(default="medium")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be empty or whitespace only")
        return v.strip()


def create_goal_tool() -> ToolDefinition:
    async def create_goal(params: CreateGoalInput, context: ToolContext) -> str:
        now = context.now()
        goal = Goal(
            id=new_id("goal"),
            title=params.title,
            description=params.description,
            category=params.category,
            type=params.type,
            target_date=now + DEFAULT_GOAL_HORIZON,
            progress=0,
            status="active",
            priority=params.priority,
            created_at=now,
            updated_at=now,
        )
        await context.store.add_goal(goal)
        await record_activity(context, "goal_created", goal.title, goal_id=goal.id, category=goal.category)
        return f'Successfully created goal: "{goal.title}" with ID {goal.id}'

    return ToolDefinition(
        name="createGoal",
        description="Create a new goal",
        input_schema_class=CreateGoalInput,
        handler=create_goal,
    )
