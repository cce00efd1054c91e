"""Task creation tool."""

from pydantic import BaseModel, Field, field_validator

from hearthlight.models.productivity import Priority, Quadrant, Task
from hearthlight.tools.base import ToolContext, ToolDefinition, record_activity
from hearthlight.utils.ids import new_id


class CreateTaskInput(BaseModel):
    """Input schema for the createTask tool."""

    title: str = Field(..., min_length=1, max_length=200, description="Short task title")
    description: str = Field(default="", description="Optional details")
    priority: Priority = Field(default="medium", description="Task priority")
    quadrant: Quadrant = Field(default="not-urgent-important", description="Eisenhower matrix quadrant")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be empty or whitespace only")
        return v.strip()


def create_task_tool() -> ToolDefinition:
    async def create_task(params: CreateTaskInput, context: ToolContext) -> str:
        now = context.now()
        task = Task(
            id=new_id("task"),
            title=params.title,
            description=params.description,
            priority=params.priority,
            quadrant=params.quadrant,
            completed=False,
            created_at=now,
            updated_at=now,
            ai_generated=True,
        )
        await context.store.add_task(task)
        await record_activity(context, "task_created", task.title, task_id=task.id, priority=task.priority)
        return f'Successfully created task: "{task.title}" with ID {task.id}'

    return ToolDefinition(
        name="createTask",
        description="Create a new task in the user's task list",
        input_schema_class=CreateTaskInput,
        handler=create_task,
    )
