"""Diary entry tool."""

from pydantic import BaseModel, Field, field_validator

from hearthlight.models.productivity import DiaryEntry, Mood
from hearthlight.tools.base import ToolContext, ToolDefinition, record_activity
from hearthlight.utils.ids import new_id


class CreateDiaryEntryInput(BaseModel):
    """Input schema for the createDiaryEntry tool."""

    title: str = Field(..., min_length=1, max_length=200, description="Entry title")
    content: str = Field(..., description="Entry body, Markdown allowed")
    mood: Mood = Field(default="neutral", description="How the user feels")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be empty or whitespace only")
        return v.strip()


def create_diary_entry_tool() -> ToolDefinition:
    async def create_diary_entry(params: CreateDiaryEntryInput, context: ToolContext) -> str:
        now = context.now()
        entry = DiaryEntry(
            id=new_id("diary"),
            date=now,
            title=params.title,
            content=params.content,
            mood=params.mood,
            tags=params.tags,
            template="free",
            created_at=now,
            updated_at=now,
            is_markdown=True,
        )
        await context.store.add_diary_entry(entry)
        await record_activity(context, "diary_entry_created", entry.title, entry_id=entry.id, mood=entry.mood)
        return f'Successfully created diary entry: "{entry.title}" with ID {entry.id}'

    return ToolDefinition(
        name="createDiaryEntry",
        description="Create a new diary entry",
        input_schema_class=CreateDiaryEntryInput,
        handler=create_diary_entry,
    )
