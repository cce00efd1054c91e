"""Persistence store interface and implementations.

The app keeps one JSON document per collection (tasks, diary entries, goals, habits,
user activities, conversations, settings). Every read-modify-write of a collection
goes through :meth:`PersistenceStore.update`, which holds a per-collection lock for
the whole cycle so concurrent writers never lose each other's changes.
"""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from hearthlight.errors import PersistenceError
from hearthlight.models.messages import Message
from hearthlight.models.productivity import DiaryEntry, Goal, Habit, Task, UserActivity
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

TASKS = "tasks"
DIARY_ENTRIES = "diary_entries"
GOALS = "goals"
HABITS = "habits"
USER_ACTIVITIES = "user_activities"
CONVERSATIONS = "conversations"
SETTINGS = "settings"

COLLECTIONS = (TASKS, DIARY_ENTRIES, GOALS, HABITS, USER_ACTIVITIES, CONVERSATIONS, SETTINGS)


def _dump_all(records: list[BaseModel]) -> list[dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]


def _load_all(model: type[T], raw: list[dict[str, Any]], key: str) -> list[T]:
    try:
        return [model.model_validate(item) for item in raw]
    except ValidationError as e:
        raise PersistenceError(f"Corrupt record in {key}: {e}") from e


class PersistenceStore(ABC):
    """Key-value document store with atomic per-collection updates."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @abstractmethod
    async def _load(self, key: str) -> Any | None:
        """Return the stored document for ``key`` or None when absent."""

    @abstractmethod
    async def _dump(self, key: str, value: Any) -> None:
        """Replace the stored document for ``key``."""

    @abstractmethod
    async def _remove(self, key: str) -> None:
        """Drop the stored document for ``key`` if present."""

    async def read(self, key: str, default: Any = None) -> Any:
        value = await self._load(key)
        return default if value is None else value

    async def write(self, key: str, value: Any) -> None:
        async with self._lock(key):
            await self._dump(key, value)

    async def update(self, key: str, mutate: Callable[[Any], Any], default: Any = None) -> Any:
        """Atomically read, transform and write back one collection.

        Args:
            key: Collection name
            mutate: Receives the current document (or ``default``) and returns the new one
            default: Document to start from when the collection does not exist yet

        Returns:
            The document that was written
        """
        async with self._lock(key):
            current = await self._load(key)
            updated = mutate(default if current is None else current)
            await self._dump(key, updated)
            return updated

    async def clear(self) -> None:
        for key in COLLECTIONS:
            async with self._lock(key):
                await self._remove(key)

    # Tasks

    async def get_tasks(self) -> list[Task]:
        return _load_all(Task, await self.read(TASKS, []), TASKS)

    async def save_tasks(self, tasks: list[Task]) -> None:
        await self.write(TASKS, _dump_all(tasks))

    async def add_task(self, task: Task) -> Task:
        await self.update(TASKS, lambda items: [*items, task.model_dump(mode="json")], [])
        return task

    # Diary

    async def get_diary_entries(self) -> list[DiaryEntry]:
        return _load_all(DiaryEntry, await self.read(DIARY_ENTRIES, []), DIARY_ENTRIES)

    async def save_diary_entries(self, entries: list[DiaryEntry]) -> None:
        await self.write(DIARY_ENTRIES, _dump_all(entries))

    async def add_diary_entry(self, entry: DiaryEntry) -> DiaryEntry:
        await self.update(DIARY_ENTRIES, lambda items: [*items, entry.model_dump(mode="json")], [])
        return entry

    # Goals

    async def get_goals(self) -> list[Goal]:
        return _load_all(Goal, await self.read(GOALS, []), GOALS)

    async def save_goals(self, goals: list[Goal]) -> None:
        await self.write(GOALS, _dump_all(goals))

    async def add_goal(self, goal: Goal) -> Goal:
        await self.update(GOALS, lambda items: [*items, goal.model_dump(mode="json")], [])
        return goal

    # Habits

    async def get_habits(self) -> list[Habit]:
        return _load_all(Habit, await self.read(HABITS, []), HABITS)

    async def save_habits(self, habits: list[Habit]) -> None:
        await self.write(HABITS, _dump_all(habits))

    # User activities, newest first

    async def get_user_activities(self) -> list[UserActivity]:
        return _load_all(UserActivity, await self.read(USER_ACTIVITIES, []), USER_ACTIVITIES)

    async def save_user_activities(self, activities: list[UserActivity]) -> None:
        await self.write(USER_ACTIVITIES, _dump_all(activities))

    async def add_user_activity(self, activity: UserActivity, limit: int = 1000) -> UserActivity:
        record = activity.model_dump(mode="json")
        await self.update(USER_ACTIVITIES, lambda items: [record, *items][:limit], [])
        return activity

    # Conversations, stored as {thread_id: [message, ...]}

    async def get_conversation(self, thread_id: str) -> list[Message]:
        threads = await self.read(CONVERSATIONS, {})
        return _load_all(Message, threads.get(thread_id, []), CONVERSATIONS)

    async def save_conversation(self, thread_id: str, messages: list[Message]) -> None:
        dumped = _dump_all(messages)

        def replace(threads: dict[str, Any]) -> dict[str, Any]:
            return {**threads, thread_id: dumped}

        await self.update(CONVERSATIONS, replace, {})

    async def delete_conversation(self, thread_id: str) -> None:
        def drop(threads: dict[str, Any]) -> dict[str, Any]:
            return {key: value for key, value in threads.items() if key != thread_id}

        await self.update(CONVERSATIONS, drop, {})

    async def get_all_conversations(self) -> dict[str, list[Message]]:
        threads = await self.read(CONVERSATIONS, {})
        return {thread_id: _load_all(Message, raw, CONVERSATIONS) for thread_id, raw in threads.items()}

    # Settings

    async def get_settings(self) -> dict[str, Any]:
        return await self.read(SETTINGS, {})

    async def save_settings(self, settings: dict[str, Any]) -> None:
        await self.write(SETTINGS, settings)


class InMemoryPersistenceStore(PersistenceStore):
    """Store that keeps serialized documents in a dict.

    Documents are kept as JSON text so callers never share mutable state with the store.
    """

    def __init__(self):
        super().__init__()
        self._documents: dict[str, str] = {}

    async def _load(self, key: str) -> Any | None:
        raw = self._documents.get(key)
        return None if raw is None else json.loads(raw)

    async def _dump(self, key: str, value: Any) -> None:
        try:
            self._documents[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize {key}: {e}") from e

    async def _remove(self, key: str) -> None:
        self._documents.pop(key, None)


class JsonFilePersistenceStore(PersistenceStore):
    """Store that writes one ``<collection>.json`` file per collection.

    Writes go to a temporary file in the same directory and are swapped in with
    ``os.replace`` so a crash never leaves a half-written document behind.
    """

    def __init__(self, data_dir: str | Path):
        super().__init__()
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    async def _load(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read_file, self._path(key))

    async def _dump(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write_file, self._path(key), value)

    async def _remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove_file, self._path(key))

    @staticmethod
    def _read_file(path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {path.name}: {e}") from e

    @staticmethod
    def _write_file(path: Path, value: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(value, handle, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write {path.name}: {e}") from e

    @staticmethod
    def _remove_file(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove {path.name}: {e}") from e
