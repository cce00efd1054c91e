"""Shared fixtures for the test suite."""

import pytest
from helpers import FIXED_NOW

from hearthlight.services.activity import ActivityTracker
from hearthlight.services.storage import InMemoryPersistenceStore
from hearthlight.tools.base import ToolContext
from hearthlight.tools.registry import ToolsRegistry


@pytest.fixture
def store():
    """Empty in-memory persistence store."""
    return InMemoryPersistenceStore()


@pytest.fixture
def activity(store):
    return ActivityTracker(store)


@pytest.fixture
def tool_context(store, activity):
    """Tool context with a frozen clock."""
    return ToolContext(store=store, activity=activity, clock=lambda: FIXED_NOW)


@pytest.fixture
def registry(tool_context):
    """Registry with the default tool set."""
    return ToolsRegistry(tool_context)
