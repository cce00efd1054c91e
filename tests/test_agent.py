"""End-to-end tests for conversational turns."""

import asyncio

import httpx
import pytest
from helpers import ScriptedTransport, make_context

from hearthlight.errors import MessageTooLongError
from hearthlight.graphs.conversation import get_system_prompt
from hearthlight.graphs.state import TurnPhase
from hearthlight.models.messages import Message
from hearthlight.services.storage import JsonFilePersistenceStore

BUY_MILK_REPLY = (
    "Done! I've added it to your list.\n"
    "<tool_use>\n"
    "  <name>createTask</name>\n"
    '  <arguments>{"title": "Buy milk", "priority": "high"}</arguments>\n'
    "</tool_use>"
)


def sse(*events: str) -> httpx.Response:
    body = "".join(f"data: {event}\n\n" for event in events)
    return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})


def openai_delta(text: str) -> str:
    return '{"choices": [{"delta": {"content": "%s"}}]}' % text


class TestSendMessage:
    """Tests for AgentService.send_message."""

    @pytest.mark.asyncio
    async def test_buy_milk(self):
        """One high-priority task is created and the reply shows the outcome, not the markup."""
        script = ScriptedTransport(BUY_MILK_REPLY)
        context = await make_context(script)

        user, assistant = await context.agent.send_message("Add Buy milk, high priority", "kitchen")

        tasks = await context.store.get_tasks()
        assert len(tasks) == 1
        assert (tasks[0].title, tasks[0].priority, tasks[0].completed) == ("Buy milk", "high", False)

        assert user.role == "user"
        assert assistant.role == "assistant"
        assert "Done!" in assistant.content
        assert "✅" in assistant.content
        assert "<tool_use>" not in assistant.content
        assert "<name>" not in assistant.content
        assert [call.name for call in assistant.tool_calls] == ["createTask"]

    @pytest.mark.asyncio
    async def test_turn_is_persisted(self):
        script = ScriptedTransport("Hello there!")
        context = await make_context(script)

        await context.agent.send_message("Hi", "thread-1")

        history = await context.agent.get_history("thread-1")
        stored = await context.store.get_conversation("thread-1")
        assert [(m.role, m.content) for m in history] == [("user", "Hi"), ("assistant", "Hello there!")]
        assert stored == history

    @pytest.mark.asyncio
    async def test_provider_sees_history(self):
        """The second turn sends the system prompt, the first exchange and the new message."""
        script = ScriptedTransport("First answer", "Second answer")
        context = await make_context(script)

        await context.agent.send_message("First question", "t")
        await context.agent.send_message("Second question", "t")

        messages = script.bodies()[1]["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[1]["content"] == "First question"
        assert messages[2]["content"] == "First answer"
        assert messages[3]["content"] == "Second question"
        assert "<tool_use>" in messages[0]["content"]

    @pytest.mark.asyncio
    async def test_two_create_task_blocks(self):
        reply = (
            '<tool_use><name>createTask</name><arguments>{"title": "Stretch"}</arguments></tool_use>\n'
            '<tool_use><name>createTask</name><arguments>{"title": "Meditate"}</arguments></tool_use>'
        )
        context = await make_context(ScriptedTransport(reply))

        _, assistant = await context.agent.send_message("Two tasks please", "t")

        assert [task.title for task in await context.store.get_tasks()] == ["Stretch", "Meditate"]
        assert len(assistant.tool_calls) == 2

    @pytest.mark.asyncio
    async def test_provider_failure_apology_is_persisted(self):
        """When the only provider fails the user gets an apology, and the turn is kept."""
        script = ScriptedTransport(httpx.Response(500, json={"error": {"message": "overloaded"}}))
        context = await make_context(script)

        _, assistant = await context.agent.send_message("Hi", "t")

        assert assistant.content.startswith("I apologize, but I encountered an error")
        assert "overloaded" in assistant.content
        assert assistant.tool_calls is None
        stored = await context.store.get_conversation("t")
        assert [m.role for m in stored] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_unknown_tool_does_not_stop_later_calls(self):
        reply = (
            "<tool_use><name>sendEmail</name><arguments>{}</arguments></tool_use>"
            '<tool_use><name>createGoal</name><arguments>{"title": "Run 5k"}</arguments></tool_use>'
        )
        context = await make_context(ScriptedTransport(reply))

        _, assistant = await context.agent.send_message("Go", "t")

        assert [call.is_error for call in assistant.tool_calls] == [True, False]
        assert "❌ Unknown tool: sendEmail" in assistant.content
        assert [goal.title for goal in await context.store.get_goals()] == ["Run 5k"]

    @pytest.mark.asyncio
    async def test_trigger_fallback(self):
        """A reply without markup still creates the task the user asked for."""
        context = await make_context(ScriptedTransport("Sure, I'll add that."))

        _, assistant = await context.agent.send_message("Please add a task called Water plants", "t")

        assert [task.title for task in await context.store.get_tasks()] == ["Water plants"]
        assert assistant.content.startswith("Sure, I'll add that.")

    @pytest.mark.asyncio
    async def test_trigger_fallback_disabled(self):
        context = await make_context(ScriptedTransport("Sure, I'll add that."), trigger_fallback=False)

        _, assistant = await context.agent.send_message("Please add a task called Water plants", "t")

        assert await context.store.get_tasks() == []
        assert assistant.content == "Sure, I'll add that."

    @pytest.mark.asyncio
    async def test_message_too_long(self):
        script = ScriptedTransport()
        context = await make_context(script, max_message_tokens=10)

        with pytest.raises(MessageTooLongError, match="Your message is too long"):
            await context.agent.send_message("x" * 100, "t")

        assert script.requests == []
        assert await context.agent.get_history("t") == []

    @pytest.mark.asyncio
    async def test_turns_on_one_thread_are_serialized(self):
        script = ScriptedTransport("one", "two")
        context = await make_context(script)

        await asyncio.gather(
            context.agent.send_message("first", "t"),
            context.agent.send_message("second", "t"),
        )

        history = await context.agent.get_history("t")
        assert [m.role for m in history] == ["user", "assistant", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_interaction_recorded(self):
        context = await make_context(ScriptedTransport(BUY_MILK_REPLY))

        await context.agent.send_message("Add Buy milk", "t")

        interactions = await context.activity.recent(type="ai_interaction")
        assert len(interactions) == 1
        assert interactions[0].metadata == {"thread_id": "t", "tools": ["createTask"]}


class TestConversationManagement:
    """Tests for history, clearing and listing threads."""

    @pytest.mark.asyncio
    async def test_clear_conversation(self):
        context = await make_context(ScriptedTransport("Hi!"))
        await context.agent.send_message("Hello", "t")

        await context.agent.clear_conversation("t")

        assert await context.agent.get_history("t") == []
        assert await context.store.get_conversation("t") == []

    @pytest.mark.asyncio
    async def test_list_conversations(self):
        context = await make_context(ScriptedTransport("a", "b"))
        await context.agent.send_message("Morning planning", "morning")
        await context.agent.send_message("Evening review", "evening")

        summaries = await context.agent.list_conversations()

        assert [s.thread_id for s in summaries] == ["evening", "morning"]
        assert summaries[0].name == "Evening review"

    @pytest.mark.asyncio
    async def test_history_read_during_first_turn(self, tmp_path):
        """Reading a fresh thread while its first turn runs keeps both messages on disk."""
        context = await make_context(ScriptedTransport("Hello there!"), store=JsonFilePersistenceStore(tmp_path))

        await asyncio.gather(
            context.agent.send_message("Hello", "fresh"),
            context.agent.get_history("fresh"),
        )

        stored = await JsonFilePersistenceStore(tmp_path).get_conversation("fresh")
        assert [(m.role, m.content) for m in stored] == [("user", "Hello"), ("assistant", "Hello there!")]
        assert await context.agent.get_history("fresh") == stored


class TestStreamMessage:
    """Tests for AgentService.stream_message."""

    @pytest.mark.asyncio
    async def test_stream_deltas_then_message(self):
        script = ScriptedTransport(
            sse(
                openai_delta("Done! "),
                openai_delta("<tool_use><name>getAppStatus</name></tool_use>"),
                "[DONE]",
            )
        )
        context = await make_context(script)

        events = [event async for event in context.agent.stream_message("How am I doing?", "t")]

        assert [event.type for event in events] == ["delta", "delta", "message"]
        assert events[0].text == "Done! "
        final = events[-1].message
        assert final.content.startswith("Done! ✅ Current app status:")
        assert "<tool_use>" not in final.content
        assert [m.role for m in await context.agent.get_history("t")] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_stream_interrupted(self):
        script = ScriptedTransport(sse(openai_delta("Partial answer"), "{broken"))
        context = await make_context(script)

        events = [event async for event in context.agent.stream_message("Hi", "t")]

        final = events[-1].message
        assert final.content.startswith("Partial answer")
        assert "❌ Response interrupted" in final.content

    @pytest.mark.asyncio
    async def test_stream_open_failure(self):
        context = await make_context(ScriptedTransport(httpx.Response(401)))

        events = [event async for event in context.agent.stream_message("Hi", "t")]

        assert [event.type for event in events] == ["message"]
        assert events[0].message.content.startswith("I apologize")


class TestTurnGraph:
    """Tests for the turn state machine."""

    @pytest.mark.asyncio
    async def test_run_turn_phases(self):
        context = await make_context(ScriptedTransport(BUY_MILK_REPLY))
        thread = await context.conversations.append("t", Message(role="user", content="Add Buy milk"))

        state = await context.agent.graph.run_turn("t", "Add Buy milk", thread.messages)

        assert state.phase == TurnPhase.COMPOSED
        assert state.model_text == BUY_MILK_REPLY
        assert [call.name for call in state.tool_calls] == ["createTask"]

    @pytest.mark.asyncio
    async def test_failed_model_call_skips_tools(self):
        context = await make_context(ScriptedTransport(httpx.Response(500)))
        thread = await context.conversations.append("t", Message(role="user", content="Add a task called X"))

        state = await context.agent.graph.run_turn("t", "Add a task called X", thread.messages)

        assert state.phase == TurnPhase.COMPOSED
        assert state.error is not None
        assert state.parsed is None
        assert await context.store.get_tasks() == []

    @pytest.mark.asyncio
    async def test_system_prompt_lists_tools(self):
        context = await make_context(ScriptedTransport())

        prompt = get_system_prompt(context.registry)

        for name in context.registry.get_tool_names():
            assert name in prompt