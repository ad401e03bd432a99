"""
Tests for the plugin manager and plugin interception points.
"""

import logging
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import AsyncMock, Mock
from google.genai import types

from tern.agents.core.exceptions import ConfigurationError, PluginExecutionError
from tern.agents.plugins.base_plugin import BasePlugin
from tern.agents.plugins.logging_plugin import LoggingPlugin
from tern.agents.plugins.plugin_manager import PluginManager
from tern.agents.workflows.llm_agent import LlmAgent

from conftest import MockModel, model_function_call, model_text, run_turn, stored_session


def _content(text: str) -> types.Content:
    return types.Content(role="model", parts=[types.Part(text=text)])


class RecordingPlugin(BasePlugin):
    """Plugin recording the hooks it sees, returning configured values."""

    def __init__(self, name: str, returns: Optional[Dict[str, Any]] = None):
        super().__init__(name)
        self.returns = returns or {}
        self.calls: List[str] = []

    async def before_agent_callback(self, *, agent, callback_context):
        self.calls.append(f"before_agent:{agent.name}")
        return self.returns.get("before_agent")

    async def before_model_callback(self, *, callback_context, llm_request):
        self.calls.append("before_model")
        return self.returns.get("before_model")

    async def on_model_error_callback(self, *, callback_context, llm_request, error):
        self.calls.append(f"on_model_error:{error}")
        return self.returns.get("on_model_error")

    async def before_tool_callback(self, *, tool, tool_args, tool_context):
        self.calls.append(f"before_tool:{tool.name}")
        return self.returns.get("before_tool")

    async def on_tool_error_callback(self, *, tool, tool_args, tool_context, error):
        self.calls.append(f"on_tool_error:{tool.name}")
        return self.returns.get("on_tool_error")


class FailingPlugin(BasePlugin):
    """Plugin whose before-model hook raises."""

    async def before_model_callback(self, *, callback_context, llm_request):
        raise RuntimeError("plugin bug")


class TestPluginManager:
    """Test cases for PluginManager."""

    def test_register_and_get(self):
        """Test registering plugins and looking them up."""
        first = RecordingPlugin("first")
        manager = PluginManager(plugins=[first])

        assert manager.get_plugin("first") is first
        assert manager.get_plugin("missing") is None

    def test_duplicate_name_rejected(self):
        """Test that plugin names must be unique."""
        manager = PluginManager(plugins=[RecordingPlugin("same")])

        with pytest.raises(ConfigurationError, match="same"):
            manager.register_plugin(RecordingPlugin("same"))

    @pytest.mark.asyncio
    async def test_first_non_none_wins(self):
        """Test that later plugins are skipped once one returns a value."""
        silent = RecordingPlugin("silent")
        answering = RecordingPlugin("answering", returns={"before_model": model_text("first")})
        skipped = RecordingPlugin("skipped", returns={"before_model": model_text("second")})
        manager = PluginManager(plugins=[silent, answering, skipped])

        result = await manager.run_before_model_callback(callback_context=Mock(), llm_request=Mock())

        assert result.content.parts[0].text == "first"
        assert silent.calls == ["before_model"]
        assert answering.calls == ["before_model"]
        assert skipped.calls == []

    @pytest.mark.asyncio
    async def test_all_none(self):
        """Test that no plugin returning a value yields None."""
        manager = PluginManager(plugins=[RecordingPlugin("a"), RecordingPlugin("b")])

        result = await manager.run_before_tool_callback(
            tool=Mock(), tool_args={}, tool_context=Mock()
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_hook_failure_wrapped(self):
        """Test that a failing hook raises PluginExecutionError."""
        manager = PluginManager(plugins=[FailingPlugin("broken")])

        with pytest.raises(PluginExecutionError) as exc_info:
            await manager.run_before_model_callback(callback_context=Mock(), llm_request=Mock())

        assert exc_info.value.plugin_name == "broken"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_default_hooks_return_none(self):
        """Test that the base plugin intercepts nothing."""
        plugin = BasePlugin("base")

        assert await plugin.before_run_callback(invocation_context=Mock()) is None
        assert await plugin.on_event_callback(invocation_context=Mock(), event=Mock()) is None


class TestPluginInterception:
    """Test cases for plugins intercepting a run."""

    @pytest.mark.asyncio
    async def test_before_agent_short_circuit(self, make_runner):
        """Test that a plugin can answer for an agent without calling the model."""
        model = MockModel(["unused"])
        plugin = RecordingPlugin("guard", returns={"before_agent": _content("blocked")})
        runner, session = await make_runner(LlmAgent(name="assistant", model=model), plugins=[plugin])

        events = await run_turn(runner, session.id, "Hi")

        assert [event.get_text() for event in events] == ["blocked"]
        assert model.call_count == 0

    @pytest.mark.asyncio
    async def test_plugin_runs_before_agent_callback(self, make_runner):
        """Test that a plugin result skips the agent's own callback."""
        agent_callback = Mock(return_value=model_text("from agent"))
        plugin = RecordingPlugin("cache", returns={"before_model": model_text("from plugin")})
        agent = LlmAgent(name="assistant", model=MockModel(), before_model_callback=agent_callback)
        runner, session = await make_runner(agent, plugins=[plugin])

        events = await run_turn(runner, session.id, "Hi")

        assert events[0].get_text() == "from plugin"
        agent_callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_model_error_recovered_by_plugin(self, make_runner):
        """Test that a plugin can substitute a response for a failed model call."""
        plugin = RecordingPlugin("fallback", returns={"on_model_error": model_text("fallback")})
        agent = LlmAgent(name="assistant", model=MockModel([RuntimeError("quota")]))
        runner, session = await make_runner(agent, plugins=[plugin])

        events = await run_turn(runner, session.id, "Hi")

        assert [event.get_text() for event in events] == ["fallback"]
        assert "on_model_error:quota" in plugin.calls

    @pytest.mark.asyncio
    async def test_tool_error_recovered_by_plugin(self, make_runner):
        """Test that a plugin can substitute a result for a failed tool call."""

        def flaky() -> str:
            raise ConnectionError("offline")

        plugin = RecordingPlugin("retry", returns={"on_tool_error": {"status": "unavailable"}})
        agent = LlmAgent(
            name="assistant",
            model=MockModel([model_function_call("flaky"), "Try later"]),
            tools=[flaky]
        )
        runner, session = await make_runner(agent, plugins=[plugin])

        events = await run_turn(runner, session.id, "Go")

        assert events[1].get_function_responses()[0].response == {"status": "unavailable"}
        assert plugin.calls.count("on_tool_error:flaky") == 1

    @pytest.mark.asyncio
    async def test_failing_plugin_fails_run(self, make_runner):
        """Test that a plugin failure propagates out of the run."""
        agent = LlmAgent(name="assistant", model=MockModel(["unused"]))
        runner, session = await make_runner(agent, plugins=[FailingPlugin("broken")])

        with pytest.raises(PluginExecutionError):
            await run_turn(runner, session.id, "Hi")

    @pytest.mark.asyncio
    async def test_on_event_replaces_yielded_event(self, make_runner):
        """Test that on_event changes what the caller sees, not what is stored."""

        class RedactingPlugin(BasePlugin):
            async def on_event_callback(self, *, invocation_context, event):
                return event.model_copy(update={"content": _content("[redacted]")})

        agent = LlmAgent(name="assistant", model=MockModel(["secret"]))
        runner, session = await make_runner(agent, plugins=[RedactingPlugin("redact")])

        events = await run_turn(runner, session.id, "Hi")

        assert events[0].get_text() == "[redacted]"
        stored = await stored_session(runner, session.id)
        assert stored.events[-1].get_text() == "secret"

    @pytest.mark.asyncio
    async def test_on_user_message_replaces_message(self, make_runner):
        """Test that a plugin can rewrite the incoming message."""

        class RewritingPlugin(BasePlugin):
            async def on_user_message_callback(self, *, invocation_context, user_message):
                return types.Content(role="user", parts=[types.Part(text="rewritten")])

        model = MockModel(["ok"])
        runner, session = await make_runner(
            LlmAgent(name="assistant", model=model), plugins=[RewritingPlugin("rewrite")]
        )

        await run_turn(runner, session.id, "original")

        assert model.requests[0].contents[0].parts[0].text == "rewritten"
        stored = await stored_session(runner, session.id)
        assert stored.events[0].get_text() == "rewritten"

    @pytest.mark.asyncio
    async def test_before_run_short_circuit(self, make_runner):
        """Test that a before-run plugin answers the whole turn."""

        class MaintenancePlugin(BasePlugin):
            async def before_run_callback(self, *, invocation_context):
                return _content("Down for maintenance")

        model = MockModel()
        runner, session = await make_runner(
            LlmAgent(name="assistant", model=model), plugins=[MaintenancePlugin("maintenance")]
        )

        events = await run_turn(runner, session.id, "Hi")

        assert len(events) == 1
        assert events[0].author == "model"
        assert events[0].get_text() == "Down for maintenance"
        assert model.call_count == 0

    @pytest.mark.asyncio
    async def test_after_run_called(self, make_runner):
        """Test that after_run runs once per completed invocation."""
        plugin = RecordingPlugin("observer")
        plugin.after_run_callback = AsyncMock(return_value=None)
        runner, session = await make_runner(
            LlmAgent(name="assistant", model=MockModel(["ok"])), plugins=[plugin]
        )

        await run_turn(runner, session.id, "Hi")

        plugin.after_run_callback.assert_awaited_once()


class TestLoggingPlugin:
    """Test cases for LoggingPlugin."""

    @pytest.mark.asyncio
    async def test_logs_without_intercepting(self, make_runner):
        """Test that the logging plugin logs every step and changes nothing."""
        logger = Mock(spec=logging.Logger)
        plugin = LoggingPlugin(logger=logger)
        def ping() -> str:
            return "pong"

        agent = LlmAgent(
            name="assistant",
            model=MockModel([model_function_call("ping"), "pong"]),
            tools=[ping]
        )
        runner, session = await make_runner(agent, plugins=[plugin])

        events = await run_turn(runner, session.id, "Ping?")

        assert events[-1].get_text() == "pong"
        messages = " ".join(str(call.args[0]) for call in logger.info.call_args_list)
        assert "user message" in messages
        assert "model call by assistant" in messages
        assert "tool ping called" in messages
        assert "run finished" in messages
