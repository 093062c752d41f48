"""Tests for the dispatch loop."""

import pytest

from bridgekeeper.dispatch import Dispatcher
from bridgekeeper.errors import ToolExecutionError, TransportError, UnknownToolError
from bridgekeeper.messages import Conversation
from bridgekeeper.tools import ToolDefinition, ToolRegistry

from conftest import ScriptedBackend, call, reply

GO_VERSION = "go version go1.25.7 linux/amd64"


class CountingHandler:
    def __init__(self, result=GO_VERSION, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def __call__(self, arguments):
        self.calls.append(dict(arguments))
        if self.error is not None:
            raise self.error
        return self.result


def registry_with(name="go_version", handler=None):
    handler = handler or CountingHandler()
    return ToolRegistry([ToolDefinition(name, "Report the installed Go version", handler=handler)]), handler


class TestNoToolCall:
    """Replies without tool calls are final."""

    def test_returns_trimmed_text_without_invoking_handlers(self):
        """A reply with no tool calls yields its trimmed text and zero handler calls."""
        registry, handler = registry_with()
        backend = ScriptedBackend(reply("  Hello there!\n"))

        answer = Dispatcher(backend, registry).query("hi")

        assert answer == "Hello there!"
        assert handler.calls == []
        assert len(backend.calls) == 1

    def test_tools_offered_on_initial_request(self):
        """The registry goes out with the first request."""
        registry, _ = registry_with()
        backend = ScriptedBackend(reply("done"))

        Dispatcher(backend, registry).query("hi")

        history, tools = backend.calls[0]
        assert tools is registry
        assert [m.role for m in history] == ["user"]

    def test_use_tools_false_sends_no_tools(self):
        """Plain queries never offer tools."""
        registry, _ = registry_with()
        backend = ScriptedBackend(reply("plain"))

        assert Dispatcher(backend, registry).query("hi", use_tools=False) == "plain"
        assert backend.calls[0][1] is None

    def test_empty_registry_sends_no_tools(self):
        """An empty registry is the same as no tools."""
        backend = ScriptedBackend(reply("plain"))

        Dispatcher(backend).query("hi")

        assert backend.calls[0][1] is None

    def test_empty_registry_still_resolves_tool_calls(self):
        """A tool call against an empty registry is an unknown tool, not a silent empty answer."""
        backend = ScriptedBackend(reply("", call("go_version")))

        with pytest.raises(UnknownToolError) as excinfo:
            Dispatcher(backend, ToolRegistry()).query("Get the version of Go")

        assert excinfo.value.tool_name == "go_version"
        assert len(backend.calls) == 1

    def test_use_tools_false_still_resolves_tool_calls(self):
        """Withholding tools does not skip a tool call the model makes anyway."""
        registry, handler = registry_with()
        backend = ScriptedBackend(reply("", call("go_version")), reply("Go 1.25.7"))

        assert Dispatcher(backend, registry).query("?", use_tools=False) == "Go 1.25.7"
        assert handler.calls == [{}]
        assert [tools for _, tools in backend.calls] == [None, None]


class TestToolRound:
    """A single tool-execution round."""

    def test_go_version_scenario(self):
        """The handler runs once, two messages are added, and the follow-up text is final."""
        registry, handler = registry_with()
        backend = ScriptedBackend(
            reply("", call("go_version")),
            reply(" You have Go 1.25.7 installed. "),
        )
        conversation = Conversation()

        answer = Dispatcher(backend, registry).query("Get the version of Go", conversation=conversation)

        assert answer == "You have Go 1.25.7 installed."
        assert handler.calls == [{}]
        assert [m.role for m in conversation] == ["user", "assistant", "tool"]
        assert conversation[1].tool_calls[0].name == "go_version"
        assert conversation[2].content == GO_VERSION
        assert conversation[2].tool_name == "go_version"

    def test_follow_up_has_full_history_and_no_tools(self):
        """The follow-up request resends the extended history without tools."""
        registry, _ = registry_with()
        backend = ScriptedBackend(reply("", call("go_version")), reply("final"))

        Dispatcher(backend, registry).query("Get the version of Go")

        history, tools = backend.calls[1]
        assert [m.role for m in history] == ["user", "assistant", "tool"]
        assert tools is None

    def test_arguments_passed_unvalidated(self):
        """Whatever the model supplied reaches the handler as-is."""
        registry, handler = registry_with()
        backend = ScriptedBackend(reply("", call("go_version", bogus=[1, 2], flag=None)), reply("ok"))

        Dispatcher(backend, registry).query("?")

        assert handler.calls == [{"bogus": [1, 2], "flag": None}]

    def test_only_first_tool_call_runs(self):
        """Extra tool calls in the same reply are ignored."""
        registry, handler = registry_with()
        other = CountingHandler("other")
        registry.register(ToolDefinition("other", "Other tool", handler=other))
        backend = ScriptedBackend(reply("", call("go_version"), call("other")), reply("ok"))

        Dispatcher(backend, registry).query("?")

        assert len(handler.calls) == 1
        assert other.calls == []

    def test_non_string_result_is_json_encoded(self):
        """Structured handler results are sent back as JSON text."""
        registry, _ = registry_with(handler=CountingHandler({"version": "1.25.7"}))
        backend = ScriptedBackend(reply("", call("go_version")), reply("ok"))
        conversation = Conversation()

        Dispatcher(backend, registry).query("?", conversation=conversation)

        assert conversation[2].content == '{"version": "1.25.7"}'


class TestDispatchErrors:
    """Terminal failures."""

    def test_unknown_tool(self):
        """A tool name missing from the registry is an UnknownToolError; nothing runs."""
        registry, handler = registry_with()
        backend = ScriptedBackend(reply("", call("rm_rf")))
        conversation = Conversation()

        with pytest.raises(UnknownToolError) as excinfo:
            Dispatcher(backend, registry).query("?", conversation=conversation)

        assert excinfo.value.tool_name == "rm_rf"
        assert handler.calls == []
        assert len(backend.calls) == 1
        assert len(conversation) == 1

    def test_handler_failure(self):
        """A handler error is wrapped with the tool name and nothing is appended."""
        cause = RuntimeError("go: command not found")
        registry, handler = registry_with(handler=CountingHandler(error=cause))
        backend = ScriptedBackend(reply("", call("go_version")))
        conversation = Conversation()

        with pytest.raises(ToolExecutionError) as excinfo:
            Dispatcher(backend, registry).query("?", conversation=conversation)

        assert excinfo.value.tool_name == "go_version"
        assert excinfo.value.cause is cause
        assert excinfo.value.__cause__ is cause
        assert "go: command not found" in str(excinfo.value)
        assert len(handler.calls) == 1
        assert len(conversation) == 1
        assert len(backend.calls) == 1

    @pytest.mark.parametrize("result", [b"go1.25.7", {"go1.25.7"}, object()])
    def test_unencodable_result(self, result):
        """A result that cannot be turned into text fails the tool, not the loop."""
        registry, handler = registry_with(handler=CountingHandler(result))
        backend = ScriptedBackend(reply("", call("go_version")))
        conversation = Conversation()

        with pytest.raises(ToolExecutionError) as excinfo:
            Dispatcher(backend, registry).query("?", conversation=conversation)

        assert excinfo.value.tool_name == "go_version"
        assert isinstance(excinfo.value.cause, TypeError)
        assert len(conversation) == 1

    def test_transport_error_propagates(self):
        """Backend failures are not retried."""
        class FailingBackend:
            calls = 0

            def send_turn(self, history, tools=None):
                FailingBackend.calls += 1
                raise TransportError("connection refused")

        with pytest.raises(TransportError):
            Dispatcher(FailingBackend()).query("?")
        assert FailingBackend.calls == 1

    def test_max_rounds_must_be_positive(self):
        with pytest.raises(ValueError):
            Dispatcher(ScriptedBackend(), max_rounds=0)


class TestBoundedRounds:
    """Chained tool calls with a round cap."""

    def test_tools_reoffered_until_cap(self):
        """Each round re-offers tools except the request after the last permitted round."""
        registry, handler = registry_with()
        backend = ScriptedBackend(
            reply("", call("go_version")),
            reply("", call("go_version")),
            reply("two rounds were enough"),
        )
        conversation = Conversation()

        answer = Dispatcher(backend, registry, max_rounds=2).query("?", conversation=conversation)

        assert answer == "two rounds were enough"
        assert len(handler.calls) == 2
        assert [tools for _, tools in backend.calls] == [registry, registry, None]
        assert [m.role for m in conversation] == ["user", "assistant", "tool", "assistant", "tool"]

    def test_stops_early_when_model_answers(self):
        """No further rounds once a reply has no tool calls."""
        registry, handler = registry_with()
        backend = ScriptedBackend(reply("", call("go_version")), reply("done"))

        assert Dispatcher(backend, registry, max_rounds=5).query("?") == "done"
        assert len(handler.calls) == 1
        assert len(backend.calls) == 2

    def test_tool_calls_after_cap_are_ignored(self):
        """A final reply that still asks for tools returns its text."""
        registry, handler = registry_with()
        backend = ScriptedBackend(reply("", call("go_version")), reply("text anyway", call("go_version")))

        assert Dispatcher(backend, registry).query("?") == "text anyway"
        assert len(handler.calls) == 1
