"""Shared fixtures and fakes for the test suite."""

import json

import httpx
import pytest
from ollama import Client

from bridgekeeper.llm import OllamaTransport
from bridgekeeper.messages import ASSISTANT, Message, ToolCall

BASE_URL = "http://ollama.test:11434"


def ndjson(*chunks) -> bytes:
    """Encode chunks the way Ollama streams them: one JSON object per line."""
    return ("\n".join(json.dumps(chunk) for chunk in chunks) + "\n").encode()


def chunk(content="", done=False, tool_calls=None, **extra):
    message = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {"message": message, "done": done, **extra}


def make_transport(handler, **kwargs) -> OllamaTransport:
    client = Client(host=BASE_URL, transport=httpx.MockTransport(handler))
    return OllamaTransport(BASE_URL, client=client, **kwargs)


class ScriptedBackend:
    """ChatBackend returning canned replies and recording every request."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def send_turn(self, history, tools=None):
        self.calls.append((tuple(history), tools))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def reply(content="", *calls):
    return Message(role=ASSISTANT, content=content, tool_calls=tuple(calls))


def call(name, **arguments):
    return ToolCall(name=name, arguments=arguments)


@pytest.fixture
def requests_seen():
    return []
