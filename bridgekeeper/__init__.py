"""
BridgeKeeper core: tool-mediated chat dispatch over a local Ollama server
or the hosted Gemini API.
"""

from .dispatch import Dispatcher
from .errors import (
    BridgeKeeperError,
    InitializationError,
    SessionError,
    ShutdownError,
    ToolExecutionError,
    TransportError,
    UnknownToolError,
)
from .gemini import GeminiAgent
from .git_tools import GitExecutor, git_tool, run_git
from .llm import ChatBackend, OllamaTransport
from .messages import Conversation, Message, ToolCall
from .server import OllamaServer, ServerState
from .stream import StreamState, TextStream
from .tools import ToolDefinition, ToolParameter, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "BridgeKeeperError",
    "ChatBackend",
    "Conversation",
    "Dispatcher",
    "GeminiAgent",
    "GitExecutor",
    "InitializationError",
    "Message",
    "OllamaServer",
    "OllamaTransport",
    "ServerState",
    "SessionError",
    "ShutdownError",
    "StreamState",
    "TextStream",
    "ToolCall",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolParameter",
    "ToolRegistry",
    "TransportError",
    "UnknownToolError",
    "git_tool",
    "run_git",
]
