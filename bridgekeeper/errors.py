"""
Error types raised by the dispatch core.
Every error is terminal for the query it occurs in; nothing here is retried.
"""

from typing import Optional


class BridgeKeeperError(RuntimeError):
    """Base class for all BridgeKeeper failures."""


class InitializationError(BridgeKeeperError):
    """The local backend could not be spawned or never became ready."""


class ShutdownError(BridgeKeeperError):
    """An owned backend process could not be terminated."""


class TransportError(BridgeKeeperError):
    """Malformed or erroring stream, bad HTTP status, or network failure."""


class SessionError(BridgeKeeperError):
    """A hosted chat session could not be created."""


class UnknownToolError(BridgeKeeperError):
    """The model asked for a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool {tool_name!r} unknown")
        self.tool_name = tool_name


class ToolExecutionError(BridgeKeeperError):
    """
    A tool handler failed.

    Attributes:
        tool_name: Name of the tool whose handler failed
        cause: The exception raised by the handler
    """

    def __init__(self, tool_name: str, cause: Optional[BaseException] = None):
        message = f"Tool {tool_name!r} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.tool_name = tool_name
        self.cause = cause
        self.__cause__ = cause
