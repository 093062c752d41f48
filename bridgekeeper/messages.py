"""
Conversation data model shared by every backend.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

USER = 'user'
ASSISTANT = 'assistant'
TOOL = 'tool'

ROLES = (USER, ASSISTANT, TOOL)


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'arguments', MappingProxyType(dict(self.arguments or {})))

    @classmethod
    def from_ollama(cls, data: Mapping[str, Any]) -> 'ToolCall':
        """Build from the `{"function": {"name", "arguments"}}` wire form."""
        function = data.get('function') or {}
        if not isinstance(function, Mapping):
            raise ValueError(f"Malformed tool call: {data!r}")
        arguments = function.get('arguments') or {}
        if not isinstance(arguments, Mapping):
            raise ValueError(f"Tool call arguments must be an object, got {type(arguments).__name__}")
        return cls(name=function.get('name') or '', arguments=arguments)

    def to_ollama(self) -> Dict[str, Any]:
        return {'function': {'name': self.name, 'arguments': dict(self.arguments)}}


@dataclass(frozen=True)
class Message:
    """
    One conversation entry.

    Tool-role messages carry `tool_name` so that backends which address
    function responses by name (Gemini) can render them.
    """

    role: str
    content: str = ''
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_name: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")
        object.__setattr__(self, 'tool_calls', tuple(self.tool_calls))

    @property
    def text(self) -> str:
        return self.content.strip()

    def to_ollama(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'role': self.role, 'content': self.content}
        if self.tool_calls:
            data['tool_calls'] = [call.to_ollama() for call in self.tool_calls]
        if self.tool_name:
            data['tool_name'] = self.tool_name
        return data


class Conversation:
    """Append-only message history for a single query."""

    def __init__(self, messages: Optional[List[Message]] = None):
        self._messages: List[Message] = []
        for message in messages or []:
            self.append(message)

    def append(self, message: Message) -> None:
        if not isinstance(message, Message):
            raise TypeError(f"Expected Message, got {type(message).__name__}")
        self._messages.append(message)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def to_ollama(self) -> List[Dict[str, Any]]:
        return [message.to_ollama() for message in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, index):
        return self._messages[index]

    def __repr__(self) -> str:
        return f"Conversation({len(self._messages)} messages)"
