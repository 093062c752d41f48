"""
Tool declarations and the registry the dispatch loop looks handlers up in.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from google.genai import types

from .errors import UnknownToolError

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Mapping[str, Any]], Any]


@dataclass(frozen=True)
class ToolParameter:
    """A single named argument of a tool."""

    type: str
    description: str = ''
    items: Optional['ToolParameter'] = None

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {'type': self.type, 'description': self.description}
        if self.items is not None:
            schema['items'] = {'type': self.items.type}
        return schema

    def to_gemini(self) -> types.Schema:
        return types.Schema(
            type=types.Type(self.type.upper()),
            description=self.description or None,
            items=self.items.to_gemini() if self.items is not None else None,
        )


@dataclass(frozen=True)
class ToolDefinition:
    """
    A capability the model may call.

    `name` must match exactly what the backend echoes back in a tool call.
    The handler receives the model-supplied arguments unvalidated and
    returns the text handed back to the model; it raises on failure.
    """

    name: str
    description: str
    handler: ToolHandler
    parameters: Mapping[str, ToolParameter] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Tool name must not be empty")
        missing = [name for name in self.required if name not in self.parameters]
        if missing:
            raise ValueError(f"Tool {self.name!r} requires undeclared parameters: {missing}")

    def ollama_format(self) -> Dict[str, Any]:
        """Schema entry for the Ollama `tools` request field."""
        return {
            'type': 'function',
            'function': {
                'name': self.name,
                'description': self.description,
                'parameters': {
                    'type': 'object',
                    'properties': {name: param.to_schema() for name, param in self.parameters.items()},
                    'required': list(self.required),
                },
            },
        }

    def gemini_format(self) -> types.FunctionDeclaration:
        return types.FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters=types.Schema(
                type=types.Type.OBJECT,
                properties={name: param.to_gemini() for name, param in self.parameters.items()},
                required=list(self.required),
            ),
        )


class ToolRegistry:
    """
    Ordered set of tools.

    Registering a second tool under an existing name raises ValueError;
    tools are never shadowed.
    """

    def __init__(self, tools: Optional[List[ToolDefinition]] = None):
        self._tools: Dict[str, ToolDefinition] = {}
        for definition in tools or []:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> ToolDefinition:
        if definition.name in self._tools:
            raise ValueError(f"Tool {definition.name!r} is already registered")
        self._tools[definition.name] = definition
        logger.debug(f"Registered tool: {definition.name}")
        return definition

    def tool(self, name: Optional[str] = None, description: Optional[str] = None,
             parameters: Optional[Mapping[str, ToolParameter]] = None,
             required: Optional[List[str]] = None):
        """Decorator registering a plain function as a tool handler."""
        def decorator(fn: ToolHandler) -> ToolHandler:
            self.register(ToolDefinition(
                name=name or fn.__name__,
                description=description or (fn.__doc__ or '').strip(),
                handler=fn,
                parameters=dict(parameters or {}),
                required=list(required or []),
            ))
            return fn
        return decorator

    def get(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def handlers(self) -> Dict[str, ToolHandler]:
        return {name: definition.handler for name, definition in self._tools.items()}

    def names(self) -> List[str]:
        return list(self._tools)

    def ollama_schema(self) -> List[Dict[str, Any]]:
        return [definition.ollama_format() for definition in self._tools.values()]

    def function_declarations(self) -> List[types.FunctionDeclaration]:
        return [definition.gemini_format() for definition in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(list(self._tools.values()))
