"""
Streaming chat transport for a local Ollama backend.

Requests go through the `ollama` client's streaming chat call; the reply
arrives as a sequence of ChatResponse chunks which are assembled into one
Message.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

import httpx
from ollama import ChatResponse, Client, ResponseError
from pydantic import ValidationError

from .errors import InitializationError, TransportError
from .messages import ASSISTANT, Message, ToolCall
from .stream import TextStream
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'functiongemma:latest'

# A chunk the client cannot turn into a ChatResponse surfaces as one of these
DECODE_ERRORS = (ValidationError, ValueError, TypeError, AttributeError)


class ChatBackend(Protocol):
    """Anything the dispatch loop can send a conversation to."""

    def send_turn(self, history: Sequence[Message], tools: Optional[ToolRegistry] = None) -> Message:
        ...


class OllamaTransport:
    """Sends a conversation to Ollama and assembles the streamed reply."""

    def __init__(self, base_url: str, model: str = DEFAULT_MODEL, *,
                 system_prompt: Optional[str] = None, client: Optional[Client] = None,
                 timeout: float = 120.0):
        """
        Initialize the transport.

        Args:
            base_url: Backend address (e.g., http://localhost:11434)
            model: Model identifier sent with every request
            system_prompt: Optional system prompt prepended to every request
            client: Optional ollama client; one is created (and owned) if omitted
            timeout: Request timeout in seconds for the owned client
        """
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.system_prompt = system_prompt
        self._owns_client = client is None
        self._client = client or Client(host=self.base_url, timeout=timeout)

    @classmethod
    def from_server(cls, server, model: str = DEFAULT_MODEL, **kwargs) -> 'OllamaTransport':
        """Build a transport bound to a ready OllamaServer."""
        if not server.ready:
            raise InitializationError("Ollama not initialized")
        return cls(server.base_url, model, **kwargs)

    def _build_messages(self, history: Sequence[Message]) -> List[Dict[str, Any]]:
        """Build the wire message list with optional system prompt."""
        messages = [message.to_ollama() for message in history]
        if self.system_prompt:
            return [{'role': 'system', 'content': self.system_prompt}] + messages
        return messages

    def _stream_chunks(self, history: Sequence[Message], tools: Optional[ToolRegistry]) -> Iterator[ChatResponse]:
        """
        Yield chunks up to and including the first one marked done.

        Raises:
            TransportError: on bad status, network failure, undecodable
                chunk, or a chunk carrying an error field
        """
        messages = self._build_messages(history)
        schema = tools.ollama_schema() if tools else None
        logger.debug(f"POST {self.base_url}/api/chat model={self.model} messages={len(messages)} "
                     f"tools={len(schema or [])}")
        try:
            responses = self._client.chat(model=self.model, messages=messages, tools=schema, stream=True)
        except DECODE_ERRORS as e:
            raise TransportError(f"Invalid chat request: {e}") from e

        try:
            for chunk in responses:
                yield chunk
                if chunk.done:
                    return
        except ResponseError as e:
            # In-stream error fields carry no status code
            if e.status_code == -1:
                raise TransportError(f"Model response was malformed: {e.error}") from e
            raise TransportError(f"Unexpected response {e.status_code}: {e.error}") from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise TransportError(f"HTTP request to {self.base_url} failed: {e}") from e
        except DECODE_ERRORS as e:
            raise TransportError(f"Failed to decode a response chunk: {e}") from e
        finally:
            responses.close()

    def send_turn(self, history: Sequence[Message], tools: Optional[ToolRegistry] = None) -> Message:
        """
        Send the full history and return the assembled assistant reply.

        Content is concatenated in chunk order. A chunk with a non-empty
        tool-call list replaces any list captured earlier. Nothing is
        returned if any chunk fails.
        """
        content: List[str] = []
        tool_calls: tuple = ()
        for chunk in self._stream_chunks(history, tools):
            content.append(chunk.message.content or '')
            if chunk.message.tool_calls:
                if tool_calls:
                    logger.debug(f"Replacing {len(tool_calls)} earlier tool call(s) with a later chunk's")
                tool_calls = tuple(ToolCall.from_ollama(call.model_dump()) for call in chunk.message.tool_calls)

        reply = Message(role=ASSISTANT, content=''.join(content), tool_calls=tool_calls)
        logger.debug(f"Reply assembled: {len(reply.content)} chars, {len(reply.tool_calls)} tool call(s)")
        return reply

    def chat(self, history: Sequence[Message], tools: Optional[ToolRegistry] = None) -> str:
        """Send the history and return the reply's trimmed text."""
        return self.send_turn(history, tools).text

    def stream_text(self, history: Sequence[Message]) -> TextStream:
        """Lazily stream the reply's text fragments as they arrive."""
        return TextStream(self._stream_chunks(history, None), extract=lambda chunk: chunk.message.content)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> 'OllamaTransport':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
