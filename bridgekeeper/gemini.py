"""
Hosted Gemini backend using the google-genai SDK.

Offers stateful chat sessions with native function calling (git analysis),
lazily streamed text generation, and a stateless `send_turn` so the dispatch
loop can drive Gemini the same way it drives a local Ollama server.
"""

import logging
import os
import random
from typing import Callable, List, Optional, Sequence

import httpx
from google import genai
from google.genai import errors, types

from .errors import SessionError, ToolExecutionError, TransportError, UnknownToolError
from .git_tools import GIT_TOOL_NAME, git_tool, run_git
from .messages import ASSISTANT, TOOL, USER, Message, ToolCall
from .stream import TextStream
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gemini-2.5-flash-lite'
API_KEY_ENV = 'GEMINI_API_KEY'

CONCISE_INSTRUCTION = (
    "You are a highly efficient assistant. Always provide extremely concise, direct, and brief answers. "
    "Omit unnecessary pleasantries, filler words, or long explanations unless explicitly asked."
)
VERBOSE_INSTRUCTION = (
    "You are a verbose assistant. Always provide detailed, comprehensive, and thorough answers. "
    "Include all relevant information and context unless explicitly asked to be concise."
)

SDK_ERRORS = (errors.APIError, httpx.HTTPError)

GitRunner = Callable[[str, Sequence[str]], str]


class GeminiAgent:
    """Gemini API layer: chat, streaming generation, model selection and git analysis."""

    def __init__(self, client: genai.Client, model: str = DEFAULT_MODEL, *,
                 rng: Optional[random.Random] = None, git_runner: GitRunner = run_git):
        """
        Args:
            client: Configured google-genai client
            model: Model used for every request until select_model is called
            rng: Random source for per-call temperature sampling
            git_runner: Callable executing git for function calls
        """
        self.client = client
        self.model = model
        self.rng = rng or random.Random()
        self.git_runner = git_runner

    @classmethod
    def from_env(cls, model: str = DEFAULT_MODEL, **kwargs) -> 'GeminiAgent':
        """Create an agent from the GEMINI_API_KEY environment variable."""
        api_key = os.getenv(API_KEY_ENV)
        if not api_key:
            raise SessionError(f"{API_KEY_ENV} is not set.")
        return cls(genai.Client(api_key=api_key), model, **kwargs)

    def select_model(self, model: str) -> None:
        self.model = model
        logger.info(f"Model changed to: {self.model}")

    def list_models(self) -> List[str]:
        """Lists available models from the API."""
        try:
            return [model.name for model in self.client.models.list() if model.name]
        except SDK_ERRORS as e:
            raise TransportError(f"Failed to list models: {e}") from e

    def generation_config(self, concise: bool) -> types.GenerateContentConfig:
        """
        Build the generation preset.

        Concise: brevity instruction, temperature sampled from [0, 0.5).
        Verbose: thoroughness instruction, temperature sampled from [1.0, 2.0).
        """
        if concise:
            return types.GenerateContentConfig(
                system_instruction=CONCISE_INSTRUCTION,
                temperature=self.rng.random() * 0.5,
            )
        return types.GenerateContentConfig(
            system_instruction=VERBOSE_INSTRUCTION,
            temperature=1.0 + self.rng.random(),
        )

    def generate_stream(self, prompt: str, concise: bool = False) -> TextStream:
        """Stream the model's answer to a single prompt."""
        config = self.generation_config(concise)
        logger.info(f"Streaming from {self.model} (concise={concise}, temperature={config.temperature:.2f})")
        # The SDK call is lazy; request failures surface from the TextStream
        responses = self.client.models.generate_content_stream(
            model=self.model,
            contents=prompt,
            config=config,
        )
        return TextStream(responses, extract=lambda response: response.text)

    def analyze_with_git(self, prompt: str, repo_path: str = './') -> str:
        """
        Answer `prompt` in a chat session that may run one git command.

        Raises:
            SessionError: the chat session could not be created
            TransportError: a message could not be sent
            UnknownToolError: the model called a function other than the git tool
            ToolExecutionError: the model's function call had no usable arguments
        """
        tool = types.Tool(function_declarations=[git_tool(repo_path).gemini_format()])
        try:
            chat = self.client.chats.create(model=self.model, config=types.GenerateContentConfig(tools=[tool]))
        except (errors.APIError, ValueError) as e:
            raise SessionError(f"failed to create chat session: {e}") from e

        response = self._send(chat, prompt)
        parts = _first_candidate_parts(response)
        call = parts[0].function_call if parts else None
        if call is None:
            return _response_text(response)
        if call.name != GIT_TOOL_NAME:
            raise UnknownToolError(call.name or '')

        args = (call.args or {}).get('args')
        if not isinstance(args, list):
            raise ToolExecutionError(GIT_TOOL_NAME, ValueError("model failed to provide git arguments"))
        git_args = [arg for arg in args if isinstance(arg, str)]

        output = self.git_runner(repo_path, git_args)
        logger.info(f"Handing terminal output back to {self.model} for analysis")
        reply = self._send(chat, types.Part.from_function_response(
            name=call.name,
            response={'terminal_output': output},
        ))
        return _response_text(reply)

    def send_turn(self, history: Sequence[Message], tools: Optional[ToolRegistry] = None) -> Message:
        """Stateless single request over the whole history."""
        config = None
        if tools:
            config = types.GenerateContentConfig(
                tools=[types.Tool(function_declarations=tools.function_declarations())],
            )
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=to_contents(history),
                config=config,
            )
        except SDK_ERRORS as e:
            raise TransportError(f"Gemini request failed: {e}") from e
        return to_message(response)

    def _send(self, chat, message):
        try:
            return chat.send_message(message)
        except SDK_ERRORS as e:
            raise TransportError(f"Failed to send message to {self.model}: {e}") from e


def to_contents(history: Sequence[Message]) -> List[types.Content]:
    """Convert conversation messages into Gemini contents."""
    contents = []
    for message in history:
        if message.role == USER:
            contents.append(types.Content(role='user', parts=[types.Part.from_text(text=message.content)]))
        elif message.role == ASSISTANT:
            parts = []
            if message.content:
                parts.append(types.Part.from_text(text=message.content))
            for call in message.tool_calls:
                parts.append(types.Part.from_function_call(name=call.name, args=dict(call.arguments)))
            contents.append(types.Content(role='model', parts=parts))
        elif message.role == TOOL:
            contents.append(types.Content(role='user', parts=[types.Part.from_function_response(
                name=message.tool_name or '',
                response={'result': message.content},
            )]))
    return contents


def to_message(response) -> Message:
    """Convert a Gemini response into an assistant Message."""
    texts = []
    calls = []
    for part in _first_candidate_parts(response):
        if part.function_call is not None:
            calls.append(ToolCall(name=part.function_call.name or '', arguments=part.function_call.args or {}))
        elif part.text and not getattr(part, 'thought', False):
            texts.append(part.text)
    return Message(role=ASSISTANT, content=''.join(texts), tool_calls=tuple(calls))


def _first_candidate_parts(response) -> list:
    candidates = getattr(response, 'candidates', None) or []
    if not candidates or candidates[0].content is None:
        return []
    return list(candidates[0].content.parts or [])


def _response_text(response) -> str:
    texts = [part.text for part in _first_candidate_parts(response)
             if getattr(part, 'text', None) and not getattr(part, 'thought', False)]
    return ''.join(texts)
