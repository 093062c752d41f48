"""
Tool-mediated dispatch loop.

Turns one prompt into one answer: send the conversation, run the tool the
model asks for, hand its result back, and return the follow-up reply.
"""

import json
import logging
from typing import Any, Optional

from .errors import ToolExecutionError
from .llm import ChatBackend
from .messages import TOOL, USER, Conversation, Message
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Drives a ChatBackend through prompt, tool execution and follow-up.

    With the default `max_rounds=1` exactly one tool round is run and the
    follow-up request does not offer tools again. Larger values let the
    model chain tool calls; tools are withheld only on the request issued
    after the last permitted round.
    """

    def __init__(self, backend: ChatBackend, registry: Optional[ToolRegistry] = None, *, max_rounds: int = 1):
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.backend = backend
        self.registry = registry or ToolRegistry()
        self.max_rounds = max_rounds

    def query(self, prompt: str, *, conversation: Optional[Conversation] = None, use_tools: bool = True) -> str:
        """
        Run one prompt to a final answer.

        Args:
            prompt: The user's prompt
            conversation: Optional history to append to; a fresh one is used if omitted
            use_tools: Offer the registry's tools on the initial request

        Returns:
            The final reply's trimmed text

        Raises:
            TransportError: the backend call failed
            UnknownToolError: the model named a tool that is not registered
            ToolExecutionError: the tool handler raised
        """
        history = conversation if conversation is not None else Conversation()
        history.append(Message(role=USER, content=prompt))

        tools = self.registry if use_tools and len(self.registry) else None
        logger.info(f"Query with {len(self.registry) if tools else 0} tool(s): {prompt[:80]!r}")
        reply = self.backend.send_turn(history.messages, tools)

        rounds = 0
        while reply.tool_calls and rounds < self.max_rounds:
            rounds += 1
            self._run_tool_round(history, reply)
            if rounds >= self.max_rounds:
                tools = None
            reply = self.backend.send_turn(history.messages, tools)

        if reply.tool_calls:
            logger.warning(f"Ignoring {len(reply.tool_calls)} tool call(s) after the last permitted round")
        return reply.text

    def _run_tool_round(self, history: Conversation, reply: Message) -> None:
        """Execute the first tool call of `reply` and record it in `history`."""
        call = reply.tool_calls[0]
        if len(reply.tool_calls) > 1:
            dropped = [extra.name for extra in reply.tool_calls[1:]]
            logger.warning(f"Only the first tool call is executed; dropping {dropped}")

        definition = self.registry.get(call.name)
        logger.info(f"Tool call: {call.name} args={dict(call.arguments)}")
        try:
            result = self._to_text(definition.handler(call.arguments))
        except Exception as e:
            logger.error(f"Tool {call.name!r} failed: {e}")
            raise ToolExecutionError(call.name, e) from e

        history.append(reply)
        history.append(Message(role=TOOL, content=result, tool_name=call.name))

    @staticmethod
    def _to_text(result: Any) -> str:
        if isinstance(result, str):
            return result
        return json.dumps(result)
