# src/taskpilot/agents/protocol.py

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from ..core.errors import UnknownToolError
from ..core.ports import ChatModel, ToolExecutor
from ..llm.models import ChatMessage, ChatRequest, ModelConfig, ToolSpec
from ..tasks.commands import MutationCommand
from .extractor import decode_tool_call

Decoder = Callable[[str, str], list[MutationCommand]]


@dataclass(slots=True)
class ProtocolResult:
    text: str
    commands: list[MutationCommand] = field(default_factory=list)
    model_calls: int = 0


class ToolCallingProtocol:
    """
    Bounded two-round tool-calling exchange.

    1. first call with tool_choice="auto"
    2. no tool invocations -> return that text, no commands, no second call
    3. otherwise run each invocation's executor, append a tool-result message per
       invocation and decode the same arguments into commands; a tool that was
       not offered in this exchange is an UnknownToolError
    4. second call with tool_choice="none" over the full transcript
    5. return the second reply's text with the accumulated commands

    Any model failure propagates before a command is surfaced.
    """

    def __init__(
        self,
        model: ChatModel,
        executors: Mapping[str, ToolExecutor],
        *,
        decoder: Decoder = decode_tool_call,
        logger: logging.Logger | None = None,
    ) -> None:
        self._model = model
        self._executors = dict(executors)
        self._decode = decoder
        self._log = logger or logging.getLogger(__name__)

    def run(
        self,
        cfg: ModelConfig,
        messages: Sequence[ChatMessage],
        tool_specs: Sequence[ToolSpec],
    ) -> ProtocolResult:
        base = list(messages)
        tool_list = list(tool_specs)
        offered = {t.name for t in tool_list}

        first = self._model.chat(cfg, ChatRequest(base, tools=tool_list, tool_choice="auto")).first
        if not first.tool_calls:
            self._log.debug("Protocol: no tool calls, single round.")
            return ProtocolResult(text=first.content, model_calls=1)

        commands: list[MutationCommand] = []
        tool_messages: list[ChatMessage] = []
        for call in first.tool_calls:
            executor = self._executors.get(call.name) if call.name in offered else None
            if executor is None:
                raise UnknownToolError(call.name)

            output = executor.execute(call.arguments)
            tool_messages.append(
                ChatMessage(role="tool", content=output, tool_call_id=call.id, name=call.name)
            )
            commands.extend(self._decode(call.name, call.arguments))

        self._log.info(
            "Protocol: %d tool call(s) -> %d command(s)", len(first.tool_calls), len(commands)
        )

        transcript = [
            *base,
            ChatMessage(role="assistant", content=first.content, tool_calls=first.tool_calls),
            *tool_messages,
        ]
        second = self._model.chat(
            cfg, ChatRequest(transcript, tools=tool_list, tool_choice="none")
        ).first
        return ProtocolResult(text=second.content, commands=commands, model_calls=2)
