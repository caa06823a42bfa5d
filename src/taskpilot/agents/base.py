# src/taskpilot/agents/base.py

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import Final

from ..core.ports import AgentRequest, AgentResponse
from ..llm.models import ChatMessage, ToolSpec
from .fallback import build_fallback_message
from .protocol import ToolCallingProtocol

EXECUTOR: Final = "executor"
PLANNER: Final = "planner"
SUMMARIZER: Final = "summarizer"
GLOBAL: Final = "global"
TASK_CREATION: Final = "task_creation"

ROUTABLE_AGENTS: Final = (EXECUTOR, PLANNER, SUMMARIZER, GLOBAL)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json_block(content: str) -> str:
    """Body of the first Markdown code fence, or the stripped content itself."""
    m = _FENCE_RE.search(content or "")
    if m:
        return m.group(1).strip()
    return (content or "").strip()


class ToolCallingAgent:
    """
    Agent that drives the two-round tool protocol with a role prompt and tool subset.

    Subclasses set `name`, `system_prompt` and `tool_factory`, and may override
    `build_messages`.
    """

    name: str = ""
    system_prompt: str = ""
    tool_factory: Callable[[], list[ToolSpec]]

    def __init__(
        self,
        protocol: ToolCallingProtocol,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._protocol = protocol
        self._log = logger or logging.getLogger(__name__)

    def build_messages(self, request: AgentRequest) -> list[ChatMessage]:
        raise NotImplementedError

    def tools(self) -> Sequence[ToolSpec]:
        return self.tool_factory()

    def handle(self, request: AgentRequest) -> AgentResponse:
        messages = self.build_messages(request)
        result = self._protocol.run(request.model_config, messages, self.tools())

        text = result.text
        if not text.strip():
            self._log.info("%s: empty model reply, using fallback text.", self.name)
            text = build_fallback_message(self.name, result.commands)
        return AgentResponse(text=text, commands=list(result.commands))
