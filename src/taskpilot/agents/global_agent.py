# src/taskpilot/agents/global_agent.py

from __future__ import annotations

from ..core.ports import AgentRequest
from ..llm.models import ChatMessage
from ..llm.tools import global_tools
from .base import GLOBAL, ToolCallingAgent
from .context import build_global_messages
from .prompts import GLOBAL_SYSTEM_PROMPT


class GlobalAgent(ToolCallingAgent):
    """Cross-task overview for global sessions; sees the open-task list, not one task."""

    name = GLOBAL
    system_prompt = GLOBAL_SYSTEM_PROMPT
    tool_factory = staticmethod(global_tools)

    def build_messages(self, request: AgentRequest) -> list[ChatMessage]:
        return build_global_messages(self.system_prompt, request)
