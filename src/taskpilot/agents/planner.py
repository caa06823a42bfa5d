# src/taskpilot/agents/planner.py

from __future__ import annotations

from ..core.ports import AgentRequest
from ..llm.models import ChatMessage
from ..llm.tools import planner_tools
from .base import PLANNER, ToolCallingAgent
from .context import build_task_messages
from .prompts import PLANNER_SYSTEM_PROMPT


class PlannerAgent(ToolCallingAgent):
    """Structural changes: new steps, reordering, rescheduling, dependency edges."""

    name = PLANNER
    system_prompt = PLANNER_SYSTEM_PROMPT
    tool_factory = staticmethod(planner_tools)

    def build_messages(self, request: AgentRequest) -> list[ChatMessage]:
        return build_task_messages(self.system_prompt, request)
