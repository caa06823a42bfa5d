# src/taskpilot/agents/executor.py

from __future__ import annotations

from ..core.ports import AgentRequest
from ..llm.models import ChatMessage
from ..llm.tools import executor_tools
from .base import EXECUTOR, ToolCallingAgent
from .context import build_task_messages
from .prompts import EXECUTOR_SYSTEM_PROMPT


class ExecutorAgent(ToolCallingAgent):
    """Progress updates on the bound task: step status, deadlines, task fields."""

    name = EXECUTOR
    system_prompt = EXECUTOR_SYSTEM_PROMPT
    tool_factory = staticmethod(executor_tools)

    def build_messages(self, request: AgentRequest) -> list[ChatMessage]:
        return build_task_messages(self.system_prompt, request)
