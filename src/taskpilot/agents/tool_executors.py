# src/taskpilot/agents/tool_executors.py

from __future__ import annotations

import json

from ..core.errors import ToolDecodeError
from ..core.ports import ToolExecutor
from ..llm import tools


class AcknowledgingToolExecutor:
    """
    Confirms a tool invocation to the model without touching storage.

    The real change is carried by the mutation commands decoded from the same
    arguments and applied later in one transaction.
    """

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name

    def execute(self, arguments: str) -> str:
        try:
            payload = json.loads(arguments or "")
        except json.JSONDecodeError as e:
            raise ToolDecodeError(self.tool_name, f"arguments are not JSON: {e.msg}") from e
        if not isinstance(payload, dict):
            raise ToolDecodeError(self.tool_name, "arguments must be a JSON object")
        return json.dumps({"success": True})


def default_tool_executors() -> dict[str, ToolExecutor]:
    return {t.name: AcknowledgingToolExecutor(t.name) for t in tools.common_tools()}
