# src/taskpilot/core/errors.py

"""
Error taxonomy of the orchestration core.

Every failure that can abort a request cycle derives from TaskPilotError, so
connectors can catch one type and show a friendly message.
"""

from __future__ import annotations


class TaskPilotError(Exception):
    """Base class for all taskpilot errors."""


class LLMError(TaskPilotError):
    """Model endpoint failure: network error, non-success status or an unusable response."""


class ToolDecodeError(TaskPilotError):
    """Tool arguments could not be decoded into mutation commands."""

    def __init__(self, tool_name: str, detail: str) -> None:
        super().__init__(f"{tool_name}: invalid arguments: {detail}")
        self.tool_name = tool_name
        self.detail = detail


class UnknownToolError(TaskPilotError):
    """The model invoked a tool that has no executor or decoder."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"unknown tool: {tool_name!r}")
        self.tool_name = tool_name


class CommandApplyError(TaskPilotError):
    """A mutation command could not be applied; the enclosing batch is rolled back."""


class NotFoundError(CommandApplyError):
    """A referenced task, step or session does not exist."""


class OwnershipError(CommandApplyError):
    """A command referenced a task that belongs to another owner."""


class DependencyError(TaskPilotError):
    """Dependency propagation failed; the triggering completion is rolled back with it."""


class TaskCreationError(TaskPilotError):
    """The text-to-task reply could not be turned into a task."""
