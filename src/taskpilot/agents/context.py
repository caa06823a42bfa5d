# src/taskpilot/agents/context.py

"""
Prompt context: read-only system messages built from an AgentRequest.

Order: role prompt, task snapshot (or open-task list), dependency edges, "now",
recent history, then the user's message.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from ..core.ports import AgentRequest
from ..llm.models import ChatMessage
from ..sessions.session_models import Message

_HISTORY_ROLES = ("user", "assistant", "system")


def _dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False)


def history_to_messages(history: Sequence[Message]) -> list[ChatMessage]:
    """Only user/assistant/system entries with non-blank content survive."""
    out: list[ChatMessage] = []
    for m in history:
        if m.role not in _HISTORY_ROLES:
            continue
        if not m.content.strip():
            continue
        out.append(ChatMessage(role=m.role, content=m.content))  # type: ignore[arg-type]
    return out


def now_message(request: AgentRequest) -> ChatMessage:
    return ChatMessage(
        role="system",
        content=f"Current time now: {request.now.replace(microsecond=0).isoformat()}",
    )


def build_task_messages(
    system_prompt: str,
    request: AgentRequest,
    *,
    history_limit: int | None = None,
) -> list[ChatMessage]:
    msgs = [ChatMessage(role="system", content=system_prompt)]

    if request.task is not None:
        msgs.append(
            ChatMessage(
                role="system",
                content=f"Current task (JSON, read-only):\n{_dumps(request.task.to_snapshot())}",
            )
        )

    if request.dependencies:
        edges = [d.to_snapshot() for d in request.dependencies]
        msgs.append(
            ChatMessage(
                role="system",
                content=(
                    f"Dependencies (JSON, read-only):\n{_dumps(edges)}\n"
                    "Note: completing a predecessor task or step may unlock or activate "
                    "its successors."
                ),
            )
        )

    msgs.append(now_message(request))

    history = request.history
    if history_limit is not None:
        history = history[-history_limit:] if history_limit > 0 else []
    msgs.extend(history_to_messages(history))

    msgs.append(ChatMessage(role="user", content=request.user_input))
    return msgs


def build_global_messages(system_prompt: str, request: AgentRequest) -> list[ChatMessage]:
    tasks = [t.to_snapshot(with_steps=False) for t in request.open_tasks]
    msgs = [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="system", content=f"Open tasks (JSON, read-only):\n{_dumps(tasks)}"),
        now_message(request),
    ]
    msgs.extend(history_to_messages(request.history))
    msgs.append(ChatMessage(role="user", content=request.user_input))
    return msgs
