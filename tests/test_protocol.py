# tests/test_protocol.py

from __future__ import annotations

import json

import pytest

from taskpilot.agents.protocol import ToolCallingProtocol
from taskpilot.agents.tool_executors import default_tool_executors
from taskpilot.core.errors import LLMError, ToolDecodeError, UnknownToolError
from taskpilot.llm.models import ChatMessage
from taskpilot.llm.tools import executor_tools
from taskpilot.tasks.commands import UpdateStep, UpdateTask

from .fakes import ScriptedChatModel, text_reply, tool_reply

MESSAGES = [
    ChatMessage(role="system", content="role prompt"),
    ChatMessage(role="user", content="I finished step one"),
]


def _protocol(model: ScriptedChatModel) -> ToolCallingProtocol:
    return ToolCallingProtocol(model, default_tool_executors())


def test_no_tool_calls_is_single_round(model_cfg) -> None:
    model = ScriptedChatModel(text_reply("  Nice, keep going!\n"))

    result = _protocol(model).run(model_cfg, MESSAGES, executor_tools())

    assert result.text == "  Nice, keep going!\n"
    assert result.commands == []
    assert result.model_calls == 1
    (req,) = model.requests
    assert req.tool_choice == "auto"
    assert [t.name for t in req.tools] == ["update_task", "update_steps"]


def test_tool_calls_trigger_second_round(model_cfg) -> None:
    steps_args = {"task_id": 1, "updates": [{"step_id": 5, "fields": {"status": "done"}}]}
    task_args = {"task_id": 1, "fields": {"priority": "high"}}
    model = ScriptedChatModel(
        tool_reply(("update_steps", steps_args), ("update_task", task_args)),
        text_reply("Marked step one done and bumped the priority."),
    )

    result = _protocol(model).run(model_cfg, MESSAGES, executor_tools())

    assert result.text == "Marked step one done and bumped the priority."
    assert result.model_calls == 2
    assert [type(c) for c in result.commands] == [UpdateStep, UpdateTask]

    first, second = model.requests
    assert first.tool_choice == "auto"
    assert second.tool_choice == "none"
    assert second.tools == first.tools

    transcript = second.messages
    assert transcript[:2] == MESSAGES
    assistant = transcript[2]
    assert assistant.role == "assistant"
    assert [tc.id for tc in assistant.tool_calls] == ["call_1", "call_2"]
    tool_msgs = transcript[3:]
    assert [(m.role, m.tool_call_id, m.name) for m in tool_msgs] == [
        ("tool", "call_1", "update_steps"),
        ("tool", "call_2", "update_task"),
    ]
    assert json.loads(tool_msgs[0].content) == {"success": True}


def test_unknown_tool_aborts_before_second_round(model_cfg) -> None:
    model = ScriptedChatModel(tool_reply(("drop_tables", {})))

    with pytest.raises(UnknownToolError):
        _protocol(model).run(model_cfg, MESSAGES, executor_tools())
    assert len(model.requests) == 1


def test_malformed_arguments_abort_exchange(model_cfg) -> None:
    model = ScriptedChatModel(tool_reply(("update_task", '{"task_id": "one"}')))

    with pytest.raises(ToolDecodeError):
        _protocol(model).run(model_cfg, MESSAGES, executor_tools())
    assert len(model.requests) == 1


def test_second_call_failure_surfaces_no_commands(model_cfg) -> None:
    model = ScriptedChatModel(
        tool_reply(("update_task", {"task_id": 1, "fields": {"title": "x"}})),
        LLMError("LLM http 500: upstream"),
    )

    with pytest.raises(LLMError):
        _protocol(model).run(model_cfg, MESSAGES, executor_tools())
    assert len(model.requests) == 2


def test_catalogued_tool_outside_offered_subset_is_rejected(model_cfg) -> None:
    # add_steps is in the catalogue but not among the executor's tools
    model = ScriptedChatModel(tool_reply(("add_steps", {"task_id": 1, "steps": [{"title": "x"}]})))

    with pytest.raises(UnknownToolError) as exc_info:
        _protocol(model).run(model_cfg, MESSAGES, executor_tools())
    assert exc_info.value.tool_name == "add_steps"
    assert len(model.requests) == 1
