# tests/test_agents.py

from __future__ import annotations

import pytest

from taskpilot.agents.executor import ExecutorAgent
from taskpilot.agents.fallback import build_fallback_message, default_message
from taskpilot.agents.global_agent import GlobalAgent
from taskpilot.agents.protocol import ToolCallingProtocol
from taskpilot.agents.summarizer import SummarizerAgent
from taskpilot.agents.task_creation import TaskCreationAgent, parse_task_creation_reply
from taskpilot.agents.tool_executors import default_tool_executors
from taskpilot.core.errors import TaskCreationError
from taskpilot.core.ports import AgentRequest
from taskpilot.sessions.session_models import Message
from taskpilot.tasks.commands import (
    AddDependencies,
    AddSteps,
    CreateTask,
    DependencySpec,
    MarkFocusToday,
    NewStep,
    StepFieldChanges,
    TaskFieldChanges,
    UpdateStep,
    UpdateTask,
)
from taskpilot.tasks.task_models import (
    DependencyAction,
    DependencyCondition,
    Priority,
    StepStatus,
    TaskStatus,
)

from .conftest import FIXED_NOW
from .fakes import ScriptedChatModel, text_reply, tool_reply

SUFFIX = " Let me know if you want further changes."


def _step(step_id: int, status: StepStatus) -> UpdateStep:
    return UpdateStep(task_id=1, step_id=step_id, fields=StepFieldChanges(status=status))


# ---- fallback templates ----


def test_fallback_defaults_per_agent() -> None:
    assert build_fallback_message("executor", []) == "Got it." + SUFFIX
    assert build_fallback_message("planner", []) == default_message("planner")
    assert default_message("planner") != default_message("global")
    assert default_message("nobody") == "Got it." + SUFFIX


def test_fallback_counts_step_statuses_in_fixed_order() -> None:
    cmds = [
        _step(1, StepStatus.BLOCKED),
        _step(2, StepStatus.DONE),
        _step(3, StepStatus.DONE),
        _step(4, StepStatus.IN_PROGRESS),
    ]
    assert build_fallback_message("executor", cmds) == (
        "2 steps marked Done, 1 step marked In progress, 1 step marked Blocked." + SUFFIX
    )


def test_fallback_step_update_without_status() -> None:
    cmd = UpdateStep(task_id=1, step_id=2, fields=StepFieldChanges(title="renamed"))
    assert build_fallback_message("executor", [cmd]) == "1 step updated." + SUFFIX


def test_fallback_mixed_commands() -> None:
    edge = DependencySpec(
        predecessor_task_id=1,
        successor_task_id=2,
        condition=DependencyCondition.TASK_DONE,
        action=DependencyAction.SET_TASK_TODO,
    )
    cmds = [
        UpdateTask(
            task_id=1,
            fields=TaskFieldChanges(status=TaskStatus.DONE, priority=Priority.HIGH),
        ),
        AddSteps(task_id=1, steps=(NewStep(title="a"), NewStep(title="b"))),
        AddDependencies(items=(edge,)),
        MarkFocusToday(task_ids=(1, 2, 3)),
        CreateTask(title="new"),
    ]

    assert build_fallback_message("planner", cmds) == (
        "Task status set to Done, priority set to High; 2 steps added; 1 dependency added; "
        "3 tasks marked as today's focus; 1 task created." + SUFFIX
    )


# ---- tool-calling agents ----


def _request(model_cfg, make_task, text: str = "done with the outline") -> AgentRequest:
    task = make_task("Write report", ["outline", "draft"])
    return AgentRequest(
        owner_id=1,
        user_input=text,
        model_config=model_cfg,
        now=FIXED_NOW,
        task=task,
        history=[
            Message(1, 1, "user", "earlier question", None, 0.0),
            Message(2, 1, "assistant", "   ", "executor", 0.0),
            Message(3, 1, "system", "System notice: something", None, 0.0),
        ],
    )


def test_executor_returns_model_text_verbatim(model_cfg, make_task) -> None:
    model = ScriptedChatModel(text_reply("Great progress.\n"))
    agent = ExecutorAgent(ToolCallingProtocol(model, default_tool_executors()))

    response = agent.handle(_request(model_cfg, make_task))

    assert response.text == "Great progress.\n"
    assert response.commands == []
    msgs = model.requests[0].messages
    assert msgs[0].role == "system"
    assert '"title": "Write report"' in msgs[1].content
    assert msgs[2].content.startswith("Current time now: 2026-10-19T09:30:00")
    # blank history entries are dropped
    assert [m.content for m in msgs[3:-1]] == ["earlier question", "System notice: something"]
    assert msgs[-1].content == "done with the outline"


def test_executor_blank_reply_uses_fallback(model_cfg, make_task) -> None:
    request = _request(model_cfg, make_task)
    step_id = request.task.steps[0].id
    model = ScriptedChatModel(
        tool_reply(
            (
                "update_steps",
                {"task_id": request.task.id, "updates": [{"step_id": step_id, "fields": {"status": "done"}}]},
            )
        ),
        text_reply("  "),
    )
    agent = ExecutorAgent(ToolCallingProtocol(model, default_tool_executors()))

    response = agent.handle(request)

    assert response.text == "1 step marked Done." + SUFFIX
    assert len(response.commands) == 1


def test_global_agent_sees_open_tasks(model_cfg, make_task, task_store) -> None:
    make_task("Taxes")
    make_task("Dentist")
    model = ScriptedChatModel(text_reply("Start with taxes."))
    agent = GlobalAgent(ToolCallingProtocol(model, default_tool_executors()))
    request = AgentRequest(
        owner_id=1,
        user_input="what first?",
        model_config=model_cfg,
        now=FIXED_NOW,
        open_tasks=task_store.list_tasks(1),
    )

    agent.handle(request)

    req = model.requests[0]
    assert "Open tasks" in req.messages[1].content
    assert "Taxes" in req.messages[1].content
    assert "Dentist" in req.messages[1].content
    assert [t.name for t in req.tools] == ["update_task", "update_steps", "mark_tasks_focus_today"]


def test_summarizer_uses_no_tools_and_trims_history(model_cfg, make_task) -> None:
    model = ScriptedChatModel(text_reply(""))
    agent = SummarizerAgent(model, history_limit=1)

    response = agent.handle(_request(model_cfg, make_task, "总结"))

    assert response.commands == []
    assert response.text == default_message("summarizer")
    (req,) = model.requests
    assert req.tools == []
    history = [m.content for m in req.messages[3:-1]]
    assert history == ["System notice: something"]


# ---- text-to-task ----


def test_parse_task_creation_reply_in_code_fence() -> None:
    content = """Here you go:
```json
{"title": " Move flat ", "description": "by end of month", "due_at": "2026-10-31",
 "priority": "urgent",
 "steps": [{"title": "find boxes", "estimate_minutes": 0, "order_index": 1},
           {"title": "book van", "detail": null, "estimate_minutes": 20, "order_index": 2}]}
```"""

    cmd = parse_task_creation_reply(content)

    assert cmd.title == "Move flat"
    assert cmd.priority is Priority.MEDIUM
    assert cmd.due_at == "2026-10-31T00:00:00"
    assert [(s.title, s.detail, s.estimate_minutes) for s in cmd.steps] == [
        ("find boxes", "", None),
        ("book van", "", 20),
    ]


@pytest.mark.parametrize(
    "content",
    [
        "",
        "I could not do that",
        '{"title": "   ", "steps": []}',
        '{"description": "no title"}',
        '{"title": "ok", "due_at": "next tuesday-ish"}',
    ],
)
def test_parse_task_creation_reply_rejects(content: str) -> None:
    with pytest.raises(TaskCreationError):
        parse_task_creation_reply(content)


def test_task_creation_agent_emits_one_create_command(model_cfg) -> None:
    model = ScriptedChatModel(text_reply('{"title": "Plan party", "steps": [{"title": "invite"}]}'))
    request = AgentRequest(owner_id=1, user_input="plan a party", model_config=model_cfg, now=FIXED_NOW)

    response = TaskCreationAgent(model).handle(request)

    (cmd,) = response.commands
    assert isinstance(cmd, CreateTask)
    assert cmd.title == "Plan party"
    assert response.text.startswith("Done.")
    assert "(Task Creation Agent)" in model.requests[0].messages[0].content
