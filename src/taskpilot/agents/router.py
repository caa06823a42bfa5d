# src/taskpilot/agents/router.py

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, ValidationError

from ..core.errors import LLMError
from ..core.ports import AgentRequest, ChatModel, RouteClassifier
from ..llm.models import ChatMessage, ChatRequest
from ..sessions.session_models import SessionKind
from .base import EXECUTOR, GLOBAL, PLANNER, SUMMARIZER, extract_json_block
from .prompts import ROUTER_SYSTEM_PROMPT_TEMPLATE

SUMMARY_KEYWORDS = ("总结", "overview", "回顾", "progress")
PLANNING_KEYWORDS = ("重新规划", "重排", "reschedule", "重排日程", "拆解")


def match_keywords(session_kind: SessionKind, text: str) -> str | None:
    """Label picked by the rules, or None when nothing matched."""
    if session_kind is SessionKind.GLOBAL:
        return GLOBAL

    lowered = (text or "").lower()
    if any(k in lowered for k in SUMMARY_KEYWORDS):
        return SUMMARIZER
    if any(k in lowered for k in PLANNING_KEYWORDS):
        return PLANNER
    return None


def route_by_rules(session_kind: SessionKind, text: str) -> str:
    """Pure, total: always one of executor/planner/summarizer/global."""
    return match_keywords(session_kind, text) or EXECUTOR


class RouteDecision(BaseModel):
    agent: Literal["executor", "planner", "summarizer", "global"]


class LLMRouteClassifier:
    """
    Ask the model for a label when no keyword matched.

    Any model failure, unparsable reply or out-of-domain label yields executor.
    """

    def __init__(self, model: ChatModel, *, logger: logging.Logger | None = None) -> None:
        self._model = model
        self._log = logger or logging.getLogger(__name__)

    def classify(self, request: AgentRequest) -> str:
        prompt = ROUTER_SYSTEM_PROMPT_TEMPLATE.format(
            session_type=request.session_kind.value,
            has_task="true" if request.task is not None else "false",
            user_input=request.user_input,
        )
        try:
            reply = self._model.chat(
                request.model_config,
                ChatRequest([ChatMessage(role="system", content=prompt)]),
            ).first
        except LLMError as e:
            self._log.warning("Router classifier failed, defaulting to executor: %s", e)
            return EXECUTOR

        try:
            decision = RouteDecision.model_validate_json(extract_json_block(reply.content))
        except ValidationError:
            self._log.warning("Router classifier reply unusable: %r", reply.content[:200])
            return EXECUTOR
        return decision.agent


class Router:
    def __init__(
        self,
        classifier: RouteClassifier | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._classifier = classifier
        self._log = logger or logging.getLogger(__name__)

    def route(self, request: AgentRequest) -> str:
        label = match_keywords(request.session_kind, request.user_input)
        if label is not None:
            self._log.debug("Router: rule match -> %s", label)
            return label

        if self._classifier is None:
            self._log.debug("Router: no rule match -> %s", EXECUTOR)
            return EXECUTOR

        label = self._classifier.classify(request)
        self._log.debug("Router: classifier -> %s", label)
        return label
