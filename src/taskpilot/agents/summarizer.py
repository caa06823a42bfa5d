# src/taskpilot/agents/summarizer.py

from __future__ import annotations

import logging

from ..core.ports import AgentRequest, AgentResponse, ChatModel
from ..llm.models import ChatRequest
from .base import SUMMARIZER
from .context import build_task_messages
from .fallback import default_message
from .prompts import SUMMARIZER_SYSTEM_PROMPT


class SummarizerAgent:
    """
    Read-only synthesis of the task and recent conversation.

    One direct model call with no tools, so it never produces commands.
    """

    name = SUMMARIZER

    def __init__(
        self,
        model: ChatModel,
        *,
        history_limit: int = 12,
        logger: logging.Logger | None = None,
    ) -> None:
        self._model = model
        self._history_limit = history_limit
        self._log = logger or logging.getLogger(__name__)

    def handle(self, request: AgentRequest) -> AgentResponse:
        messages = build_task_messages(
            SUMMARIZER_SYSTEM_PROMPT, request, history_limit=self._history_limit
        )
        reply = self._model.chat(request.model_config, ChatRequest(messages)).first
        text = reply.content
        if not text.strip():
            self._log.info("summarizer: empty model reply, using fallback text.")
            text = default_message(self.name)
        return AgentResponse(text=text)
