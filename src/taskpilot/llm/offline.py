# src/taskpilot/llm/offline.py

from __future__ import annotations

import json

from .models import ChatMessage, ChatRequest, ChatResponse, Choice, ModelConfig


class OfflineChatModel:
    """
    Offline deterministic model used for demos when no external API is configured.

    Behavior:
    - Task creation prompts -> a minimal task JSON built from the user's text
    - Router classifier prompts -> {"agent": "executor"}
    - Everything else -> a plain text reply with no tool calls
    """

    def chat(self, cfg: ModelConfig, request: ChatRequest) -> ChatResponse:
        system = " ".join(m.content for m in request.messages if m.role == "system")

        user_text = ""
        for m in reversed(request.messages):
            if m.role == "user":
                user_text = m.content
                break

        if "(Task Creation Agent)" in system:
            content = json.dumps(
                {
                    "title": (user_text.strip().splitlines() or ["New task"])[0][:80],
                    "description": user_text.strip(),
                    "due_at": None,
                    "priority": "medium",
                    "steps": [
                        {
                            "title": "Get started",
                            "detail": "Offline demo step.",
                            "estimate_minutes": 30,
                            "order_index": 1,
                        }
                    ],
                },
                ensure_ascii=False,
            )
        elif "(Router Agent)" in system:
            content = '{"agent": "executor"}'
        else:
            content = (
                "Offline demo mode: no external LLM is configured.\n"
                "Set TASKPILOT_LLM_API_KEY (and TASKPILOT_LLM_MODEL) to enable real responses.\n\n"
                f"You said: {user_text}"
            )

        msg = ChatMessage(role="assistant", content=content)
        return ChatResponse(choices=[Choice(message=msg, finish_reason="stop")])
