# src/taskpilot/llm/client.py

from __future__ import annotations

import logging
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..core.errors import LLMError
from .models import ChatMessage, ChatRequest, ChatResponse, Choice, ModelConfig, ToolCall

logger = logging.getLogger(__name__)


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    # APITimeoutError is a subclass of APIConnectionError.
    return isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "LLM is not configured (missing API key). Set TASKPILOT_LLM_API_KEY in .env."
    if "LLM base URL is not set" in msg:
        return "LLM is not configured (missing base URL). Set TASKPILOT_LLM_BASE_URL in .env."
    if "LLM model is not set" in msg:
        return "LLM is not configured (no model). Set TASKPILOT_LLM_MODEL in .env."
    return msg


def _message_from_sdk(raw: Any) -> ChatMessage:
    tool_calls: list[ToolCall] = []
    for tc in getattr(raw, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        if fn is None:
            continue
        tool_calls.append(
            ToolCall(
                id=str(getattr(tc, "id", "") or ""),
                name=str(getattr(fn, "name", "") or ""),
                arguments=str(getattr(fn, "arguments", "") or ""),
            )
        )
    return ChatMessage(
        role="assistant",
        content=str(getattr(raw, "content", None) or ""),
        tool_calls=tuple(tool_calls),
    )


class OpenAIChatModel:
    """
    Chat completions against any OpenAI-compatible endpoint.

    The inbound request carries its own ModelConfig, so SDK clients are
    cached per (base_url, api_key). Automatic SDK retries are disabled:
    retry policy belongs to the caller.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=10.0,
            pool=connect_timeout,
        )
        self._clients: dict[tuple[str, str], OpenAI] = {}
        self._log = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Any) -> OpenAIChatModel:
        return cls(
            connect_timeout=float(getattr(settings, "llm_connect_timeout", 5.0)),
            read_timeout=float(getattr(settings, "llm_read_timeout", 60.0)),
        )

    def _get_client(self, cfg: ModelConfig) -> OpenAI:
        if not cfg.api_key.strip():
            raise LLMError("LLM API key is not set.")
        if not cfg.base_url.strip():
            raise LLMError("LLM base URL is not set.")
        if not cfg.model.strip():
            raise LLMError("LLM model is not set.")

        key = (cfg.base_url, cfg.api_key)
        client = self._clients.get(key)
        if client is None:
            client = OpenAI(
                base_url=cfg.base_url,
                api_key=cfg.api_key,
                timeout=self._timeout,
                max_retries=0,
            )
            self._clients[key] = client
        return client

    def chat(self, cfg: ModelConfig, request: ChatRequest) -> ChatResponse:
        """
        One non-streaming chat completion.

        Any SDK/network failure, non-success status or empty choice list
        surfaces as LLMError.
        """
        client = self._get_client(cfg)

        kwargs: dict[str, Any] = {
            "model": cfg.model,
            "messages": [m.to_wire() for m in request.messages],
        }
        if request.tools:
            kwargs["tools"] = [t.to_wire() for t in request.tools]
        if request.tool_choice is not None and request.tools:
            kwargs["tool_choice"] = request.tool_choice
        if cfg.reasoning_effort:
            kwargs["reasoning_effort"] = cfg.reasoning_effort

        self._log.info(
            "LLM: chat model=%s messages=%d tools=%d tool_choice=%s",
            cfg.model,
            len(request.messages),
            len(request.tools),
            request.tool_choice,
        )

        try:
            resp = client.chat.completions.create(**kwargs)
        except Exception as e:
            if _is_auth_error(e):
                raise LLMError("LLM authentication failed. Check your API key.") from e
            if _is_not_found_error(e):
                raise LLMError(f"LLM model not available: {cfg.model}") from e
            if _is_rate_limit_error(e):
                raise LLMError("LLM is rate-limited. Try again later.") from e
            if _is_connection_error(e):
                raise LLMError("LLM network/timeout error. Try again later.") from e
            if isinstance(e, openai.APIStatusError):
                raise LLMError(f"LLM http {e.status_code}: {e.message}") from e
            raise LLMError(f"LLM call failed: {e.__class__.__name__}") from e

        choices = [
            Choice(message=_message_from_sdk(c.message), finish_reason=c.finish_reason)
            for c in (resp.choices or [])
        ]
        if not choices:
            raise LLMError("no choices in LLM response")

        self._log.debug(
            "LLM: done model=%s finish=%s tool_calls=%d",
            cfg.model,
            choices[0].finish_reason,
            len(choices[0].message.tool_calls),
        )
        return ChatResponse(choices=choices)
