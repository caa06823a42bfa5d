# src/taskpilot/llm/models.py

"""
Wire-level types for the OpenAI-compatible chat completions endpoint.

These are plain dataclasses; `to_wire()` produces the dicts the SDK expects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]
ToolChoice = Literal["auto", "none"]


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Per-request model configuration (endpoint, credentials, model name)."""

    base_url: str
    api_key: str
    model: str
    reasoning_effort: str | None = None

    @classmethod
    def from_settings(cls, settings: Any) -> ModelConfig:
        return cls(
            base_url=str(getattr(settings, "llm_base_url", "") or ""),
            api_key=str(getattr(settings, "llm_api_key", "") or ""),
            model=str(getattr(settings, "llm_model", "") or ""),
            reasoning_effort=getattr(settings, "llm_reasoning_effort", None),
        )


@dataclass(frozen=True, slots=True)
class ToolCall:
    id: str
    name: str
    arguments: str

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        if self.name is not None and self.role == "tool":
            out["name"] = self.name
        return out


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One entry of the tool catalogue: name, description and JSON schema."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True, slots=True)
class ChatRequest:
    messages: list[ChatMessage]
    tools: list[ToolSpec] = field(default_factory=list)
    tool_choice: ToolChoice | None = None


@dataclass(frozen=True, slots=True)
class Choice:
    message: ChatMessage
    finish_reason: str | None = None


@dataclass(frozen=True, slots=True)
class ChatResponse:
    choices: list[Choice]

    @property
    def first(self) -> ChatMessage:
        return self.choices[0].message
