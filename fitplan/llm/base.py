"""LLM provider interface."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass
class Message:
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass
class LLMConfig:
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    json_schema: dict[str, Any] | None = None


@dataclass
class LLMResponse:
    content: str
    structured_data: dict[str, Any] | None = None
    usage: dict[str, int | None] = field(default_factory=dict)
    model: str | None = None
    finish_reason: str | None = None


class LLMProvider(ABC):
    """Chat-completion backend used for coaching content."""

    @abstractmethod
    async def chat(self, messages: list[Message], config: LLMConfig) -> LLMResponse:
        """Send a chat request and return the complete response."""

    async def close(self) -> None:
        """Release network resources."""


class PromptBuilder:
    """Assemble a system + user message pair."""

    def __init__(self, system: str):
        self._system = system
        self._sections: list[str] = []

    def add(self, text: str) -> PromptBuilder:
        if text:
            self._sections.append(text)
        return self

    def build(self) -> list[Message]:
        return [
            Message(role="system", content=self._system),
            Message(role="user", content="\n\n".join(self._sections)),
        ]
