# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Content provider interface and the value types it exchanges."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ChatTurn:
    """One role-tagged conversation turn ('system', 'user' or 'assistant')."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatOptions:
    """Model identifier and output bound for one completion."""

    model: str = "gpt-3.5-turbo"
    max_tokens: int = 1000
    temperature: float = 0.7


@dataclass
class Usage:
    """Token usage reported by a provider. Zeros when not reported."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_payload(cls, payload: Any) -> "Usage":
        """Read usage from a response body, accepting snake or camel case."""
        if not isinstance(payload, dict):
            return cls()

        def _int(*names: str) -> int:
            for name in names:
                value = payload.get(name)
                if isinstance(value, int) and not isinstance(value, bool):
                    return value
            return 0

        return cls(
            prompt_tokens=_int("prompt_tokens", "promptTokens"),
            completion_tokens=_int("completion_tokens", "completionTokens"),
            total_tokens=_int("total_tokens", "totalTokens"),
        )


@dataclass
class ProviderResponse:
    """Generated text plus usage metadata."""

    content: str
    model: str
    usage: Usage = field(default_factory=Usage)
    provider: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "model": self.model,
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
            "provider": self.provider,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderResponse":
        return cls(
            content=data["content"],
            model=data.get("model", ""),
            usage=Usage.from_payload(data.get("usage")),
            provider=data.get("provider"),
        )


class ContentProvider(ABC):
    """
    Abstract interface for a network content provider.

    A provider turns a list of conversation turns into generated text. It
    does not retry; retry and failover belong to ProviderChain.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs and metrics."""
        pass

    @abstractmethod
    async def invoke(
        self, turns: list[ChatTurn], options: ChatOptions
    ) -> ProviderResponse:
        """Generate a completion.

        Raises:
            TransportError: Connection failure, timeout or non-2xx status
            MalformedResponseError: The reply had no usable content
        """
        pass
