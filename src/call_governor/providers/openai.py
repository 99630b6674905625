# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Direct OpenAI chat-completions provider, used as the last entry of a chain."""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from ..exceptions import MalformedResponseError, TransportError
from .base import ChatOptions, ChatTurn, ProviderResponse, Usage
from .http import HttpEndpointProvider

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIChatProvider(HttpEndpointProvider):
    """
    Calls the chat completions endpoint directly.

    The API key comes from OPENAI_API_KEY when not passed. A missing key is
    reported as a TransportError at call time so a chain moves on to its
    next provider instead of failing to build.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = OPENAI_BASE_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            url=f"{base_url.rstrip('/')}/chat/completions",
            client=client,
            name="openai",
        )
        self._api_key = api_key if api_key is not None else os.environ.get("OPENAI_API_KEY")

    def build_payload(self, turns: list[ChatTurn], options: ChatOptions) -> dict[str, Any]:
        return {
            "model": options.model,
            "messages": [turn.to_dict() for turn in turns],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }

    def request_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def parse_reply(self, data: Any, options: ChatOptions) -> ProviderResponse:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(
                "OpenAI reply has no choices[0].message.content", raw=data
            ) from e
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("OpenAI reply content is empty", raw=data)
        return ProviderResponse(
            content=content,
            model=data.get("model") or options.model,
            usage=Usage.from_payload(data.get("usage")),
            provider=self.name,
        )

    async def invoke(
        self, turns: list[ChatTurn], options: ChatOptions
    ) -> ProviderResponse:
        if not self._api_key:
            raise TransportError("OpenAI API key is not configured", endpoint=self.name)
        return await super().invoke(turns, options)
