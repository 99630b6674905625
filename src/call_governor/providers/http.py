# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
HTTP content provider.

Posts the conversation to an application endpoint (for example a serverless
proxy in front of the LLM API) and reads the generated text from the JSON
reply.

Request body:
    {"messages": [{"role": ..., "content": ...}], "model": ...,
     "maxTokens": ..., "temperature": ...}

Reply body:
    {"message": "..."} or {"content": "..."}, with an optional "usage" object
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..exceptions import MalformedResponseError, TransportError
from .base import ChatOptions, ChatTurn, ContentProvider, ProviderResponse, Usage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class HttpEndpointProvider(ContentProvider):
    """
    Provider backed by a JSON-over-HTTP endpoint.

    Args:
        url: Endpoint URL
        client: Shared httpx.AsyncClient. A short-lived client is opened per
            call when omitted.
        headers: Extra request headers (e.g. an API key for the proxy)
        name: Provider name for logs and metrics; defaults to the URL
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        name: str | None = None,
    ) -> None:
        self.url = url
        self._client = client
        self._headers = dict(headers or {})
        self._name = name or url

    @property
    def name(self) -> str:
        return self._name

    def build_payload(self, turns: list[ChatTurn], options: ChatOptions) -> dict[str, Any]:
        return {
            "messages": [turn.to_dict() for turn in turns],
            "model": options.model,
            "maxTokens": options.max_tokens,
            "temperature": options.temperature,
        }

    def request_headers(self) -> dict[str, str]:
        return dict(self._headers)

    def parse_reply(self, data: Any, options: ChatOptions) -> ProviderResponse:
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"{self.name} returned a non-object reply", raw=data
            )
        content = data.get("message") or data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError(
                f"{self.name} reply contains no generated text", raw=data
            )
        return ProviderResponse(
            content=content,
            model=data.get("model") or options.model,
            usage=Usage.from_payload(data.get("usage")),
            provider=self.name,
        )

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> Any:
        try:
            response = await client.post(
                self.url, json=payload, headers=self.request_headers()
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Timed out calling {self.name}", endpoint=self.name
            ) from e
        except httpx.RequestError as e:
            raise TransportError(
                f"Network error calling {self.name}: {e}", endpoint=self.name
            ) from e

        if not response.is_success:
            raise TransportError(
                f"{self.name} answered HTTP {response.status_code}: "
                f"{response.text[:200]}",
                endpoint=self.name,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.name} returned invalid JSON", raw=response.text
            ) from e

    async def invoke(
        self, turns: list[ChatTurn], options: ChatOptions
    ) -> ProviderResponse:
        payload = self.build_payload(turns, options)
        logger.debug(f"POST {self.url} ({len(turns)} turns, model={options.model})")

        if self._client is not None:
            data = await self._post(self._client, payload)
        else:
            async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
                data = await self._post(client, payload)

        return self.parse_reply(data, options)
