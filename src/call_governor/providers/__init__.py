# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Content providers and the retrying provider chain."""

from .base import ChatOptions, ChatTurn, ContentProvider, ProviderResponse, Usage
from .chain import ProviderChain
from .http import HttpEndpointProvider
from .openai import OpenAIChatProvider

__all__ = [
    "ChatOptions",
    "ChatTurn",
    "ContentProvider",
    "HttpEndpointProvider",
    "OpenAIChatProvider",
    "ProviderChain",
    "ProviderResponse",
    "Usage",
]
