# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Call Governor orchestration.

Components:
- CallGovernor: Cache, ledger and provider chain for one content category
- ContentService: One governor per category behind a single entry point
- create_content_service: Factory wiring a ContentService from settings
- fallback_content: Static, schema-valid content per category
"""

from .fallback import fallback_content
from .governor import AnswerSource, CallGovernor, GovernedResult
from .service import ContentService, create_content_service

__all__ = [
    "AnswerSource",
    "CallGovernor",
    "ContentService",
    "GovernedResult",
    "create_content_service",
    "fallback_content",
]
