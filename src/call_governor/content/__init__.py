# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Content requests, canonical content models and the content normalizer.
"""

from .models import (
    Activity,
    CanonicalContent,
    Chapter,
    ChatReply,
    GameContent,
    GameVariations,
    ImageDescriptor,
    LessonContent,
    QuizContent,
    QuizQuestion,
    canonical_content_adapter,
)
from .normalizer import (
    LessonShape,
    PlaceholderStyle,
    classify_lesson,
    normalize,
    normalize_chat,
    normalize_game,
    normalize_lesson,
    normalize_quiz,
    placeholder_image,
)
from .parsing import extract_json, extract_json_object
from .prompts import (
    ContentRequest,
    build_turns,
    normalize_grade_level,
    optimize_prompt,
)

__all__ = [
    "Activity",
    "CanonicalContent",
    "Chapter",
    "ChatReply",
    "ContentRequest",
    "GameContent",
    "GameVariations",
    "ImageDescriptor",
    "LessonContent",
    "LessonShape",
    "PlaceholderStyle",
    "QuizContent",
    "QuizQuestion",
    "build_turns",
    "canonical_content_adapter",
    "classify_lesson",
    "extract_json",
    "extract_json_object",
    "normalize",
    "normalize_chat",
    "normalize_game",
    "normalize_grade_level",
    "normalize_lesson",
    "normalize_quiz",
    "optimize_prompt",
    "placeholder_image",
]
