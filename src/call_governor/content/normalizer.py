# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Content normalizer.

Reshapes raw model output into the canonical content models. Lessons arrive
in several shapes, each recognised by classify_lesson() and handled by one
adapter:

    MAIN_CONTENT      {"mainContent": [section, ...]}
    CHAPTERS_LIST     {"chapters": [section, ...]}
    CHAPTERS_ENCODED  {"chapters": "[section, ...]"}  (JSON-encoded string)
    EMPTY             anything without sections

Sections accept `heading` or `title` and `text` or `content`. Sections
without an image get a placeholder whose identifier is derived from the
topic and heading, so the same input always yields the same placeholder.

A lesson without sections is the one hard failure
(ContentNormalizationError). Everything else is repaired with defaults.
"""

import hashlib
import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from ..config import ContentCategory
from ..exceptions import ContentNormalizationError
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
)
from .parsing import extract_json
from .prompts import ContentRequest

logger = logging.getLogger(__name__)

PLACEHOLDER_BASE_URL = "https://api.dicebear.com/7.x/shapes/svg"


class PlaceholderStyle(Enum):
    """Background colour per placeholder kind."""

    LESSON = "ffdfbf"
    ACTIVITY = "c0aede"
    QUIZ = "ffd5dc"
    GAME = "d1d4f9"


def placeholder_image(
    topic: str,
    heading: str,
    style: PlaceholderStyle = PlaceholderStyle.LESSON,
) -> ImageDescriptor:
    """Deterministic placeholder image for a (topic, heading) pair."""
    seed = hashlib.sha256(f"{topic}\x1f{heading}".encode("utf-8")).hexdigest()[:16]
    return ImageDescriptor(
        url=f"{PLACEHOLDER_BASE_URL}?seed={seed}&backgroundColor={style.value}",
        alt=f"Image for {heading}",
        caption=f"Illustration for {heading}",
        search_query=f"{topic} {heading} educational illustration".strip(),
    )


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip()
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [s for s in (_text(item) for item in value) if s]


def _first(raw: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = raw.get(name)
        if value not in (None, ""):
            return value
    return None


# =============================================================================
# Lesson shapes
# =============================================================================


class LessonShape(Enum):
    """Known raw lesson layouts."""

    MAIN_CONTENT = "main_content"
    CHAPTERS_LIST = "chapters_list"
    CHAPTERS_ENCODED = "chapters_encoded"
    EMPTY = "empty"


def _decode_chapters(encoded: str) -> list[Any]:
    try:
        decoded = json.loads(encoded)
    except ValueError:
        return []
    return decoded if isinstance(decoded, list) else []


def classify_lesson(raw: Any) -> LessonShape:
    """Identify which layout a raw lesson uses."""
    if not isinstance(raw, dict):
        return LessonShape.EMPTY
    main_content = _first(raw, "mainContent", "main_content")
    if isinstance(main_content, list) and main_content:
        return LessonShape.MAIN_CONTENT
    chapters = raw.get("chapters")
    if isinstance(chapters, list) and chapters:
        return LessonShape.CHAPTERS_LIST
    if isinstance(chapters, str) and _decode_chapters(chapters):
        return LessonShape.CHAPTERS_ENCODED
    return LessonShape.EMPTY


_SECTION_ADAPTERS: dict[LessonShape, Callable[[dict[str, Any]], list[Any]]] = {
    LessonShape.MAIN_CONTENT: lambda raw: list(_first(raw, "mainContent", "main_content")),
    LessonShape.CHAPTERS_LIST: lambda raw: list(raw["chapters"]),
    LessonShape.CHAPTERS_ENCODED: lambda raw: _decode_chapters(raw["chapters"]),
    LessonShape.EMPTY: lambda raw: [],
}


def _image(value: Any, topic: str, heading: str, style: PlaceholderStyle) -> ImageDescriptor:
    if isinstance(value, str) and value.strip():
        return ImageDescriptor(url=value.strip(), alt=f"Image for {heading}")
    if isinstance(value, dict) and _text(value.get("url")):
        return ImageDescriptor(
            url=_text(value.get("url")),
            alt=_text(value.get("alt"), f"Image for {heading}"),
            caption=_text(value.get("caption")),
            search_query=_text(_first(value, "searchQuery", "search_query")),
        )
    return placeholder_image(topic, heading, style)


def _chapter(section: Any, index: int, topic: str) -> Chapter | None:
    if isinstance(section, str):
        section = {"text": section}
    if not isinstance(section, dict):
        return None
    heading = _text(_first(section, "heading", "title")) or f"Chapter {index + 1}"
    return Chapter(
        heading=heading,
        text=_text(_first(section, "text", "content")),
        image=_image(section.get("image"), topic, heading, PlaceholderStyle.LESSON),
    )


def _activity(raw: Any, topic: str) -> Activity | None:
    if not isinstance(raw, dict):
        return None
    title = _text(raw.get("title")) or "Activity"
    return Activity(
        title=title,
        instructions=_text(_first(raw, "instructions", "text", "content")),
        image=_image(raw.get("image"), topic, title, PlaceholderStyle.ACTIVITY),
    )


def normalize_lesson(raw: Any, request: ContentRequest) -> LessonContent:
    """
    Convert a raw lesson into LessonContent.

    Raises:
        ContentNormalizationError: If the lesson has no sections
    """
    shape = classify_lesson(raw)
    if shape is LessonShape.EMPTY:
        raise ContentNormalizationError("Lesson has no chapters", raw=raw)

    topic = request.topic or _text(raw.get("title"))
    sections = _SECTION_ADAPTERS[shape](raw)
    chapters = [
        chapter
        for chapter in (_chapter(s, i, topic) for i, s in enumerate(sections))
        if chapter is not None
    ]
    if not chapters:
        raise ContentNormalizationError("Lesson sections are unreadable", raw=raw)

    logger.debug(f"Normalized {shape.value} lesson with {len(chapters)} chapters")
    return LessonContent(
        title=_text(raw.get("title")) or f"Learning about {request.topic}".strip(),
        introduction=_text(raw.get("introduction")),
        chapters=chapters,
        fun_facts=_strings(_first(raw, "funFacts", "fun_facts")),
        activity=_activity(raw.get("activity"), topic),
        conclusion=_text(raw.get("conclusion")),
        summary=_text(raw.get("summary")),
    )


# =============================================================================
# Quiz
# =============================================================================


def _quiz_question(raw: Any) -> QuizQuestion | None:
    if not isinstance(raw, dict):
        return None
    question = raw.get("question")
    options = raw.get("options")
    answer = _first(raw, "correctAnswer", "correct_answer")
    if not isinstance(question, str) or not question.strip():
        return None
    if not isinstance(options, list) or len(options) < 2:
        return None
    if isinstance(answer, bool) or not isinstance(answer, (int, float)):
        return None
    if isinstance(answer, float) and not answer.is_integer():
        return None
    if not 0 <= int(answer) < len(options):
        return None
    return QuizQuestion(
        question=question.strip(),
        options=[str(option) for option in options],
        correct_answer=int(answer),
        explanation=_text(raw.get("explanation")),
        question_type=_text(_first(raw, "questionType", "question_type")) or "multiple-choice",
    )


def normalize_quiz(raw: Any, question_count: int | None = None) -> QuizContent:
    """
    Convert a raw quiz into QuizContent. Never raises.

    Invalid questions are dropped. When question_count is given, the valid
    questions are repeated to reach it and the list is cut to it.
    """
    envelope: dict[str, Any] = raw if isinstance(raw, dict) else {}
    items = raw if isinstance(raw, list) else envelope.get("questions")
    if not isinstance(items, list):
        items = []

    valid = [q for q in (_quiz_question(item) for item in items) if q is not None]
    if len(valid) < len(items):
        logger.debug(f"Validated {len(valid)} of {len(items)} quiz questions")

    questions = list(valid)
    if question_count is not None and valid:
        while len(questions) < question_count:
            questions.extend(valid)
        questions = questions[:question_count]

    return QuizContent(
        title=_text(envelope.get("title")),
        introduction=_text(envelope.get("introduction")),
        questions=questions,
        conclusion=_text(envelope.get("conclusion")),
    )


# =============================================================================
# Game and chat
# =============================================================================


def normalize_game(raw: Any, request: ContentRequest) -> GameContent:
    """Convert a raw game description into GameContent."""
    data: dict[str, Any] = raw if isinstance(raw, dict) else {}
    title = _text(data.get("title")) or f"{request.focus} Game".strip()
    variations = data.get("variations")
    variations = variations if isinstance(variations, dict) else {}
    return GameContent(
        title=title,
        objective=_text(data.get("objective")),
        materials=_strings(data.get("materials")),
        setup=_text(data.get("setup")),
        instructions=_text(data.get("instructions")),
        variations=GameVariations(
            easier=_text(variations.get("easier")),
            harder=_text(variations.get("harder")),
        ),
        learning_objectives=_strings(_first(data, "learningObjectives", "learning_objectives")),
        concepts_reinforced=_strings(_first(data, "conceptsReinforced", "concepts_reinforced")),
        image=_image(data.get("image"), request.topic, title, PlaceholderStyle.GAME),
    )


def normalize_chat(raw: Any) -> ChatReply:
    """Chat replies are plain text."""
    if isinstance(raw, dict):
        raw = _first(raw, "message", "content", "reply")
    return ChatReply(message=_text(raw))


def normalize(raw: Any, request: ContentRequest) -> CanonicalContent:
    """
    Convert raw model output for a request into canonical content.

    Text output is parsed for its JSON envelope first (except chat replies).

    Raises:
        MalformedResponseError: No JSON envelope in text output
        ContentNormalizationError: A lesson without sections
    """
    category = request.category
    if category is ContentCategory.CHAT:
        return normalize_chat(raw)

    if isinstance(raw, str):
        raw = extract_json(raw, allow_array=category is ContentCategory.QUIZ)

    if category is ContentCategory.LESSON:
        return normalize_lesson(raw, request)
    if category is ContentCategory.QUIZ:
        return normalize_quiz(raw, request.question_count)
    return normalize_game(raw, request)


__all__ = [
    "LessonShape",
    "PlaceholderStyle",
    "classify_lesson",
    "normalize",
    "normalize_chat",
    "normalize_game",
    "normalize_lesson",
    "normalize_quiz",
    "placeholder_image",
]
