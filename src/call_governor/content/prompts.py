# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Content requests and prompt construction.

A ContentRequest is the request descriptor the application hands to the
governor. Its cache key fields are fingerprinted; build_turns() turns it into
the system and user turns sent to the provider chain.
"""

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..config import ContentCategory
from ..providers.base import ChatTurn

GRADE_LEVELS = ("k-3", "4-6", "7-9")
DEFAULT_GRADE_LEVEL = "4-6"

_LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")
_NAMED_GRADES = {
    "kindergarten": "k-3",
    "k": "k-3",
    "pre-k": "k-3",
    "pre-school": "k-3",
    "preschool": "k-3",
    "middle school": "4-6",
    "junior high": "4-6",
    "high school": "7-9",
    "secondary": "7-9",
}


def normalize_grade_level(value: Any) -> str:
    """
    Map a grade description to one of 'k-3', '4-6' or '7-9'.

    Numbers map by grade (3 and below, 6 and below, above). Unknown values
    default to '4-6'.
    """
    if value is None or value == "":
        return DEFAULT_GRADE_LEVEL
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        grade = int(value)
    else:
        text = str(value)
        match = _LEADING_INT_RE.match(text)
        if match is None:
            lowered = text.strip().lower()
            if lowered in GRADE_LEVELS:
                return lowered
            return _NAMED_GRADES.get(lowered, DEFAULT_GRADE_LEVEL)
        grade = int(match.group())

    if grade <= 3:
        return "k-3"
    if grade <= 6:
        return "4-6"
    return "7-9"


_FILLER_PATTERNS = [
    re.compile(r"\bplease\b", re.IGNORECASE),
    re.compile(r"I want you to", re.IGNORECASE),
    re.compile(r"It is important that you", re.IGNORECASE),
    re.compile(r"Make sure to", re.IGNORECASE),
    re.compile(r"\bvery\b", re.IGNORECASE),
    re.compile(r"\breally\b", re.IGNORECASE),
    re.compile(r"\bquite\b", re.IGNORECASE),
    re.compile(r"\bAs (a|an) (professional|expert|experienced) [^,.]+,", re.IGNORECASE),
]
_WHITESPACE_RE = re.compile(r"\s+")


def optimize_prompt(text: str) -> str:
    """Drop filler phrases and collapse whitespace to save prompt tokens."""
    for pattern in _FILLER_PATTERNS:
        text = pattern.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


class ContentRequest(BaseModel):
    """
    Descriptor of one logical content request.

    skip_cache changes how a request is served, not what is requested, so it
    is excluded from the fingerprint.
    """

    category: ContentCategory
    subject: str = ""
    topic: str = ""
    grade_level: str = DEFAULT_GRADE_LEVEL
    subtopic: str | None = None
    language: str = "en"
    question_count: int = Field(default=5, ge=1, le=50)
    turns: list[ChatTurn] = Field(default_factory=list)
    skip_cache: bool = False

    @field_validator("grade_level", mode="before")
    @classmethod
    def _normalize_grade(cls, value: Any) -> str:
        return normalize_grade_level(value)

    @property
    def focus(self) -> str:
        return self.subtopic or self.topic

    def cache_key_fields(self) -> dict[str, Any]:
        """The fields that identify this request for caching."""
        return self.model_dump(mode="json", exclude={"skip_cache"})


_LESSON_SUBTOPIC_NOTE = 'Focus on "{subtopic}" specifically as a subtopic of the broader "{topic}".'
_QUIZ_SUBTOPIC_NOTE = 'Focus questions specifically on "{subtopic}" as a subtopic of "{topic}".'
_GAME_SUBTOPIC_NOTE = '- Emphasize the subtopic "{subtopic}" specifically'


def _subtopic_note(request: ContentRequest, template: str) -> str:
    if not request.subtopic:
        return ""
    return template.format(subtopic=request.subtopic, topic=request.topic)


def _lesson_prompt(request: ContentRequest) -> tuple[str, str]:
    focus, grade = request.focus, request.grade_level
    note = _subtopic_note(request, _LESSON_SUBTOPIC_NOTE)
    system = (
        f"You are an exceptional educational content creator specializing in "
        f"{request.subject} for {grade} students."
    )
    user = f"""Create a complete, high-quality lesson about "{focus}" for {grade} level students.

    Return content in the following JSON format:
    {{
      "title": "An engaging title for the lesson",
      "introduction": "An engaging introduction that excites students about learning {focus}",
      "chapters": [
        {{"heading": "First Main Concept", "text": "Clear explanation with examples..."}},
        {{"heading": "Second Main Concept", "text": "Thorough explanation appropriate for {grade} students..."}},
        {{"heading": "Third Main Concept", "text": "More key information with practical examples..."}}
      ],
      "funFacts": ["Interesting fact 1 about {focus}", "Interesting fact 2", "Interesting fact 3"],
      "activity": {{
        "title": "Hands-on Activity Title",
        "instructions": "Step-by-step instructions for an activity that reinforces learning"
      }},
      "conclusion": "A conclusion summarizing key points and why this knowledge matters"
    }}

    Make the content educational, engaging, and specifically about {focus}.
    {note}
    Be clear, accurate, and appropriate for {grade} level students."""
    return system, user


def _quiz_prompt(request: ContentRequest) -> tuple[str, str]:
    focus, grade = request.focus, request.grade_level
    note = _subtopic_note(request, _QUIZ_SUBTOPIC_NOTE)
    system = (
        f"You are an expert educational quiz creator specializing in "
        f"{request.subject} for {grade} students."
    )
    user = f"""Create a quiz of {request.question_count} questions about "{focus}" for {grade} level students.

    Return the quiz in the following JSON format:
    {{
      "title": "Quiz title",
      "introduction": "Brief introduction explaining what this quiz covers",
      "questions": [
        {{
          "question": "Question text",
          "questionType": "multiple-choice",
          "options": ["Option A", "Option B", "Option C", "Option D"],
          "correctAnswer": 0,
          "explanation": "Explanation for why this answer is correct"
        }}
      ],
      "conclusion": "Encouraging message about what student has learned"
    }}

    Make questions appropriate for {grade} students, testing both recall and understanding.
    {note}"""
    return system, user


def _game_prompt(request: ContentRequest) -> tuple[str, str]:
    focus, grade = request.focus, request.grade_level
    note = _subtopic_note(request, _GAME_SUBTOPIC_NOTE)
    system = (
        f"You are a creative educational game designer specializing in "
        f"{request.subject} activities for {grade} students."
    )
    user = f"""Create an engaging educational game about "{focus}" for {grade} level students.

    Return the game in the following JSON format:
    {{
      "title": "Catchy game title",
      "objective": "Learning objective of the game",
      "materials": ["Simple item 1", "Simple item 2"],
      "setup": "How to set up the game environment",
      "instructions": "Clear step-by-step instructions on how to play",
      "variations": {{
        "easier": "How to make the game simpler for younger students",
        "harder": "How to make the game more challenging for advanced students"
      }},
      "learningObjectives": ["Specific skill students will gain"],
      "conceptsReinforced": ["Key concept from {focus} this reinforces"]
    }}

    The game should use materials students have at home, take 15-30 minutes
    to play and focus specifically on teaching about "{focus}".
    {note}"""
    return system, user


def _chat_system_prompt(request: ContentRequest) -> str:
    return (
        f"You are Learning Buddy, a friendly tutor helping a {request.grade_level} "
        f"student learn {request.subject or 'any subject'}"
        + (f", currently studying {request.focus}" if request.focus else "")
        + ". Answer in short, encouraging, age-appropriate plain text."
    )


_PROMPT_BUILDERS = {
    ContentCategory.LESSON: _lesson_prompt,
    ContentCategory.QUIZ: _quiz_prompt,
    ContentCategory.GAME: _game_prompt,
}


def build_turns(request: ContentRequest) -> list[ChatTurn]:
    """Build the conversation sent to the provider for a request."""
    if request.category is ContentCategory.CHAT:
        turns = [ChatTurn("system", optimize_prompt(_chat_system_prompt(request)))]
        if request.turns:
            turns.extend(request.turns)
        else:
            turns.append(ChatTurn("user", f"Tell me something interesting about {request.focus}."))
        return turns

    system, user = _PROMPT_BUILDERS[request.category](request)
    if request.language and request.language != "en":
        user += f"\nWrite all text values in the language with code '{request.language}'."
    return [
        ChatTurn("system", optimize_prompt(system)),
        ChatTurn("user", optimize_prompt(user)),
    ]


__all__ = [
    "DEFAULT_GRADE_LEVEL",
    "GRADE_LEVELS",
    "ContentRequest",
    "build_turns",
    "normalize_grade_level",
    "optimize_prompt",
]
