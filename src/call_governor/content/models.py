# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Canonical content models.

Every piece of generated material is converted into one of these shapes
before it reaches the application. Field names are snake_case in Python and
camelCase on the wire (`model_dump(by_alias=True)`), matching what the UI
consumes.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


class ContentModel(BaseModel):
    """Base for canonical content: camelCase aliases, population by name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """Serialize with camelCase keys for the UI layer."""
        return self.model_dump(mode="json", by_alias=True)


class ImageDescriptor(ContentModel):
    url: str = ""
    alt: str = ""
    caption: str = ""
    search_query: str = ""


class Chapter(ContentModel):
    heading: str
    text: str = ""
    image: ImageDescriptor


class Activity(ContentModel):
    title: str = "Activity"
    instructions: str = ""
    image: ImageDescriptor | None = None


class LessonContent(ContentModel):
    """A lesson. Always has at least one chapter."""

    kind: Literal["lesson"] = "lesson"
    title: str = ""
    introduction: str = ""
    chapters: list[Chapter]
    fun_facts: list[str] = Field(default_factory=list)
    activity: Activity | None = None
    conclusion: str = ""
    summary: str = ""

    @field_validator("chapters")
    @classmethod
    def _require_chapters(cls, chapters: list[Chapter]) -> list[Chapter]:
        if not chapters:
            raise ValueError("a lesson needs at least one chapter")
        return chapters


class QuizQuestion(ContentModel):
    question: str
    options: list[str]
    correct_answer: int
    explanation: str = ""
    question_type: str = "multiple-choice"


class QuizContent(ContentModel):
    """A quiz. An empty question list is well-formed."""

    kind: Literal["quiz"] = "quiz"
    title: str = ""
    introduction: str = ""
    questions: list[QuizQuestion] = Field(default_factory=list)
    conclusion: str = ""


class GameVariations(ContentModel):
    easier: str = ""
    harder: str = ""


class GameContent(ContentModel):
    kind: Literal["game"] = "game"
    title: str
    objective: str = ""
    materials: list[str] = Field(default_factory=list)
    setup: str = ""
    instructions: str = ""
    variations: GameVariations = Field(default_factory=GameVariations)
    learning_objectives: list[str] = Field(default_factory=list)
    concepts_reinforced: list[str] = Field(default_factory=list)
    image: ImageDescriptor | None = None


class ChatReply(ContentModel):
    """A Learning Buddy reply: plain text."""

    kind: Literal["chat"] = "chat"
    message: str


CanonicalContent = Annotated[
    Union[LessonContent, QuizContent, GameContent, ChatReply],
    Field(discriminator="kind"),
]

canonical_content_adapter: TypeAdapter[CanonicalContent] = TypeAdapter(CanonicalContent)


__all__ = [
    "Activity",
    "CanonicalContent",
    "Chapter",
    "ChatReply",
    "ContentModel",
    "GameContent",
    "GameVariations",
    "ImageDescriptor",
    "LessonContent",
    "QuizContent",
    "QuizQuestion",
    "canonical_content_adapter",
]
