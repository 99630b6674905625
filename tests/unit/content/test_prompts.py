"""Tests for content requests and prompt construction."""

import pytest
from pydantic import ValidationError

from call_governor.config import ContentCategory
from call_governor.content.prompts import (
    ContentRequest,
    build_turns,
    normalize_grade_level,
    optimize_prompt,
)
from call_governor.fingerprint import fingerprint
from call_governor.providers.base import ChatTurn


class TestNormalizeGradeLevel:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1, "k-3"),
            ("3", "k-3"),
            ("5th", "4-6"),
            (6, "4-6"),
            ("8", "7-9"),
            (12, "7-9"),
            ("k-3", "k-3"),
            ("7-9", "7-9"),
            ("Kindergarten", "k-3"),
            ("middle school", "4-6"),
            ("High School", "7-9"),
            ("", "4-6"),
            (None, "4-6"),
            ("unknown", "4-6"),
        ],
    )
    def test_mapping(self, value, expected):
        assert normalize_grade_level(value) == expected


class TestOptimizePrompt:
    def test_removes_filler_and_collapses_whitespace(self):
        text = "Please   make it very clear.\n\n I want you to explain   really well."
        assert optimize_prompt(text) == "make it clear. explain well."


class TestContentRequest:
    def test_grade_level_is_normalized(self):
        request = ContentRequest(category=ContentCategory.LESSON, grade_level="2")
        assert request.grade_level == "k-3"

    def test_question_count_bounds(self):
        with pytest.raises(ValidationError):
            ContentRequest(category=ContentCategory.QUIZ, question_count=0)

    def test_focus_prefers_subtopic(self):
        request = ContentRequest(
            category=ContentCategory.LESSON, topic="Fractions", subtopic="Halves"
        )
        assert request.focus == "Halves"

    def test_skip_cache_does_not_change_fingerprint(self):
        base = ContentRequest(category=ContentCategory.LESSON, topic="Fractions")
        forced = base.model_copy(update={"skip_cache": True})
        assert fingerprint(base.cache_key_fields()) == fingerprint(forced.cache_key_fields())

    def test_equivalent_grades_share_fingerprint(self):
        a = ContentRequest(category=ContentCategory.LESSON, topic="Fractions", grade_level="5")
        b = ContentRequest(category=ContentCategory.LESSON, topic="Fractions", grade_level="4-6")
        assert fingerprint(a.cache_key_fields()) == fingerprint(b.cache_key_fields())

    def test_turns_are_part_of_key(self):
        a = ContentRequest(category=ContentCategory.CHAT, turns=[ChatTurn("user", "hi")])
        b = ContentRequest(category=ContentCategory.CHAT, turns=[ChatTurn("user", "bye")])
        assert fingerprint(a.cache_key_fields()) != fingerprint(b.cache_key_fields())


class TestBuildTurns:
    def test_lesson_turns(self, lesson_request):
        turns = build_turns(lesson_request)
        assert [t.role for t in turns] == ["system", "user"]
        assert "Math" in turns[0].content
        assert '"Fractions"' in turns[1].content
        assert "JSON" in turns[1].content

    def test_quiz_mentions_question_count(self, quiz_request):
        assert "3 questions" in build_turns(quiz_request)[1].content

    def test_subtopic_note(self):
        request = ContentRequest(
            category=ContentCategory.GAME, subject="Math", topic="Fractions", subtopic="Halves"
        )
        assert 'subtopic "Halves"' in build_turns(request)[1].content

    def test_language_note(self):
        request = ContentRequest(category=ContentCategory.QUIZ, topic="Fractions", language="es")
        assert "'es'" in build_turns(request)[1].content

    def test_chat_keeps_conversation(self):
        history = [ChatTurn("user", "What is a fraction?"), ChatTurn("assistant", "A part.")]
        request = ContentRequest(category=ContentCategory.CHAT, subject="Math", turns=history)
        turns = build_turns(request)
        assert turns[0].role == "system"
        assert "Learning Buddy" in turns[0].content
        assert turns[1:] == history

    def test_chat_without_history(self):
        request = ContentRequest(category=ContentCategory.CHAT, topic="Volcanoes")
        turns = build_turns(request)
        assert turns[-1].role == "user"
        assert "Volcanoes" in turns[-1].content
