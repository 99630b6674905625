# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Static fallback content.

Served when live generation is unavailable (throttled with an empty cache,
or every provider failed). Fallbacks are clearly inferior but always
well-formed canonical content.
"""

from ..config import ContentCategory
from ..content.models import (
    Activity,
    CanonicalContent,
    Chapter,
    ChatReply,
    GameContent,
    GameVariations,
    LessonContent,
    QuizContent,
    QuizQuestion,
)
from ..content.normalizer import PlaceholderStyle, placeholder_image
from ..content.prompts import ContentRequest


def _q(question: str, options: list[str], answer: int, explanation: str) -> QuizQuestion:
    return QuizQuestion(
        question=question,
        options=options,
        correct_answer=answer,
        explanation=explanation,
    )


FALLBACK_QUESTIONS: dict[str, list[QuizQuestion]] = {
    "math": [
        _q("What is 8 + 5?", ["12", "13", "14", "15"], 1, "8 + 5 = 13"),
        _q("What is 7 × 6?", ["36", "42", "48", "54"], 1, "7 × 6 = 42"),
        _q("What is half of 36?", ["16", "18", "20", "24"], 1, "Half of 36 is 36 ÷ 2 = 18"),
        _q("What is 24 ÷ 6?", ["3", "4", "6", "8"], 1, "24 ÷ 6 = 4"),
        _q(
            "What comes next in the sequence: 2, 4, 6, 8, ...?",
            ["9", "10", "11", "12"],
            1,
            "The sequence increases by 2 each time, so 8 + 2 = 10",
        ),
    ],
    "science": [
        _q(
            "Which of these is a renewable energy source?",
            ["Coal", "Solar", "Oil", "Natural gas"],
            1,
            "Solar energy comes from the sun which is renewable, unlike fossil "
            "fuels like coal, oil, and natural gas.",
        ),
        _q(
            "What is the largest organ in the human body?",
            ["Heart", "Brain", "Skin", "Liver"],
            2,
            "The skin is the largest organ, covering the entire exterior of the body.",
        ),
        _q(
            "Which gas do plants absorb from the atmosphere?",
            ["Oxygen", "Carbon dioxide", "Nitrogen", "Hydrogen"],
            1,
            "Plants absorb carbon dioxide from the atmosphere during photosynthesis.",
        ),
        _q(
            "What is the hardest natural substance on Earth?",
            ["Gold", "Iron", "Diamond", "Granite"],
            2,
            "Diamond is the hardest naturally occurring substance.",
        ),
        _q(
            "Which of these is NOT a state of matter?",
            ["Solid", "Liquid", "Gas", "Energy"],
            3,
            "The three common states of matter are solid, liquid, and gas. "
            "Energy is a form of power, not a state of matter.",
        ),
    ],
    "english": [
        _q(
            "Which of these is a noun?",
            ["Run", "Beautiful", "House", "Quickly"],
            2,
            "A noun is a person, place, thing, or idea. 'House' is a thing, "
            "making it a noun.",
        ),
        _q(
            "What is the past tense of 'eat'?",
            ["Eating", "Eaten", "Ate", "Eated"],
            2,
            "The past tense of 'eat' is 'ate'.",
        ),
        _q(
            "Which punctuation mark ends a statement?",
            ["Period (.)", "Question mark (?)", "Exclamation point (!)", "Comma (,)"],
            0,
            "A period (.) is used to end a statement.",
        ),
        _q(
            "What is an antonym for 'happy'?",
            ["Sad", "Joyful", "Excited", "Pleased"],
            0,
            "An antonym is a word that means the opposite. 'Sad' is the "
            "opposite of 'happy'.",
        ),
        _q(
            "Which of these is an adjective?",
            ["Quickly", "Beautiful", "Run", "Talk"],
            1,
            "An adjective describes a noun. 'Beautiful' describes how something looks.",
        ),
    ],
    "default": [
        _q(
            "What is the capital of France?",
            ["London", "Paris", "Berlin", "Madrid"],
            1,
            "Paris is the capital city of France.",
        ),
        _q(
            "Which planet is known as the Red Planet?",
            ["Earth", "Mars", "Jupiter", "Venus"],
            1,
            "Mars is known as the Red Planet due to its reddish appearance.",
        ),
        _q("How many sides does a hexagon have?", ["5", "6", "7", "8"], 1, "A hexagon has 6 sides."),
        _q(
            "What is H2O commonly known as?",
            ["Oxygen", "Hydrogen", "Water", "Carbon dioxide"],
            2,
            "H2O is the chemical formula for water.",
        ),
        _q(
            "Which animal is known as the 'King of the Jungle'?",
            ["Tiger", "Lion", "Elephant", "Giraffe"],
            1,
            "The lion is often called the 'King of the Jungle'.",
        ),
    ],
}

FALLBACK_CHAT_MESSAGE = (
    "I'm taking a short break to catch my breath! Please ask me again in a "
    "minute, and keep up the great learning."
)


def question_bank_for(subject: str) -> list[QuizQuestion]:
    """Pick the static question bank matching a subject."""
    subject = subject.lower()
    if "math" in subject:
        return FALLBACK_QUESTIONS["math"]
    if "science" in subject:
        return FALLBACK_QUESTIONS["science"]
    if "english" in subject or "language" in subject:
        return FALLBACK_QUESTIONS["english"]
    return FALLBACK_QUESTIONS["default"]


def fallback_lesson(request: ContentRequest) -> LessonContent:
    topic = request.focus or "this topic"
    subject = request.subject or "learning"
    headings = [f"Introduction to {topic}", "Key Concepts"]
    texts = [
        f"{topic} is an important concept in {subject}.",
        f"The main principles of {topic} build on ideas you already know.",
    ]
    return LessonContent(
        title=f"Learning about {topic}",
        introduction=f"This lesson explores key concepts of {topic} in {subject}.",
        chapters=[
            Chapter(heading=h, text=t, image=placeholder_image(topic, h))
            for h, t in zip(headings, texts)
        ],
        activity=Activity(
            title=f"{topic} Activity",
            instructions=f"Practice applying what you know about {topic}.",
            image=placeholder_image(topic, "Activity", PlaceholderStyle.ACTIVITY),
        ),
        conclusion=f"We've explored the fundamentals of {topic}.",
        summary=f"We've explored the fundamentals of {topic}.",
    )


def fallback_quiz(request: ContentRequest) -> QuizContent:
    bank = question_bank_for(request.subject)
    questions = list(bank)
    while len(questions) < request.question_count:
        questions.extend(bank)
    return QuizContent(
        title=f"{request.focus} Quiz".strip(),
        questions=questions[: request.question_count],
    )


def fallback_game(request: ContentRequest) -> GameContent:
    topic = request.focus or "this topic"
    title = f"{topic} Treasure Hunt"
    return GameContent(
        title=title,
        objective=f"Review what you know about {topic}.",
        materials=["Paper", "Pencil", "Small household objects"],
        setup="Write five facts or questions on separate pieces of paper and hide them.",
        instructions=(
            "Find each hidden paper, read it aloud and explain the idea in your "
            "own words before looking for the next one."
        ),
        variations=GameVariations(
            easier="Hide fewer papers and use pictures instead of words.",
            harder="Add a timer and ask a follow-up question for each fact.",
        ),
        learning_objectives=[f"Recall key ideas about {topic}"],
        concepts_reinforced=[topic],
        image=placeholder_image(topic, title, PlaceholderStyle.GAME),
    )


def fallback_chat(request: ContentRequest) -> ChatReply:
    return ChatReply(message=FALLBACK_CHAT_MESSAGE)


_FALLBACKS = {
    ContentCategory.LESSON: fallback_lesson,
    ContentCategory.QUIZ: fallback_quiz,
    ContentCategory.GAME: fallback_game,
    ContentCategory.CHAT: fallback_chat,
}


def fallback_content(request: ContentRequest) -> CanonicalContent:
    """Schema-valid static content for a request's category."""
    return _FALLBACKS[request.category](request)


__all__ = [
    "FALLBACK_CHAT_MESSAGE",
    "FALLBACK_QUESTIONS",
    "fallback_content",
    "question_bank_for",
]
