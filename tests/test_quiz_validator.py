import copy

import pytest

from models.quiz_models import McqQuestion, Quiz, validate_quiz
from utils.errors import SchemaViolation


VALID_QUIZ = {
    "source": {"kind": "url", "value": "https://fa.wikipedia.org/wiki/فتوسنتز"},
    "durationMinutes": 1,
    "questions": [
        {
            "id": "q1",
            "type": "mcq",
            "prompt": "کدام اندامک محل فتوسنتز است؟",
            "options": ["میتوکندری", "کلروپلاست", "هسته", "ریبوزوم"],
            "answerIndex": 1,
        },
        {
            "id": "q2",
            "type": "free",
            "prompt": "نقش نور در فتوسنتز را توضیح دهید.",
            "idealAnswer": "نور انرژی لازم برای شکستن آب و ساخت ATP را فراهم می‌کند.",
        },
    ],
}


def quiz_with(**changes):
    quiz = copy.deepcopy(VALID_QUIZ)
    for path, value in changes.items():
        target = quiz
        keys = path.split("__")
        for key in keys[:-1]:
            target = target[int(key)] if key.isdigit() else target[key]
        last = keys[-1]
        if value is None:
            del target[last]
        else:
            target[last] = value
    return quiz


def test_valid_quiz_passes():
    quiz = validate_quiz(VALID_QUIZ)

    assert isinstance(quiz, Quiz)
    assert isinstance(quiz.questions[0], McqQuestion)
    assert quiz.model_dump(by_alias=True) == VALID_QUIZ


def test_quiz_instance_is_revalidated():
    quiz = validate_quiz(VALID_QUIZ)
    assert validate_quiz(quiz) == quiz


def test_mcq_with_three_options_is_rejected():
    with pytest.raises(SchemaViolation) as exc_info:
        validate_quiz(quiz_with(questions__0__options=["a", "b", "c"]))
    assert "Invalid quiz" in exc_info.value.message


@pytest.mark.parametrize("changes", [
    {"questions__0__options": ["a", "b", "c", "d", "e"]},
    {"questions__0__answerIndex": 4},
    {"questions__0__answerIndex": -1},
    {"questions__0__answerIndex": "1"},
    {"questions__0__options": None},
    {"questions__1__idealAnswer": None},
    {"questions__1__type": "essay"},
    {"questions__0__type": "free"},
    {"questions__1__id": "q1"},
    {"durationMinutes": 0},
    {"durationMinutes": 121},
    {"source__kind": "pdf"},
    {"source": None},
    {"questions": None},
])
def test_schema_violations_are_rejected(changes):
    with pytest.raises(SchemaViolation):
        validate_quiz(quiz_with(**changes))


def test_duration_upper_bound_is_inclusive():
    assert validate_quiz(quiz_with(durationMinutes=120)).duration_minutes == 120


def test_quiz_is_immutable():
    quiz = validate_quiz(VALID_QUIZ)
    with pytest.raises(Exception):
        quiz.duration_minutes = 5
