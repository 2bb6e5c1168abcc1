import json
import math

import pytest

from agents.evaluator_agent import FEEDBACK_CORRECT, FEEDBACK_INCORRECT, EvaluatorAgent, clamp_score
from models.api_models import QuestionPayload
from utils.errors import MalformedResponseError


MCQ = QuestionPayload(
    id="q1",
    type="mcq",
    prompt="کدام گزینه درست است؟",
    options=["الف", "ب", "ج", "د"],
    answer_index=2,
)

FREE = QuestionPayload(
    id="q2",
    type="free",
    prompt="فتوسنتز چیست؟",
    ideal_answer="فرایند ساخت قند از نور، آب و کربن دی‌اکسید.",
)


@pytest.mark.parametrize("answer,correct", [
    ("2", True),
    (" 2 ", True),
    ("0", False),
    ("3", False),
    ("two", False),
    ("", False),
    ("2.0", True),
    ("2.5", False),
    ("nan", False),
])
def test_mcq_is_graded_locally(make_client, answer, correct):
    chat_client, model = make_client()
    result = EvaluatorAgent(chat_client).evaluate(MCQ, answer)

    assert result.correct is correct
    assert result.score == (1 if correct else 0)
    assert result.feedback == (FEEDBACK_CORRECT if correct else FEEDBACK_INCORRECT)
    assert model.calls == []


def test_mcq_without_answer_index_defaults_to_first_option(make_client):
    chat_client, _ = make_client()
    question = QuestionPayload(id="q", type="mcq", prompt="p")

    assert EvaluatorAgent(chat_client).evaluate(question, "0").correct is True


def test_free_answer_is_graded_by_model(make_client):
    reply = json.dumps({"correct": True, "score": 0.8, "feedback": "پاسخ خوبی است."}, ensure_ascii=False)
    chat_client, model = make_client(reply)

    result = EvaluatorAgent(chat_client).evaluate(FREE, "ساخت قند با نور")

    assert result.correct is True
    assert result.score == 0.8
    assert result.feedback == "پاسخ خوبی است."

    payload = model.last_payload
    assert payload["prompt"] == FREE.prompt
    assert payload["idealAnswer"] == FREE.ideal_answer
    assert payload["student"] == "ساخت قند با نور"
    assert payload["language"] == "fa"
    assert model.calls[0]["kwargs"]["response_format"] == {"type": "json_object"}


@pytest.mark.parametrize("score,expected", [
    (1.5, 1.0),
    (-0.2, 0.0),
    (None, 0.0),
    ("0.5", 0.5),
    ("high", 0.0),
    ([1], 0.0),
])
def test_free_answer_score_is_clamped(make_client, score, expected):
    reply = {"correct": False, "feedback": "ناقص"}
    if score is not None:
        reply["score"] = score
    chat_client, _ = make_client(json.dumps(reply))

    assert EvaluatorAgent(chat_client).evaluate(FREE, "answer").score == expected


def test_free_answer_missing_fields_are_defaulted(make_client):
    chat_client, _ = make_client("{}")
    result = EvaluatorAgent(chat_client).evaluate(FREE, "answer")

    assert result.correct is False
    assert result.score == 0
    assert result.feedback == ""


def test_free_answer_with_unparseable_reply_fails(make_client):
    chat_client, _ = make_client("score: 1")

    with pytest.raises(MalformedResponseError):
        EvaluatorAgent(chat_client).evaluate(FREE, "answer")


@pytest.mark.parametrize("value,expected", [
    (True, 1.0),
    (False, 0.0),
    (0.25, 0.25),
    (7, 1.0),
    (math.nan, 0.0),
    ({}, 0.0),
])
def test_clamp_score(value, expected):
    assert clamp_score(value) == expected
