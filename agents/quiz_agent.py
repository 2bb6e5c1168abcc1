import json
import logging
import uuid
from typing import Any, Callable, List, Sequence, Tuple, TypeVar

from langchain_core.prompts import ChatPromptTemplate
from pydantic import ValidationError

from agents.llm_client import JSON_OBJECT_FORMAT, ChatClient
from models.quiz_models import (
    FreeQuestion,
    McqQuestion,
    Quiz,
    RawFreeItem,
    RawMcqItem,
    RawQuizOutput,
    SourceDescriptor,
    validate_quiz,
)
from utils.errors import MalformedResponseError, SchemaViolation, describe_validation_errors


logger = logging.getLogger(__name__)

T = TypeVar("T")

QUIZ_SYSTEM_PROMPT = (
    "You are an educational quiz generator for Persian (Farsi) students in Iran. "
    "Generate concise, accurate questions from provided material. Output STRICT JSON only."
)

QUIZ_FORMAT_INSTRUCTIONS = (
    "Return JSON with mcqs and frees arrays. MCQs: id, prompt (fa), 4 options (fa), answerIndex. "
    "Frees: id, prompt (fa), idealAnswer (fa)."
)


def question_counts(duration_minutes: int) -> Tuple[int, int, int]:
    """Return (total, num_mcq, num_free) for a quiz of the given length."""
    total = duration_minutes * 2
    num_mcq = total // 2
    num_free = total - num_mcq
    return total, num_mcq, num_free


def interleave_questions(mcqs: Sequence[T], frees: Sequence[T]) -> List[T]:
    """
    Alternate two question lists, MCQ first.

    Even positions take the next MCQ (or a free item once MCQs run out), odd
    positions the next free item (or an MCQ once free items run out).
    Order within each list is kept.
    """
    result: List[T] = []
    mi = fi = 0
    for position in range(len(mcqs) + len(frees)):
        take_mcq = mi < len(mcqs) if position % 2 == 0 else fi >= len(frees)
        if take_mcq:
            result.append(mcqs[mi])
            mi += 1
        else:
            result.append(frees[fi])
            fi += 1
    return result


def parse_json_object(content: str) -> dict:
    """
    Parse a model reply that should be a single JSON object.

    Raises:
        MalformedResponseError: if the reply is not a JSON object.
    """
    text = content.strip()

    # Clean up the response if it has markdown code blocks
    if text.startswith("```"):
        text = text[3:]
        if text.startswith("json"):
            text = text[4:]
        text = text.rsplit("```", 1)[0].strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"reply is not JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedResponseError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def new_question_id() -> str:
    return uuid.uuid4().hex[:8]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _answer_index(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        return 0
    return min(max(value, 0), 3)


def _options(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [_text(option) for option in value[:4]]


class QuizAgent:
    def __init__(self, chat_client: ChatClient, id_factory: Callable[[], str] = new_question_id):
        self.chat_client = chat_client
        self.id_factory = id_factory

    def compose(self, material: str, duration_minutes: int, source: SourceDescriptor) -> Quiz:
        """
        Generate a validated quiz of ``2 * duration_minutes`` questions.

        The model is asked for an even split of MCQ and free-response
        questions; its answer is coerced, interleaved MCQ-first, cut to the
        requested total and validated. A model that returns fewer questions
        than asked yields a shorter quiz.

        Raises:
            UpstreamError: if the model call fails.
            MalformedResponseError: if the reply is not a JSON object of the expected shape.
            SchemaViolation: if the assembled quiz breaks the quiz schema.
        """
        total, num_mcq, num_free = question_counts(duration_minutes)

        raw = self._request_questions(material, num_mcq, num_free)
        mcqs, frees = self._coerce_questions(raw)
        logger.info(
            f"Model returned {len(mcqs)} MCQs and {len(frees)} free questions "
            f"(asked for {num_mcq} and {num_free})"
        )

        questions = interleave_questions(mcqs, frees)[:total]

        candidate = {
            "source": source.model_dump(),
            "durationMinutes": duration_minutes,
            "questions": [question.model_dump(by_alias=True) for question in questions],
        }
        return validate_quiz(candidate)

    def _request_questions(self, material: str, num_mcq: int, num_free: int) -> RawQuizOutput:
        payload = {
            "language": "fa",
            "material": material,
            "requirements": {
                "numMcq": num_mcq,
                "numFree": num_free,
                "format": QUIZ_FORMAT_INSTRUCTIONS,
                "level": "concise, exam-like, balanced coverage",
            },
        }
        prompt_template = ChatPromptTemplate.from_messages([
            ("system", QUIZ_SYSTEM_PROMPT),
            ("human", "{payload}"),
        ])
        messages = prompt_template.format_messages(payload=json.dumps(payload, ensure_ascii=False))

        content = self.chat_client.chat(messages, response_format=JSON_OBJECT_FORMAT, purpose="quiz")
        parsed = parse_json_object(content)
        try:
            return RawQuizOutput.model_validate(parsed)
        except ValidationError as e:
            raise MalformedResponseError(describe_validation_errors(e.errors())) from e

    def _coerce_questions(self, raw: RawQuizOutput) -> Tuple[List[McqQuestion], List[FreeQuestion]]:
        used_ids: set = set()

        def question_id(value: Any) -> str:
            qid = _text(value) if value not in (None, "") else ""
            while not qid or qid in used_ids:
                qid = self.id_factory()
            used_ids.add(qid)
            return qid

        try:
            mcqs = []
            for item in raw.mcqs or []:
                entry = RawMcqItem.model_validate(item if isinstance(item, dict) else {})
                mcqs.append(McqQuestion(
                    id=question_id(entry.id),
                    prompt=_text(entry.prompt),
                    options=_options(entry.options),
                    answer_index=_answer_index(entry.answer_index),
                ))

            frees = []
            for item in raw.frees or []:
                entry = RawFreeItem.model_validate(item if isinstance(item, dict) else {})
                frees.append(FreeQuestion(
                    id=question_id(entry.id),
                    prompt=_text(entry.prompt),
                    ideal_answer=_text(entry.ideal_answer),
                ))
        except ValidationError as e:
            raise SchemaViolation(f"Invalid quiz: {describe_validation_errors(e.errors())}") from e

        return mcqs, frees
