import json
import logging
import math
from typing import Any, Optional

from langchain_core.prompts import ChatPromptTemplate

from agents.llm_client import JSON_OBJECT_FORMAT, ChatClient
from agents.quiz_agent import parse_json_object
from models.api_models import QuestionPayload
from models.quiz_models import EvaluationResult


logger = logging.getLogger(__name__)

FEEDBACK_CORRECT = "درست"
FEEDBACK_INCORRECT = "نادرست"

GRADER_SYSTEM_PROMPT = (
    "You are an Iranian tutor. Evaluate student free-response briefly in Persian. "
    "Return JSON {{correct:boolean, feedback:string, score:number between 0 and 1}}."
)


def _parse_index(answer: str) -> Optional[int]:
    """Read an option index; integral decimals such as "2.0" count, blanks do not."""
    try:
        value = float(answer.strip())
    except ValueError:
        return None
    if not value.is_integer():
        return None
    return int(value)


def clamp_score(value: Any) -> float:
    """Coerce a model-supplied score into [0, 1]; unusable values become 0."""
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0.0
    if not isinstance(value, (int, float)) or math.isnan(value):
        return 0.0
    return float(min(max(value, 0), 1))


class EvaluatorAgent:
    def __init__(self, chat_client: ChatClient):
        self.chat_client = chat_client

    def evaluate(self, question: QuestionPayload, user_answer: str) -> EvaluationResult:
        if question.type == "mcq":
            return self.evaluate_mcq(question, user_answer)
        return self.evaluate_free(question, user_answer)

    def evaluate_mcq(self, question: QuestionPayload, user_answer: str) -> EvaluationResult:
        correct_index = question.answer_index if question.answer_index is not None else 0
        correct = _parse_index(user_answer) == correct_index
        return EvaluationResult(
            correct=correct,
            score=1 if correct else 0,
            feedback=FEEDBACK_CORRECT if correct else FEEDBACK_INCORRECT,
        )

    def evaluate_free(self, question: QuestionPayload, user_answer: str) -> EvaluationResult:
        """
        Grade a free-response answer with the model.

        The same answer may be scored differently on repeated calls.

        Raises:
            UpstreamError: if the model call fails.
            MalformedResponseError: if the reply is not a JSON object.
        """
        payload = {
            "prompt": question.prompt,
            "idealAnswer": question.ideal_answer,
            "student": user_answer,
            "language": "fa",
        }
        prompt_template = ChatPromptTemplate.from_messages([
            ("system", GRADER_SYSTEM_PROMPT),
            ("human", "{payload}"),
        ])
        messages = prompt_template.format_messages(payload=json.dumps(payload, ensure_ascii=False))

        content = self.chat_client.chat(messages, response_format=JSON_OBJECT_FORMAT, purpose="evaluate")
        parsed = parse_json_object(content)

        feedback = parsed.get("feedback")
        result = EvaluationResult(
            correct=bool(parsed.get("correct")),
            score=clamp_score(parsed.get("score")),
            feedback=str(feedback) if feedback else "",
        )
        logger.info(f"Graded free answer for question {question.id}: score={result.score}")
        return result
