from typing import Annotated, Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from utils.errors import SchemaViolation, describe_validation_errors


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SourceDescriptor(CamelModel):
    kind: Literal["url", "topic"] = Field(..., description="Where the study material comes from.")
    value: str = Field(..., description="The URL or the free-text topic.")


class McqQuestion(CamelModel):
    id: str = Field(..., description="Unique id within the quiz.")
    type: Literal["mcq"] = "mcq"
    prompt: str = Field(..., description="Question text (fa).")
    options: List[str] = Field(..., min_length=4, max_length=4, description="Exactly four options (fa).")
    answer_index: int = Field(..., ge=0, le=3, strict=True, description="Index of the correct option.")

    @model_validator(mode="after")
    def _answer_in_options(self) -> "McqQuestion":
        if self.answer_index >= len(self.options):
            raise ValueError("answerIndex must index into options")
        return self


class FreeQuestion(CamelModel):
    id: str = Field(..., description="Unique id within the quiz.")
    type: Literal["free"] = "free"
    prompt: str = Field(..., description="Question text (fa).")
    ideal_answer: str = Field(..., description="Reference answer used for grading (fa).")


Question = Annotated[Union[McqQuestion, FreeQuestion], Field(discriminator="type")]


class Quiz(CamelModel):
    source: SourceDescriptor
    duration_minutes: int = Field(..., ge=1, le=120, strict=True)
    questions: List[Question]

    @model_validator(mode="after")
    def _unique_ids(self) -> "Quiz":
        seen = set()
        for question in self.questions:
            if question.id in seen:
                raise ValueError(f"duplicate question id '{question.id}'")
            seen.add(question.id)
        return self


class EvaluationResult(CamelModel):
    correct: bool
    score: float = Field(..., ge=0, le=1)
    feedback: str = ""


# Raw model output. Every field is optional and untyped; nothing here may
# leave quiz_agent without going through the typed models above.

class RawItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Any = None
    prompt: Any = None


class RawMcqItem(RawItem):
    options: Any = None
    answer_index: Any = None


class RawFreeItem(RawItem):
    ideal_answer: Any = None


class RawQuizOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mcqs: Optional[List[Any]] = None
    frees: Optional[List[Any]] = None


def validate_quiz(candidate: Union[Quiz, Mapping[str, Any]]) -> Quiz:
    """Re-validate a candidate quiz against the canonical schema.

    This runs as the last step before a quiz is returned to a caller, so a
    malformed model answer never reaches a client.

    Raises:
        SchemaViolation: if any field, cardinality or tag is wrong.
    """
    if isinstance(candidate, Quiz):
        candidate = candidate.model_dump(by_alias=True)
    try:
        return Quiz.model_validate(candidate)
    except ValidationError as e:
        raise SchemaViolation(f"Invalid quiz: {describe_validation_errors(e.errors())}") from e
