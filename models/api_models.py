from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateQuizRequest(ApiModel):
    input_type: Literal["url", "topic"] = Field(..., description="Kind of source: a web page URL or a free-text topic")
    value: str = Field(..., min_length=1, description="The URL or the topic text")
    duration_minutes: int = Field(..., ge=1, le=60, description="Target quiz duration in minutes")

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def _numeric_duration(cls, value):
        # 1.0 is accepted as 1; strings and booleans are not numbers here
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("durationMinutes must be a number")
        return value


class QuestionPayload(ApiModel):
    """A question as sent back by a client; variant fields are optional"""
    id: str
    type: Literal["mcq", "free"]
    prompt: str
    options: Optional[List[str]] = None
    answer_index: Optional[int] = None
    ideal_answer: Optional[str] = None


class EvaluateRequest(ApiModel):
    question: QuestionPayload
    user_answer: str = Field(..., description="The student's answer; an option index for MCQs")


class QARecord(ApiModel):
    prompt: str
    type: Literal["mcq", "free"]
    ideal_answer: Optional[str] = None
    user_answer: Optional[str] = None
    correct: Optional[bool] = None
    feedback: Optional[str] = None


class SummaryRequest(ApiModel):
    qa: List[QARecord] = Field(..., description="Ordered question/answer transcript")


class SummaryResponse(BaseModel):
    summary: str


class HealthResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    error: str
