import logging
import uvicorn
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import APIRouter, FastAPI, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from utils.config import Settings
from utils.errors import MalformedResponseError, QuizServiceError, describe_validation_errors
from utils.logging import service_logger
from utils.request_middleware import RequestLoggingMiddleware, PerformanceLoggingMiddleware

from agents.llm_client import ChatClient
from agents.material_agent import MaterialAgent
from agents.quiz_agent import QuizAgent
from agents.evaluator_agent import EvaluatorAgent
from agents.summary_agent import SummaryAgent
from models.quiz_models import EvaluationResult, Quiz, SourceDescriptor
from models.api_models import (
    GenerateQuizRequest, EvaluateRequest, SummaryRequest,
    SummaryResponse, HealthResponse, ErrorResponse
)


logger = logging.getLogger(__name__)

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}}

router = APIRouter()


def get_material_agent(request: Request) -> MaterialAgent:
    return request.app.state.material_agent

def get_quiz_agent(request: Request) -> QuizAgent:
    return request.app.state.quiz_agent

def get_evaluator_agent(request: Request) -> EvaluatorAgent:
    return request.app.state.evaluator_agent

def get_summary_agent(request: Request) -> SummaryAgent:
    return request.app.state.summary_agent


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(ok=True)

@router.post("/generateQuiz", response_model=Quiz, responses=ERROR_RESPONSES)
async def generate_quiz(
    data: GenerateQuizRequest,
    material_agent: MaterialAgent = Depends(get_material_agent),
    quiz_agent: QuizAgent = Depends(get_quiz_agent)
):
    source = SourceDescriptor(kind=data.input_type, value=data.value)

    material = await run_in_threadpool(material_agent.acquire, source)
    quiz = await run_in_threadpool(quiz_agent.compose, material, data.duration_minutes, source)

    logger.info(f"Generated quiz with {len(quiz.questions)} questions from {source.kind} source")
    return quiz

@router.post("/evaluate", response_model=EvaluationResult, responses=ERROR_RESPONSES)
async def evaluate_answer(
    data: EvaluateRequest,
    evaluator_agent: EvaluatorAgent = Depends(get_evaluator_agent)
):
    return await run_in_threadpool(evaluator_agent.evaluate, data.question, data.user_answer)

@router.post("/summary", response_model=SummaryResponse, responses=ERROR_RESPONSES)
async def summarize_session(
    data: SummaryRequest,
    summary_agent: SummaryAgent = Depends(get_summary_agent)
):
    summary = await run_in_threadpool(summary_agent.summarize, data.qa)
    return SummaryResponse(summary=summary)


async def quiz_service_error_handler(request: Request, exc: QuizServiceError):
    if isinstance(exc, MalformedResponseError):
        logger.error(f"Unparseable model output on {request.url.path}: {exc.detail}")
    else:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    message = describe_validation_errors(exc.errors())
    logger.warning(f"Rejected request body on {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"error": message})


def create_app(
    settings: Optional[Settings] = None,
    chat_client: Optional[ChatClient] = None,
    material_agent: Optional[MaterialAgent] = None
) -> FastAPI:
    """
    Build the quiz API.

    The chat client and material agent are created from settings at startup
    unless they are passed in.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            client = chat_client or ChatClient.from_settings(settings)
            app.state.material_agent = material_agent or MaterialAgent(timeout=settings.fetch_timeout)
            app.state.quiz_agent = QuizAgent(client)
            app.state.evaluator_agent = EvaluatorAgent(client)
            app.state.summary_agent = SummaryAgent(client)
            logger.info("Agents initialized")
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

        yield

        if material_agent is None:
            app.state.material_agent.session.close()
        logger.info("Application shutting down")

    app = FastAPI(
        title="Persian Quiz API",
        description="Generates Persian quizzes from a web page or topic and grades the answers",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(PerformanceLoggingMiddleware, slow_request_threshold_ms=1000)
    app.add_middleware(RequestLoggingMiddleware, log_periodic_stats_interval=300)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(QuizServiceError, quiz_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    app.include_router(router)
    app.include_router(router, prefix="/api", include_in_schema=False)

    return app


settings = Settings.from_env()
service_logger.configure(settings.log_file, settings.log_level)
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
