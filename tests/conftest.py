import itertools
import json
from typing import Any, Dict, List, Optional

import httpx
import openai
import pytest
import requests
from fastapi.testclient import TestClient
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

from agents.llm_client import ChatClient
from agents.material_agent import MaterialAgent
from quiz_server.main import create_app
from utils.config import Settings


class RecordingChatModel(BaseChatModel):
    """Replays canned replies in order and records every call it receives"""

    responses: List[Any] = Field(default_factory=list)
    calls: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "recording"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.calls.append({"messages": messages, "kwargs": kwargs})
        reply = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(reply, Exception):
            raise reply
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=reply))])

    @property
    def last_payload(self) -> Dict[str, Any]:
        return json.loads(self.calls[-1]["messages"][-1].content)


class FakeSession:
    """Stands in for requests.Session; maps URLs to (status, html) or an exception"""

    def __init__(self, pages: Optional[Dict[str, Any]] = None):
        self.pages = pages or {}
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url, **kwargs):
        self.requests.append({"url": url, **kwargs})
        page = self.pages.get(url, (404, "not found"))
        if isinstance(page, Exception):
            raise page
        status, html = page
        response = requests.Response()
        response.status_code = status
        response._content = html.encode("utf-8")
        response.encoding = "utf-8"
        response.url = url
        return response

    def close(self):
        self.closed = True


def api_status_error(status: int = 503, body: str = "upstream busy") -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.deepseek.com/v1/chat/completions")
    response = httpx.Response(status, request=request, text=body)
    return openai.APIStatusError(body, response=response, body=None)


def build_quiz_reply(num_mcq: int = 1, num_free: int = 1, **overrides) -> str:
    reply = {
        "mcqs": [
            {
                "id": f"m{i}",
                "prompt": f"پرسش چهارگزینه‌ای {i}",
                "options": ["گزینه الف", "گزینه ب", "گزینه ج", "گزینه د"],
                "answerIndex": i % 4,
            }
            for i in range(num_mcq)
        ],
        "frees": [
            {
                "id": f"f{i}",
                "prompt": f"پرسش تشریحی {i}",
                "idealAnswer": f"پاسخ نمونه {i}",
            }
            for i in range(num_free)
        ],
    }
    reply.update(overrides)
    return json.dumps(reply, ensure_ascii=False)


@pytest.fixture
def quiz_reply():
    return build_quiz_reply


@pytest.fixture
def status_error():
    return api_status_error


@pytest.fixture
def make_model():
    def _make(*responses) -> RecordingChatModel:
        return RecordingChatModel(responses=list(responses))
    return _make


@pytest.fixture
def make_client(make_model):
    def _make(*responses):
        model = make_model(*responses)
        return ChatClient(model, model_name="deepseek-chat", temperature=0.3), model
    return _make


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"gen{next(counter)}"


@pytest.fixture
def make_api(make_client):
    """Yields a factory for a TestClient wired to fake model and network"""
    clients = []

    def _make(*responses, pages=None):
        chat_client, model = make_client(*responses)
        session = FakeSession(pages)
        app = create_app(
            Settings(api_key="test-key"),
            chat_client=chat_client,
            material_agent=MaterialAgent(session=session),
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client, model, session

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


ARTICLE_HTML_FOR_API = """
<html>
  <head><title>Chloroplasts</title></head>
  <body>
    <article>
      <p>Chloroplasts are organelles that conduct photosynthesis in plant and algal cells.
      They capture light energy with chlorophyll and store it in sugar molecules, releasing
      oxygen as a by-product of splitting water inside the thylakoid membranes.</p>
      <p>Each chloroplast is surrounded by a double membrane and contains stacks of thylakoids
      called grana, suspended in a fluid known as the stroma where the Calvin cycle runs.</p>
    </article>
  </body>
</html>
"""
