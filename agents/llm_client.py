import logging
import time
from typing import Any, Dict, List, Optional

import openai
from langchain.chat_models import init_chat_model
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage

from utils.config import DEFAULT_MODEL, Settings
from utils.errors import UpstreamError
from utils.logging import log_ai_request


logger = logging.getLogger(__name__)

JSON_OBJECT_FORMAT = {"type": "json_object"}


class ChatClient:
    def __init__(self, llm_model: BaseChatModel, model_name: str = DEFAULT_MODEL, temperature: float = 0.3):
        """
        Wrap a LangChain chat model behind a single chat-completion call.

        The client holds no per-request state and is shared by every agent.
        """
        self.llm_model = llm_model
        self.model_name = model_name
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatClient":
        """
        Build a client for the OpenAI-compatible DeepSeek endpoint.

        Raises:
            ConfigurationError: if no API key is configured.
        """
        settings.validate_config()
        llm_model = init_chat_model(
            settings.model,
            model_provider="openai",
            api_key=settings.api_key,
            base_url=settings.normalized_base_url,
            temperature=settings.temperature,
            max_retries=0,
        )
        logger.info(f"Chat client ready for {settings.model} at {settings.normalized_base_url}")
        return cls(llm_model, model_name=settings.model, temperature=settings.temperature)

    def chat(
        self,
        messages: List[BaseMessage],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        response_format: Optional[Dict[str, Any]] = None,
        purpose: str = "chat",
    ) -> str:
        """
        Send one chat completion and return the reply text.

        Args:
            messages: Ordered system/human messages.
            model: Override for the configured model name.
            temperature: Override for the configured temperature.
            response_format: e.g. ``{"type": "json_object"}`` for structured output.
            purpose: Label used in the AI request log line.

        Raises:
            UpstreamError: if the model endpoint fails or answers with a non-2xx status.
        """
        params: Dict[str, Any] = {
            "temperature": self.temperature if temperature is None else temperature
        }
        if model:
            params["model"] = model
        if response_format:
            params["response_format"] = response_format

        start_time = time.time()
        try:
            response = self.llm_model.bind(**params).invoke(messages)
        except openai.APIStatusError as e:
            raise UpstreamError(f"Model error {e.status_code}: {e.response.text}") from e
        except openai.APIError as e:
            raise UpstreamError(f"Model request failed: {e.message}") from e
        finally:
            duration_ms = (time.time() - start_time) * 1000
            log_ai_request(purpose, f"Model: {model or self.model_name}", duration_ms)

        return str(response.content)
