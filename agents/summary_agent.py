import json
from typing import List

from langchain_core.prompts import ChatPromptTemplate

from agents.llm_client import ChatClient
from models.api_models import QARecord


class SummaryAgent:
    def __init__(self, chat_client: ChatClient):
        self.chat_client = chat_client

    def summarize(self, qa: List[QARecord]) -> str:
        """
        Write a Persian markdown study summary for a finished quiz.

        Missed concepts come first. The model's text is returned unchanged.
        """
        transcript = {"qa": [record.model_dump(by_alias=True, exclude_none=True) for record in qa]}
        prompt_template = ChatPromptTemplate.from_messages([
            ("system",
             "Create a concise Persian study summary with bullet points, key definitions, "
             "and missed concepts first. Output markdown in Persian."),
            ("human", "{transcript}"),
        ])
        messages = prompt_template.format_messages(transcript=json.dumps(transcript, ensure_ascii=False))
        return self.chat_client.chat(messages, temperature=0.2, purpose="summary")
