"""OpenAI completion gateway.

complete() sends a system preamble plus a user prompt and returns free text.
is_question() and rewrite_query() use structured output parsing to decide
whether a message needs an answer and which keywords to search Slack with.
"""

from typing import Optional, Type, TypeVar
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel
from ..errors import CompletionFailure
from ..log import get_logger
from .prompts import load_prompt
from .schema import QuestionCheck, SearchQuery

logger = get_logger("llm_client")

T = TypeVar("T", bound=BaseModel)

class CompletionGateway:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4.1-mini",
        utility_model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.utility_model = utility_model or model

    async def complete(self, system_preamble: str, user_prompt: str, model: Optional[str] = None) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=[
                    {"role": "system", "content": system_preamble},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except OpenAIError as e:
            raise CompletionFailure(f"Completion request failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise CompletionFailure("Completion returned no content")
        return response.choices[0].message.content

    async def run_structured(self, system_preamble: str, user_prompt: str, schema_model: Type[T]) -> T:
        try:
            completion = await self.client.chat.completions.parse(
                model=self.utility_model,
                messages=[
                    {"role": "system", "content": system_preamble},
                    {"role": "user", "content": user_prompt},
                ],
                response_format=schema_model,
            )
        except OpenAIError as e:
            raise CompletionFailure(f"Structured request failed: {e}") from e

        parsed = completion.choices[0].message.parsed if completion.choices else None
        if parsed is None:
            raise CompletionFailure("Structured completion could not be parsed")
        return parsed

    async def is_question(self, text: str) -> bool:
        """Classify a message; anything but a confident "question" counts as no."""
        try:
            result = await self.run_structured(load_prompt("question_check"), text, QuestionCheck)
        except CompletionFailure as e:
            logger.warning(f"Question check failed, treating as non-question: {e}")
            return False
        return result.is_question

    async def rewrite_query(self, text: str) -> SearchQuery:
        """Reduce a question to search keywords. Falls back to the raw text."""
        try:
            result = await self.run_structured(load_prompt("query_rewrite"), text, SearchQuery)
        except CompletionFailure as e:
            logger.warning(f"Query rewriting failed, searching raw text: {e}")
            return SearchQuery(queries=[text])

        queries = [q.strip() for q in result.queries if q and q.strip()][:3]
        if not queries:
            return SearchQuery(queries=[text])
        return SearchQuery(queries=queries)
