from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    SLACK_BOT_TOKEN: str = Field(..., description="Slack Bot User OAuth Token")
    SLACK_SIGNING_SECRET: str = Field(..., description="Slack app signing secret")
    SLACK_USER_TOKEN: Optional[str] = Field(None, description="User token with search:read scope")
    OPENAI_API_KEY: str = Field(..., description="OpenAI API Key")
    MODEL_ANSWER: str = "gpt-4.1-mini"
    MODEL_UTILITY: str = "gpt-4.1-mini"
    LOG_LEVEL: str = "INFO"

    # Context assembly
    CONTEXT_SEARCH_COUNT: int = Field(5, description="Matches requested per search ordering")
    CONTEXT_AROUND_LIMIT: int = Field(3, description="Messages fetched before and after each match")
    CONTEXT_AROUND_TIMEOUT: float = Field(10.0, description="Seconds allowed for one around-fetch")
    CONTEXT_THREADS_TIMEOUT: float = Field(10.0, description="Seconds allowed for one thread batch")
    CONTEXT_MATCH_CONCURRENCY: int = Field(1, description="Matches processed at the same time")
    CONTEXT_GATE_THREADS: bool = Field(True, description="Only fetch replies for real thread members")
    CONTEXT_HISTORY_LIMIT: int = Field(20, description="Recent channel messages added to a prompt")

    # Event processing
    EVENT_WORKERS: int = 2
    EVENT_QUEUE_SIZE: int = 100
    ANSWER_PLAIN_QUESTIONS: bool = Field(False, description="Answer non-mention messages that look like questions")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def search_token(self) -> str:
        # search.messages is not available to bot tokens
        return self.SLACK_USER_TOKEN or self.SLACK_BOT_TOKEN

@lru_cache()
def get_settings() -> Settings:
    return Settings()
