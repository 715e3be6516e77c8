import pytest
import os
from typing import Optional
from dotenv import load_dotenv

from context_scout.config import Settings
from context_scout.schemas.messages import ChannelInfo, Message

@pytest.fixture(scope="session", autouse=True)
def _load_env():
    # Load .env once per session to avoid side-effects on import time
    load_dotenv()

def _truthy(v: str | None) -> bool:
    return v is not None and v.strip().lower() not in ("", "0", "false", "no")

@pytest.fixture(scope="session")
def allow_integration(_load_env) -> bool:
    # Depends on _load_env to ensure .env is loaded first
    return _truthy(os.getenv("RUN_INTEGRATION_TESTS"))

@pytest.fixture
def test_settings() -> Settings:
    """
    Explicit settings so unit tests never depend on the developer's .env.
    """
    return Settings(
        SLACK_BOT_TOKEN="xoxb-test",
        SLACK_SIGNING_SECRET="test_secret",
        SLACK_USER_TOKEN="xoxp-test",
        OPENAI_API_KEY="sk-test",
        LOG_LEVEL="DEBUG",
        EVENT_WORKERS=1,
        EVENT_QUEUE_SIZE=5,
        _env_file=None,
    )

def make_message(ts: str, text: str = "", user: str = "U1", channel: Optional[str] = "C1",
                 channel_name: Optional[str] = "general", **extra) -> Message:
    """Small factory for Slack messages used across the unit tests."""
    return Message(
        ts=ts,
        text=text or f"message {ts}",
        user=user,
        channel=ChannelInfo(id=channel, name=channel_name) if channel else None,
        **extra,
    )

@pytest.fixture
def make_msg():
    return make_message
