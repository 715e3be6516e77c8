import pytest
import os
from context_scout.context.assembler import ContextAssembler
from context_scout.slack.client import SearchSort, SlackPlatformClient

# These tests interact with REAL Slack.
# They require RUN_INTEGRATION_TESTS=1 and a SLACK_USER_TOKEN with search:read in your .env or environment.

pytestmark = pytest.mark.integration

@pytest.fixture
def user_token(allow_integration):
    token = os.getenv("SLACK_USER_TOKEN")
    if not allow_integration or not token or token.startswith("xoxp-..."):
        pytest.skip("RUN_INTEGRATION_TESTS not set or SLACK_USER_TOKEN is a placeholder")
    return token

@pytest.mark.asyncio
async def test_real_search_both_orderings(user_token):
    """
    WHY: Verify that the user token has search:read and both orderings are accepted.
    HOW: Run search.messages with sort=score and sort=timestamp.
    EXPECTED: Both return lists (possibly empty) without raising.
    """
    client = SlackPlatformClient(user_token)
    query = os.getenv("SLACK_TEST_QUERY", "hello")

    relevance = await client.search_messages(query, count=5, sort=SearchSort.RELEVANCE)
    recency = await client.search_messages(query, count=5, sort=SearchSort.RECENCY)

    assert isinstance(relevance, list)
    assert isinstance(recency, list)

@pytest.mark.asyncio
async def test_real_transcript(user_token):
    """
    WHY: End-to-end check of search -> around -> threads -> transcript against a real workspace.
    HOW: Build a transcript for SLACK_TEST_QUERY.
    EXPECTED: A string; when non-empty it contains a highlighted target line.
    """
    assembler = ContextAssembler(SlackPlatformClient(user_token))
    transcript = await assembler.build_transcript(os.getenv("SLACK_TEST_QUERY", "hello"))

    assert isinstance(transcript, str)
    if transcript:
        assert ">>> [" in transcript
    print(f"\n{transcript}")
