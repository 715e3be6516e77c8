import json
import time
import pytest
from urllib.parse import urlencode
from fastapi.testclient import TestClient

from context_scout.main_api import create_app
from context_scout.pipeline.router import CommandDispatcher
from context_scout.schemas.events import AppMention, SlashCommand
from context_scout.slack.verify import compute_signature


class RecordingRouter:
    """Router stand-in: records queued events, answers slash commands from the real table."""

    def __init__(self):
        self.events = []
        self.commands = CommandDispatcher()

    async def handle(self, event):
        if isinstance(event, SlashCommand):
            return self.commands.execute(event)
        self.events.append(event)


def _signed_headers(secret: str, body: str, content_type: str = "application/json"):
    timestamp = str(int(time.time()))
    return {
        "X-Slack-Request-Timestamp": timestamp,
        "X-Slack-Signature": compute_signature(secret, timestamp, body),
        "Content-Type": content_type,
    }


@pytest.fixture
def router():
    return RecordingRouter()


@pytest.fixture
def client(test_settings, router):
    app = create_app(settings=test_settings, router=router)
    with TestClient(app) as c:
        yield c


def _post_event(client, secret, payload):
    body = json.dumps(payload)
    return client.post("/slack/events", content=body, headers=_signed_headers(secret, body))


def _wait_for(predicate, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_url_verification(client, test_settings):
    """
    WHY: Slack requires a handshake (url_verification) to confirm we own the endpoint before sending events.
    HOW: Post a signed JSON payload with `type="url_verification"` and a challenge string.
    EXPECTED: Return HTTP 200 and the exact challenge string in the JSON body.
    """
    response = _post_event(client, test_settings.SLACK_SIGNING_SECRET, {
        "type": "url_verification",
        "challenge": "my-challenge-string",
    })
    assert response.status_code == 200
    assert response.json() == {"challenge": "my-challenge-string"}


def test_app_mention_is_queued_and_handled(client, test_settings, router):
    """
    WHY: Slack expects a fast 200; the answer flow must run in the background queue.
    HOW: Post a signed app_mention event_callback.
    EXPECTED: 200 {"status": "ok"} and the router eventually receives a typed AppMention.
    """
    response = _post_event(client, test_settings.SLACK_SIGNING_SECRET, {
        "type": "event_callback",
        "event": {"type": "app_mention", "channel": "C1", "user": "U1", "text": "<@U0BOT> when?", "ts": "1.0"},
    })

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert _wait_for(lambda: len(router.events) == 1)
    assert isinstance(router.events[0], AppMention)


def test_unhandled_event_is_ignored(client, test_settings, router):
    response = _post_event(client, test_settings.SLACK_SIGNING_SECRET, {
        "type": "event_callback",
        "event": {"type": "reaction_added", "user": "U1"},
    })
    assert response.json() == {"status": "ignored"}
    assert router.events == []


def test_bad_signature_rejected(client, router):
    """
    WHY: Unsigned or forged requests must never reach the router.
    HOW: Sign with the wrong secret, then omit the headers entirely.
    EXPECTED: 401 and 400 respectively; nothing queued.
    """
    body = json.dumps({"type": "event_callback", "event": {"type": "message", "channel": "C1", "user": "U1", "ts": "1.0"}})
    response = client.post("/slack/events", content=body, headers=_signed_headers("wrong_secret", body))
    assert response.status_code == 401

    response = client.post("/slack/events", content=body, headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert router.events == []


def test_slash_commands(client, test_settings):
    """
    WHY: Slash commands are answered inline from the static table.
    HOW: Post signed form bodies for /hello and an unknown command.
    EXPECTED: in_channel greeting for /hello; ephemeral error for the unknown one.
    """
    form = urlencode({"command": "/hello", "text": "", "user_id": "U42", "channel_id": "C1",
                      "response_url": "https://hooks.slack.com/x", "trigger_id": "T1"})
    response = client.post("/slack/commands", content=form,
                           headers=_signed_headers(test_settings.SLACK_SIGNING_SECRET, form,
                                                   "application/x-www-form-urlencoded"))
    assert response.status_code == 200
    assert response.json() == {"response_type": "in_channel", "text": "Hello, <@U42>!"}

    form = urlencode({"command": "/deploy", "user_id": "U42", "channel_id": "C1"})
    response = client.post("/slack/commands", content=form,
                           headers=_signed_headers(test_settings.SLACK_SIGNING_SECRET, form,
                                                   "application/x-www-form-urlencoded"))
    assert response.json()["response_type"] == "ephemeral"
    assert "/deploy" in response.json()["text"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
