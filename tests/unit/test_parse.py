from context_scout.schemas.events import AppMention, PlainMessage
from context_scout.slack.parse import parse_command, parse_event


def _payload(event):
    return {"type": "event_callback", "event": event}


def test_parse_app_mention():
    event = parse_event(_payload({
        "type": "app_mention", "channel": "C1", "user": "U1", "text": "<@U0BOT> hi", "ts": "1.0", "event_ts": "1.0",
    }))
    assert isinstance(event, AppMention)
    assert event.text == "<@U0BOT> hi"


def test_parse_plain_and_bot_messages():
    """
    WHY: Bot messages must still parse so the router can apply its loop guard.
    HOW: Parse a human message and a bot message.
    EXPECTED: Both are PlainMessage; the bot one keeps its bot_id.
    """
    human = parse_event(_payload({"type": "message", "channel": "C1", "user": "U1", "text": "hey", "ts": "1.0"}))
    bot = parse_event(_payload({
        "type": "message", "subtype": "bot_message", "channel": "C1", "bot_id": "B1", "text": "beep", "ts": "2.0",
    }))
    assert isinstance(human, PlainMessage) and human.user == "U1"
    assert isinstance(bot, PlainMessage) and bot.bot_id == "B1"


def test_parse_ignores_edits_unknown_types_and_garbage():
    assert parse_event(_payload({"type": "message", "subtype": "message_changed", "channel": "C1", "ts": "1.0"})) is None
    assert parse_event(_payload({"type": "reaction_added", "user": "U1"})) is None
    assert parse_event(_payload({"type": "app_mention", "channel": "C1"})) is None
    assert parse_event({"type": "event_callback"}) is None


def test_parse_command_form():
    cmd = parse_command({
        "command": "/hello", "text": "", "user_id": "U1", "channel_id": "C1",
        "response_url": "https://hooks.slack.com/x", "trigger_id": "T1", "team_id": "T0",
    })
    assert cmd.command == "/hello"
    assert cmd.user_id == "U1"
    assert parse_command({"command": "/hello"}) is None
