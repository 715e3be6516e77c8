from typing import Any, Dict, Optional, Union
from pydantic import TypeAdapter, ValidationError
from ..log import get_logger
from ..schemas.events import AppMention, PlainMessage, SlackEvent, SlashCommand

logger = get_logger("slack_parse")

_event_adapter = TypeAdapter(SlackEvent)

def parse_event(payload: Dict[str, Any]) -> Optional[Union[PlainMessage, AppMention]]:
    """
    Parse the inner event of an event_callback payload.
    Returns a typed event if it is one we handle, else None.
    """
    event = payload.get("event") or {}
    if event.get("type") not in ("message", "app_mention"):
        return None

    # Edits and deletions carry the real message nested under "message"
    if event.get("subtype") in ("message_changed", "message_deleted"):
        return None

    try:
        return _event_adapter.validate_python(event)
    except ValidationError as e:
        logger.error(f"Failed to parse event: {e}")
        return None

def parse_command(form: Dict[str, Any]) -> Optional[SlashCommand]:
    """Build a SlashCommand from the form-encoded slash command body."""
    try:
        return SlashCommand.model_validate(dict(form))
    except ValidationError as e:
        logger.error(f"Failed to parse command: {e}")
        return None
