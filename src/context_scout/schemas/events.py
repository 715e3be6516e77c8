"""Pydantic schemas for inbound Slack events and slash commands.

PlainMessage and AppMention are discriminated on Slack's own `type` field;
SlashCommand is built from the form-encoded command body.
"""

from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class PlainMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["message"] = "message"
    channel: str
    user: Optional[str] = None
    bot_id: Optional[str] = None
    subtype: Optional[str] = None
    text: str = ""
    ts: str
    thread_ts: Optional[str] = None


class AppMention(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["app_mention"] = "app_mention"
    channel: str
    user: str
    text: str = ""
    ts: str
    thread_ts: Optional[str] = None


class SlashCommand(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["slash_command"] = "slash_command"
    command: str
    text: str = ""
    user_id: str
    channel_id: str
    response_url: str = ""
    trigger_id: str = ""


SlackEvent = Annotated[Union[PlainMessage, AppMention], Field(discriminator="type")]
InboundEvent = Union[PlainMessage, AppMention, SlashCommand]
