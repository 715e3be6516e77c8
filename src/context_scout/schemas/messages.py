"""Pydantic schemas for Slack messages and assembled context.

Defines Message, ChannelInfo, ThreadInfo, MessagesAround and MessageContext.
"""

from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


def ts_sort_key(ts: str) -> Tuple[Decimal, str]:
    """
    Order Slack timestamps by numeric value.
    Slack emits "seconds.micros" text; comparing it as text only works while every
    value has the same width, so parse it and keep the raw text as a tie-break.
    """
    try:
        value = Decimal(ts)
        if not value.is_finite():
            raise InvalidOperation(ts)
        return (value, ts)
    except (InvalidOperation, TypeError, ValueError):
        return (Decimal(0), ts or "")


class ChannelInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "message"
    user: Optional[str] = None
    bot_id: Optional[str] = None
    text: str = ""
    ts: str
    channel: Optional[ChannelInfo] = None
    username: Optional[str] = None
    thread_ts: Optional[str] = None
    reply_count: Optional[int] = None

    @property
    def author(self) -> str:
        return self.username or self.user or self.bot_id or "unknown"

    @property
    def channel_id(self) -> Optional[str]:
        return self.channel.id if self.channel else None

    @property
    def channel_name(self) -> str:
        if self.channel and self.channel.name:
            return self.channel.name
        return "unknown"

    @property
    def thread_id(self) -> Optional[str]:
        if self.thread_ts:
            return self.thread_ts
        if (self.reply_count or 0) > 0:
            return self.ts
        return None


class ThreadInfo(BaseModel):
    thread_ts: str
    message_ts: str
    reply_count: int
    replies: List[Message] = Field(default_factory=list)


class MessagesAround(BaseModel):
    before: List[Message] = Field(default_factory=list)
    after: List[Message] = Field(default_factory=list)


class MessageContext(BaseModel):
    target_message: Message
    before_messages: List[Message] = Field(default_factory=list)
    after_messages: List[Message] = Field(default_factory=list)
    threads: List[ThreadInfo] = Field(default_factory=list)
