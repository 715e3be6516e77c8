"""Slack Web API client used by the context assembler and the router.

Wraps the blocking slack_sdk WebClient; every call runs on the default thread
pool via asyncio.to_thread so callers can fan requests out with asyncio.
Failures are classified into TransportFailure / ApiFailure / DecodeFailure.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.web import SlackResponse
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..errors import ApiFailure, DecodeFailure, TransportFailure
from ..log import get_logger
from ..schemas.messages import ChannelInfo, Message, MessagesAround, ThreadInfo, ts_sort_key

logger = get_logger("slack_client")

M = TypeVar("M", bound=BaseModel)


class SearchSort(str, Enum):
    RELEVANCE = "score"
    RECENCY = "timestamp"


class SlackUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    real_name: Optional[str] = None
    is_bot: bool = False


# Response envelopes. Only the fields we read are declared.

class _MessageList(BaseModel):
    model_config = ConfigDict(extra="ignore")
    messages: List[Message] = Field(default_factory=list)


class _SearchMatches(BaseModel):
    model_config = ConfigDict(extra="ignore")
    matches: List[Message] = Field(default_factory=list)


class _SearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")
    messages: _SearchMatches


class _PostResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")
    ts: str
    channel: Optional[str] = None


class _UserList(BaseModel):
    model_config = ConfigDict(extra="ignore")
    members: List[SlackUser] = Field(default_factory=list)


class _ChannelList(BaseModel):
    model_config = ConfigDict(extra="ignore")
    channels: List[ChannelInfo] = Field(default_factory=list)


def classify_slack_error(method: str, e: SlackApiError):
    """
    Map a SlackApiError onto our taxonomy.
    slack_sdk raises SlackApiError for non-200 statuses, ok=false bodies and
    non-JSON bodies alike, so look at the attached response to tell them apart.
    """
    response = e.response
    status = getattr(response, "status_code", None)
    if status is None and isinstance(response, dict):
        status = response.get("status")

    if status is not None and not 200 <= int(status) < 300:
        return TransportFailure(method, f"HTTP {status}", status_code=int(status))

    code = response.get("error") if hasattr(response, "get") else None
    if code:
        return ApiFailure(method, code)

    logger.error(f"Undecodable Slack response from {method}: {e}")
    return DecodeFailure(method, str(e))


async def gather_all(*aws: Awaitable[Any]) -> List[Any]:
    """
    Run awaitables concurrently; all must succeed.
    On the first failure the remaining ones are cancelled and awaited before the
    error propagates, so no sibling is left running unobserved.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _is_rate_limited(exc: BaseException) -> bool:
    if isinstance(exc, ApiFailure):
        return exc.code == "ratelimited"
    if isinstance(exc, TransportFailure):
        return exc.status_code == 429
    return False


class SlackPlatformClient:
    def __init__(self, token: Optional[str] = None, web_client: Optional[WebClient] = None, timeout: int = 30):
        if web_client is None:
            if not token:
                raise ValueError("A Slack token or a WebClient is required")
            # No SDK-level retries; post_message carries the only retry policy
            web_client = WebClient(token=token, timeout=timeout, retry_handlers=[])
        self.client = web_client

    async def _call(self, method: str, **kwargs) -> Dict[str, Any]:
        """Run one Web API method on the thread pool and return its JSON body."""
        fn = getattr(self.client, method)
        try:
            response = await asyncio.to_thread(fn, **kwargs)
        except SlackApiError as e:
            raise classify_slack_error(method, e) from e
        except (SlackClientError, OSError) as e:
            raise TransportFailure(method, str(e)) from e

        data = response.data if isinstance(response, SlackResponse) else response
        if not isinstance(data, dict):
            logger.error(f"Unexpected body type from {method}: {type(data).__name__}")
            raise DecodeFailure(method, "response body is not a JSON object")
        if data.get("ok") is False:
            raise ApiFailure(method, data.get("error") or "unknown_error")
        return data

    @staticmethod
    def _decode(method: str, model: Type[M], data: Dict[str, Any]) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Schema mismatch in {method} response: {e}")
            raise DecodeFailure(method, str(e)) from e

    # --- Reads -----------------------------------------------------------

    async def search_messages(self, query: str, count: int = 5, sort: SearchSort = SearchSort.RELEVANCE) -> List[Message]:
        """
        search.messages, ordered by relevance ("score") or recency ("timestamp").
        Requires a user token with search:read.
        """
        data = await self._call("search_messages", query=query, count=count, sort=SearchSort(sort).value)
        return self._decode("search_messages", _SearchResponse, data).messages.matches

    async def get_channel_history(self, channel: str, limit: int = 20) -> List[Message]:
        """Latest messages in a channel, newest first as Slack returns them."""
        data = await self._call("conversations_history", channel=channel, limit=limit)
        return self._decode("conversations_history", _MessageList, data).messages

    async def _history_range(self, channel: str, limit: int, latest: Optional[str] = None, oldest: Optional[str] = None) -> List[Message]:
        params: Dict[str, Any] = {"channel": channel, "limit": limit, "inclusive": False}
        if latest is not None:
            params["latest"] = latest
        if oldest is not None:
            params["oldest"] = oldest
        data = await self._call("conversations_history", **params)
        return self._decode("conversations_history", _MessageList, data).messages

    async def get_messages_around(self, channel: str, target_ts: str, limit: int = 3) -> MessagesAround:
        """
        Fetch up to `limit` messages on each side of `target_ts`.
        Both range queries run concurrently and must both succeed. Slack returns
        newest first, so both sides are re-sorted into ascending order.
        """
        before, after = await gather_all(
            self._history_range(channel, limit, latest=target_ts),
            self._history_range(channel, limit, oldest=target_ts),
        )
        before = sorted((m for m in before if m.ts != target_ts), key=lambda m: ts_sort_key(m.ts))
        after = sorted((m for m in after if m.ts != target_ts), key=lambda m: ts_sort_key(m.ts))
        return MessagesAround(before=before, after=after)

    async def get_thread_messages(self, channel: str, thread_ts: str) -> List[Message]:
        """All messages of a thread, root first."""
        data = await self._call("conversations_replies", channel=channel, ts=thread_ts)
        return self._decode("conversations_replies", _MessageList, data).messages

    async def _fetch_thread(self, channel: str, thread_ts: str, message_ts: str) -> ThreadInfo:
        replies = await self.get_thread_messages(channel, thread_ts)
        return ThreadInfo(
            thread_ts=thread_ts,
            message_ts=message_ts,
            reply_count=len(replies),
            replies=replies,
        )

    async def get_threads_batch(self, channel: str, messages: Sequence[Message], gate_on_thread_marker: bool = True) -> List[ThreadInfo]:
        """
        Fetch the threads touching `messages`, one concurrent request per thread.

        With the gate on, only messages carrying a thread marker (thread_ts, or a
        reply_count above zero) are looked up. With it off every message's own ts
        is probed as a thread id. Failed lookups are dropped.
        """
        wanted: Dict[str, str] = {}
        for msg in messages:
            thread_id = msg.thread_id if gate_on_thread_marker else msg.ts
            if thread_id and thread_id not in wanted:
                wanted[thread_id] = msg.ts

        if not wanted:
            return []

        results = await asyncio.gather(
            *(self._fetch_thread(channel, thread_ts, message_ts) for thread_ts, message_ts in wanted.items()),
            return_exceptions=True,
        )

        threads: List[ThreadInfo] = []
        for thread_ts, result in zip(wanted, results):
            if isinstance(result, BaseException):
                logger.warning(f"Skipping thread {thread_ts} in {channel}: {result}")
                continue
            threads.append(result)
        return threads

    async def list_users(self) -> List[SlackUser]:
        data = await self._call("users_list")
        return self._decode("users_list", _UserList, data).members

    async def list_channels(self) -> List[ChannelInfo]:
        data = await self._call("conversations_list", types="public_channel,private_channel")
        return self._decode("conversations_list", _ChannelList, data).channels

    # --- Writes ----------------------------------------------------------

    @retry(
        retry=retry_if_exception(_is_rate_limited),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def post_message(self, channel: str, text: str, thread_ts: Optional[str] = None) -> str:
        """
        Posts a message with Slack mrkdwn enabled, threaded when thread_ts is given.
        Retries only when Slack rate limits us. Returns the new message ts.
        """
        try:
            data = await self._call(
                "chat_postMessage",
                channel=channel,
                text=text,
                thread_ts=thread_ts,
                mrkdwn=True,
                unfurl_links=False,
                unfurl_media=False,
            )
        except (ApiFailure, TransportFailure) as e:
            if _is_rate_limited(e):
                logger.warning("Slack rate limited, retrying...")
            else:
                logger.error(f"Slack API error: {e}")
            raise
        return self._decode("chat_postMessage", _PostResponse, data).ts

    async def update_message(self, channel: str, ts: str, text: str) -> None:
        await self._call("chat_update", channel=channel, ts=ts, text=text)

    async def delete_message(self, channel: str, ts: str) -> None:
        await self._call("chat_delete", channel=channel, ts=ts)

    async def add_reaction(self, channel: str, ts: str, emoji: str) -> None:
        await self._call("reactions_add", channel=channel, timestamp=ts, name=emoji)
