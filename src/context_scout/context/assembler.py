"""Context assembly: search -> messages around -> threads -> transcript.

Two ranked searches run concurrently and must both succeed. Each distinct match
is then expanded with its neighbouring channel messages and any thread replies,
each step under its own timeout. A failed or slow expansion only drops that
match (or its threads); it never aborts the whole assembly.
"""

import asyncio
from typing import Iterable, List, Optional

from ..errors import SearchFailure, TimeoutFailure
from ..log import get_logger
from ..schemas.messages import Message, MessageContext
from ..slack.client import SearchSort, SlackPlatformClient, gather_all
from .transcript import format_channel_history, format_for_model

logger = get_logger("context")


def merge_matches(*result_sets: Iterable[Message]) -> List[Message]:
    """Concatenate result sets, keeping the first message seen for each ts."""
    seen = set()
    merged: List[Message] = []
    for results in result_sets:
        for msg in results:
            if msg.ts in seen:
                continue
            seen.add(msg.ts)
            merged.append(msg)
    return merged


def _preview(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class ContextAssembler:
    def __init__(
        self,
        client: SlackPlatformClient,
        search_count: int = 5,
        around_limit: int = 3,
        around_timeout: float = 10.0,
        threads_timeout: float = 10.0,
        match_concurrency: int = 1,
        gate_threads: bool = True,
    ):
        if match_concurrency < 1:
            raise ValueError("match_concurrency must be at least 1")
        self.client = client
        self.search_count = search_count
        self.around_limit = around_limit
        self.around_timeout = around_timeout
        self.threads_timeout = threads_timeout
        self.match_concurrency = match_concurrency
        self.gate_threads = gate_threads

    @classmethod
    def from_settings(cls, client: SlackPlatformClient, settings) -> "ContextAssembler":
        return cls(
            client,
            search_count=settings.CONTEXT_SEARCH_COUNT,
            around_limit=settings.CONTEXT_AROUND_LIMIT,
            around_timeout=settings.CONTEXT_AROUND_TIMEOUT,
            threads_timeout=settings.CONTEXT_THREADS_TIMEOUT,
            match_concurrency=settings.CONTEXT_MATCH_CONCURRENCY,
            gate_threads=settings.CONTEXT_GATE_THREADS,
        )

    async def search(self, query: str) -> List[Message]:
        """Relevance and recency searches, joined; relevance results take priority."""
        try:
            relevance, recency = await gather_all(
                self.client.search_messages(query, count=self.search_count, sort=SearchSort.RELEVANCE),
                self.client.search_messages(query, count=self.search_count, sort=SearchSort.RECENCY),
            )
        except Exception as e:
            raise SearchFailure(f"Search for {query!r} failed: {e}") from e

        matches = merge_matches(relevance, recency)
        logger.info(f"Found {len(matches)} unique messages for {query!r}")
        for i, msg in enumerate(matches, start=1):
            channel = msg.channel_name if msg.channel and msg.channel.name else (msg.channel_id or "unknown")
            logger.debug(f"  [{i}/{len(matches)}] #{channel} [{msg.ts}] {msg.author}: {_preview(msg.text)}")
        return matches

    async def _with_timeout(self, step: str, seconds: float, coro):
        try:
            return await asyncio.wait_for(coro, timeout=seconds)
        except asyncio.TimeoutError as e:
            raise TimeoutFailure(step, seconds) from e

    async def expand_match(self, msg: Message, label: str = "") -> Optional[MessageContext]:
        """
        Build the MessageContext for one match, or None when the around-fetch fails.
        Thread lookups degrade to no threads on failure.
        """
        channel_id = msg.channel_id
        if not channel_id:
            logger.warning(f"{label} Match {msg.ts} has no channel id, skipping")
            return None

        try:
            around = await self._with_timeout(
                "messages_around",
                self.around_timeout,
                self.client.get_messages_around(channel_id, msg.ts, limit=self.around_limit),
            )
        except Exception as e:
            logger.warning(f"{label} Error getting messages around {msg.ts}: {e}")
            return None

        window = [*around.before, msg, *around.after]
        try:
            threads = await self._with_timeout(
                "threads_batch",
                self.threads_timeout,
                self.client.get_threads_batch(channel_id, window, gate_on_thread_marker=self.gate_threads),
            )
        except Exception as e:
            logger.warning(f"{label} Error getting threads for {msg.ts}: {e}")
            threads = []

        logger.debug(f"{label} Completed {msg.ts}")
        return MessageContext(
            target_message=msg,
            before_messages=around.before,
            after_messages=around.after,
            threads=threads,
        )

    async def assemble_context(self, query: str) -> List[MessageContext]:
        matches = await self.search(query)
        if not matches:
            return []

        total = len(matches)
        limiter = asyncio.Semaphore(self.match_concurrency)

        async def bounded(i: int, msg: Message) -> Optional[MessageContext]:
            async with limiter:
                return await self.expand_match(msg, label=f"[{i}/{total}]")

        # gather keeps merge order regardless of completion order
        results = await asyncio.gather(*(bounded(i, msg) for i, msg in enumerate(matches, start=1)))
        contexts = [ctx for ctx in results if ctx is not None]
        logger.info(f"Fetched context for {len(contexts)}/{total} messages")
        return contexts

    async def build_transcript(self, query: str) -> str:
        contexts = await self.assemble_context(query)
        return format_for_model(contexts)

    async def recent_history(self, channel: str, limit: int = 20) -> str:
        """Recent channel messages rendered for the prompt; "" if they cannot be read."""
        try:
            messages = await self.client.get_channel_history(channel, limit=limit)
        except Exception as e:
            logger.warning(f"Could not read history for {channel}: {e}")
            return ""
        return format_channel_history(messages, limit=limit)
