"""Routes parsed Slack events to the answer flow or the slash-command table.

AppMention -> rewrite query -> assemble transcript -> complete -> threaded reply.
PlainMessage from a bot (or without a user) is ignored to avoid reply loops.
SlashCommand is answered from a fixed command table.
"""

import re
from typing import Callable, Dict, Optional

from ..context.assembler import ContextAssembler
from ..errors import CompletionFailure, SearchFailure, UnknownCommand
from ..llm.client import CompletionGateway
from ..llm.prompts import build_answer_prompt, load_prompt
from ..log import get_logger
from ..schemas.events import AppMention, InboundEvent, PlainMessage, SlashCommand
from ..slack.client import SlackPlatformClient

logger = get_logger("router")

_MENTION_RE = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")

HELP_TEXT = """Available commands:
• /hello - Say hello
• /help - Show this help message
• Mention me with a question and I will answer from related Slack messages"""


def strip_mentions(text: str) -> str:
    return " ".join(_MENTION_RE.sub(" ", text).split())


class CommandDispatcher:
    """Static slash-command table."""

    def __init__(self):
        self.commands: Dict[str, Callable[[SlashCommand], str]] = {
            "/hello": lambda cmd: f"Hello, <@{cmd.user_id}>!",
            "/help": lambda cmd: HELP_TEXT,
        }

    def execute(self, command: SlashCommand) -> str:
        handler = self.commands.get(command.command)
        if handler is None:
            raise UnknownCommand(command.command)
        return handler(command)


class EventRouter:
    def __init__(
        self,
        assembler: ContextAssembler,
        gateway: CompletionGateway,
        client: SlackPlatformClient,
        commands: Optional[CommandDispatcher] = None,
        history_limit: int = 20,
        answer_plain_questions: bool = False,
        answer_preamble: Optional[str] = None,
    ):
        self.assembler = assembler
        self.gateway = gateway
        self.client = client
        self.commands = commands or CommandDispatcher()
        self.history_limit = history_limit
        self.answer_plain_questions = answer_plain_questions
        self.answer_preamble = answer_preamble or load_prompt("answer")

    async def handle(self, event: InboundEvent) -> Optional[str]:
        """
        Process one inbound event.
        Returns the reply text for slash commands, the posted answer for
        messages that were answered, else None.
        """
        if isinstance(event, AppMention):
            return await self.handle_app_mention(event)
        if isinstance(event, PlainMessage):
            return await self.handle_message(event)
        if isinstance(event, SlashCommand):
            return self.commands.execute(event)
        raise TypeError(f"Unsupported event type: {type(event).__name__}")

    async def handle_message(self, event: PlainMessage) -> Optional[str]:
        # Our own (and other bots') messages would otherwise trigger reply loops
        if event.bot_id or event.subtype == "bot_message":
            logger.debug(f"Ignoring bot message from bot_id: {event.bot_id}")
            return None
        if not event.user:
            logger.warning("Message has no user field, skipping")
            return None
        if event.subtype in ("message_changed", "message_deleted"):
            return None
        if not self.answer_plain_questions:
            return None

        logger.info(f"Processing message from user {event.user} in channel {event.channel}")
        if not await self.gateway.is_question(event.text):
            logger.info(f"Message {event.ts} is not a question, no further action")
            return None
        return await self.answer(event.channel, event.text, reply_ts=event.thread_ts or event.ts)

    async def handle_app_mention(self, event: AppMention) -> Optional[str]:
        logger.info(f"Processing app mention from user {event.user} in channel {event.channel}")
        question = strip_mentions(event.text)
        if not question:
            await self.client.post_message(event.channel, HELP_TEXT, thread_ts=event.thread_ts or event.ts)
            return HELP_TEXT
        return await self.answer(event.channel, question, reply_ts=event.thread_ts or event.ts)

    async def answer(self, channel: str, question: str, reply_ts: Optional[str] = None) -> Optional[str]:
        """Assemble context for `question`, ask the model, and post the reply in-thread."""
        search = await self.gateway.rewrite_query(question)
        query = " ".join(search.queries)
        logger.info(f"Searching Slack for {query!r}")

        try:
            transcript = await self.assembler.build_transcript(query)
        except SearchFailure as e:
            logger.error(f"Search failed, not replying: {e}")
            return None

        history = ""
        if self.history_limit > 0:
            history = await self.assembler.recent_history(channel, limit=self.history_limit)

        prompt = build_answer_prompt(question, transcript, history)
        logger.debug(f"Answering with context length: {len(prompt)}")

        try:
            reply = await self.gateway.complete(self.answer_preamble, prompt)
        except CompletionFailure as e:
            logger.error(f"Agent processing failed: {e}")
            return None

        await self.client.post_message(channel, reply, thread_ts=reply_ts)
        return reply
