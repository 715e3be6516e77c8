"""FastAPI webhook entry point for Slack events and slash commands.

Events are acknowledged immediately and handed to a bounded EventQueue; slash
commands are answered inline.

Usage:
    uvicorn --factory context_scout.main_api:create_app
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .context.assembler import ContextAssembler
from .errors import UnknownCommand
from .llm.client import CompletionGateway
from .log import get_logger, setup_logging
from .pipeline.queue import EventQueue
from .pipeline.router import EventRouter
from .slack.client import SlackPlatformClient
from .slack.parse import parse_command, parse_event
from .slack.verify import make_signature_dependency

logger = get_logger("api")


def build_router(settings: Settings) -> EventRouter:
    """Wire the Slack clients, assembler and LLM gateway from one Settings object."""
    bot_client = SlackPlatformClient(settings.SLACK_BOT_TOKEN)
    # search.messages needs a user token; the context reads share it
    context_client = SlackPlatformClient(settings.search_token)
    return EventRouter(
        assembler=ContextAssembler.from_settings(context_client, settings),
        gateway=CompletionGateway(
            api_key=settings.OPENAI_API_KEY,
            model=settings.MODEL_ANSWER,
            utility_model=settings.MODEL_UTILITY,
        ),
        client=bot_client,
        history_limit=settings.CONTEXT_HISTORY_LIMIT,
        answer_plain_questions=settings.ANSWER_PLAIN_QUESTIONS,
    )


def create_app(settings: Optional[Settings] = None, router: Optional[EventRouter] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    router = router or build_router(settings)
    queue = EventQueue(router.handle, workers=settings.EVENT_WORKERS, maxsize=settings.EVENT_QUEUE_SIZE)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        queue.start()
        yield
        await queue.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.router = router
    app.state.queue = queue

    verify_slack_signature = make_signature_dependency(settings.SLACK_SIGNING_SECRET)

    @app.post("/slack/events", dependencies=[Depends(verify_slack_signature)])
    async def slack_events(request: Request):
        # 1. Parse Body
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse({"status": "error", "message": "Invalid JSON"}, status_code=400)

        # 2. Handle URL Verification (Handshake)
        if payload.get("type") == "url_verification":
            return {"challenge": payload.get("challenge")}

        # 3. Handle Event Callback
        if payload.get("type") == "event_callback":
            event = parse_event(payload)
            if event is None:
                return {"status": "ignored"}

            if not queue.submit(event):
                # Non-200 makes Slack redeliver later
                return JSONResponse({"status": "busy"}, status_code=503)
            logger.info(f"Queued {event.type} event {event.ts}")
            return {"status": "ok"}

        return {"status": "ignored"}

    @app.post("/slack/commands", dependencies=[Depends(verify_slack_signature)])
    async def slack_commands(request: Request):
        form = await request.form()
        command = parse_command(form)
        if command is None:
            return JSONResponse({"status": "error", "message": "Invalid command payload"}, status_code=400)

        try:
            text = await router.handle(command)
        except UnknownCommand as e:
            logger.warning(str(e))
            return {"response_type": "ephemeral", "text": str(e)}
        return {"response_type": "in_channel", "text": text}

    @app.get("/health")
    async def health():
        return {"status": "ok", "queue_pending": queue.pending}

    return app
