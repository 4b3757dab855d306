"""
Reminder Assistant — WhatsApp Webhook Gateway.

WhatsApp is the only user interface. The Cloud API calls this webhook for
verification (GET) and for every inbound message (POST); replies and due
reminders go out through the WhatsApp notifier.

Malformed deliveries are acknowledged and dropped so the platform never
retries them. Messages are handled after the acknowledgement, one at a time
in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from src.config import settings

if TYPE_CHECKING:
    from src.core.conversation import ConversationService
    from src.core.reminders import ReminderService
    from src.data.db import ReminderDB, UserDB
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_DEFAULT_DISPLAY_NAME = "User"

_FEATURES = [
    "💕 Family call reminders",
    "🤝 Meeting support",
    "🏥 Health appointment care",
    "💪 Fitness motivation",
    "🛒 Shopping lists",
    "🧭 Guided onboarding with personal style and timezone",
]


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Everything the gateway needs, built once per process."""

    notifier: NotificationPort
    user_db: UserDB | None = None
    reminder_db: ReminderDB | None = None
    reminders: ReminderService | None = None
    conversation: ConversationService | None = None

    @property
    def degraded(self) -> bool:
        return self.conversation is None


def build_services() -> Services:
    """Wire adapters and core services from settings.

    If the database can't be opened the services come back degraded (no
    conversation, no dispatch) unless ENVIRONMENT=production, which halts.
    """
    from src.adapters.whatsapp_notifier import WhatsAppNotifier
    from src.core.conversation import ConversationService
    from src.core.intent import IntentInterpreter
    from src.core.llm import LLMClient
    from src.core.onboarding import OnboardingMachine
    from src.core.reminders import ReminderService
    from src.data.db import open_stores_with_retry

    notifier = WhatsAppNotifier.from_settings()
    user_db, reminder_db = open_stores_with_retry(
        settings.DATABASE_PATH,
        attempts=settings.STARTUP_DB_ATTEMPTS,
        backoff_seconds=settings.STARTUP_DB_BACKOFF_SECONDS,
        halt_on_failure=settings.is_production,
    )
    if user_db is None or reminder_db is None:
        return Services(notifier=notifier)

    llm = LLMClient.from_settings()
    reminders = ReminderService(reminder_db)
    conversation = ConversationService(
        user_db=user_db,
        reminders=reminders,
        notifier=notifier,
        interpreter=IntentInterpreter(llm),
        onboarding=OnboardingMachine(llm),
    )
    return Services(
        notifier=notifier,
        user_db=user_db,
        reminder_db=reminder_db,
        reminders=reminders,
        conversation=conversation,
    )


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


@dataclass
class InboundMessage:
    sender_id: str
    display_name: str
    text: str


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def extract_text_messages(body: Any) -> list[InboundMessage]:
    """Pull text messages out of a WhatsApp Business webhook payload.

    Anything that doesn't look like a text message is skipped.
    """
    if not isinstance(body, dict) or body.get("object") != "whatsapp_business_account":
        return []

    messages: list[InboundMessage] = []
    for entry in _as_list(body.get("entry")):
        if not isinstance(entry, dict):
            continue
        for change in _as_list(entry.get("changes")):
            if not isinstance(change, dict) or change.get("field") != "messages":
                continue
            value = change.get("value")
            if not isinstance(value, dict):
                continue

            names: dict[str, str] = {}
            for contact in _as_list(value.get("contacts")):
                if isinstance(contact, dict) and contact.get("wa_id"):
                    profile = contact.get("profile")
                    name = profile.get("name") if isinstance(profile, dict) else None
                    names[str(contact["wa_id"])] = name if isinstance(name, str) and name else _DEFAULT_DISPLAY_NAME

            for message in _as_list(value.get("messages")):
                if not isinstance(message, dict) or message.get("type") != "text":
                    continue
                sender = message.get("from")
                text_obj = message.get("text")
                text = text_obj.get("body") if isinstance(text_obj, dict) else None
                if not sender or not isinstance(text, str) or not text.strip():
                    continue
                sender = str(sender)
                messages.append(InboundMessage(
                    sender_id=sender,
                    display_name=names.get(sender, _DEFAULT_DISPLAY_NAME),
                    text=text,
                ))
    return messages


async def _process_messages(
    conversation: ConversationService, messages: list[InboundMessage],
) -> None:
    for message in messages:
        await conversation.handle(message.sender_id, message.display_name, message.text)


# ---------------------------------------------------------------------------
# Dispatch loop
# ---------------------------------------------------------------------------


def _setup_dispatch_loop(services: Services) -> AsyncIOScheduler:
    """Register the due-reminder scan on a fixed interval."""
    from src.core.scheduler import dispatch_due_reminders

    async def _dispatch_job() -> None:
        await dispatch_due_reminders(services.reminders, services.user_db, services.notifier)

    scheduler = AsyncIOScheduler(timezone=timezone.utc)
    scheduler.add_job(
        _dispatch_job,
        trigger=IntervalTrigger(seconds=settings.DISPATCH_INTERVAL_SECONDS),
        id="dispatch_due_reminders",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Dispatch loop scheduled every %d s", settings.DISPATCH_INTERVAL_SECONDS)
    return scheduler


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    services: Services | None = None,
    run_dispatch_loop: bool = True,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        services: Pre-wired services. Defaults to `build_services()` at startup.
        run_dispatch_loop: Start the periodic due-reminder scan.
    """
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = services or await asyncio.to_thread(build_services)
        scheduler = None
        if app.state.services.degraded:
            logger.warning("Starting without storage; inbound messages will be dropped")
        elif run_dispatch_loop:
            scheduler = _setup_dispatch_loop(app.state.services)
        logger.info("Reminder assistant is ready")
        yield
        logger.info("Shutting down gracefully...")
        if scheduler is not None:
            scheduler.shutdown(wait=False)

    app = FastAPI(title="Reminder Assistant", lifespan=lifespan)

    @app.get("/webhook")
    async def verify_webhook(
        mode: str | None = Query(None, alias="hub.mode"),
        token: str | None = Query(None, alias="hub.verify_token"),
        challenge: str | None = Query(None, alias="hub.challenge"),
    ) -> Response:
        if not mode or not token:
            return Response(status_code=400)
        if mode == "subscribe" and token == settings.VERIFY_TOKEN:
            logger.info("Webhook verified successfully")
            return PlainTextResponse(challenge or "", status_code=200)
        logger.warning("Webhook verification failed")
        return Response(status_code=403)

    @app.post("/webhook")
    async def receive_webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Ignoring webhook with a non-JSON body")
            return PlainTextResponse("OK", status_code=200)

        try:
            messages = extract_text_messages(body)
        except Exception:
            logger.exception("Failed to parse webhook payload")
            return PlainTextResponse("OK", status_code=200)

        if not messages:
            logger.debug("Webhook carried no text messages")
            return PlainTextResponse("OK", status_code=200)

        conversation = request.app.state.services.conversation
        if conversation is None:
            logger.error("Dropping %d message(s): storage unavailable", len(messages))
            return PlainTextResponse("OK", status_code=200)

        background_tasks.add_task(_process_messages, conversation, messages)
        return PlainTextResponse("OK", status_code=200)

    @app.get("/")
    async def status(request: Request) -> JSONResponse:
        svc: Services = request.app.state.services
        database_ok = bool(
            svc.user_db is not None and svc.reminder_db is not None
            and svc.user_db.ping() and svc.reminder_db.ping()
        )
        return JSONResponse({
            "status": "💝 WhatsApp Reminder Assistant is running!",
            "message": "Ready to help you remember what matters most",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
            "uptime_seconds": round(time.monotonic() - started_at, 1),
            "database": "connected" if database_ok else "unavailable",
            "dependencies": {
                "whatsapp_configured": bool(settings.WHATSAPP_TOKEN and settings.PHONE_NUMBER_ID),
                "llm_provider": settings.LLM_PROVIDER,
                "llm_configured": bool(settings.LLM_API_KEY),
            },
            "features": _FEATURES,
        })

    return app


def main() -> None:
    """Entry point: build the app and serve it."""
    import uvicorn

    logger.info("Starting WhatsApp Reminder Assistant on port %d...", settings.PORT)
    uvicorn.run(build_app(), host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    main()
