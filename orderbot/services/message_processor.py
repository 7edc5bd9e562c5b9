from __future__ import annotations

import asyncio
import contextvars
import functools
import logging
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderbot.ai.schema import ClassifierResult
from orderbot.ai.service import ClassifierService, ReplyGenerator
from orderbot.core.config import CATALOG_LIMIT, ORDER_CONFIDENCE_THRESHOLD
from orderbot.core.errors import OrderPersistenceError
from orderbot.core.request_context import clear_request_context, set_request_context
from orderbot.messenger.base import InboundEvent
from orderbot.messenger.service import MessengerService
from orderbot.models.conversation import Conversation
from orderbot.models.customer import UNKNOWN_CUSTOMER_NAME, Customer
from orderbot.models.processed_event import ProcessedEvent
from orderbot.services.catalog import format_catalog, load_catalog
from orderbot.services.conversations import (
    ConversationStatus,
    MessageSender,
    append_message,
    apply_classification,
    find_customer,
    find_or_create_conversation,
    get_or_create_customer,
    recent_history,
    refresh_customer_name,
)
from orderbot.services.locks import ConversationLockRegistry
from orderbot.services.orders import persist_order, serialize_order, should_create_order
from orderbot.services.readiness import missing_order_fields
from orderbot.sheets.google_sheets import GoogleSheetsMirror

logger = logging.getLogger(__name__)

WELCOME_REPLY = (
    "👋 Тавтай морил! Би таны захиалгыг хүлээн авах туслах бот юм. "
    "Захиалга өгөхийг хүсвэл мэдээллээ илгээнэ үү!"
)
UNKNOWN_COMMAND_REPLY = "Тодорхойгүй команд байна."
ATTACHMENT_REPLY = "📷 Зураг хүлээн авлаа! Захиалгын мэдээллээ текстээр илгээнэ үү."
ERROR_REPLY = "😔 Уучлаарай, алдаа гарлаа. Дахин оролдоно уу."

POSTBACK_GET_STARTED = "GET_STARTED"
POSTBACK_VIEW_CATALOG = "VIEW_CATALOG"


@dataclass
class ProcessingOutcome:
    status: str
    reply: str | None = None
    intent: str | None = None
    conversation_status: str | None = None
    order_id: int | None = None


class MessageProcessor:
    """Runs one inbound Messenger event through classification, order creation and reply.

    Events for the same sender are serialised through ``locks`` so two deliveries
    for one conversation never interleave their read-classify-write cycles.
    Replies go out after the database work is committed and outside the lock.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        classifier: ClassifierService,
        replies: ReplyGenerator,
        messenger: MessengerService,
        mirror: GoogleSheetsMirror | None = None,
        locks: ConversationLockRegistry | None = None,
        confidence_threshold: float = ORDER_CONFIDENCE_THRESHOLD,
        catalog_limit: int = CATALOG_LIMIT,
        db_executor: Executor | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.classifier = classifier
        self.replies = replies
        self.messenger = messenger
        self.mirror = mirror
        self.locks = locks or ConversationLockRegistry()
        self.confidence_threshold = confidence_threshold
        self.catalog_limit = catalog_limit
        # None runs session work on the loop's default thread pool
        self.db_executor = db_executor
        self._background: set[asyncio.Task] = set()

    async def handle_events(self, events: list[InboundEvent]) -> list[ProcessingOutcome]:
        return list(await asyncio.gather(*(self.handle_event(event) for event in events)))

    async def handle_event(self, event: InboundEvent) -> ProcessingOutcome:
        set_request_context(sender_id=event.sender_id, event_id=event.event_id)
        started = time.perf_counter()
        try:
            if event.postback_payload is not None:
                outcome = await self._handle_postback(event)
            elif event.text:
                outcome = await self._handle_text(event)
            elif event.has_attachment:
                await self._send(event.sender_id, ATTACHMENT_REPLY)
                outcome = ProcessingOutcome(status="attachment", reply=ATTACHMENT_REPLY)
            else:
                outcome = ProcessingOutcome(status="ignored")
        except Exception:
            logger.exception("messenger event processing failed")
            await self._send(event.sender_id, ERROR_REPLY)
            outcome = ProcessingOutcome(status="error", reply=ERROR_REPLY)

        logger.info(
            "messenger event handled status=%s intent=%s",
            outcome.status,
            outcome.intent,
            extra={
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "order_id": outcome.order_id,
            },
        )
        clear_request_context()
        return outcome

    async def _handle_postback(self, event: InboundEvent) -> ProcessingOutcome:
        payload = event.postback_payload or ""
        if payload == POSTBACK_GET_STARTED:
            reply = WELCOME_REPLY
        elif payload == POSTBACK_VIEW_CATALOG:
            reply = await self._run_db(self._catalog_listing)
        else:
            logger.info("unknown postback payload=%s", payload)
            reply = UNKNOWN_COMMAND_REPLY
        await self._send(event.sender_id, reply)
        return ProcessingOutcome(status="postback", reply=reply)

    async def _handle_text(self, event: InboundEvent) -> ProcessingOutcome:
        async with self.locks.hold(event.sender_id):
            outcome = await self._process_text(event)
        if outcome.reply:
            await self.messenger.set_typing(event.sender_id, False)
            await self._send(event.sender_id, outcome.reply)
        return outcome

    async def _process_text(self, event: InboundEvent) -> ProcessingOutcome:
        text = event.text or ""
        db = self.session_factory()
        try:
            duplicate, needs_name = await self._run_db(self._lookup_sender, db, event)
            if duplicate:
                logger.info("duplicate messenger event ignored")
                return ProcessingOutcome(status="duplicate")

            name = await self.messenger.get_user_name(event.sender_id) if needs_name else None
            customer, conversation, history = await self._run_db(self._open_turn, db, event.sender_id, name, text)

            await self.messenger.set_typing(event.sender_id, True)
            catalog = await self._run_db(load_catalog, db, self.catalog_limit)
            result = await self.classifier.process_message(text, history, catalog)

            order_id, reply, mirrored = await self._run_db(
                self._record_result, db, customer, conversation, result, text, catalog, event.event_id
            )
            if mirrored is not None:
                self.dispatch_mirror(mirrored)
            if reply is None:
                reply = await self.replies.generate(result, text)

            conversation_status = await self._run_db(self._close_turn, db, conversation, reply, event.event_id)
            return ProcessingOutcome(
                status="processed",
                reply=reply,
                intent=result.intent,
                conversation_status=conversation_status,
                order_id=order_id,
            )
        finally:
            await self._run_db(db.close)

    def _catalog_listing(self) -> str:
        db = self.session_factory()
        try:
            return format_catalog(load_catalog(db, self.catalog_limit))
        finally:
            db.close()

    async def _run_db(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run blocking session work off the event loop, keeping the request context."""
        loop = asyncio.get_running_loop()
        context = contextvars.copy_context()
        return await loop.run_in_executor(self.db_executor, functools.partial(context.run, fn, *args))

    def _lookup_sender(self, db: Session, event: InboundEvent) -> tuple[bool, bool]:
        if event.event_id and db.get(ProcessedEvent, event.event_id) is not None:
            return True, False
        customer = find_customer(db, event.sender_id)
        return False, customer is None or customer.name == UNKNOWN_CUSTOMER_NAME

    def _open_turn(
        self, db: Session, sender_id: str, name: str | None, text: str
    ) -> tuple[Customer, Conversation, list[dict[str, Any]]]:
        customer = find_customer(db, sender_id)
        if customer is None:
            customer = get_or_create_customer(db, sender_id, name)
        elif customer.name == UNKNOWN_CUSTOMER_NAME and refresh_customer_name(customer, name):
            db.commit()
        conversation = find_or_create_conversation(db, customer, thread_id=sender_id)
        history = recent_history(db, conversation, self.classifier.history_window)
        append_message(db, conversation, MessageSender.CUSTOMER, text)
        db.commit()
        return customer, conversation, history

    def _record_result(
        self,
        db: Session,
        customer: Customer,
        conversation: Conversation,
        result: ClassifierResult,
        text: str,
        catalog: list[dict[str, Any]],
        event_id: str | None,
    ) -> tuple[int | None, str | None, dict[str, Any] | None]:
        if not should_create_order(conversation, result, self.confidence_threshold):
            status = apply_classification(conversation, result, order_created=False)
            db.commit()
            if status == ConversationStatus.WAITING_FOR_INFO.value:
                logger.info(
                    "order waiting for details missing=%s",
                    ",".join(missing_order_fields(result)),
                    extra={"conversation_id": conversation.id},
                )
            return None, None, None

        try:
            order = persist_order(
                db,
                customer=customer,
                conversation=conversation,
                message_text=text,
                result=result,
                catalog=catalog,
                source_event_id=event_id,
            )
        except OrderPersistenceError:
            apply_classification(conversation, result, order_created=False)
            db.commit()
            return None, ERROR_REPLY, None
        return order.id, None, serialize_order(order, customer)

    def _close_turn(self, db: Session, conversation: Conversation, reply: str, event_id: str | None) -> str:
        append_message(db, conversation, MessageSender.BOT, reply)
        if event_id:
            db.add(ProcessedEvent(event_id=event_id))
        try:
            db.commit()
        except IntegrityError:
            # a concurrent worker recorded the same event id
            db.rollback()
            logger.warning("messenger event already recorded as processed")
        return conversation.status

    async def _send(self, recipient_id: str, text: str) -> bool:
        try:
            await self.messenger.send_text(recipient_id, text)
        except Exception:
            logger.exception("messenger reply could not be sent")
            return False
        return True

    def dispatch_mirror(self, order: dict[str, Any]) -> asyncio.Task | None:
        if self.mirror is None:
            return None
        task = asyncio.create_task(self._mirror_order(order))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _mirror_order(self, order: dict[str, Any]) -> None:
        try:
            await self.mirror.append_order(order)
        except Exception:
            logger.exception("Google Sheets sync failed", extra={"order_id": order.get("id")})

    async def drain(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
