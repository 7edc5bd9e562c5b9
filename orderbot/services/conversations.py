"""Conversation lifecycle: customers, threads, message log and status transitions.

Status graph::

    new ──> waiting_for_info ──> order_created
     │            ▲  │
     │            └──┘
     └──────────────────────────> order_created

``order_created`` is terminal for order creation; later messages on the thread
are still logged and answered but never move the status again.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderbot.ai.schema import ClassifierResult
from orderbot.models.conversation import Conversation
from orderbot.models.conversation_message import ConversationMessage
from orderbot.models.customer import UNKNOWN_CUSTOMER_NAME, Customer

logger = logging.getLogger(__name__)


class ConversationStatus(str, Enum):
    NEW = "new"
    WAITING_FOR_INFO = "waiting_for_info"
    ORDER_CREATED = "order_created"


class ConversationIntent(str, Enum):
    ORDERING = "ordering"
    INQUIRY = "inquiry"
    COMPLAINT = "complaint"
    BROWSING = "browsing"


class MessageSender(str, Enum):
    CUSTOMER = "customer"
    BOT = "bot"


ALLOWED_TRANSITIONS: dict[ConversationStatus, set[ConversationStatus]] = {
    ConversationStatus.NEW: {ConversationStatus.WAITING_FOR_INFO, ConversationStatus.ORDER_CREATED},
    ConversationStatus.WAITING_FOR_INFO: {ConversationStatus.WAITING_FOR_INFO, ConversationStatus.ORDER_CREATED},
    ConversationStatus.ORDER_CREATED: set(),
}

_CONVERSATION_INTENTS = {intent.value for intent in ConversationIntent}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def find_customer(db: Session, external_id: str) -> Customer | None:
    return db.query(Customer).filter(Customer.external_id == external_id).first()


def get_or_create_customer(db: Session, external_id: str, name: str | None = None) -> Customer:
    customer = find_customer(db, external_id)
    if customer:
        return customer

    customer = Customer(external_id=external_id, name=(name or "").strip() or UNKNOWN_CUSTOMER_NAME)
    db.add(customer)
    try:
        db.commit()
    except IntegrityError:
        # another worker inserted the same PSID first
        db.rollback()
        customer = find_customer(db, external_id)
        if customer is None:
            raise
        return customer
    db.refresh(customer)
    logger.info("new customer created id=%s name=%s", customer.id, customer.name)
    return customer


def refresh_customer_name(customer: Customer, name: str | None) -> bool:
    name = (name or "").strip()
    if not name or name == customer.name:
        return False
    customer.name = name
    return True


def find_or_create_conversation(db: Session, customer: Customer, thread_id: str) -> Conversation:
    conversation = db.query(Conversation).filter(Conversation.thread_id == thread_id).first()
    if conversation:
        return conversation

    conversation = Conversation(
        customer_id=customer.id,
        thread_id=thread_id,
        current_intent=ConversationIntent.BROWSING.value,
        status=ConversationStatus.NEW.value,
    )
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        conversation = db.query(Conversation).filter(Conversation.thread_id == thread_id).first()
        if conversation is None:
            raise
        return conversation
    db.refresh(conversation)
    logger.info("conversation created", extra={"conversation_id": conversation.id})
    return conversation


def append_message(
    db: Session,
    conversation: Conversation,
    sender: MessageSender,
    text: str,
    *,
    at: datetime | None = None,
) -> ConversationMessage:
    last_position = (
        db.query(func.max(ConversationMessage.position))
        .filter(ConversationMessage.conversation_id == conversation.id)
        .scalar()
    )
    message = ConversationMessage(
        conversation_id=conversation.id,
        position=0 if last_position is None else last_position + 1,
        sender=MessageSender(sender).value,
        text=text or "",
        created_at=at or _utcnow(),
    )
    db.add(message)
    db.flush()
    return message


def recent_history(db: Session, conversation: Conversation, limit: int = 5) -> list[dict[str, Any]]:
    if limit <= 0:
        return []
    rows = (
        db.query(ConversationMessage)
        .filter(ConversationMessage.conversation_id == conversation.id)
        .order_by(ConversationMessage.position.desc())
        .limit(limit)
        .all()
    )
    return [
        {"sender": row.sender, "text": row.text, "timestamp": row.created_at}
        for row in reversed(rows)
    ]


def resolve_intent(result: ClassifierResult) -> str:
    intent = (result.intent or "").strip().lower()
    return intent if intent in _CONVERSATION_INTENTS else ConversationIntent.BROWSING.value


def can_transition(current: str, target: str) -> bool:
    return ConversationStatus(target) in ALLOWED_TRANSITIONS[ConversationStatus(current)]


def next_status(current: str, result: ClassifierResult, *, order_created: bool) -> str:
    if order_created:
        target = ConversationStatus.ORDER_CREATED
    elif result.intent == ConversationIntent.ORDERING.value and not (result.is_order_ready and result.data.items):
        target = ConversationStatus.WAITING_FOR_INFO
    else:
        return current
    if can_transition(current, target.value):
        return target.value
    return current


def apply_classification(conversation: Conversation, result: ClassifierResult, *, order_created: bool) -> str:
    previous = conversation.status or ConversationStatus.NEW.value
    conversation.current_intent = resolve_intent(result)
    conversation.ai_context = result.raw_payload
    conversation.status = next_status(previous, result, order_created=order_created)
    if conversation.status != previous:
        logger.info(
            "conversation status %s -> %s",
            previous,
            conversation.status,
            extra={"conversation_id": conversation.id},
        )
    return conversation.status
