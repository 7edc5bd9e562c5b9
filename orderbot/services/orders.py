from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderbot.ai.schema import ClassifierResult
from orderbot.core.config import ORDER_CONFIDENCE_THRESHOLD
from orderbot.core.errors import OrderPersistenceError
from orderbot.models.conversation import Conversation
from orderbot.models.customer import Customer
from orderbot.models.order import Order
from orderbot.models.order_item import OrderItem
from orderbot.services.catalog import find_catalog_entry
from orderbot.services.conversations import ConversationStatus, apply_classification
from orderbot.services.normalizer import canonical_phone, normalize_address
from orderbot.services.readiness import is_order_ready

logger = logging.getLogger(__name__)

PHONE_PLACEHOLDER = "unknown"
ADDRESS_PLACEHOLDER = "Хаяг тодорхойгүй"
DEFAULT_ITEM_NAME = "Бараа"
ORDER_STATUS_PENDING = "pending"


@dataclass
class OrderLine:
    name: str
    quantity: int
    unit_price: float

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


def build_order_lines(result: ClassifierResult, catalog: list[dict[str, Any]]) -> list[OrderLine]:
    lines = []
    for item in result.data.items:
        name = item.name or DEFAULT_ITEM_NAME
        quantity = item.quantity or 1
        price = item.price
        if price is None:
            entry = find_catalog_entry(catalog, item.name)
            price = float(entry.get("price") or 0) if entry else 0.0
        lines.append(OrderLine(name=name, quantity=quantity, unit_price=float(price)))
    return lines


def order_total(lines: list[OrderLine]) -> float:
    return sum(line.subtotal for line in lines)


def should_create_order(
    conversation: Conversation,
    result: ClassifierResult,
    threshold: float = ORDER_CONFIDENCE_THRESHOLD,
) -> bool:
    if conversation.status == ConversationStatus.ORDER_CREATED.value:
        return False
    return is_order_ready(result, threshold) and bool(result.data.items)


def build_order(
    *,
    customer: Customer,
    conversation: Conversation,
    message_text: str,
    result: ClassifierResult,
    catalog: list[dict[str, Any]],
    source_event_id: str | None = None,
) -> Order:
    lines = build_order_lines(result, catalog)
    if not lines:
        raise ValueError("an order needs at least one item")

    phone = canonical_phone(result.data.phone)
    address = normalize_address(result.data.full_address)
    notes = []
    if not phone:
        notes.append("утасны дугаар шалгах")
    if not address:
        notes.append("хаяг шалгах")

    order = Order(
        customer_id=customer.id,
        conversation_id=conversation.id,
        source_event_id=source_event_id,
        phone_number=phone or PHONE_PLACEHOLDER,
        address=address or ADDRESS_PLACEHOLDER,
        total_amount=order_total(lines),
        status=ORDER_STATUS_PENDING,
        notes="; ".join(notes) or None,
        raw_message=message_text or "",
        extracted_data=result.raw_data,
        confidence=result.confidence,
        needs_review=bool(notes),
    )
    order.items = [
        OrderItem(name=line.name, quantity=line.quantity, unit_price=line.unit_price, subtotal=line.subtotal)
        for line in lines
    ]
    return order


def persist_order(
    db: Session,
    *,
    customer: Customer,
    conversation: Conversation,
    message_text: str,
    result: ClassifierResult,
    catalog: list[dict[str, Any]],
    source_event_id: str | None = None,
) -> Order:
    """Write the order and move the conversation to ``order_created`` in one transaction.

    Nothing is committed unless both succeed, so a failed write never leaves the
    conversation marked as ordered.
    """
    conversation_id = conversation.id
    order = build_order(
        customer=customer,
        conversation=conversation,
        message_text=message_text,
        result=result,
        catalog=catalog,
        source_event_id=source_event_id,
    )
    try:
        db.add(order)
        db.flush()
        apply_classification(conversation, result, order_created=True)
        conversation.last_order_id = order.id
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("order persistence failed", extra={"conversation_id": conversation_id})
        raise OrderPersistenceError(str(exc), conversation_id=conversation_id) from exc

    db.refresh(order)
    logger.info(
        "order created total=%s items=%s needs_review=%s",
        order.total_amount,
        len(order.items),
        order.needs_review,
        extra={"conversation_id": conversation_id, "order_id": order.id},
    )
    return order


def serialize_order(order: Order, customer: Customer | None = None) -> dict[str, Any]:
    customer = customer or order.customer
    return {
        "id": order.id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "customer_name": customer.name if customer else None,
        "phone_number": order.phone_number,
        "address": order.address,
        "items": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "subtotal": item.subtotal,
            }
            for item in order.items
        ],
        "total_amount": order.total_amount,
        "status": order.status,
        "confidence": order.confidence,
        "notes": order.notes,
    }
