import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from orderbot.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)

    # Messenger mid of the message that triggered the order
    source_event_id = Column(String(128), nullable=True, unique=True)

    phone_number = Column(String(16), nullable=False)
    address = Column(Text, nullable=False)
    total_amount = Column(Float, nullable=False, default=0)

    # pending / confirmed / shipped / delivered / cancelled
    status = Column(String(20), nullable=False, default="pending")
    notes = Column(Text, nullable=True)

    # provenance of the extraction
    raw_message = Column(Text, nullable=False, default="")
    extracted_data = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    confidence = Column(Float, nullable=False, default=0)
    needs_review = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="orders")
    conversation = relationship("Conversation", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
