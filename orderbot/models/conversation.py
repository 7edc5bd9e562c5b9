import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from orderbot.core.database import Base


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    # one conversation per Messenger thread
    thread_id = Column(String(64), nullable=False, unique=True, index=True)

    current_intent = Column(String(20), nullable=False, default="browsing")
    status = Column(String(20), nullable=False, default="new")

    # last classifier result, as returned by the adapter
    ai_context = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)

    # avoids creating duplicate orders
    last_order_id = Column(Integer, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="conversations")
    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        order_by="ConversationMessage.position",
    )
    orders = relationship("Order", back_populates="conversation")

    __mapper_args__ = {"version_id_col": version}
