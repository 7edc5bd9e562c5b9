from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from orderbot.core.database import Base

UNKNOWN_CUSTOMER_NAME = "Unknown User"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    # Messenger page-scoped id (PSID), never changes once stored
    external_id = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False, default=UNKNOWN_CUSTOMER_NAME)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    conversations = relationship("Conversation", back_populates="customer")
    orders = relationship("Order", back_populates="customer")
