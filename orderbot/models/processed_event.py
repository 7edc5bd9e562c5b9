from sqlalchemy import Column, DateTime, String, func

from orderbot.core.database import Base


class ProcessedEvent(Base):
    __tablename__ = "processed_events"

    event_id = Column(String(128), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
