from sqlalchemy import Column, DateTime, Integer, String, func

from wa_compliance.core.database import Base


class ProcessedWebhookEvent(Base):
    __tablename__ = "processed_webhook_events"

    company_id = Column(Integer, primary_key=True)
    provider_message_id = Column(String(128), primary_key=True)
    event = Column(String(32), primary_key=True)
    processed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
