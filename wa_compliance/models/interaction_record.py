from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from wa_compliance.core.database import Base


class InteractionRecord(Base):
    __tablename__ = "whatsapp_interactions"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, nullable=False, index=True)
    phone_number = Column(String(32), nullable=False)
    interaction_type = Column(String(32), nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    metadata_json = Column("metadata", JSON, nullable=True)


Index(
    "ix_whatsapp_interactions_company_phone_type",
    InteractionRecord.company_id,
    InteractionRecord.phone_number,
    InteractionRecord.interaction_type,
)
Index("ix_whatsapp_interactions_company_occurred", InteractionRecord.company_id, InteractionRecord.occurred_at)
