from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from wa_compliance.core.database import Base


class ComplianceEvent(Base):
    __tablename__ = "compliance_events"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, nullable=False, index=True)
    event_type = Column(String(40), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


Index("ix_compliance_events_company_type_created", ComplianceEvent.company_id, ComplianceEvent.event_type, ComplianceEvent.created_at)
