from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text, func

from wa_compliance.core.database import Base


class ConsentRecord(Base):
    __tablename__ = "whatsapp_consents"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, nullable=False, index=True)
    phone_number = Column(String(32), nullable=False)
    method = Column(String(32), nullable=False)
    granted_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revocation_reason = Column(Text, nullable=True)
    renewed_at = Column(DateTime(timezone=True), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


Index("ix_whatsapp_consents_company_phone", ConsentRecord.company_id, ConsentRecord.phone_number)
