from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint, func

from wa_compliance.core.database import Base


class MessageTemplate(Base):
    __tablename__ = "whatsapp_templates"
    __table_args__ = (UniqueConstraint("company_id", "name", name="uq_whatsapp_templates_company_name"),)

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String(120), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(40), nullable=False, default="utility")
    language = Column(String(10), nullable=False, default="es")
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
