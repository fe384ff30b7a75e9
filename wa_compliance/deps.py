from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from wa_compliance.core.database import get_db
from wa_compliance.services.compliance.service import ComplianceService


def get_compliance_service(db: Session = Depends(get_db)) -> ComplianceService:
    return ComplianceService(db)
