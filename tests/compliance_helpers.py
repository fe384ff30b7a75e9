"""Shared builders for compliance tests: in-memory database, fixed clock, service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wa_compliance.core.config import ComplianceSettings
from wa_compliance.core.database import Base
from wa_compliance.core.metrics import ComplianceDecisionMetrics
from wa_compliance.core.policy import CompliancePolicy, load_policy
import wa_compliance.models  # noqa: F401
from wa_compliance.services.compliance.service import ComplianceService

COMPANY_ID = 1
PHONE = "+56999999999"
START = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def build_session() -> Session:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return TestingSessionLocal()


def build_service(
    db: Session | None = None,
    *,
    clock: FixedClock | None = None,
    policy: CompliancePolicy | None = None,
    settings: ComplianceSettings | None = None,
    metrics: ComplianceDecisionMetrics | None = None,
) -> ComplianceService:
    return ComplianceService(
        db or build_session(),
        policy=policy or load_policy(),
        settings=settings or ComplianceSettings(consent_validity_days=730, messaging_window_hours=24.0, quality_window_days=7),
        clock=clock or FixedClock(),
        metrics=metrics or ComplianceDecisionMetrics(),
    )
