from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import func
from sqlalchemy.orm import Session

from wa_compliance.models.compliance_event import ComplianceEvent
from wa_compliance.services.compliance.clock import Clock, as_utc, utcnow
from wa_compliance.services.compliance.errors import storage_errors
from wa_compliance.services.compliance.types import ComplianceEventType

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 100


def _json_safe(details: Mapping[str, Any] | None) -> dict[str, Any]:
    # Enums, datetimes and dataclass fields end up as strings in the JSON column.
    if not details:
        return {}
    return json.loads(json.dumps(dict(details), default=str))


def compute_overall_score(quality_score: float, consent_health: float, violation_rate: float) -> float:
    """Half quality, a quarter consent health, a quarter absence of rejections; all on 0-100."""
    score = 0.5 * quality_score + 0.25 * consent_health + 0.25 * (100.0 - violation_rate)
    return round(min(max(score, 0.0), 100.0), 2)


class ComplianceEventLog:
    """Append-only audit trail of consent changes and pre-send decisions."""

    def __init__(self, db: Session, *, clock: Clock = utcnow) -> None:
        self.db = db
        self._clock = clock

    def log_event(
        self,
        company_id: int,
        event_type: ComplianceEventType | str,
        details: Mapping[str, Any] | None = None,
    ) -> ComplianceEvent:
        event = ComplianceEvent(
            company_id=company_id,
            event_type=ComplianceEventType(event_type).value,
            details=_json_safe(details),
            created_at=as_utc(self._clock()),
        )
        with storage_errors(self.db, "log_compliance_event"):
            self.db.add(event)
            self.db.commit()
            self.db.refresh(event)
        logger.info(
            "compliance event company=%s event_type=%s event_id=%s",
            company_id,
            event.event_type,
            event.id,
            extra={"event_type": event.event_type},
        )
        return event

    def list_events(
        self,
        company_id: int,
        event_types: Iterable[ComplianceEventType | str] | None = None,
        limit: int = DEFAULT_EVENT_LIMIT,
    ) -> list[ComplianceEvent]:
        with storage_errors(self.db, "list_compliance_events"):
            query = self.db.query(ComplianceEvent).filter(ComplianceEvent.company_id == company_id)
            if event_types is not None:
                query = query.filter(
                    ComplianceEvent.event_type.in_([ComplianceEventType(item).value for item in event_types])
                )
            return (
                query.order_by(ComplianceEvent.created_at.desc(), ComplianceEvent.id.desc())
                .limit(limit)
                .all()
            )

    def count_events(
        self,
        company_id: int,
        event_types: Iterable[ComplianceEventType | str],
        since: datetime | None = None,
    ) -> int:
        type_values = [ComplianceEventType(item).value for item in event_types]
        with storage_errors(self.db, "count_compliance_events"):
            query = self.db.query(func.count(ComplianceEvent.id)).filter(
                ComplianceEvent.company_id == company_id,
                ComplianceEvent.event_type.in_(type_values),
            )
            if since is not None:
                query = query.filter(ComplianceEvent.created_at >= as_utc(since))
            return int(query.scalar() or 0)
