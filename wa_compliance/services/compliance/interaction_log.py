from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wa_compliance.models.interaction_record import InteractionRecord
from wa_compliance.models.processed_webhook_event import ProcessedWebhookEvent
from wa_compliance.services.compliance.clock import Clock, as_utc, utcnow
from wa_compliance.services.compliance.errors import storage_errors
from wa_compliance.services.compliance.types import InteractionType
from wa_compliance.utils.text import normalize_phone

logger = logging.getLogger(__name__)

CONTENT_EXCERPT_LENGTH = 200


class InteractionLog:
    """Append-only inbound/outbound events; the 24-hour window is read from here."""

    def __init__(self, db: Session, *, clock: Clock = utcnow) -> None:
        self.db = db
        self._clock = clock

    def record_interaction(
        self,
        company_id: int,
        phone: str,
        interaction_type: InteractionType | str,
        metadata: Mapping[str, Any] | None = None,
    ) -> InteractionRecord:
        phone_number = normalize_phone(phone)
        if not phone_number:
            raise ValueError("phone number is required to record an interaction")

        payload = dict(metadata or {})
        content = payload.get("content")
        if isinstance(content, str) and len(content) > CONTENT_EXCERPT_LENGTH:
            payload["content"] = content[:CONTENT_EXCERPT_LENGTH]

        record = InteractionRecord(
            company_id=company_id,
            phone_number=phone_number,
            interaction_type=InteractionType(interaction_type).value,
            occurred_at=as_utc(self._clock()),
            metadata_json=payload,
        )
        with storage_errors(self.db, "record_interaction"):
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        logger.debug(
            "interaction recorded company=%s type=%s interaction_id=%s",
            company_id,
            record.interaction_type,
            record.id,
        )
        return record

    def get_last_inbound_at(self, company_id: int, phone: str) -> datetime | None:
        phone_number = normalize_phone(phone)
        if not phone_number:
            return None
        with storage_errors(self.db, "get_last_inbound_at"):
            last = (
                self.db.query(func.max(InteractionRecord.occurred_at))
                .filter(
                    InteractionRecord.company_id == company_id,
                    InteractionRecord.phone_number == phone_number,
                    InteractionRecord.interaction_type == InteractionType.MESSAGE_RECEIVED.value,
                )
                .scalar()
            )
        return as_utc(last)

    def count(
        self,
        company_id: int,
        interaction_types: Iterable[InteractionType | str],
        since: datetime | None = None,
    ) -> int:
        type_values = [InteractionType(item).value for item in interaction_types]
        with storage_errors(self.db, "count_interactions"):
            query = self.db.query(func.count(InteractionRecord.id)).filter(
                InteractionRecord.company_id == company_id,
                InteractionRecord.interaction_type.in_(type_values),
            )
            if since is not None:
                query = query.filter(InteractionRecord.occurred_at >= as_utc(since))
            return int(query.scalar() or 0)

    def count_by_type(self, company_id: int, since: datetime | None = None) -> dict[str, int]:
        with storage_errors(self.db, "count_interactions"):
            query = self.db.query(InteractionRecord.interaction_type, func.count(InteractionRecord.id)).filter(
                InteractionRecord.company_id == company_id
            )
            if since is not None:
                query = query.filter(InteractionRecord.occurred_at >= as_utc(since))
            rows = query.group_by(InteractionRecord.interaction_type).all()

        counts = {item.value: 0 for item in InteractionType}
        for interaction_type, total in rows:
            counts[interaction_type] = int(total or 0)
        return counts

    def has_history(self, company_id: int) -> bool:
        with storage_errors(self.db, "has_history"):
            first = (
                self.db.query(InteractionRecord.id)
                .filter(InteractionRecord.company_id == company_id)
                .first()
            )
        return first is not None

    def claim_provider_event(self, company_id: int, provider_message_id: str | None, event: str) -> bool:
        """Mark a provider callback as processed; False when it was already seen."""
        if not provider_message_id:
            return True
        key = {"company_id": company_id, "provider_message_id": provider_message_id, "event": event}
        with storage_errors(self.db, "claim_provider_event"):
            seen = self.db.query(ProcessedWebhookEvent).filter_by(**key).first() is not None
            if not seen:
                self.db.add(ProcessedWebhookEvent(**key))
                try:
                    self.db.commit()
                except IntegrityError:
                    self.db.rollback()
                    seen = True
        if seen:
            logger.info(
                "duplicate provider event company=%s message_id=%s event=%s",
                company_id,
                provider_message_id,
                event,
            )
        return not seen
