from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from sqlalchemy.orm import Session

from wa_compliance.models.consent_record import ConsentRecord
from wa_compliance.services.compliance.clock import Clock, as_utc, utcnow
from wa_compliance.services.compliance.errors import storage_errors
from wa_compliance.services.compliance.types import ConsentMethod, ConsentStatus
from wa_compliance.utils.text import normalize_phone

logger = logging.getLogger(__name__)

DEFAULT_CONSENT_VALIDITY = timedelta(days=730)


def consent_status(record: ConsentRecord, now: datetime) -> ConsentStatus:
    if record.revoked_at is not None:
        return ConsentStatus.REVOKED
    if as_utc(now) >= as_utc(record.expires_at):
        return ConsentStatus.EXPIRED
    return ConsentStatus.ACTIVE


class ConsentStore:
    """Per (company, phone) opt-in records. Rows are revoked, never deleted."""

    def __init__(
        self,
        db: Session,
        *,
        validity: timedelta = DEFAULT_CONSENT_VALIDITY,
        clock: Clock = utcnow,
    ) -> None:
        self.db = db
        self.validity = validity
        self._clock = clock

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def record_consent(
        self,
        company_id: int,
        phone: str,
        method: ConsentMethod | str,
        metadata: Mapping[str, Any] | None = None,
    ) -> ConsentRecord:
        phone_number = normalize_phone(phone)
        if not phone_number:
            raise ValueError("phone number is required to record consent")

        now = self._now()
        record = ConsentRecord(
            company_id=company_id,
            phone_number=phone_number,
            method=ConsentMethod(method).value,
            granted_at=now,
            expires_at=now + self.validity,
            metadata_json=dict(metadata or {}),
        )
        with storage_errors(self.db, "record_consent"):
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        logger.info("consent recorded company=%s consent_id=%s method=%s", company_id, record.id, record.method)
        return record

    def _open_records(self, company_id: int, phone_number: str) -> list[ConsentRecord]:
        with storage_errors(self.db, "load_consents"):
            return (
                self.db.query(ConsentRecord)
                .filter(
                    ConsentRecord.company_id == company_id,
                    ConsentRecord.phone_number == phone_number,
                    ConsentRecord.revoked_at.is_(None),
                )
                .order_by(ConsentRecord.granted_at.desc(), ConsentRecord.id.desc())
                .all()
            )

    def get_active_consent(self, company_id: int, phone: str) -> ConsentRecord | None:
        phone_number = normalize_phone(phone)
        if not phone_number:
            return None
        now = self._now()
        for record in self._open_records(company_id, phone_number):
            if consent_status(record, now) is ConsentStatus.ACTIVE:
                return record
        return None

    def has_active_consent(self, company_id: int, phone: str) -> bool:
        return self.get_active_consent(company_id, phone) is not None

    def revoke_consent(self, company_id: int, phone: str, reason: str | None = None) -> bool:
        phone_number = normalize_phone(phone)
        if not phone_number:
            return False

        now = self._now()
        active = [
            record
            for record in self._open_records(company_id, phone_number)
            if consent_status(record, now) is ConsentStatus.ACTIVE
        ]
        if not active:
            return False

        with storage_errors(self.db, "revoke_consent"):
            for record in active:
                record.revoked_at = now
                record.revocation_reason = reason
            self.db.commit()
        logger.info("consent revoked company=%s records=%s reason=%s", company_id, len(active), reason)
        return True

    def get_consent(self, consent_id: int) -> ConsentRecord | None:
        with storage_errors(self.db, "get_consent"):
            return self.db.query(ConsentRecord).filter(ConsentRecord.id == consent_id).first()

    def revoke_consent_by_id(self, consent_id: int, reason: str | None = None) -> ConsentRecord | None:
        record = self.get_consent(consent_id)
        if record is None or record.revoked_at is not None:
            return None
        with storage_errors(self.db, "revoke_consent"):
            record.revoked_at = self._now()
            record.revocation_reason = reason
            self.db.commit()
            self.db.refresh(record)
        return record

    def renew_consent(self, consent_id: int) -> ConsentRecord | None:
        record = self.get_consent(consent_id)
        if record is None or record.revoked_at is not None:
            return None

        now = self._now()
        with storage_errors(self.db, "renew_consent"):
            record.expires_at = now + self.validity
            record.renewed_at = now
            self.db.commit()
            self.db.refresh(record)
        logger.info("consent renewed company=%s consent_id=%s", record.company_id, record.id)
        return record

    def list_consents(
        self,
        company_id: int,
        status: ConsentStatus | str | None = None,
        limit: int = 200,
    ) -> list[ConsentRecord]:
        with storage_errors(self.db, "list_consents"):
            records = (
                self.db.query(ConsentRecord)
                .filter(ConsentRecord.company_id == company_id)
                .order_by(ConsentRecord.granted_at.desc(), ConsentRecord.id.desc())
                .all()
            )
        if status is not None:
            wanted = ConsentStatus(status)
            now = self._now()
            records = [record for record in records if consent_status(record, now) is wanted]
        return records[:limit]

    def count_by_status(self, company_id: int) -> dict[str, int]:
        with storage_errors(self.db, "count_consents"):
            records = self.db.query(ConsentRecord).filter(ConsentRecord.company_id == company_id).all()

        now = self._now()
        counts = {status.value: 0 for status in ConsentStatus}
        for record in records:
            counts[consent_status(record, now).value] += 1
        counts["total_users"] = len({record.phone_number for record in records})
        return counts
