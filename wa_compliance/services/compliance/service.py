from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from sqlalchemy.orm import Session

from wa_compliance.core.config import ComplianceSettings, get_compliance_settings
from wa_compliance.core.metrics import ComplianceDecisionMetrics, decision_metrics
from wa_compliance.core.policy import CompliancePolicy, get_policy
from wa_compliance.models.compliance_event import ComplianceEvent
from wa_compliance.models.consent_record import ConsentRecord
from wa_compliance.models.interaction_record import InteractionRecord
from wa_compliance.services.compliance import content_validator
from wa_compliance.services.compliance.clock import Clock, as_utc, utcnow
from wa_compliance.services.compliance.consent_store import ConsentStore, consent_status
from wa_compliance.services.compliance.errors import StorageUnavailableError
from wa_compliance.services.compliance.event_log import DEFAULT_EVENT_LIMIT, ComplianceEventLog, compute_overall_score
from wa_compliance.services.compliance.interaction_log import InteractionLog
from wa_compliance.services.compliance.messaging_window import check_24_hour_window
from wa_compliance.services.compliance.quality import QualityMonitor, quality_label, start_of_utc_day
from wa_compliance.services.compliance.templates import TemplateRegistry
from wa_compliance.services.compliance.types import (
    REASON_LIMIT_EXCEEDED,
    REASON_NO_CONSENT,
    REASON_NOT_A_KEYWORD,
    REASON_STORAGE_UNAVAILABLE,
    REASON_WINDOW_EXPIRED,
    REJECTION_EVENT_TYPES,
    Allowed,
    ComplianceEventType,
    ComplianceStatus,
    ConsentMethod,
    ConsentStatus,
    ContentValidation,
    DashboardStats,
    InteractionType,
    OptInResult,
    OptOutResult,
    QualityCheck,
    QualityMetrics,
    Rejected,
    SendDecision,
    WindowStatus,
)
from wa_compliance.utils.text import normalize_keyword, normalize_phone

logger = logging.getLogger(__name__)


class ComplianceService:
    """Single entry point the outbound pathway and the webhook talk to.

    Built per request around one ``Session``. Stores can be injected, which is
    how tests swap in failing or pre-seeded collaborators; everything else is
    derived from ``db`` and ``clock``.
    """

    def __init__(
        self,
        db: Session,
        *,
        policy: CompliancePolicy | None = None,
        settings: ComplianceSettings | None = None,
        clock: Clock = utcnow,
        consents: ConsentStore | None = None,
        interactions: InteractionLog | None = None,
        events: ComplianceEventLog | None = None,
        templates: TemplateRegistry | None = None,
        metrics: ComplianceDecisionMetrics | None = None,
    ) -> None:
        self.db = db
        self.policy = policy or get_policy()
        self.settings = settings or get_compliance_settings()
        self._clock = clock
        self.consents = consents or ConsentStore(
            db,
            validity=timedelta(days=self.settings.consent_validity_days),
            clock=clock,
        )
        self.interactions = interactions or InteractionLog(db, clock=clock)
        self.events = events or ComplianceEventLog(db, clock=clock)
        self.templates = templates or TemplateRegistry(db)
        self.metrics = metrics or decision_metrics
        self.quality = QualityMonitor(
            self.interactions,
            self.policy,
            window_days=self.settings.quality_window_days,
            clock=clock,
        )

    def _now(self) -> datetime:
        return as_utc(self._clock())

    # Consent

    def record_user_consent(
        self,
        company_id: int,
        phone: str,
        method: ConsentMethod | str,
        metadata: Mapping[str, Any] | None = None,
    ) -> ConsentRecord:
        record = self.consents.record_consent(company_id, phone, method, metadata)
        self.events.log_event(
            company_id,
            ComplianceEventType.CONSENT_RECORDED,
            {"consent_id": record.id, "phone_number": record.phone_number, "method": record.method},
        )
        return record

    def has_active_consent(self, company_id: int, phone: str) -> bool:
        return self.consents.has_active_consent(company_id, phone)

    def revoke_consent(self, company_id: int, phone: str, reason: str | None = None) -> bool:
        revoked = self.consents.revoke_consent(company_id, phone, reason)
        if revoked:
            self.events.log_event(
                company_id,
                ComplianceEventType.CONSENT_REVOKED,
                {"phone_number": normalize_phone(phone), "reason": reason},
            )
        return revoked

    def revoke_consent_by_id(self, consent_id: int, reason: str | None = None) -> ConsentRecord | None:
        record = self.consents.revoke_consent_by_id(consent_id, reason)
        if record is not None:
            self.events.log_event(
                record.company_id,
                ComplianceEventType.CONSENT_REVOKED,
                {"consent_id": record.id, "phone_number": record.phone_number, "reason": reason},
            )
        return record

    def renew_consent(self, consent_id: int) -> ConsentRecord | None:
        record = self.consents.renew_consent(consent_id)
        if record is not None:
            self.events.log_event(
                record.company_id,
                ComplianceEventType.CONSENT_RENEWED,
                {"consent_id": record.id, "phone_number": record.phone_number, "expires_at": record.expires_at},
            )
        return record

    def get_consent(self, consent_id: int) -> ConsentRecord | None:
        return self.consents.get_consent(consent_id)

    def consent_status(self, record: ConsentRecord) -> ConsentStatus:
        return consent_status(record, self._now())

    def list_consents(
        self,
        company_id: int,
        status: ConsentStatus | str | None = None,
        limit: int = 200,
    ) -> list[ConsentRecord]:
        return self.consents.list_consents(company_id, status=status, limit=limit)

    # Interactions and window

    def record_user_interaction(
        self,
        company_id: int,
        phone: str,
        interaction_type: InteractionType | str,
        metadata: Mapping[str, Any] | None = None,
    ) -> InteractionRecord:
        return self.interactions.record_interaction(company_id, phone, interaction_type, metadata)

    def check_24_hour_window(self, company_id: int, phone: str) -> WindowStatus:
        return check_24_hour_window(
            self.interactions,
            company_id,
            phone,
            now=self._now(),
            window_hours=self.settings.messaging_window_hours,
        )

    def validate_message_content(self, text: str | None, message_type: str = "text") -> ContentValidation:
        return content_validator.validate_message_content(text, message_type, self.policy)

    # Quality and limits

    def get_quality_metrics(self, company_id: int) -> QualityMetrics:
        return self.quality.get_quality_metrics(company_id)

    def check_quality_and_limits(self, company_id: int) -> QualityCheck:
        return self.quality.check_quality_and_limits(company_id)

    # Audit trail

    def log_compliance_event(
        self,
        company_id: int,
        event_type: ComplianceEventType | str,
        details: Mapping[str, Any] | None = None,
    ) -> ComplianceEvent:
        return self.events.log_event(company_id, event_type, details)

    def list_events(
        self,
        company_id: int,
        event_types: list[ComplianceEventType | str] | None = None,
        limit: int = DEFAULT_EVENT_LIMIT,
    ) -> list[ComplianceEvent]:
        return self.events.list_events(company_id, event_types, limit=limit)

    def list_violations(self, company_id: int, limit: int = DEFAULT_EVENT_LIMIT) -> list[ComplianceEvent]:
        return self.events.list_events(company_id, REJECTION_EVENT_TYPES, limit=limit)

    def get_compliance_status(self, company_id: int) -> ComplianceStatus:
        now = self._now()
        consent_counts = self.consents.count_by_status(company_id)
        active = consent_counts[ConsentStatus.ACTIVE.value]
        expired = consent_counts[ConsentStatus.EXPIRED.value]
        consent_health = 100.0 * active / (active + expired) if active + expired else 100.0

        since = now - timedelta(days=self.settings.quality_window_days)
        rejections = self.events.count_events(company_id, REJECTION_EVENT_TYPES, since=since)
        approvals = self.events.count_events(company_id, [ComplianceEventType.MESSAGE_APPROVED], since=since)
        decisions = rejections + approvals
        violation_rate = 100.0 * rejections / decisions if decisions else 0.0

        quality_score = self.quality.get_quality_metrics(company_id).current_score
        overall = compute_overall_score(quality_score, consent_health, violation_rate)
        return ComplianceStatus(
            company_id=company_id,
            overall_score=overall,
            label=quality_label(overall),
            quality_score=quality_score,
            consent_health=round(consent_health, 2),
            violation_rate=round(violation_rate, 2),
            active_consents=active,
            expired_consents=expired,
            revoked_consents=consent_counts[ConsentStatus.REVOKED.value],
            recent_violations=rejections,
            evaluated_at=now,
        )

    def get_dashboard_stats(self, company_id: int) -> DashboardStats:
        now = self._now()
        consent_counts = self.consents.count_by_status(company_id)
        metrics = self.quality.get_quality_metrics(company_id)
        blocked_today = self.events.count_events(company_id, REJECTION_EVENT_TYPES, since=start_of_utc_day(now))
        return DashboardStats(
            company_id=company_id,
            total_users=consent_counts["total_users"],
            active_consents=consent_counts[ConsentStatus.ACTIVE.value],
            expired_consents=consent_counts[ConsentStatus.EXPIRED.value],
            revoked_consents=consent_counts[ConsentStatus.REVOKED.value],
            quality_score=metrics.current_score,
            messages_today=metrics.messages_today,
            blocked_messages=blocked_today,
        )

    # Inbound keywords

    def handle_opt_out(
        self,
        company_id: int,
        phone: str,
        keyword: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> OptOutResult:
        if not content_validator.is_opt_out_keyword(keyword, self.policy):
            return OptOutResult(success=False, consent_revoked=False, reason=REASON_NOT_A_KEYWORD)

        reason = f"opt_out:{normalize_keyword(keyword)}"
        revoked = self.consents.revoke_consent(company_id, phone, reason)
        if revoked:
            self.events.log_event(
                company_id,
                ComplianceEventType.CONSENT_REVOKED,
                {"phone_number": normalize_phone(phone), "reason": reason, "metadata": dict(metadata or {})},
            )
        else:
            logger.info("opt-out without active consent company=%s", company_id)
        return OptOutResult(success=True, consent_revoked=revoked)

    def handle_opt_in(
        self,
        company_id: int,
        phone: str,
        keyword: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> OptInResult:
        if not content_validator.is_opt_in_keyword(keyword, self.policy):
            return OptInResult(success=False, consent_recorded=False, reason=REASON_NOT_A_KEYWORD)

        if self.consents.has_active_consent(company_id, phone):
            return OptInResult(success=True, consent_recorded=False)

        payload = {**dict(metadata or {}), "keyword": normalize_keyword(keyword)}
        self.record_user_consent(company_id, phone, ConsentMethod.WHATSAPP_MESSAGE, payload)
        return OptInResult(success=True, consent_recorded=True)

    # Pre-send gate

    def check_can_send(
        self,
        company_id: int,
        phone: str,
        text: str | None,
        message_type: str = "text",
        template_name: str | None = None,
    ) -> SendDecision:
        try:
            decision = self._evaluate_send(company_id, phone, text, message_type, template_name)
        except StorageUnavailableError as exc:
            logger.error(
                "pre-send check failed closed company=%s operation=%s",
                company_id,
                exc.operation,
                extra={"reason": REASON_STORAGE_UNAVAILABLE},
            )
            decision = Rejected(reason=REASON_STORAGE_UNAVAILABLE, details={"operation": exc.operation})
        self.metrics.observe(company_id, decision.allowed, getattr(decision, "reason", None))
        return decision

    def _reject(
        self,
        company_id: int,
        event_type: ComplianceEventType,
        reason: str,
        details: dict[str, Any],
    ) -> Rejected:
        self.events.log_event(company_id, event_type, {"reason": reason, **details})
        logger.info("outbound rejected company=%s reason=%s", company_id, reason, extra={"reason": reason})
        return Rejected(reason=reason, details=details)

    def _evaluate_send(
        self,
        company_id: int,
        phone: str,
        text: str | None,
        message_type: str,
        template_name: str | None,
    ) -> SendDecision:
        base_details: dict[str, Any] = {"phone_number": normalize_phone(phone), "message_type": message_type}
        if template_name:
            base_details["template_name"] = template_name

        if not self.consents.has_active_consent(company_id, phone):
            return self._reject(company_id, ComplianceEventType.CONSENT_MISSING, REASON_NO_CONSENT, base_details)

        window = self.check_24_hour_window(company_id, phone)
        outside_window = window.requires_template
        if outside_window and self.templates.approved_template_for(company_id, template_name, text) is None:
            return self._reject(
                company_id,
                ComplianceEventType.WINDOW_VIOLATION,
                REASON_WINDOW_EXPIRED,
                {**base_details, "hours_since_interaction": window.hours_since_interaction},
            )

        validation = self.validate_message_content(text, message_type)
        if not validation.valid:
            return self._reject(
                company_id,
                ComplianceEventType.CONTENT_REJECTED,
                validation.reason or "invalid_content",
                {**base_details, "matched": validation.matched},
            )

        check = self.quality.check_quality_and_limits(company_id)
        if check.reason == REASON_LIMIT_EXCEEDED:
            return self._reject(
                company_id,
                ComplianceEventType.LIMIT_EXCEEDED,
                REASON_LIMIT_EXCEEDED,
                {
                    **base_details,
                    "tier": check.limits.tier,
                    "messages_today": check.messages_today,
                    "messages_this_hour": check.messages_this_hour,
                },
            )

        self.events.log_event(
            company_id,
            ComplianceEventType.MESSAGE_APPROVED,
            {**base_details, "tier": check.limits.tier, "in_window": window.in_window},
        )
        return Allowed(limits=check.limits, in_window=window.in_window)
