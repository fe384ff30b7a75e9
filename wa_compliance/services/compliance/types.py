from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


class ConsentMethod(str, Enum):
    WEB_FORM = "web_form"
    WHATSAPP_MESSAGE = "whatsapp_message"
    MANUAL = "manual"
    TEST_FLOW = "test_flow"


class ConsentStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class InteractionType(str, Enum):
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_SENT = "message_sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    BLOCKED = "blocked"
    REPORTED = "reported"


class ComplianceEventType(str, Enum):
    CONSENT_RECORDED = "consent_recorded"
    CONSENT_REVOKED = "consent_revoked"
    CONSENT_RENEWED = "consent_renewed"
    CONSENT_MISSING = "consent_missing"
    CONTENT_REJECTED = "content_rejected"
    WINDOW_VIOLATION = "window_violation"
    LIMIT_EXCEEDED = "limit_exceeded"
    MESSAGE_APPROVED = "message_approved"


# Events that mean an outbound message was stopped by a compliance gate.
REJECTION_EVENT_TYPES = (
    ComplianceEventType.CONSENT_MISSING,
    ComplianceEventType.CONTENT_REJECTED,
    ComplianceEventType.WINDOW_VIOLATION,
    ComplianceEventType.LIMIT_EXCEEDED,
)


class TemplateStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


REASON_NO_CONSENT = "no_consent"
REASON_WINDOW_EXPIRED = "window_expired"
REASON_SPAM_PATTERN = "spam_pattern"
REASON_PROHIBITED_CONTENT = "prohibited_content"
REASON_EMPTY_CONTENT = "empty_content"
REASON_CONTENT_TOO_LONG = "content_too_long"
REASON_LIMIT_EXCEEDED = "limit_exceeded"
REASON_NO_HISTORY = "no_history"
REASON_STORAGE_UNAVAILABLE = "storage_unavailable"
REASON_NOT_A_KEYWORD = "not_a_keyword"


@dataclass(frozen=True)
class WindowStatus:
    in_window: bool
    hours_since_interaction: float | None
    requires_template: bool
    last_interaction_at: datetime | None = None


@dataclass(frozen=True)
class ContentValidation:
    valid: bool
    reason: str | None = None
    matched: str | None = None


@dataclass(frozen=True)
class SendLimits:
    tier: str
    daily_limit: int
    hourly_limit: int


@dataclass(frozen=True)
class QualityMetrics:
    company_id: int
    current_score: float
    label: str
    messages_sent: int
    delivered: int
    read: int
    failed: int
    blocked: int
    reported: int
    received: int
    delivery_rate: float
    response_rate: float
    messages_today: int
    dynamic_limits: SendLimits
    window_days: int
    computed_at: datetime


@dataclass(frozen=True)
class QualityCheck:
    success: bool
    limits: SendLimits
    quality_score: float
    messages_today: int
    messages_this_hour: int
    reason: str | None = None


@dataclass(frozen=True)
class ComplianceStatus:
    company_id: int
    overall_score: float
    label: str
    quality_score: float
    consent_health: float
    violation_rate: float
    active_consents: int
    expired_consents: int
    revoked_consents: int
    recent_violations: int
    evaluated_at: datetime


@dataclass(frozen=True)
class DashboardStats:
    company_id: int
    total_users: int
    active_consents: int
    expired_consents: int
    revoked_consents: int
    quality_score: float
    messages_today: int
    blocked_messages: int


@dataclass(frozen=True)
class OptOutResult:
    success: bool
    consent_revoked: bool
    reason: str | None = None


@dataclass(frozen=True)
class OptInResult:
    success: bool
    consent_recorded: bool
    reason: str | None = None


@dataclass(frozen=True)
class Allowed:
    limits: SendLimits
    in_window: bool
    allowed: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Rejected:
    reason: str
    details: dict[str, Any] = field(default_factory=dict)
    allowed: bool = field(default=False, init=False)


SendDecision = Union[Allowed, Rejected]
