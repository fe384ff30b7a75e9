"""Rolling sender quality score and the send limits derived from it.

The score is a smoothed share of good outcomes over the trailing quality window::

    score = 100 * (delivered + prior) / (delivered + prior + negative)
    negative = w_failed * failed + w_blocked * blocked + w_reported * reported

``prior`` acts as a block of phantom deliveries, so a company with no history
scores 100 and a single failure does not crater a small sender. The score only
moves down with more negative outcomes and only up with more deliveries.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from wa_compliance.core.policy import CompliancePolicy, QualityWeights
from wa_compliance.services.compliance.clock import Clock, as_utc, utcnow
from wa_compliance.services.compliance.interaction_log import InteractionLog
from wa_compliance.services.compliance.types import (
    REASON_LIMIT_EXCEEDED,
    REASON_NO_HISTORY,
    InteractionType,
    QualityCheck,
    QualityMetrics,
    SendLimits,
)

logger = logging.getLogger(__name__)

DEFAULT_QUALITY_WINDOW_DAYS = 7

QUALITY_LABELS = (
    (95.0, "excellent"),
    (90.0, "good"),
    (80.0, "fair"),
)


def compute_quality_score(
    delivered: int,
    failed: int,
    blocked: int,
    reported: int,
    *,
    weights: QualityWeights | None = None,
    prior: float = 10.0,
) -> float:
    weights = weights or QualityWeights()
    positive = max(delivered, 0) + prior
    negative = (
        weights.failed * max(failed, 0)
        + weights.blocked * max(blocked, 0)
        + weights.reported * max(reported, 0)
    )
    if positive + negative <= 0:
        return 100.0
    score = 100.0 * positive / (positive + negative)
    return round(min(max(score, 0.0), 100.0), 2)


def quality_label(score: float) -> str:
    for threshold, label in QUALITY_LABELS:
        if score >= threshold:
            return label
    return "critical"


def calculate_limits(score: float, policy: CompliancePolicy) -> SendLimits:
    for tier in policy.tiers:
        if score >= tier.min_score:
            return SendLimits(tier=tier.name, daily_limit=tier.daily_limit, hourly_limit=tier.hourly_limit)
    return fallback_limits(policy)


def fallback_limits(policy: CompliancePolicy) -> SendLimits:
    tier = policy.fallback_tier
    return SendLimits(tier=tier.name, daily_limit=tier.daily_limit, hourly_limit=tier.hourly_limit)


def _rate(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(100.0 * part / whole, 2)


def start_of_utc_day(now: datetime) -> datetime:
    return as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


class QualityMonitor:
    def __init__(
        self,
        interactions: InteractionLog,
        policy: CompliancePolicy,
        *,
        window_days: int = DEFAULT_QUALITY_WINDOW_DAYS,
        clock: Clock = utcnow,
    ) -> None:
        self.interactions = interactions
        self.policy = policy
        self.window_days = window_days
        self._clock = clock

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def messages_today(self, company_id: int, now: datetime | None = None) -> int:
        now = now or self._now()
        return self.interactions.count(company_id, [InteractionType.MESSAGE_SENT], since=start_of_utc_day(now))

    def messages_this_hour(self, company_id: int, now: datetime | None = None) -> int:
        now = now or self._now()
        return self.interactions.count(company_id, [InteractionType.MESSAGE_SENT], since=now - timedelta(hours=1))

    def get_quality_metrics(self, company_id: int) -> QualityMetrics:
        now = self._now()
        counts = self.interactions.count_by_type(company_id, since=now - timedelta(days=self.window_days))

        sent = counts[InteractionType.MESSAGE_SENT.value]
        delivered = counts[InteractionType.DELIVERED.value]
        score = compute_quality_score(
            delivered,
            counts[InteractionType.FAILED.value],
            counts[InteractionType.BLOCKED.value],
            counts[InteractionType.REPORTED.value],
            weights=self.policy.quality_weights,
            prior=self.policy.quality_prior,
        )
        return QualityMetrics(
            company_id=company_id,
            current_score=score,
            label=quality_label(score),
            messages_sent=sent,
            delivered=delivered,
            read=counts[InteractionType.READ.value],
            failed=counts[InteractionType.FAILED.value],
            blocked=counts[InteractionType.BLOCKED.value],
            reported=counts[InteractionType.REPORTED.value],
            received=counts[InteractionType.MESSAGE_RECEIVED.value],
            delivery_rate=_rate(delivered, sent),
            response_rate=_rate(counts[InteractionType.MESSAGE_RECEIVED.value], sent),
            messages_today=self.messages_today(company_id, now),
            dynamic_limits=calculate_limits(score, self.policy),
            window_days=self.window_days,
            computed_at=now,
        )

    def check_quality_and_limits(self, company_id: int) -> QualityCheck:
        now = self._now()
        sent_today = self.messages_today(company_id, now)
        sent_this_hour = self.messages_this_hour(company_id, now)

        if not self.interactions.has_history(company_id):
            limits = fallback_limits(self.policy)
            logger.info("quality check without history company=%s tier=%s", company_id, limits.tier)
            return QualityCheck(
                success=False,
                limits=limits,
                quality_score=100.0,
                messages_today=sent_today,
                messages_this_hour=sent_this_hour,
                reason=REASON_NO_HISTORY,
            )

        metrics = self.get_quality_metrics(company_id)
        limits = metrics.dynamic_limits
        if sent_today >= limits.daily_limit or sent_this_hour >= limits.hourly_limit:
            logger.warning(
                "send limit reached company=%s tier=%s today=%s/%s hour=%s/%s",
                company_id,
                limits.tier,
                sent_today,
                limits.daily_limit,
                sent_this_hour,
                limits.hourly_limit,
            )
            return QualityCheck(
                success=False,
                limits=limits,
                quality_score=metrics.current_score,
                messages_today=sent_today,
                messages_this_hour=sent_this_hour,
                reason=REASON_LIMIT_EXCEEDED,
            )

        return QualityCheck(
            success=True,
            limits=limits,
            quality_score=metrics.current_score,
            messages_today=sent_today,
            messages_this_hour=sent_this_hour,
        )
