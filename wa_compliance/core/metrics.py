from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0


class InMemoryRequestMetrics:
    def __init__(self) -> None:
        self._metrics: dict[tuple[str, str], EndpointMetric] = {}
        self._company_metrics: dict[str, EndpointMetric] = {}
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
        company_id: str | None = None,
    ) -> None:
        key = (endpoint, method)
        with self._lock:
            self._apply(self._metrics.setdefault(key, EndpointMetric()), status_code, duration_ms)
            if company_id:
                self._apply(self._company_metrics.setdefault(company_id, EndpointMetric()), status_code, duration_ms)

    @staticmethod
    def _apply(metric: EndpointMetric, status_code: int, duration_ms: float) -> None:
        metric.total_requests += 1
        metric.total_duration_ms += duration_ms
        if status_code >= 400:
            metric.error_count += 1

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            result: dict[str, dict[str, float | int]] = {}
            for (endpoint, method), metric in self._metrics.items():
                avg = metric.total_duration_ms / metric.total_requests if metric.total_requests else 0.0
                result[f"{method} {endpoint}"] = {
                    "total_requests": metric.total_requests,
                    "total_duration_ms": round(metric.total_duration_ms, 2),
                    "avg_duration_ms": round(avg, 2),
                    "error_count": metric.error_count,
                }
            return result

    def snapshot_per_company(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            result: dict[str, dict[str, float | int]] = {}
            for company_id, metric in self._company_metrics.items():
                avg = metric.total_duration_ms / metric.total_requests if metric.total_requests else 0.0
                result[company_id] = {
                    "total_requests": metric.total_requests,
                    "error_count": metric.error_count,
                    "avg_duration_ms": round(avg, 2),
                }
            return result


class ComplianceDecisionMetrics:
    """Pre-send outcomes per company, keyed by rejection reason."""

    def __init__(self) -> None:
        self._allowed: dict[str, int] = {}
        self._rejected: dict[str, dict[str, int]] = {}
        self._lock = Lock()

    def observe(self, company_id: int | str, allowed: bool, reason: str | None = None) -> None:
        key = str(company_id)
        with self._lock:
            if allowed:
                self._allowed[key] = self._allowed.get(key, 0) + 1
                return
            reasons = self._rejected.setdefault(key, {})
            reasons[reason or "unknown"] = reasons.get(reason or "unknown", 0) + 1

    def snapshot(self) -> dict[str, dict[str, object]]:
        with self._lock:
            result: dict[str, dict[str, object]] = {}
            for key in sorted(set(self._allowed) | set(self._rejected)):
                reasons = dict(self._rejected.get(key, {}))
                result[key] = {
                    "allowed": self._allowed.get(key, 0),
                    "rejected": sum(reasons.values()),
                    "reasons": reasons,
                }
            return result


request_metrics = InMemoryRequestMetrics()
decision_metrics = ComplianceDecisionMetrics()
