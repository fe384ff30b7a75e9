from __future__ import annotations

import json
import logging

import pytest

from wa_compliance.core.logging_setup import JsonFormatter
from wa_compliance.core.metrics import ComplianceDecisionMetrics, InMemoryRequestMetrics
from wa_compliance.core.request_context import clear_request_context, set_request_context
from wa_compliance.core.startup_checks import ensure_migrations_applied, validate_database_environment


def _record(message: str, *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord("wa_compliance.test", logging.INFO, __file__, 1, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_masks_phones_and_secrets() -> None:
    set_request_context(request_id="req-1", company_id="7")
    try:
        output = json.loads(
            JsonFormatter("%(message)s").format(
                _record("opt-out phone=%s token=%s", "+56999991234", "abc123", reason="no_consent")
            )
        )
    finally:
        clear_request_context()

    assert output["request_id"] == "req-1"
    assert output["company_id"] == "7"
    assert output["reason"] == "no_consent"
    assert "+56999991234" not in output["message"]
    assert output["message"].endswith("phone=***1234 token=***")


def test_metrics_snapshot_per_company() -> None:
    metrics = InMemoryRequestMetrics()

    metrics.observe(endpoint="/api/compliance/1/check", method="POST", status_code=200, duration_ms=10, company_id="1")
    metrics.observe(endpoint="/api/compliance/1/check", method="POST", status_code=503, duration_ms=30, company_id="1")
    metrics.observe(endpoint="/health", method="GET", status_code=200, duration_ms=5)

    per_company = metrics.snapshot_per_company()
    per_endpoint = metrics.snapshot()

    assert per_company == {"1": {"total_requests": 2, "error_count": 1, "avg_duration_ms": 20.0}}
    assert per_endpoint["POST /api/compliance/1/check"]["error_count"] == 1
    assert per_endpoint["GET /health"]["total_requests"] == 1


def test_decision_metrics_group_rejections_by_reason() -> None:
    metrics = ComplianceDecisionMetrics()

    metrics.observe(1, True)
    metrics.observe(1, False, "window_expired")
    metrics.observe(1, False, "window_expired")
    metrics.observe("2", False, "storage_unavailable")

    assert metrics.snapshot() == {
        "1": {"allowed": 1, "rejected": 2, "reasons": {"window_expired": 2}},
        "2": {"allowed": 0, "rejected": 1, "reasons": {"storage_unavailable": 1}},
    }


def test_sqlite_is_forbidden_in_production() -> None:
    with pytest.raises(RuntimeError):
        validate_database_environment("sqlite:///./prod.db", is_prod=True)

    validate_database_environment("sqlite:///./dev.db", is_prod=False)
    validate_database_environment("postgresql://db/compliance", is_prod=True)


def test_migration_check_is_skipped_in_test_env(tmp_path) -> None:
    ensure_migrations_applied(engine=None, alembic_config_path=tmp_path / "missing.ini", env="test")

    with pytest.raises(RuntimeError):
        ensure_migrations_applied(engine=None, alembic_config_path=tmp_path / "missing.ini", env="prod")
