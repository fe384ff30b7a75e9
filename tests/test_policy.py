from __future__ import annotations

import json

import pytest

from wa_compliance.core.policy import DEFAULT_POLICY_PATH, CompliancePolicy, load_policy


def test_packaged_policy_loads_with_sorted_tiers() -> None:
    policy = load_policy()

    assert DEFAULT_POLICY_PATH.exists()
    assert [tier.name for tier in policy.tiers] == ["high", "medium", "low"]
    assert "stop" in policy.opt_out_keywords
    assert policy.prohibited_terms


def test_missing_policy_file_falls_back_to_conservative_defaults(tmp_path) -> None:
    policy = load_policy(tmp_path / "absent.json")

    assert policy.prohibited_terms == []
    assert policy.tiers == []
    assert policy.fallback_tier.daily_limit == 50


def test_partial_policy_keeps_field_defaults(tmp_path) -> None:
    path = tmp_path / "policy.json"
    path.write_text(json.dumps({"allowed_domains": [" Empresa.CL "], "tiers": [
        {"name": "a", "min_score": 10, "daily_limit": 5, "hourly_limit": 1},
        {"name": "b", "min_score": 90, "daily_limit": 50, "hourly_limit": 10},
    ]}), encoding="utf-8")

    policy = load_policy(path)

    assert policy.allowed_domains == ["empresa.cl"]
    assert [tier.name for tier in policy.tiers] == ["b", "a"]
    assert policy.prohibited_terms == []


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"spam_patterns": ["("]}),
        json.dumps({"tiers": [{"name": "x", "daily_limit": -1, "hourly_limit": 1}]}),
    ],
)
def test_malformed_policy_raises_value_error(tmp_path, content: str) -> None:
    path = tmp_path / "policy.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_policy(path)


def test_default_model_is_conservative() -> None:
    policy = CompliancePolicy()

    assert policy.opt_out_keywords == ["stop"]
    assert policy.fallback_tier.name == "low"
