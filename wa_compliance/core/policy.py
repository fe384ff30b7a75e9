"""Loadable compliance policy.

Spam heuristics, the prohibited-term denylist, opt-in/opt-out keywords and the
quality tiers are data, not code. A deployment points ``COMPLIANCE_POLICY_PATH``
at its own JSON document; without it the packaged ``default_policy.json`` is
used. Keys missing from a document fall back to the field defaults below, which
deny nothing extra and grant only the lowest send tier.
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from wa_compliance.core.config import COMPLIANCE_POLICY_PATH

logger = logging.getLogger(__name__)

DEFAULT_POLICY_PATH = Path(__file__).resolve().parents[1] / "policy" / "default_policy.json"


class LimitTier(BaseModel):
    name: str = Field(..., min_length=1)
    min_score: float = Field(0, ge=0, le=100)
    daily_limit: int = Field(..., ge=0)
    hourly_limit: int = Field(..., ge=0)


class QualityWeights(BaseModel):
    failed: float = Field(1.0, ge=0)
    blocked: float = Field(3.0, ge=0)
    reported: float = Field(5.0, ge=0)


class CompliancePolicy(BaseModel):
    spam_patterns: list[str] = Field(default_factory=list)
    uppercase_ratio_threshold: float = Field(0.7, gt=0, le=1)
    uppercase_min_letters: int = Field(12, ge=1)
    allowed_domains: list[str] = Field(default_factory=list)
    prohibited_terms: list[str] = Field(default_factory=list)
    opt_out_keywords: list[str] = Field(default_factory=lambda: ["stop"])
    opt_in_keywords: list[str] = Field(default_factory=list)
    quality_weights: QualityWeights = Field(default_factory=QualityWeights)
    quality_prior: float = Field(10.0, gt=0)
    tiers: list[LimitTier] = Field(default_factory=list)
    fallback_tier: LimitTier = Field(
        default_factory=lambda: LimitTier(name="low", min_score=0, daily_limit=50, hourly_limit=5)
    )

    @field_validator("spam_patterns")
    @classmethod
    def _patterns_compile(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid spam pattern {pattern!r}: {exc}") from exc
        return value

    @field_validator("allowed_domains")
    @classmethod
    def _lowercase_domains(cls, value: list[str]) -> list[str]:
        return [domain.strip().lower().lstrip(".") for domain in value if domain.strip()]

    @field_validator("tiers")
    @classmethod
    def _sort_tiers(cls, value: list[LimitTier]) -> list[LimitTier]:
        return sorted(value, key=lambda tier: tier.min_score, reverse=True)


def load_policy(path: str | Path | None = None) -> CompliancePolicy:
    if not path:
        return _read_policy_file(DEFAULT_POLICY_PATH)

    policy_path = Path(path)
    if not policy_path.exists():
        logger.warning("compliance policy not found path=%s; using conservative defaults", policy_path)
        return CompliancePolicy()
    return _read_policy_file(policy_path)


def _read_policy_file(policy_path: Path) -> CompliancePolicy:
    try:
        raw = json.loads(policy_path.read_text(encoding="utf-8"))
        return CompliancePolicy.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"Invalid compliance policy at {policy_path}: {exc}") from exc


@lru_cache(maxsize=1)
def get_policy() -> CompliancePolicy:
    policy = load_policy(COMPLIANCE_POLICY_PATH or None)
    logger.info(
        "compliance policy loaded spam_patterns=%s prohibited_terms=%s tiers=%s",
        len(policy.spam_patterns),
        len(policy.prohibited_terms),
        len(policy.tiers),
    )
    return policy
