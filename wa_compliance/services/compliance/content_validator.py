"""Outbound message content checks.

Pure functions of the text, the message type and the loaded policy. Checks run
in order and stop at the first failure: body guards, spam heuristics, then the
prohibited-term denylist. Phrase patterns and denylist terms are matched
against the casefolded, accent-stripped text, so a policy entry written as
``"crédito"`` also catches ``"CREDITO"``.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from wa_compliance.core.policy import CompliancePolicy
from wa_compliance.services.compliance.types import (
    REASON_CONTENT_TOO_LONG,
    REASON_EMPTY_CONTENT,
    REASON_PROHIBITED_CONTENT,
    REASON_SPAM_PATTERN,
    ContentValidation,
)
from wa_compliance.utils.text import normalize_keyword, normalize_text

MAX_TEXT_LENGTH = 4096
# Media captions and template bodies are checked like text but may be empty.
BODY_OPTIONAL_TYPES = {"image", "document", "video", "audio", "sticker", "location", "template"}

_URL_PATTERN = re.compile(r"(?:https?://|www\.)[^\s<>\"']+", re.IGNORECASE)


def extract_domains(text: str) -> list[str]:
    domains: list[str] = []
    for match in _URL_PATTERN.findall(text or ""):
        candidate = match if "://" in match else f"http://{match}"
        host = (urlsplit(candidate).hostname or "").lower()
        if host:
            domains.append(host)
    return domains


def _is_allowed_domain(host: str, allowed_domains: list[str]) -> bool:
    return any(host == domain or host.endswith(f".{domain}") for domain in allowed_domains)


def _is_shouting(text: str, policy: CompliancePolicy) -> bool:
    letters = [char for char in text if char.isalpha()]
    if len(letters) < policy.uppercase_min_letters:
        return False
    uppercase = sum(1 for char in letters if char.isupper())
    return uppercase / len(letters) >= policy.uppercase_ratio_threshold


def find_spam_pattern(text: str, policy: CompliancePolicy) -> str | None:
    normalized = normalize_text(text)
    for pattern in policy.spam_patterns:
        if re.search(pattern, normalized, re.IGNORECASE):
            return pattern

    if _is_shouting(text, policy):
        return "uppercase"

    for host in extract_domains(text):
        if not _is_allowed_domain(host, policy.allowed_domains):
            return f"url:{host}"
    return None


def find_prohibited_term(text: str, policy: CompliancePolicy) -> str | None:
    normalized = normalize_text(text)
    for term in policy.prohibited_terms:
        normalized_term = normalize_text(term)
        if normalized_term and normalized_term in normalized:
            return term
    return None


def validate_message_content(
    text: str | None,
    message_type: str = "text",
    policy: CompliancePolicy | None = None,
) -> ContentValidation:
    policy = policy or CompliancePolicy()
    body = text or ""

    if not body.strip():
        if (message_type or "text").lower() in BODY_OPTIONAL_TYPES:
            return ContentValidation(valid=True)
        return ContentValidation(valid=False, reason=REASON_EMPTY_CONTENT)

    if len(body) > MAX_TEXT_LENGTH:
        return ContentValidation(valid=False, reason=REASON_CONTENT_TOO_LONG)

    spam = find_spam_pattern(body, policy)
    if spam is not None:
        return ContentValidation(valid=False, reason=REASON_SPAM_PATTERN, matched=spam)

    prohibited = find_prohibited_term(body, policy)
    if prohibited is not None:
        return ContentValidation(valid=False, reason=REASON_PROHIBITED_CONTENT, matched=prohibited)

    return ContentValidation(valid=True)


def _matches_keyword(text: str | None, keywords: list[str]) -> bool:
    candidate = normalize_keyword(text or "")
    if not candidate:
        return False
    return candidate in {normalize_keyword(keyword) for keyword in keywords}


def is_opt_out_keyword(text: str | None, policy: CompliancePolicy) -> bool:
    return _matches_keyword(text, policy.opt_out_keywords)


def is_opt_in_keyword(text: str | None, policy: CompliancePolicy) -> bool:
    return _matches_keyword(text, policy.opt_in_keywords)
