from __future__ import annotations

import pytest

from wa_compliance.core.policy import CompliancePolicy, load_policy
from wa_compliance.services.compliance.content_validator import (
    MAX_TEXT_LENGTH,
    extract_domains,
    is_opt_in_keyword,
    is_opt_out_keyword,
    validate_message_content,
)

POLICY = load_policy()


def test_plain_message_is_valid() -> None:
    result = validate_message_content("Hola, este es un mensaje de prueba válido", "text", POLICY)

    assert result.valid is True
    assert result.reason is None


@pytest.mark.parametrize(
    "text",
    [
        "¡GANASTE! Haz clic aquí ahora mismo!!! http://spam.com",
        "Hola!! revisa esto",
        "Has sido seleccionada para un premio",
        "haz clic ahora para confirmar",
        "Última oportunidad de inscribirte",
    ],
)
def test_spam_phrases_are_rejected(text: str) -> None:
    result = validate_message_content(text, "text", POLICY)

    assert result.valid is False
    assert result.reason == "spam_pattern"


def test_shouting_is_rejected() -> None:
    result = validate_message_content("ATENCION TODOS LOS EMPLEADOS DEBEN VENIR MAÑANA", "text", POLICY)

    assert result.reason == "spam_pattern"
    assert result.matched == "uppercase"


def test_short_acronyms_are_not_shouting() -> None:
    result = validate_message_content("Tu liquidación de RRHH ya está en el portal", "text", POLICY)

    assert result.valid is True


def test_links_outside_allowlist_are_rejected() -> None:
    rejected = validate_message_content("Revisa www.evil-example.com/oferta", "text", POLICY)
    allowed = validate_message_content("Escríbenos en https://wa.me/56999999999", "text", POLICY)
    subdomain = validate_message_content("Más info en https://business.whatsapp.com/policy", "text", POLICY)

    assert rejected.reason == "spam_pattern"
    assert rejected.matched == "url:www.evil-example.com"
    assert allowed.valid is True
    assert subdomain.valid is True


def test_prohibited_terms_ignore_case_and_accents() -> None:
    result = validate_message_content("Compra ahora con TARJETA DE CREDITO sin intereses", "text", POLICY)

    assert result.valid is False
    assert result.reason == "prohibited_content"
    assert result.matched == "tarjeta de crédito sin intereses"


def test_spam_is_reported_before_prohibited_content() -> None:
    result = validate_message_content("Casino online!!", "text", POLICY)

    assert result.reason == "spam_pattern"


def test_empty_and_oversized_bodies() -> None:
    assert validate_message_content("   ", "text", POLICY).reason == "empty_content"
    assert validate_message_content(None, "text", POLICY).reason == "empty_content"
    assert validate_message_content("", "image", POLICY).valid is True
    assert validate_message_content("a" * (MAX_TEXT_LENGTH + 1), "text", POLICY).reason == "content_too_long"


def test_policy_without_denylist_allows_everything_else() -> None:
    result = validate_message_content("casino online", "text", CompliancePolicy())

    assert result.valid is True


def test_extract_domains_handles_schemes_and_www() -> None:
    assert extract_domains("a http://Foo.com/x y www.bar.org z https://wa.me/1") == ["foo.com", "www.bar.org", "wa.me"]


@pytest.mark.parametrize("keyword", ["STOP", "stop", " Baja ", "cancelar.", "ALTO!", "unsubscribe", "No más mensajes"])
def test_opt_out_keywords(keyword: str) -> None:
    assert is_opt_out_keyword(keyword, POLICY) is True


def test_opt_out_requires_whole_keyword() -> None:
    assert is_opt_out_keyword("no quiero parar", POLICY) is False
    assert is_opt_out_keyword("stop please", POLICY) is False
    assert is_opt_out_keyword("", POLICY) is False
    assert is_opt_in_keyword("ALTA", POLICY) is True
    assert is_opt_in_keyword("STOP", POLICY) is False
