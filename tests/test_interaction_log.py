from __future__ import annotations

from datetime import timedelta

import pytest

from wa_compliance.services.compliance.interaction_log import CONTENT_EXCERPT_LENGTH, InteractionLog
from tests.compliance_helpers import COMPANY_ID, PHONE, START, FixedClock, build_session


def test_record_interaction_appends_and_truncates_content() -> None:
    log = InteractionLog(build_session(), clock=FixedClock())

    record = log.record_interaction(COMPANY_ID, "56 9 9999 9999", "message_received", {"content": "x" * 500})

    assert record.phone_number == PHONE
    assert len(record.metadata_json["content"]) == CONTENT_EXCERPT_LENGTH
    assert log.get_last_inbound_at(COMPANY_ID, PHONE) == START


def test_counts_respect_type_and_since() -> None:
    clock = FixedClock()
    log = InteractionLog(build_session(), clock=clock)
    log.record_interaction(COMPANY_ID, PHONE, "message_sent")
    clock.advance(hours=2)
    log.record_interaction(COMPANY_ID, PHONE, "message_sent")
    log.record_interaction(COMPANY_ID, PHONE, "delivered")
    log.record_interaction(2, PHONE, "message_sent")

    assert log.count(COMPANY_ID, ["message_sent"]) == 2
    assert log.count(COMPANY_ID, ["message_sent"], since=START + timedelta(hours=1)) == 1

    by_type = log.count_by_type(COMPANY_ID)
    assert by_type["message_sent"] == 2
    assert by_type["delivered"] == 1
    assert by_type["reported"] == 0


def test_has_history_is_per_company() -> None:
    log = InteractionLog(build_session(), clock=FixedClock())
    log.record_interaction(COMPANY_ID, PHONE, "message_received")

    assert log.has_history(COMPANY_ID) is True
    assert log.has_history(2) is False


def test_unknown_interaction_type_is_rejected() -> None:
    log = InteractionLog(build_session(), clock=FixedClock())

    with pytest.raises(ValueError):
        log.record_interaction(COMPANY_ID, PHONE, "clicked")
