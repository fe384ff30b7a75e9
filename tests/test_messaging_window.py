from __future__ import annotations

from datetime import timedelta

from wa_compliance.services.compliance.interaction_log import InteractionLog
from wa_compliance.services.compliance.messaging_window import check_24_hour_window, evaluate_window
from tests.compliance_helpers import COMPANY_ID, PHONE, START, FixedClock, build_session


def test_no_inbound_message_requires_template() -> None:
    status = evaluate_window(None, START)

    assert status.in_window is False
    assert status.requires_template is True
    assert status.hours_since_interaction is None


def test_exactly_24_hours_is_outside_the_window() -> None:
    status = evaluate_window(START, START + timedelta(hours=24))

    assert status.hours_since_interaction == 24.0
    assert status.in_window is False
    assert status.requires_template is True


def test_just_under_24_hours_is_inside_the_window() -> None:
    status = evaluate_window(START, START + timedelta(hours=23, minutes=59, seconds=59))

    assert status.in_window is True
    assert status.requires_template is False
    assert status.hours_since_interaction < 24


def test_naive_timestamps_are_read_as_utc() -> None:
    status = evaluate_window(START.replace(tzinfo=None), START + timedelta(hours=2))

    assert status.hours_since_interaction == 2.0


def test_latest_inbound_message_resets_the_window() -> None:
    clock = FixedClock()
    log = InteractionLog(build_session(), clock=clock)
    log.record_interaction(COMPANY_ID, PHONE, "message_received", {"content": "Hola"})
    clock.advance(hours=20)
    log.record_interaction(COMPANY_ID, PHONE, "message_received")
    clock.advance(hours=1)
    log.record_interaction(COMPANY_ID, PHONE, "message_sent")
    clock.advance(hours=10)

    status = check_24_hour_window(log, COMPANY_ID, PHONE, now=clock())

    assert status.in_window is True
    assert status.hours_since_interaction == 11.0


def test_outbound_messages_do_not_open_the_window() -> None:
    clock = FixedClock()
    log = InteractionLog(build_session(), clock=clock)
    log.record_interaction(COMPANY_ID, PHONE, "message_sent")

    status = check_24_hour_window(log, COMPANY_ID, PHONE, now=clock())

    assert status.in_window is False
    assert status.requires_template is True


def test_window_length_is_configurable() -> None:
    status = evaluate_window(START, START + timedelta(hours=3), window_hours=2.0)

    assert status.in_window is False
