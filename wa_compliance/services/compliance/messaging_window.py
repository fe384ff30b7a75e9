from __future__ import annotations

from datetime import datetime

from wa_compliance.services.compliance.clock import as_utc
from wa_compliance.services.compliance.interaction_log import InteractionLog
from wa_compliance.services.compliance.types import WindowStatus

DEFAULT_WINDOW_HOURS = 24.0


def evaluate_window(
    last_inbound_at: datetime | None,
    now: datetime,
    window_hours: float = DEFAULT_WINDOW_HOURS,
) -> WindowStatus:
    """Free-form replies are allowed strictly less than ``window_hours`` after the last inbound message."""
    if last_inbound_at is None:
        return WindowStatus(in_window=False, hours_since_interaction=None, requires_template=True)

    hours = (as_utc(now) - as_utc(last_inbound_at)).total_seconds() / 3600
    in_window = hours < window_hours
    return WindowStatus(
        in_window=in_window,
        hours_since_interaction=hours,
        requires_template=not in_window,
        last_interaction_at=as_utc(last_inbound_at),
    )


def check_24_hour_window(
    interactions: InteractionLog,
    company_id: int,
    phone: str,
    *,
    now: datetime,
    window_hours: float = DEFAULT_WINDOW_HOURS,
) -> WindowStatus:
    last_inbound_at = interactions.get_last_inbound_at(company_id, phone)
    return evaluate_window(last_inbound_at, now, window_hours)
