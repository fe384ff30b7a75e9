from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from wa_compliance.core.database import get_db
from wa_compliance.models.interaction_record import InteractionRecord
from wa_compliance.routers import webhook
from wa_compliance.services.compliance.service import ComplianceService
from wa_compliance.services.compliance.types import InteractionType
from wa_compliance.whatsapp.cloud_webhook import parse_cloud_messages, parse_cloud_statuses
from tests.compliance_helpers import PHONE, build_session

SENDER = "56999999999"


def _message_payload(text: str, message_id: str = "wamid.1") -> dict:
    return {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "metadata": {"phone_number_id": "555"},
                            "contacts": [{"profile": {"name": "Camila"}}],
                            "messages": [
                                {"id": message_id, "from": SENDER, "type": "text", "text": {"body": f" {text} "}}
                            ],
                        }
                    }
                ]
            }
        ]
    }


def _status_payload(*statuses: dict) -> dict:
    return {"entry": [{"changes": [{"value": {"statuses": list(statuses)}}]}]}


def _build_client(db) -> TestClient:
    app = FastAPI()
    app.include_router(webhook.router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


def test_parse_messages_and_statuses() -> None:
    messages = parse_cloud_messages(_message_payload("Hola"))
    statuses = parse_cloud_statuses(
        _status_payload(
            {"id": "m1", "status": "sent", "recipient_id": SENDER},
            {"id": "m1", "status": "delivered", "recipient_id": SENDER},
            {"id": "m2", "status": "failed", "recipient_id": SENDER, "errors": [{"code": 131026}]},
            {"id": "m3", "status": "failed", "recipient_id": SENDER, "errors": [{"code": 130472}]},
        )
    )

    assert messages[0]["text"] == "Hola"
    assert messages[0]["contact_name"] == "Camila"
    assert [item["interaction_type"] for item in statuses] == [
        InteractionType.MESSAGE_SENT,
        InteractionType.DELIVERED,
        InteractionType.BLOCKED,
        InteractionType.FAILED,
    ]


def test_verify_handshake(monkeypatch) -> None:
    monkeypatch.setattr(webhook, "META_WA_VERIFY_TOKEN", "secreto")
    client = _build_client(build_session())

    ok = client.get(
        "/api/whatsapp/1/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "secreto", "hub.challenge": "42"},
    )
    denied = client.get(
        "/api/whatsapp/1/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "otro", "hub.challenge": "42"},
    )

    assert ok.status_code == 200
    assert ok.text == "42"
    assert denied.status_code == 403


def test_inbound_message_opens_window_and_stop_revokes_consent() -> None:
    db = build_session()
    client = _build_client(db)
    opt_in = client.post("/api/whatsapp/1/webhook", json=_message_payload("ALTA", "wamid.1"))
    chat = client.post("/api/whatsapp/1/webhook", json=_message_payload("¿A qué hora es la reunión?", "wamid.2"))
    opt_out = client.post("/api/whatsapp/1/webhook", json=_message_payload("Stop", "wamid.3"))

    received = (
        db.query(InteractionRecord)
        .filter(InteractionRecord.interaction_type == "message_received", InteractionRecord.phone_number == PHONE)
        .count()
    )

    assert opt_in.json() == {"status": "ok", "opt_in": 1}
    assert chat.json() == {"status": "ok", "received": 1}
    assert opt_out.json() == {"status": "ok", "opt_out": 1}
    assert received == 3

    assert ComplianceService(db).has_active_consent(1, PHONE) is False


def test_statuses_feed_quality_and_empty_payloads_are_ignored() -> None:
    db = build_session()
    client = _build_client(db)

    ignored = client.post("/api/whatsapp/1/webhook", json={"entry": []})
    processed = client.post(
        "/api/whatsapp/1/webhook",
        json=_status_payload(
            {"id": "m1", "status": "delivered", "recipient_id": SENDER},
            {"id": "m2", "status": "read", "recipient_id": SENDER},
        ),
    )

    types = sorted(row.interaction_type for row in db.query(InteractionRecord).all())

    assert ignored.json() == {"status": "ignored"}
    assert processed.json() == {"status": "ok", "statuses": 2}
    assert types == ["delivered", "read"]


def test_sent_statuses_count_toward_send_limits() -> None:
    db = build_session()
    client = _build_client(db)

    response = client.post(
        "/api/whatsapp/1/webhook",
        json=_status_payload(
            {"id": "m1", "status": "sent", "recipient_id": SENDER},
            {"id": "m2", "status": "sent", "recipient_id": SENDER},
        ),
    )
    check = ComplianceService(db).check_quality_and_limits(1)

    assert response.json() == {"status": "ok", "statuses": 2}
    assert check.messages_today == 2
    assert check.messages_this_hour == 2


def test_redelivered_callbacks_are_recorded_once() -> None:
    db = build_session()
    client = _build_client(db)
    blocked = {"id": "wamid.same", "status": "failed", "recipient_id": SENDER, "errors": [{"code": 131026}]}

    responses = [client.post("/api/whatsapp/1/webhook", json=_status_payload(blocked)) for _ in range(3)]
    delivered = client.post(
        "/api/whatsapp/1/webhook",
        json=_status_payload({"id": "wamid.same", "status": "delivered", "recipient_id": SENDER}),
    )
    inbound = [client.post("/api/whatsapp/1/webhook", json=_message_payload("Hola", "wamid.in")) for _ in range(2)]
    other_company = client.post("/api/whatsapp/2/webhook", json=_status_payload(blocked))

    blocked_rows = db.query(InteractionRecord).filter(InteractionRecord.interaction_type == "blocked").count()
    received_rows = db.query(InteractionRecord).filter(InteractionRecord.interaction_type == "message_received").count()

    assert [response.json() for response in responses] == [
        {"status": "ok", "statuses": 1},
        {"status": "ok", "duplicate": 1},
        {"status": "ok", "duplicate": 1},
    ]
    assert delivered.json() == {"status": "ok", "statuses": 1}
    assert [response.json() for response in inbound] == [
        {"status": "ok", "received": 1},
        {"status": "ok", "duplicate": 1},
    ]
    assert other_company.json() == {"status": "ok", "statuses": 1}
    assert blocked_rows == 2
    assert received_rows == 1
    assert ComplianceService(db).get_quality_metrics(1).blocked == 1
