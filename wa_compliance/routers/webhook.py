import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from wa_compliance.core.config import META_WA_VERIFY_TOKEN
from wa_compliance.deps import get_compliance_service
from wa_compliance.services.compliance.service import ComplianceService
from wa_compliance.services.compliance.types import InteractionType
from wa_compliance.whatsapp.cloud_webhook import parse_cloud_messages, parse_cloud_statuses

router = APIRouter(tags=["whatsapp-webhook"])
logger = logging.getLogger(__name__)


@router.get("/api/whatsapp/{company_id}/webhook")
def verify_webhook(company_id: int, request: Request):
    qp = request.query_params
    mode = qp.get("hub.mode")
    token = qp.get("hub.verify_token")
    challenge = qp.get("hub.challenge")

    if mode == "subscribe" and META_WA_VERIFY_TOKEN and token == META_WA_VERIFY_TOKEN:
        return PlainTextResponse(challenge or "")

    logger.warning("webhook verification rejected company=%s", company_id)
    raise HTTPException(status_code=403, detail="Invalid verify token")


def _handle_inbound_message(service: ComplianceService, company_id: int, message: dict) -> str:
    text = message.get("text", "")
    service.record_user_interaction(
        company_id,
        message["from_number"],
        InteractionType.MESSAGE_RECEIVED,
        {
            "provider_message_id": message["message_id"],
            "message_type": message.get("message_type", "text"),
            "content": text,
        },
    )

    keyword_metadata = {"provider_message_id": message["message_id"], "source": "whatsapp_webhook"}
    opt_out = service.handle_opt_out(company_id, message["from_number"], text, keyword_metadata)
    if opt_out.success:
        return "opt_out"

    opt_in = service.handle_opt_in(company_id, message["from_number"], text, keyword_metadata)
    if opt_in.success:
        return "opt_in"
    return "received"


@router.post("/api/whatsapp/{company_id}/webhook")
async def receive_webhook(
    company_id: int,
    request: Request,
    service: ComplianceService = Depends(get_compliance_service),
):
    payload = await request.json()
    messages = parse_cloud_messages(payload)
    statuses = parse_cloud_statuses(payload)
    if not messages and not statuses:
        return {"status": "ignored"}

    outcomes: dict[str, int] = {}
    for message in messages:
        if service.interactions.claim_provider_event(company_id, message["message_id"], "received"):
            outcome = _handle_inbound_message(service, company_id, message)
        else:
            outcome = "duplicate"
        outcomes[outcome] = outcomes.get(outcome, 0) + 1

    for status in statuses:
        claimed = service.interactions.claim_provider_event(
            company_id, status["message_id"], status["interaction_type"].value
        )
        if not claimed:
            outcomes["duplicate"] = outcomes.get("duplicate", 0) + 1
            continue
        service.record_user_interaction(
            company_id,
            status["recipient"],
            status["interaction_type"],
            {"provider_message_id": status["message_id"], "status": status["status"], "errors": status["errors"]},
        )
        outcomes["statuses"] = outcomes.get("statuses", 0) + 1

    logger.info("webhook processed company=%s outcomes=%s", company_id, outcomes)
    return {"status": "ok", **outcomes}
