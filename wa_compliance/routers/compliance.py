from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from wa_compliance.deps import get_compliance_service
from wa_compliance.models.compliance_event import ComplianceEvent
from wa_compliance.models.consent_record import ConsentRecord
from wa_compliance.models.message_template import MessageTemplate
from wa_compliance.services.compliance.service import ComplianceService
from wa_compliance.services.compliance.templates import TemplateExistsError
from wa_compliance.services.compliance.types import (
    ComplianceEventType,
    ConsentMethod,
    ConsentStatus,
    InteractionType,
    TemplateStatus,
)

router = APIRouter(prefix="/api/compliance", tags=["compliance"])


class ConsentCreate(BaseModel):
    phone: str = Field(..., min_length=8)
    method: ConsentMethod = ConsentMethod.WEB_FORM
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ConsentRevoke(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class OptOutRequest(BaseModel):
    phone: str = Field(..., min_length=8)
    keyword: str = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class InteractionCreate(BaseModel):
    phone: str = Field(..., min_length=8)
    interaction_type: InteractionType
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ContentValidationRequest(BaseModel):
    text: str = ""
    message_type: str = "text"


class SendCheckRequest(BaseModel):
    phone: str = Field(..., min_length=8)
    text: str = ""
    message_type: str = "text"
    template_name: Optional[str] = None


class EventCreate(BaseModel):
    event_type: ComplianceEventType
    details: Dict[str, Any] = Field(default_factory=dict)


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    content: str = Field(..., min_length=1)
    category: str = "utility"
    language: str = "es"


class TemplateStatusUpdate(BaseModel):
    status: TemplateStatus


def _serialize_consent(record: ConsentRecord, service: ComplianceService) -> dict:
    return {
        "id": record.id,
        "company_id": record.company_id,
        "phone_number": record.phone_number,
        "method": record.method,
        "status": service.consent_status(record).value,
        "granted_at": record.granted_at,
        "expires_at": record.expires_at,
        "renewed_at": record.renewed_at,
        "revoked_at": record.revoked_at,
        "revocation_reason": record.revocation_reason,
        "metadata": record.metadata_json or {},
    }


def _serialize_event(event: ComplianceEvent) -> dict:
    return {
        "id": event.id,
        "company_id": event.company_id,
        "event_type": event.event_type,
        "details": event.details or {},
        "created_at": event.created_at,
    }


def _serialize_template(template: MessageTemplate) -> dict:
    return {
        "id": template.id,
        "company_id": template.company_id,
        "name": template.name,
        "content": template.content,
        "category": template.category,
        "language": template.language,
        "status": template.status,
        "created_at": template.created_at,
    }


def _company_consent(service: ComplianceService, company_id: int, consent_id: int) -> ConsentRecord:
    record = service.get_consent(consent_id)
    if record is None or int(record.company_id) != int(company_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consent not found")
    return record


@router.get("/{company_id}/consents")
def list_consents(
    company_id: int,
    consent_state: Optional[ConsentStatus] = Query(None, alias="status"),
    limit: int = Query(200, ge=1, le=1000),
    service: ComplianceService = Depends(get_compliance_service),
):
    records = service.list_consents(company_id, status=consent_state, limit=limit)
    return {"items": [_serialize_consent(record, service) for record in records]}


@router.post("/{company_id}/consents", status_code=status.HTTP_201_CREATED)
def record_consent(
    company_id: int,
    payload: ConsentCreate,
    service: ComplianceService = Depends(get_compliance_service),
):
    try:
        record = service.record_user_consent(company_id, payload.phone, payload.method, payload.metadata)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _serialize_consent(record, service)


@router.post("/{company_id}/consents/{consent_id}/revoke")
def revoke_consent(
    company_id: int,
    consent_id: int,
    payload: ConsentRevoke,
    service: ComplianceService = Depends(get_compliance_service),
):
    record = _company_consent(service, company_id, consent_id)
    if record.revoked_at is not None:
        return _serialize_consent(record, service)
    revoked = service.revoke_consent_by_id(consent_id, payload.reason or "manual")
    return _serialize_consent(revoked or record, service)


@router.post("/{company_id}/consents/{consent_id}/renew")
def renew_consent(
    company_id: int,
    consent_id: int,
    service: ComplianceService = Depends(get_compliance_service),
):
    _company_consent(service, company_id, consent_id)
    record = service.renew_consent(consent_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Revoked consent cannot be renewed")
    return _serialize_consent(record, service)


@router.post("/{company_id}/opt-out")
def opt_out(
    company_id: int,
    payload: OptOutRequest,
    service: ComplianceService = Depends(get_compliance_service),
):
    result = service.handle_opt_out(company_id, payload.phone, payload.keyword, payload.metadata)
    return asdict(result)


@router.post("/{company_id}/interactions", status_code=status.HTTP_201_CREATED)
def record_interaction(
    company_id: int,
    payload: InteractionCreate,
    service: ComplianceService = Depends(get_compliance_service),
):
    try:
        record = service.record_user_interaction(
            company_id, payload.phone, payload.interaction_type, payload.metadata
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {
        "id": record.id,
        "company_id": record.company_id,
        "phone_number": record.phone_number,
        "interaction_type": record.interaction_type,
        "occurred_at": record.occurred_at,
    }


@router.get("/{company_id}/window")
def messaging_window(
    company_id: int,
    phone: str = Query(..., min_length=8),
    service: ComplianceService = Depends(get_compliance_service),
):
    return asdict(service.check_24_hour_window(company_id, phone))


@router.post("/{company_id}/validate")
def validate_content(
    company_id: int,
    payload: ContentValidationRequest,
    service: ComplianceService = Depends(get_compliance_service),
):
    return asdict(service.validate_message_content(payload.text, payload.message_type))


@router.post("/{company_id}/check")
def check_can_send(
    company_id: int,
    payload: SendCheckRequest,
    service: ComplianceService = Depends(get_compliance_service),
):
    decision = service.check_can_send(
        company_id,
        payload.phone,
        payload.text,
        message_type=payload.message_type,
        template_name=payload.template_name,
    )
    return asdict(decision)


@router.get("/{company_id}/quality")
def quality_metrics(company_id: int, service: ComplianceService = Depends(get_compliance_service)):
    return asdict(service.get_quality_metrics(company_id))


@router.get("/{company_id}/limits")
def quality_and_limits(company_id: int, service: ComplianceService = Depends(get_compliance_service)):
    return asdict(service.check_quality_and_limits(company_id))


@router.get("/{company_id}/status")
def compliance_status(company_id: int, service: ComplianceService = Depends(get_compliance_service)):
    return asdict(service.get_compliance_status(company_id))


@router.get("/{company_id}/stats")
def dashboard_stats(company_id: int, service: ComplianceService = Depends(get_compliance_service)):
    return asdict(service.get_dashboard_stats(company_id))


@router.get("/{company_id}/events")
def list_events(
    company_id: int,
    event_type: Optional[List[ComplianceEventType]] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    service: ComplianceService = Depends(get_compliance_service),
):
    events = service.list_events(company_id, event_type, limit=limit)
    return {"items": [_serialize_event(event) for event in events]}


@router.post("/{company_id}/events", status_code=status.HTTP_201_CREATED)
def log_event(
    company_id: int,
    payload: EventCreate,
    service: ComplianceService = Depends(get_compliance_service),
):
    event = service.log_compliance_event(company_id, payload.event_type, payload.details)
    return _serialize_event(event)


@router.get("/{company_id}/violations")
def list_violations(
    company_id: int,
    limit: int = Query(100, ge=1, le=500),
    service: ComplianceService = Depends(get_compliance_service),
):
    return {"items": [_serialize_event(event) for event in service.list_violations(company_id, limit=limit)]}


@router.get("/{company_id}/templates")
def list_templates(
    company_id: int,
    template_status: Optional[TemplateStatus] = Query(None, alias="status"),
    service: ComplianceService = Depends(get_compliance_service),
):
    templates = service.templates.list_templates(company_id, status=template_status)
    return {"items": [_serialize_template(template) for template in templates]}


@router.post("/{company_id}/templates", status_code=status.HTTP_201_CREATED)
def register_template(
    company_id: int,
    payload: TemplateCreate,
    service: ComplianceService = Depends(get_compliance_service),
):
    try:
        template = service.templates.register_template(
            company_id,
            payload.name,
            payload.content,
            category=payload.category,
            language=payload.language,
            status=TemplateStatus.PENDING,
        )
    except TemplateExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _serialize_template(template)


@router.post("/{company_id}/templates/{template_name}/status")
def update_template_status(
    company_id: int,
    template_name: str,
    payload: TemplateStatusUpdate,
    service: ComplianceService = Depends(get_compliance_service),
):
    template = service.templates.set_status(company_id, template_name, payload.status)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return _serialize_template(template)
