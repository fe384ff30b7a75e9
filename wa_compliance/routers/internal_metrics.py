from __future__ import annotations

from fastapi import APIRouter

from wa_compliance.core.metrics import decision_metrics, request_metrics

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("/companies")
def company_metrics():
    return {"companies": request_metrics.snapshot_per_company()}


@router.get("/endpoints")
def endpoint_metrics():
    return {"endpoints": request_metrics.snapshot()}


@router.get("/decisions")
def decision_snapshot():
    return {"companies": decision_metrics.snapshot()}
