from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from agents.entity_normalizer import normalize_biller, normalize_network
from api.middleware.auth import get_current_user_id
from models.schemas import MeterType, ServiceRequest, ServiceType
from providers.service_codes import electricity_service_id


router = APIRouter(prefix="/telecom", tags=["telecom"])


class AIPurchaseRequest(BaseModel):
    message: str = Field(min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)


class VerifyMeterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meter_number: str = Field(alias="meterNumber", min_length=1)
    provider: Optional[str] = Field(default=None, alias="disco")
    meter_type: MeterType = Field(default=MeterType.PREPAID, alias="type")


def _orchestrator(request: Request):
    return request.app.state.orchestrator


def _routing_key(service_type: ServiceType, raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    if service_type in {ServiceType.AIRTIME, ServiceType.DATA}:
        return normalize_network(raw) or raw.strip().lower()
    return normalize_biller(raw) or raw.strip().lower()


@router.post("/purchase")
async def purchase(payload: ServiceRequest, request: Request, user_id: str = Depends(get_current_user_id)):
    response = await _orchestrator(request).purchase(user_id, payload)
    return response.model_dump(mode="json")


@router.post("/ai-purchase")
async def ai_purchase(payload: AIPurchaseRequest, request: Request, user_id: str = Depends(get_current_user_id)):
    result = await _orchestrator(request).ai_purchase(user_id, payload.message, payload.context)
    return result.model_dump(mode="json", exclude_none=True)


@router.get("/pricing")
async def pricing(
    request: Request,
    service_type: ServiceType = Query(alias="serviceType"),
    network: Optional[str] = Query(default=None),
    amount: Optional[float] = Query(default=None, ge=0),
):
    aggregator = _orchestrator(request).aggregator
    entries = await aggregator.get_pricing(service_type, _routing_key(service_type, network), amount)
    return {"status": "success", "data": [e.model_dump(mode="json") for e in entries]}


@router.get("/availability")
async def availability(
    request: Request,
    service_type: ServiceType = Query(alias="serviceType"),
    network: Optional[str] = Query(default=None),
):
    aggregator = _orchestrator(request).aggregator
    report = await aggregator.get_availability(service_type, _routing_key(service_type, network))
    return {"status": "success", "data": report.model_dump(mode="json")}


@router.get("/transaction/{transaction_id}")
async def transaction_status(transaction_id: str, request: Request, provider: Optional[str] = Query(default=None)):
    found = await _orchestrator(request).aggregator.query_transaction(transaction_id, provider)
    return {"status": "success", "data": found}


@router.post("/verify-meter")
async def verify_meter(payload: VerifyMeterRequest, request: Request):
    service_code = electricity_service_id(normalize_biller(payload.provider) or payload.provider)
    result = await _orchestrator(request).aggregator.verify_meter(service_code, payload.meter_number, payload.meter_type.value)
    return {"status": "success", "data": result}


@router.get("/providers/stats")
async def provider_stats(request: Request):
    return {"status": "success", "data": _orchestrator(request).aggregator.provider_stats()}


@router.get("/history")
async def history(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
):
    rows = await _orchestrator(request).history(user_id, limit=limit, offset=offset)
    return {"status": "success", "data": [r.model_dump(mode="json") for r in rows], "limit": limit, "offset": offset}
