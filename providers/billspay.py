from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from providers.base import (
    HttpProviderClient,
    ProviderError,
    PurchaseOutcome,
    WebhookEvent,
    WebhookProcessingError,
    find_variation,
)
from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)

SANDBOX_PLANS: Dict[str, List[Dict[str, Any]]] = {
    "MTN_DATA": [
        {"variation_id": "MTN_1GB_30D", "data_plan": "1GB", "amount": 980},
        {"variation_id": "MTN_2GB_30D", "data_plan": "2GB", "amount": 1950},
    ],
    "AIRTEL_DATA": [
        {"variation_id": "AIRTEL_1GB_30D", "data_plan": "1GB", "amount": 990},
    ],
    "GLO_DATA": [
        {"variation_id": "GLO_1GB_30D", "data_plan": "1GB", "amount": 940},
    ],
    "9MOBILE_DATA": [
        {"variation_id": "9MOBILE_1GB_30D", "data_plan": "1GB", "amount": 1000},
    ],
}

FAILED_STATES = {"failed", "reversed", "declined"}
FAILED_ENVELOPE_STATES = {"error", "failed"}


class BillsPayClient(HttpProviderClient):
    """BillsPay REST client. Bearer auth; every response is wrapped in {"status", "data"}."""

    provider_id = "billspay"
    transaction_prefix = "BP-"

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or SETTINGS
        super().__init__(settings.billspay_base_url, settings.billspay_api_key, settings.telecom_provider_timeout_seconds)

    async def purchase_service(
        self,
        service_code: str,
        amount: float,
        phone: Optional[str],
        variation: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> PurchaseOutcome:
        meta = dict(meta or {})
        customer = meta.get("meter_number") or phone
        if not customer:
            raise ProviderError(f"billspay needs a customer id for {service_code}")
        reference = self.new_reference()
        if self.sandbox:
            if variation:
                plan = find_variation(SANDBOX_PLANS.get(service_code, []), variation)
                if plan is None:
                    raise ProviderError(f"billspay has no plan {variation} for {service_code}")
                amount = amount or float(plan["amount"])
            logger.info("billspay_sandbox_purchase", extra={"service_code": service_code, "reference": reference})
            return PurchaseOutcome(transaction_id=reference, amount=float(amount), raw={"status": "success", "data": {"reference": reference}})

        body = {
            "reference": reference,
            "product_code": service_code,
            "amount": amount,
            "customer_id": customer,
            "plan_code": variation,
            "phone": phone,
        }
        payload = _unwrap(await self.request("POST", "/bills/pay", json_body=body))
        state = str(payload.get("state") or payload.get("status") or "successful").lower()
        if state in FAILED_STATES:
            raise ProviderError(f"billspay transaction {state}: {payload.get('message') or 'no reason given'}")
        return PurchaseOutcome(
            transaction_id=str(payload.get("reference") or reference),
            amount=float(payload.get("amount") or amount),
            status=state,
            raw=payload,
        )

    async def query_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        if self.sandbox:
            if not self.owns_reference(transaction_id):
                return None
            return {"transaction_id": transaction_id, "status": "successful"}
        data = await self.request("GET", f"/bills/transactions/{transaction_id}", allow_not_found=True)
        if data is None:
            return None
        payload = _unwrap(data)
        return {"transaction_id": transaction_id, "status": str(payload.get("state") or "pending"), "raw": payload}

    async def get_pricing(self, service_code: str, amount: Optional[float] = None) -> Dict[str, Any]:
        if self.sandbox:
            plans = SANDBOX_PLANS.get(service_code, [])
        else:
            payload = _unwrap(await self.request("GET", f"/bills/products/{service_code}/plans"))
            plans = [
                {"variation_id": p.get("code"), "data_plan": p.get("name"), "amount": p.get("price")}
                for p in payload.get("plans") or []
                if isinstance(p, dict)
            ]
        return {"service_code": service_code, "amount": amount, "variations": plans}

    async def get_availability(self, service_code: str) -> bool:
        if self.sandbox:
            return True
        payload = _unwrap(await self.request("GET", f"/bills/products/{service_code}"))
        return bool(payload.get("available", True))

    async def handle_webhook(self, event: WebhookEvent) -> Dict[str, Any]:
        envelope = event.payload or {}
        inner = envelope.get("data")
        payload = inner if isinstance(inner, dict) else envelope
        reference = payload.get("reference")
        if not reference:
            raise WebhookProcessingError("billspay webhook without a reference")
        state = str(payload.get("state") or "pending").lower()
        if str(envelope.get("status", "")).lower() in FAILED_ENVELOPE_STATES:
            state = "failed"
        return {"transaction_id": str(reference), "status": state}


def _unwrap(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not data:
        return {}
    if str(data.get("status", "success")).lower() in FAILED_ENVELOPE_STATES:
        raise ProviderError(f"billspay error: {data.get('message') or 'unknown'}")
    inner = data.get("data")
    return inner if isinstance(inner, dict) else data
