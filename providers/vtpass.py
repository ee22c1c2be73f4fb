from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from providers.base import (
    HttpProviderClient,
    MeterVerificationError,
    ProviderError,
    PurchaseOutcome,
    WebhookEvent,
    WebhookProcessingError,
    find_variation,
)
from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)

SANDBOX_SERVICES = {
    "mtn", "airtel", "glo", "etisalat",
    "mtn-data", "airtel-data", "glo-data", "etisalat-data", "smile-direct",
    "ikeja-electric", "eko-electric", "ibadan-electric", "abuja-electric",
    "portharcourt-electric", "kano-electric", "kaduna-electric", "jos-electric",
    "dstv", "gotv", "startimes", "showmax",
    "bet9ja", "betking", "betway", "1xbet",
}

SANDBOX_VARIATIONS: Dict[str, List[Dict[str, Any]]] = {
    "mtn-data": [
        {"variation_id": "mtn-1gb", "data_plan": "1GB", "amount": 1000, "validity": "30 days"},
        {"variation_id": "mtn-2gb", "data_plan": "2GB", "amount": 2000, "validity": "30 days"},
        {"variation_id": "mtn-10gb", "data_plan": "10GB", "amount": 5000, "validity": "30 days"},
    ],
    "airtel-data": [
        {"variation_id": "airtel-1gb", "data_plan": "1GB", "amount": 1000, "validity": "30 days"},
        {"variation_id": "airtel-2gb", "data_plan": "2GB", "amount": 2000, "validity": "30 days"},
    ],
    "glo-data": [
        {"variation_id": "glo-1gb", "data_plan": "1GB", "amount": 950, "validity": "30 days"},
    ],
    "etisalat-data": [
        {"variation_id": "etisalat-1gb", "data_plan": "1GB", "amount": 1000, "validity": "30 days"},
    ],
}

DELIVERED = {"delivered", "successful", "success"}


class VTPassClient(HttpProviderClient):
    provider_id = "vtpass"
    transaction_prefix = "VT-"

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or SETTINGS
        super().__init__(settings.vtpass_base_url, settings.vtpass_api_key, settings.telecom_provider_timeout_seconds)
        self.secret_key = settings.vtpass_secret_key
        self.public_key = settings.vtpass_public_key

    def auth_headers(self) -> Dict[str, str]:
        return {"api-key": self.api_key, "secret-key": self.secret_key, "Content-Type": "application/json"}

    async def purchase_service(
        self,
        service_code: str,
        amount: float,
        phone: Optional[str],
        variation: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> PurchaseOutcome:
        meta = dict(meta or {})
        billers_code = meta.get("meter_number") or meta.get("iuc_number") or phone
        if not billers_code:
            raise ProviderError(f"vtpass needs a phone, meter or IUC number for {service_code}")
        if self.sandbox:
            return self._sandbox_purchase(service_code, amount, phone, variation)

        request_id = self.new_reference()
        body = {
            "request_id": request_id,
            "serviceID": service_code,
            "amount": amount,
            "phone": phone,
            "billersCode": billers_code,
            "variation_code": variation,
        }
        if meta.get("meter_type"):
            body["variation_code"] = meta["meter_type"]
        data = await self.request("POST", "/pay", json_body=body) or {}
        if str(data.get("code")) != "000":
            raise ProviderError(f"vtpass rejected {service_code}: {data.get('response_description') or data.get('code')}")
        txn = ((data.get("content") or {}).get("transactions")) or {}
        status = str(txn.get("status") or "delivered").lower()
        if status not in DELIVERED and status != "pending":
            raise ProviderError(f"vtpass transaction {status}")
        return PurchaseOutcome(
            transaction_id=request_id,
            amount=float(txn.get("amount") or amount),
            status=status,
            commission=_as_float(txn.get("commission")),
            raw=data,
        )

    def _sandbox_purchase(self, service_code: str, amount: float, phone: Optional[str], variation: Optional[str]) -> PurchaseOutcome:
        if service_code not in SANDBOX_SERVICES:
            raise ProviderError(f"vtpass does not offer {service_code}")
        if variation:
            plan = find_variation(SANDBOX_VARIATIONS.get(service_code, []), variation)
            if plan is None:
                raise ProviderError(f"vtpass has no variation {variation} for {service_code}")
            amount = amount or float(plan["amount"])
        request_id = self.new_reference()
        logger.info("vtpass_sandbox_purchase", extra={"service_code": service_code, "request_id": request_id})
        return PurchaseOutcome(
            transaction_id=request_id,
            amount=float(amount),
            status="delivered",
            raw={"code": "000", "content": {"transactions": {"status": "delivered", "product_name": service_code, "unique_element": phone}}},
        )

    async def query_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        if self.sandbox:
            if not self.owns_reference(transaction_id):
                return None
            return {"transaction_id": transaction_id, "status": "delivered", "code": "000"}
        data = await self.request("POST", "/requery", json_body={"request_id": transaction_id}, allow_not_found=True)
        if not data or str(data.get("code")) != "000":
            return None
        txn = ((data.get("content") or {}).get("transactions")) or {}
        return {"transaction_id": transaction_id, "status": str(txn.get("status") or "pending"), "raw": data}

    async def get_pricing(self, service_code: str, amount: Optional[float] = None) -> Dict[str, Any]:
        if self.sandbox:
            variations = SANDBOX_VARIATIONS.get(service_code, [])
        else:
            data = await self.request("GET", "/service-variations", params={"serviceID": service_code}) or {}
            variations = [
                {"variation_id": v.get("variation_code"), "data_plan": v.get("name"), "amount": _as_float(v.get("variation_amount"))}
                for v in ((data.get("content") or {}).get("variations") or [])
                if isinstance(v, dict)
            ]
        return {"service_code": service_code, "amount": amount, "variations": variations}

    async def get_availability(self, service_code: str) -> bool:
        if self.sandbox:
            return service_code in SANDBOX_SERVICES
        data = await self.request("GET", "/service-variations", params={"serviceID": service_code}) or {}
        return str(data.get("response_description", "000")) == "000" or bool(data.get("content"))

    def supports_meter_verification(self) -> bool:
        return True

    async def verify_meter_number(self, service_code: str, meter_number: str, meter_type: str) -> Dict[str, Any]:
        if self.sandbox:
            return {
                "meter_number": meter_number,
                "meter_type": meter_type,
                "service_code": service_code,
                "customer_name": "JOHN DOE",
                "address": "123 TEST STREET, LAGOS",
                "verified": True,
            }
        data = await self.request(
            "POST",
            "/merchant-verify",
            json_body={"billersCode": meter_number, "serviceID": service_code, "type": meter_type},
        ) or {}
        content = data.get("content") or {}
        if str(data.get("code")) != "000" or content.get("error") or content.get("WrongBillersCode"):
            raise MeterVerificationError(f"vtpass could not verify meter {meter_number}")
        return {
            "meter_number": content.get("Meter_Number") or meter_number,
            "meter_type": meter_type,
            "service_code": service_code,
            "customer_name": content.get("Customer_Name"),
            "address": content.get("Address"),
            "verified": True,
        }

    async def handle_webhook(self, event: WebhookEvent) -> Dict[str, Any]:
        data = event.payload.get("data") if isinstance(event.payload.get("data"), dict) else event.payload
        txn = ((data.get("content") or {}).get("transactions")) or {}
        transaction_id = data.get("requestId") or data.get("request_id") or txn.get("requestId")
        if not transaction_id:
            raise WebhookProcessingError("vtpass webhook without a request id")
        return {"transaction_id": str(transaction_id), "status": str(txn.get("status") or data.get("status") or "pending").lower()}


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
