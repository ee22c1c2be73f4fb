from __future__ import annotations

import hashlib
import hmac
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

SIGNATURE_HEADER = "x-vtu-signature"

SANDBOX_BUNDLES: Dict[str, List[Dict[str, Any]]] = {
    "MTN_DATA_VTU": [
        {"variation_id": "500", "data_plan": "1GB", "amount": 950},
        {"variation_id": "501", "data_plan": "2GB", "amount": 1900},
    ],
    "AIRTEL_DATA_VTU": [
        {"variation_id": "600", "data_plan": "1GB", "amount": 960},
    ],
}


class VTUClient(HttpProviderClient):
    provider_id = "vtu"
    transaction_prefix = "VTU-"

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or SETTINGS
        super().__init__(settings.vtu_base_url, settings.vtu_api_key, settings.telecom_provider_timeout_seconds)
        self.webhook_secret = settings.vtu_webhook_secret

    async def purchase_service(
        self,
        service_code: str,
        amount: float,
        phone: Optional[str],
        variation: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> PurchaseOutcome:
        if not phone:
            raise ProviderError("vtu needs a phone number")
        order_id = self.new_reference()
        if self.sandbox:
            if variation:
                bundle = find_variation(SANDBOX_BUNDLES.get(service_code, []), variation)
                if bundle is None:
                    raise ProviderError(f"vtu has no bundle {variation} for {service_code}")
                amount = amount or float(bundle["amount"])
            logger.info("vtu_sandbox_purchase", extra={"service_code": service_code, "order_id": order_id})
            return PurchaseOutcome(transaction_id=order_id, amount=float(amount), raw={"code": "success", "order_id": order_id})

        body = {"request_id": order_id, "service_id": service_code, "phone": phone, "amount": amount}
        if variation:
            body["variation_id"] = variation
        data = await self.request("POST", "/purchase", json_body=body) or {}
        if str(data.get("code")).lower() != "success":
            raise ProviderError(f"vtu rejected {service_code}: {data.get('message') or data.get('code')}")
        details = data.get("data") if isinstance(data.get("data"), dict) else {}
        return PurchaseOutcome(
            transaction_id=str(details.get("order_id") or order_id),
            amount=float(details.get("amount") or amount),
            status=str(details.get("status") or "completed-api").lower(),
            raw=data,
        )

    async def query_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        if self.sandbox:
            if not self.owns_reference(transaction_id):
                return None
            return {"transaction_id": transaction_id, "status": "completed-api"}
        data = await self.request("GET", "/requery", params={"request_id": transaction_id}, allow_not_found=True)
        if not data or str(data.get("code")).lower() != "success":
            return None
        details = data.get("data") if isinstance(data.get("data"), dict) else {}
        return {"transaction_id": transaction_id, "status": str(details.get("status") or "pending"), "raw": data}

    async def get_pricing(self, service_code: str, amount: Optional[float] = None) -> Dict[str, Any]:
        if self.sandbox:
            bundles = SANDBOX_BUNDLES.get(service_code, [])
        else:
            data = await self.request("GET", "/variations/data", params={"service_id": service_code}) or {}
            bundles = [
                {"variation_id": str(b.get("variation_id")), "data_plan": b.get("data_plan"), "amount": b.get("price")}
                for b in data.get("data") or []
                if isinstance(b, dict)
            ]
        return {"service_code": service_code, "amount": amount, "variations": bundles}

    async def get_availability(self, service_code: str) -> bool:
        if self.sandbox:
            return True
        data = await self.request("GET", "/balance") or {}
        return str(data.get("code")).lower() == "success"

    def verify_signature(self, event: WebhookEvent) -> bool:
        if not self.webhook_secret:
            return True
        headers = {k.lower(): v for k, v in event.headers.items()}
        signature = headers.get(SIGNATURE_HEADER, "")
        expected = hmac.new(self.webhook_secret.encode("utf-8"), event.raw_body, hashlib.sha512).hexdigest()
        return bool(signature) and hmac.compare_digest(signature, expected)

    async def handle_webhook(self, event: WebhookEvent) -> Dict[str, Any]:
        if not self.verify_signature(event):
            raise WebhookProcessingError("vtu webhook signature mismatch")
        details = event.payload.get("data") if isinstance(event.payload.get("data"), dict) else event.payload
        order_id = details.get("request_id") or details.get("order_id")
        if not order_id:
            raise WebhookProcessingError("vtu webhook without an order id")
        return {"transaction_id": str(order_id), "status": str(details.get("status") or "pending").lower()}
