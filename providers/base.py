from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)


class TelecomError(RuntimeError):
    """Base class for caller-visible failures in the purchase pipeline."""

    status = "error"


class ProviderError(TelecomError):
    """An upstream provider rejected or failed a call."""

    status = "failed"


class ProviderNotFoundError(TelecomError):
    status = "failed"


class TransactionNotFoundError(TelecomError):
    status = "failed"


class MeterVerificationError(TelecomError):
    status = "failed"


class WebhookProcessingError(TelecomError):
    status = "error"


@dataclass(frozen=True)
class PurchaseOutcome:
    transaction_id: str
    amount: float
    status: str = "delivered"
    commission: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    payload: Dict[str, Any]
    raw_body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)


def find_variation(variations: list, wanted: Optional[str]) -> Optional[Dict[str, Any]]:
    """Match a requested variation by id or by plan size ("2GB" == "2gb" == "2 GB")."""
    if not wanted:
        return None
    key = "".join(str(wanted).split()).upper()
    for item in variations:
        ids = {str(item.get("variation_id", "")).upper(), "".join(str(item.get("data_plan", "")).split()).upper()}
        if key in ids:
            return item
    return None


class ProviderClient(ABC):
    """Capability interface every upstream provider implements.

    Failures are raised as ProviderError. Meter verification is an optional
    capability advertised through supports_meter_verification().
    """

    provider_id: str = ""

    @abstractmethod
    async def purchase_service(
        self,
        service_code: str,
        amount: float,
        phone: Optional[str],
        variation: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> PurchaseOutcome:
        raise NotImplementedError

    @abstractmethod
    async def query_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        """Return the provider's view of a transaction, or None if the id is not theirs."""
        raise NotImplementedError

    @abstractmethod
    async def get_pricing(self, service_code: str, amount: Optional[float] = None) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def get_availability(self, service_code: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def handle_webhook(self, event: WebhookEvent) -> Dict[str, Any]:
        raise NotImplementedError

    def supports_meter_verification(self) -> bool:
        return False

    async def verify_meter_number(self, service_code: str, meter_number: str, meter_type: str) -> Dict[str, Any]:
        raise MeterVerificationError(f"{self.provider_id} does not verify meter numbers")


class HttpProviderClient(ProviderClient):
    """Shared plumbing for REST providers: sandbox switch, auth header, error mapping."""

    transaction_prefix: str = ""

    def __init__(self, base_url: str, api_key: str, timeout_s: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    @property
    def sandbox(self) -> bool:
        return not self.api_key

    def new_reference(self) -> str:
        return f"{self.transaction_prefix}{uuid.uuid4().hex[:16].upper()}"

    def owns_reference(self, transaction_id: str) -> bool:
        return bool(self.transaction_prefix) and str(transaction_id).upper().startswith(self.transaction_prefix)

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        logger.debug("provider_http_request", extra={"provider": self.provider_id, "method": method, "path": path})
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                resp = await client.request(method, url, headers=self.auth_headers(), params=params, json=json_body)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.provider_id} request failed: {exc}") from exc
        if allow_not_found and resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise ProviderError(f"{self.provider_id} returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(f"{self.provider_id} returned a non-JSON response") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.provider_id} returned an unexpected payload")
        return data
