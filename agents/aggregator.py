from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Optional

from compliance.audit_logger import AuditLogger
from models.schemas import (
    AttemptOutcome,
    AvailabilityReport,
    ProviderAttempt,
    ProviderAvailability,
    ProviderPricing,
    ResponseStatus,
    ServiceRequest,
    ServiceResponse,
    ServiceType,
)
from providers.base import (
    MeterVerificationError,
    ProviderError,
    ProviderNotFoundError,
    PurchaseOutcome,
    TransactionNotFoundError,
    WebhookEvent,
    find_variation,
)
from providers.registry import ProviderDescriptor, ProviderRegistry
from providers.service_codes import lookup_service_code
from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)

ALL_FAILED_MESSAGE = "All providers failed to process transaction"


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one call against one provider; failures are values, not exceptions."""

    provider_id: str
    ok: bool
    attempt: ProviderAttempt
    value: Any = None
    error: Optional[str] = None
    timed_out: bool = False


class TelecomAggregator:
    def __init__(
        self,
        registry: ProviderRegistry,
        settings: Settings | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.settings = settings or SETTINGS
        self.registry = registry
        self.audit_logger = audit_logger or AuditLogger(self.settings.audit_log_path)
        self.timeout_s = self.settings.telecom_provider_timeout_seconds

    async def _attempt(self, provider_id: str, call: Awaitable[Any]) -> AttemptResult:
        try:
            value = await asyncio.wait_for(call, timeout=self.timeout_s)
        except asyncio.TimeoutError:
            return self._result(provider_id, ok=False, error=f"{provider_id} timed out after {self.timeout_s:g}s", timed_out=True)
        except Exception as exc:
            return self._result(provider_id, ok=False, error=str(exc) or type(exc).__name__)
        return self._result(provider_id, ok=True, value=value)

    async def _bounded(self, provider_id: str, call: Awaitable[Any]) -> Any:
        """Single-provider call under the per-call timeout; provider errors propagate."""
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            raise ProviderError(f"{provider_id} timed out after {self.timeout_s:g}s") from exc

    @staticmethod
    def _result(provider_id: str, ok: bool, value: Any = None, error: Optional[str] = None, timed_out: bool = False) -> AttemptResult:
        attempt = ProviderAttempt(
            provider_id=provider_id,
            outcome=AttemptOutcome.SUCCESS if ok else AttemptOutcome.FAILED,
            error=error,
        )
        return AttemptResult(provider_id=provider_id, ok=ok, value=value, error=error, timed_out=timed_out, attempt=attempt)

    async def purchase_service(self, request: ServiceRequest) -> ServiceResponse:
        """Try candidates one at a time in priority order; the first success wins.

        Only one upstream is ever charged for a request. A timed-out call counts
        as a failed attempt, although the upstream may still complete it.
        """
        candidates = self.registry.providers_for(request.service_type)
        if not candidates:
            message = f"No providers available for {request.service_type.value} on {request.target_label}"
            logger.warning("no_providers_available", extra={"service_type": request.service_type.value, "target": request.target_label})
            return ServiceResponse(success=False, status=ResponseStatus.FAILED, message=message, error=message)

        attempts: List[ProviderAttempt] = []
        last_error: Optional[str] = None
        for descriptor in candidates:
            result = await self._purchase_with(descriptor, request)
            attempts.append(result.attempt)
            self._audit_attempt(request, result)
            if result.ok:
                outcome: PurchaseOutcome = result.value
                amount = outcome.amount or request.amount
                logger.info(
                    "provider_purchase_succeeded",
                    extra={"provider": descriptor.id, "transaction_id": outcome.transaction_id, "attempts": len(attempts)},
                )
                return ServiceResponse(
                    success=True,
                    provider=descriptor.id,
                    transaction_id=outcome.transaction_id,
                    amount=amount,
                    commission=round(amount * descriptor.commission, 2),
                    status=ResponseStatus.SUCCESS,
                    message=f"{request.service_type.value.title()} purchase completed via {descriptor.name}",
                    attempts=attempts,
                )
            last_error = result.error
            logger.warning(
                "provider_attempt_failed",
                extra={"provider": descriptor.id, "error": result.error, "timed_out": result.timed_out},
            )

        return ServiceResponse(
            success=False,
            status=ResponseStatus.FAILED,
            message=ALL_FAILED_MESSAGE,
            error=last_error,
            attempts=attempts,
        )

    async def _purchase_with(self, descriptor: ProviderDescriptor, request: ServiceRequest) -> AttemptResult:
        code = lookup_service_code(descriptor.id, request.service_type.value, request.routing_key)
        if code is None:
            return self._result(
                descriptor.id,
                ok=False,
                error=f"{descriptor.id} has no service code for {request.service_type.value}/{request.target_label}",
            )
        meta = {
            "service_type": request.service_type.value,
            "network": request.network.value if request.network else None,
            "biller": request.biller,
            "meter_number": request.meter_number,
            "meter_type": request.meter_type.value if request.meter_type else None,
            "iuc_number": request.iuc_number,
            **request.additional_params,
        }
        return await self._attempt(
            descriptor.id,
            descriptor.client.purchase_service(code, request.amount, request.phone, request.variation, meta),
        )

    def _audit_attempt(self, request: ServiceRequest, result: AttemptResult) -> None:
        self.audit_logger.log_attempt(
            provider_id=result.provider_id,
            service_type=request.service_type.value,
            target=request.target_label,
            amount=request.amount,
            outcome=result.attempt.outcome.value,
            error=result.error,
            transaction_id=result.value.transaction_id if result.ok else None,
        )

    async def get_pricing(self, service_type: ServiceType | str, network: Optional[str], amount: Optional[float] = None) -> List[ProviderPricing]:
        """Ask every candidate for pricing; one provider's failure only fills its own slot."""
        service = ServiceType(service_type)
        candidates = self.registry.providers_for(service)
        results = await asyncio.gather(*(self._pricing_for(d, service, network, amount) for d in candidates))
        return list(results)

    async def _pricing_for(self, descriptor: ProviderDescriptor, service: ServiceType, network: Optional[str], amount: Optional[float]) -> ProviderPricing:
        code = lookup_service_code(descriptor.id, service.value, network)
        if code is None:
            return ProviderPricing(
                provider=descriptor.id,
                provider_name=descriptor.name,
                status="unavailable",
                error=f"{descriptor.id} does not offer {service.value}/{network}",
            )
        result = await self._attempt(descriptor.id, descriptor.client.get_pricing(code, amount))
        if not result.ok:
            logger.warning("provider_pricing_failed", extra={"provider": descriptor.id, "error": result.error})
            return ProviderPricing(provider=descriptor.id, provider_name=descriptor.name, status="unavailable", error=result.error)
        return ProviderPricing(
            provider=descriptor.id,
            provider_name=descriptor.name,
            commission=descriptor.commission,
            pricing=result.value,
        )

    async def get_availability(self, service_type: ServiceType | str, network: Optional[str]) -> AvailabilityReport:
        service = ServiceType(service_type)
        candidates = self.registry.providers_for(service)
        entries = await asyncio.gather(*(self._availability_for(d, service, network) for d in candidates))
        overall = "available" if any(e.available for e in entries) else "unavailable"
        return AvailabilityReport(service_type=service.value, network=network, availability=list(entries), overall_status=overall)

    async def _availability_for(self, descriptor: ProviderDescriptor, service: ServiceType, network: Optional[str]) -> ProviderAvailability:
        code = lookup_service_code(descriptor.id, service.value, network)
        if code is None:
            return ProviderAvailability(
                provider=descriptor.id,
                provider_name=descriptor.name,
                available=False,
                error=f"{descriptor.id} does not offer {service.value}/{network}",
            )
        result = await self._attempt(descriptor.id, descriptor.client.get_availability(code))
        if not result.ok:
            logger.warning("provider_availability_failed", extra={"provider": descriptor.id, "error": result.error})
        return ProviderAvailability(
            provider=descriptor.id,
            provider_name=descriptor.name,
            available=bool(result.ok and result.value),
            error=result.error,
        )

    async def quote_variation(self, service_type: ServiceType | str, network: Optional[str], variation: str) -> Optional[float]:
        """Price of a named variation from the first provider (in priority order) that lists it."""
        for entry in await self.get_pricing(service_type, network):
            if entry.pricing is None:
                continue
            match = find_variation(entry.pricing.get("variations") or [], variation)
            if match is not None and match.get("amount"):
                return float(match["amount"])
        return None

    async def query_transaction(self, transaction_id: str, provider_id: Optional[str] = None) -> Dict[str, Any]:
        if provider_id:
            descriptor = self.registry.get(provider_id)
            if descriptor is None:
                raise ProviderNotFoundError(f"Provider {provider_id} not found")
            found = await self._bounded(descriptor.id, descriptor.client.query_transaction(transaction_id))
            if found is None:
                raise TransactionNotFoundError(f"Transaction {transaction_id} not found at {descriptor.id}")
            return {"provider": descriptor.id, "transaction": found}

        for descriptor in self.registry.all():
            result = await self._attempt(descriptor.id, descriptor.client.query_transaction(transaction_id))
            if not result.ok:
                logger.warning("provider_query_failed", extra={"provider": descriptor.id, "error": result.error})
                continue
            if result.value is not None:
                return {"provider": descriptor.id, "transaction": result.value}
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found in any provider")

    async def verify_meter(self, service_code: str, meter_number: str, meter_type: str = "prepaid") -> Dict[str, Any]:
        verifiers = [
            d for d in self.registry.providers_for(ServiceType.ELECTRICITY) if d.client.supports_meter_verification()
        ]
        results = await asyncio.gather(
            *(self._attempt(d.id, d.client.verify_meter_number(service_code, meter_number, meter_type)) for d in verifiers)
        )
        for result in results:
            if result.ok:
                return {"provider": result.provider_id, **result.value}
            logger.warning("meter_verification_failed", extra={"provider": result.provider_id, "error": result.error})
        raise MeterVerificationError(f"Unable to verify meter {meter_number}")

    async def dispatch_webhook(self, provider_key: str, event: WebhookEvent) -> Optional[Dict[str, Any]]:
        """Route a callback to its provider; an unknown key is logged and ignored."""
        descriptor = self.registry.get(provider_key)
        if descriptor is None:
            logger.warning("webhook_unknown_provider", extra={"provider": provider_key})
            self.audit_logger.log_json({"event": "webhook_unknown_provider", "provider": provider_key})
            return None
        update = await self._bounded(descriptor.id, descriptor.client.handle_webhook(event))
        self.audit_logger.log_json({"event": "webhook_received", "provider": descriptor.id, **update})
        logger.info("webhook_dispatched", extra={"provider": descriptor.id, "transaction_id": update.get("transaction_id")})
        return {"provider": descriptor.id, **update}

    def provider_stats(self) -> Dict[str, Any]:
        return self.registry.snapshot()
