from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from agents.aggregator import TelecomAggregator
from agents.entity_normalizer import normalize_biller
from agents.intent_converter import convert_intent_to_service_request, render_success_message
from agents.intent_parser import TelecomIntentParser
from memory.transaction_store import JsonFileTransactionStore, TransactionStore
from memory.wallet import InMemoryWalletGateway, WalletGateway
from models.schemas import (
    AIPurchaseResult,
    ResponseStatus,
    ServiceRequest,
    ServiceResponse,
    TransactionRecord,
)
from providers.base import WebhookEvent
from providers.registry import ProviderRegistry
from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong while processing your request. Please try again."
INVALID_INTENT_MESSAGE = "I couldn't turn that into a purchase. Please include the service, amount and recipient."

UPSTREAM_SUCCESS_STATES = {"delivered", "successful", "success", "completed", "completed-api"}
UPSTREAM_FAILED_STATES = {"failed", "reversed", "declined", "refunded"}


def webhook_status(raw: Any) -> ResponseStatus:
    state = str(raw or "").strip().lower()
    if state in UPSTREAM_SUCCESS_STATES:
        return ResponseStatus.SUCCESS
    if state in UPSTREAM_FAILED_STATES:
        return ResponseStatus.FAILED
    return ResponseStatus.PENDING


class TelecomOrchestrator:
    """Wraps the aggregator with the wallet and the transaction history.

    Nothing is debited until a provider confirms the purchase.
    """

    def __init__(
        self,
        aggregator: TelecomAggregator | None = None,
        parser: TelecomIntentParser | None = None,
        wallet: WalletGateway | None = None,
        store: TransactionStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or SETTINGS
        self.aggregator = aggregator or TelecomAggregator(ProviderRegistry.from_settings(self.settings), self.settings)
        self.parser = parser or TelecomIntentParser()
        self.wallet = wallet or InMemoryWalletGateway(self.settings)
        self.store = store or JsonFileTransactionStore(self.settings.transaction_store_path)

    async def purchase(self, user_id: str, request: ServiceRequest) -> ServiceResponse:
        if request.biller:
            request = request.model_copy(update={"biller": normalize_biller(request.biller) or request.biller.strip().lower()})
        missing = request.missing_target()
        if missing:
            message = f"A {missing.replace('_', ' ')} is required for {request.service_type.value}"
            return ServiceResponse(success=False, status=ResponseStatus.INVALID_INTENT, message=message, error=message)

        if request.amount == 0:
            price = await self.aggregator.quote_variation(request.service_type, request.routing_key, str(request.variation))
            if price is None:
                message = f"Could not find a price for {request.variation} on {request.target_label}"
                return ServiceResponse(success=False, status=ResponseStatus.FAILED, message=message, error=message)
            request = request.model_copy(update={"amount": price})

        balance = await self.wallet.get_balance(user_id)
        if balance < request.amount:
            logger.info("purchase_insufficient_balance", extra={"user_id": user_id, "amount": request.amount})
            return ServiceResponse(
                success=False,
                amount=request.amount,
                status=ResponseStatus.INSUFFICIENT_BALANCE,
                message=f"Insufficient balance. Your balance is ₦{balance:,.2f} but this purchase costs ₦{request.amount:,.2f}.",
            )

        response = await self.aggregator.purchase_service(request)
        if not response.success:
            return response

        try:
            await self.wallet.debit(user_id, response.amount, memo=f"{request.service_type.value} via {response.provider}")
        except Exception as exc:
            # The upstream purchase has already gone through; surface the ledger problem without failing it.
            logger.error(
                "wallet_debit_failed",
                extra={"user_id": user_id, "transaction_id": response.transaction_id, "error": repr(exc)},
            )
            response = response.model_copy(update={"error": f"wallet debit failed: {exc}"})

        await self._record(user_id, request, response)
        return response

    async def _record(self, user_id: str, request: ServiceRequest, response: ServiceResponse) -> None:
        entry = TransactionRecord(
            reference=f"TX-{uuid.uuid4().hex[:12].upper()}",
            user_id=user_id,
            service_type=request.service_type,
            network=request.network.value if request.network else None,
            biller=request.biller,
            amount=response.amount,
            commission=response.commission,
            phone=request.phone,
            meter_number=request.meter_number,
            provider=response.provider,
            provider_transaction_id=response.transaction_id,
            status=response.status,
        )
        try:
            await self.store.record(entry)
        except Exception:
            logger.exception("transaction_record_failed", extra={"user_id": user_id, "transaction_id": response.transaction_id})

    async def ai_purchase(self, user_id: str, message: str, context: Mapping[str, Any] | None = None) -> AIPurchaseResult:
        try:
            intent = await self.parser.parse_telecom_intent(message, context)
            if intent.needs_clarification:
                return AIPurchaseResult(
                    status=ResponseStatus.CLARIFICATION_NEEDED,
                    message=intent.clarification_message or "Could you please provide more details?",
                    intent=intent,
                    suggestions=intent.suggestions,
                )

            request = convert_intent_to_service_request(intent)
            if request is None:
                return AIPurchaseResult(
                    status=ResponseStatus.INVALID_INTENT,
                    message=INVALID_INTENT_MESSAGE,
                    intent=intent,
                    suggestions=intent.suggestions,
                )

            response = await self.purchase(user_id, request)
            if response.success:
                return AIPurchaseResult(
                    status=ResponseStatus.SUCCESS,
                    message=render_success_message(intent, response),
                    intent=intent,
                    transaction=response,
                )
            return AIPurchaseResult(status=response.status, message=response.message, intent=intent, transaction=response)
        except Exception:
            logger.exception("ai_purchase_failed", extra={"user_id": user_id})
            return AIPurchaseResult(status=ResponseStatus.ERROR, message=GENERIC_ERROR_MESSAGE)

    async def apply_webhook(self, provider_key: str, event: WebhookEvent) -> Optional[Dict[str, Any]]:
        update = await self.aggregator.dispatch_webhook(provider_key, event)
        if update is None:
            return None
        status = webhook_status(update.get("status"))
        record = await self.store.update_status(str(update.get("transaction_id")), status)
        return {**update, "status": status.value, "recorded": record is not None}

    async def history(self, user_id: str, limit: int = 20, offset: int = 0) -> List[TransactionRecord]:
        return await self.store.list_for_user(user_id, limit=limit, offset=offset)
