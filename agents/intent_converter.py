from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import ValidationError

from models.schemas import IntentType, MeterType, ServiceRequest, ServiceResponse, ServiceType, TelecomIntent


def convert_intent_to_service_request(intent: TelecomIntent) -> Optional[ServiceRequest]:
    """Map a resolved intent to a provider-agnostic request.

    Pure function. Returns None for unknown or incomplete intents; nothing is defaulted
    that the user did not say (no invented network, biller or meter).
    """
    if intent.intent == IntentType.UNKNOWN or intent.needs_clarification:
        return None
    entities = intent.entities
    amount = entities.get("amount")

    if intent.intent == IntentType.AIRTIME_PURCHASE:
        if not entities.get("network") or not amount:
            return None
        return _build(
            service_type=ServiceType.AIRTIME,
            network=entities["network"],
            amount=amount,
            phone=entities.get("phone"),
        )

    if intent.intent == IntentType.DATA_PURCHASE:
        if not entities.get("network") or not (amount or entities.get("data_plan")):
            return None
        return _build(
            service_type=ServiceType.DATA,
            network=entities["network"],
            amount=amount or 0,
            phone=entities.get("phone"),
            variation=entities.get("data_plan"),
        )

    if intent.intent == IntentType.ELECTRICITY_PURCHASE:
        if not amount:
            return None
        return _build(
            service_type=ServiceType.ELECTRICITY,
            amount=amount,
            phone=entities.get("phone"),
            meter_number=entities.get("meter_number"),
            meter_type=_meter_type(entities.get("meter_type")),
            biller=entities.get("biller"),
        )

    if intent.intent == IntentType.CABLE_PURCHASE:
        if not amount or not entities.get("iuc_number") or not entities.get("biller"):
            return None
        return _build(
            service_type=ServiceType.CABLE,
            amount=amount,
            phone=entities.get("phone"),
            iuc_number=entities["iuc_number"],
            biller=entities["biller"],
            variation=entities.get("bouquet"),
        )

    if intent.intent == IntentType.BETTING_FUNDING:
        if not amount or not entities.get("biller"):
            return None
        return _build(
            service_type=ServiceType.BETTING,
            amount=amount,
            phone=entities.get("phone"),
            biller=entities["biller"],
        )
    return None


def _build(**fields: Any) -> Optional[ServiceRequest]:
    try:
        return ServiceRequest(**fields)
    except ValidationError:
        return None


def _meter_type(raw: Any) -> Optional[MeterType]:
    try:
        return MeterType(str(raw).strip().lower()) if raw else None
    except ValueError:
        return None


def render_success_message(intent: TelecomIntent, response: ServiceResponse) -> str:
    entities: Dict[str, Any] = intent.entities
    network = str(entities.get("network") or "").upper()
    amount = _naira(response.amount or entities.get("amount"))
    if intent.intent == IntentType.AIRTIME_PURCHASE:
        target = f" for {entities['phone']}" if entities.get("phone") else ""
        return f"Successfully purchased {amount} {network} airtime{target}!"
    if intent.intent == IntentType.DATA_PURCHASE:
        target = f" ({entities['phone']})" if entities.get("phone") else ""
        return f"Successfully purchased {entities.get('data_plan') or 'data bundle'} for {network}{target}!"
    if intent.intent == IntentType.ELECTRICITY_PURCHASE:
        target = f" for meter {entities['meter_number']}" if entities.get("meter_number") else ""
        return f"Successfully purchased {amount} electricity units{target}!"
    if intent.intent == IntentType.CABLE_PURCHASE:
        return f"Successfully paid {amount} {str(entities.get('biller') or '').upper()} subscription for IUC {entities.get('iuc_number')}!"
    if intent.intent == IntentType.BETTING_FUNDING:
        return f"Successfully funded your {str(entities.get('biller') or '').title()} wallet with {amount}!"
    return "Transaction completed successfully!"


def _naira(value: Any) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "₦0"
    return f"₦{number:,.0f}" if number.is_integer() else f"₦{number:,.2f}"
