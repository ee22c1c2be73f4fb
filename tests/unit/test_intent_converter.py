from __future__ import annotations

from agents.intent_converter import convert_intent_to_service_request, render_success_message
from models.schemas import (
    IntentType,
    MeterType,
    Network,
    ResponseStatus,
    ServiceResponse,
    ServiceType,
    TelecomIntent,
)


def _intent(intent: IntentType, **entities) -> TelecomIntent:
    return TelecomIntent(intent=intent, confidence=0.9, entities=entities, needs_clarification=False)


def test_airtime_intent_becomes_request():
    request = convert_intent_to_service_request(
        _intent(IntentType.AIRTIME_PURCHASE, network="mtn", amount=500.0, phone="2348012345678")
    )
    assert request is not None
    assert request.service_type == ServiceType.AIRTIME
    assert request.network == Network.MTN
    assert request.amount == 500.0
    assert request.phone == "2348012345678"


def test_incomplete_or_unknown_intents_are_rejected():
    assert convert_intent_to_service_request(_intent(IntentType.AIRTIME_PURCHASE, amount=500.0)) is None
    assert convert_intent_to_service_request(_intent(IntentType.UNKNOWN, amount=500.0)) is None
    pending = TelecomIntent(
        intent=IntentType.AIRTIME_PURCHASE,
        entities={"network": "mtn", "amount": 500.0},
        needs_clarification=True,
    )
    assert convert_intent_to_service_request(pending) is None


def test_data_plan_without_amount_is_priced_later():
    request = convert_intent_to_service_request(
        _intent(IntentType.DATA_PURCHASE, network="airtel", data_plan="2GB", phone="2348012345678")
    )
    assert request is not None
    assert request.amount == 0
    assert request.variation == "2GB"


def test_electricity_carries_meter_details():
    request = convert_intent_to_service_request(
        _intent(
            IntentType.ELECTRICITY_PURCHASE,
            amount=5000.0,
            meter_number="45012345678",
            meter_type="Prepaid",
            biller="ikeja",
        )
    )
    assert request is not None
    assert request.network is None
    assert request.meter_type == MeterType.PREPAID
    assert request.routing_key == "ikeja"


def test_cable_needs_iuc_and_biller():
    assert convert_intent_to_service_request(_intent(IntentType.CABLE_PURCHASE, amount=6000.0, biller="dstv")) is None
    request = convert_intent_to_service_request(
        _intent(IntentType.CABLE_PURCHASE, amount=6000.0, biller="dstv", iuc_number="7012345678", bouquet="compact")
    )
    assert request is not None
    assert request.variation == "compact"


def test_success_message_names_amount_network_and_target():
    intent = _intent(IntentType.AIRTIME_PURCHASE, network="mtn", amount=500.0, phone="2348012345678")
    response = ServiceResponse(
        success=True,
        provider="vtpass",
        transaction_id="VT-1",
        amount=500.0,
        commission=17.5,
        status=ResponseStatus.SUCCESS,
        message="ok",
    )
    assert render_success_message(intent, response) == "Successfully purchased ₦500 MTN airtime for 2348012345678!"
