from __future__ import annotations

from agents.rule_parser import RuleBasedIntentParser
from models.schemas import IntentType


def test_airtime_request_with_all_details():
    intent = RuleBasedIntentParser().parse("Buy 500 MTN airtime for 08012345678")
    assert intent.intent == IntentType.AIRTIME_PURCHASE
    assert intent.source == "rules"
    assert intent.confidence == 0.5
    assert intent.entities == {"phone": "08012345678", "network": "mtn", "amount": 500}


def test_phone_digits_are_not_read_as_amount():
    intent = RuleBasedIntentParser().parse("recharge glo for 08031234567")
    assert intent.intent == IntentType.AIRTIME_PURCHASE
    assert "amount" not in intent.entities
    assert intent.entities["phone"] == "08031234567"


def test_airtime_keyword_wins_over_data_size():
    intent = RuleBasedIntentParser().parse("recharge 1GB please")
    assert intent.intent == IntentType.AIRTIME_PURCHASE
    assert intent.entities["data_plan"] == "1GB"


def test_data_plan_with_decimal_size():
    intent = RuleBasedIntentParser().parse("buy 1.5gb airtel data")
    assert intent.intent == IntentType.DATA_PURCHASE
    assert intent.entities["data_plan"] == "1.5GB"
    assert intent.entities["network"] == "airtel"
    assert "amount" not in intent.entities


def test_electricity_request_extracts_meter_and_disco():
    intent = RuleBasedIntentParser().parse("Buy 5000 naira IKEDC electricity for meter 45012345678")
    assert intent.intent == IntentType.ELECTRICITY_PURCHASE
    assert intent.entities == {"meter_number": "45012345678", "biller": "ikeja", "amount": 5000}


def test_cable_request_extracts_iuc():
    intent = RuleBasedIntentParser().parse("Pay 6,000 for DSTV, IUC 7012345678")
    assert intent.intent == IntentType.CABLE_PURCHASE
    assert intent.entities == {"iuc_number": "7012345678", "biller": "dstv", "amount": 6000}


def test_betting_wallet_funding():
    intent = RuleBasedIntentParser().parse("Fund my Bet9ja wallet with 1000 for 08012345678")
    assert intent.intent == IntentType.BETTING_FUNDING
    assert intent.entities["biller"] == "bet9ja"
    assert intent.entities["amount"] == 1000


def test_unrelated_message_is_unknown():
    intent = RuleBasedIntentParser().parse("hello there")
    assert intent.intent == IntentType.UNKNOWN
    assert intent.entities == {}
