from __future__ import annotations

import asyncio
import json

from agents.intent_parser import GENERIC_CLARIFICATION, TelecomIntentParser
from agents.llm_runtime import LLMCallError, LLMResult, LLMUnavailableError
from models.schemas import IntentType, TelecomIntent


class UnavailableLLM:
    provider = "none"

    async def generate(self, **kwargs):
        raise LLMUnavailableError("no key")


class ScriptedLLM:
    provider = "scripted"

    def __init__(self, text: str) -> None:
        self.text = text
        self.calls = []

    async def generate(self, **kwargs):
        self.calls.append(kwargs)
        return LLMResult(text=self.text, provider="scripted", model="test", raw={})


class BrokenLLM:
    provider = "broken"

    async def generate(self, **kwargs):
        raise LLMCallError("upstream 500")


def _parse(llm, message, context=None) -> TelecomIntent:
    return asyncio.run(TelecomIntentParser(llm=llm).parse_telecom_intent(message, context))


def test_rule_fallback_asks_for_the_first_missing_slot():
    intent = _parse(UnavailableLLM(), "I want to buy MTN airtime")
    assert intent.source == "rules"
    assert intent.intent == IntentType.AIRTIME_PURCHASE
    assert intent.entities == {"network": "mtn"}
    assert intent.needs_clarification is True
    assert intent.clarification_message == "How much airtime would you like to buy? (e.g., 100, 500, 1000)"
    assert intent.suggestions


def test_rule_fallback_clears_clarification_when_complete():
    intent = _parse(BrokenLLM(), "Buy 500 MTN airtime for 08012345678")
    assert intent.needs_clarification is False
    assert intent.clarification_message is None
    assert intent.entities == {"phone": "2348012345678", "network": "mtn", "amount": 500.0}


def test_ai_result_is_validated_and_clamped():
    llm = ScriptedLLM(
        json.dumps(
            {
                "intent": "data_purchase",
                "confidence": 1.4,
                "entities": {"network": "MTN", "data_plan": "1gb", "phone": "08012345678", "amount": "lots"},
                "needsClarification": False,
            }
        )
    )
    intent = _parse(llm, "get me 1gb on my mtn line 08012345678")
    assert intent.source == "ai"
    assert intent.confidence == 1.0
    assert intent.entities == {"network": "mtn", "data_plan": "1GB", "phone": "2348012345678"}
    assert intent.needs_clarification is False
    assert llm.calls[0]["response_format"] == "json"


def test_non_json_model_output_falls_back_to_rules():
    intent = _parse(ScriptedLLM("Sure! You want airtime."), "Buy 200 glo airtime for 08051234567")
    assert intent.source == "rules"
    assert intent.intent == IntentType.AIRTIME_PURCHASE
    assert intent.needs_clarification is False


def test_model_requested_clarification_is_kept():
    llm = ScriptedLLM(
        json.dumps(
            {
                "intent": "airtime_purchase",
                "confidence": 0.6,
                "entities": {"network": "mtn", "amount": 500, "phone": "08012345678"},
                "needsClarification": True,
                "clarificationMessage": "Is 08012345678 your own line?",
            }
        )
    )
    intent = _parse(llm, "500 mtn 08012345678")
    assert intent.needs_clarification is True
    assert intent.clarification_message == "Is 08012345678 your own line?"


def test_unknown_intent_gets_generic_question():
    intent = _parse(UnavailableLLM(), "hello there")
    assert intent.intent == IntentType.UNKNOWN
    assert intent.needs_clarification is True
    assert intent.clarification_message == GENERIC_CLARIFICATION


def test_follow_up_turn_continues_previous_intent():
    context = {
        "previousIntent": {"intent": "airtime_purchase", "entities": {"network": "mtn", "amount": 500}, "needs_clarification": True}
    }
    intent = _parse(UnavailableLLM(), "08012345678", context)
    assert intent.intent == IntentType.AIRTIME_PURCHASE
    assert intent.entities == {"phone": "2348012345678", "network": "mtn", "amount": 500.0}
    assert intent.needs_clarification is False


def test_stray_number_after_completed_purchase_stays_unknown():
    context = {
        "previousIntent": {
            "intent": "airtime_purchase",
            "entities": {"network": "mtn", "amount": 500, "phone": "08012345678"},
            "needs_clarification": False,
        }
    }
    intent = _parse(UnavailableLLM(), "thank you, ticket 42", context)
    assert intent.intent == IntentType.UNKNOWN
    assert intent.needs_clarification is True
    assert intent.entities.get("amount") != 500.0


def test_follow_up_must_answer_the_pending_question():
    context = {
        "previousIntent": {"intent": "airtime_purchase", "entities": {"network": "mtn"}, "needs_clarification": True}
    }
    intent = _parse(UnavailableLLM(), "08012345678", context)
    assert intent.intent == IntentType.UNKNOWN
    assert intent.needs_clarification is True


def test_completed_turn_lends_identity_but_not_amount():
    context = {"previousIntent": {"intent": "airtime_purchase", "entities": {"network": "glo", "amount": 500, "phone": "08012345678"}}}
    intent = _parse(UnavailableLLM(), "buy airtime", context)
    assert intent.intent == IntentType.AIRTIME_PURCHASE
    assert "amount" not in intent.entities
    assert intent.entities["network"] == "glo"
    assert intent.clarification_message == "How much airtime would you like to buy? (e.g., 100, 500, 1000)"


def test_extracted_entities_win_over_context():
    context = {
        "previousIntent": {"intent": "airtime_purchase", "entities": {"network": "glo", "amount": 500}},
        "userProfile": {"phone": "08099999999", "preferredNetwork": "airtel"},
    }
    intent = _parse(UnavailableLLM(), "buy 1000 mtn airtime", context)
    assert intent.entities["amount"] == 1000.0
    assert intent.entities["network"] == "mtn"
    assert intent.entities["phone"] == "2348099999999"
    assert intent.needs_clarification is False


def test_purchase_details_do_not_leak_across_intent_types():
    context = {"previousIntent": {"intent": "airtime_purchase", "entities": {"network": "mtn", "amount": 500, "phone": "08012345678"}}}
    intent = _parse(UnavailableLLM(), "buy mtn data", context)
    assert intent.intent == IntentType.DATA_PURCHASE
    assert "amount" not in intent.entities
    assert intent.entities["phone"] == "2348012345678"
    assert intent.clarification_message == "What data plan would you like? (e.g., 1GB, 2GB, or monthly plan)"


def test_electricity_asks_for_meter_first():
    intent = _parse(UnavailableLLM(), "pay electricity bill")
    assert intent.intent == IntentType.ELECTRICITY_PURCHASE
    assert intent.clarification_message == "What is your meter number?"
