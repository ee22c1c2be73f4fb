from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from agents.entity_normalizer import normalize_intent_type, validate_entities
from agents.llm_runtime import LLMRuntime
from agents.rule_parser import RuleBasedIntentParser
from models.schemas import IntentType, TelecomIntent

logger = logging.getLogger(__name__)

GENERIC_CLARIFICATION = "Could you please provide more details about what you need?"

# Ordered slots per intent; each slot is satisfied by any of its entity keys.
REQUIRED_SLOTS: Dict[IntentType, List[Tuple[Tuple[str, ...], str]]] = {
    IntentType.AIRTIME_PURCHASE: [
        (("network",), "Which network would you like to buy airtime for? (MTN, Airtel, Glo, or 9mobile)"),
        (("amount",), "How much airtime would you like to buy? (e.g., 100, 500, 1000)"),
        (("phone",), "What phone number should I recharge?"),
    ],
    IntentType.DATA_PURCHASE: [
        (("network",), "Which network would you like to buy data for? (MTN, Airtel, Glo, or 9mobile)"),
        (("data_plan", "amount"), "What data plan would you like? (e.g., 1GB, 2GB, or monthly plan)"),
        (("phone",), "What phone number should I buy data for?"),
    ],
    IntentType.ELECTRICITY_PURCHASE: [
        (("meter_number",), "What is your meter number?"),
        (("amount",), "How much electricity would you like to buy? (amount in naira)"),
        (("biller",), "Which electricity company supplies your meter? (e.g., IKEDC, EKEDC, AEDC)"),
    ],
    IntentType.CABLE_PURCHASE: [
        (("iuc_number",), "What is your decoder IUC or smartcard number?"),
        (("biller",), "Which cable provider is it? (DSTV, GOtv, Startimes or Showmax)"),
        (("amount",), "How much is the subscription you want to pay for?"),
    ],
    IntentType.BETTING_FUNDING: [
        (("biller",), "Which betting platform should I fund? (Bet9ja, BetKing, BetWay or 1xBet)"),
        (("amount",), "How much would you like to fund?"),
        (("phone",), "What phone number is linked to your betting account?"),
    ],
}

EXAMPLE_PHRASES: Dict[IntentType, List[str]] = {
    IntentType.AIRTIME_PURCHASE: ["Buy 500 MTN airtime for 08012345678"],
    IntentType.DATA_PURCHASE: ["Buy 2GB Airtel data for 08012345678"],
    IntentType.ELECTRICITY_PURCHASE: ["Buy 5000 naira IKEDC electricity for meter 45012345678"],
    IntentType.CABLE_PURCHASE: ["Pay 6000 for DSTV, IUC 7012345678"],
    IntentType.BETTING_FUNDING: ["Fund my Bet9ja wallet with 1000 for 08012345678"],
    IntentType.UNKNOWN: ["Buy 500 MTN airtime for 08012345678", "Buy 1GB Glo data"],
}

# Identity facts carry across intents; purchase details only carry within the same intent.
IDENTITY_KEYS = ("phone", "network", "meter_number", "iuc_number")

PROFILE_KEYS = {
    "phone": "phone",
    "preferredNetwork": "network",
    "preferred_network": "network",
    "meterNumber": "meter_number",
    "meter_number": "meter_number",
    "iucNumber": "iuc_number",
    "iuc_number": "iuc_number",
}

INTENT_SYSTEM_PROMPT = """You parse prepaid utility purchase requests from Nigerian users.

Available services:
- Airtime: MTN, Airtel, Glo, 9mobile
- Data: MTN Data, Airtel Data, Glo Data, 9mobile Data
- Electricity: IKEDC, EKEDC, AEDC, IBEDC, PHEDC, KEDCO, KAEDCO, JED
- Cable TV: DSTV, GOTV, Startimes, Showmax
- Betting: Bet9ja, BetKing, BetWay, 1xBet

Respond with one JSON object:
{
  "intent": "airtime_purchase" | "data_purchase" | "electricity_purchase" | "cable_purchase" | "betting_funding" | "unknown",
  "confidence": 0.0-1.0,
  "entities": {
    "network": "mtn" | "airtel" | "glo" | "9mobile" | null,
    "amount": number | null,
    "phone": string | null,
    "data_plan": string | null,
    "biller": string | null,
    "meter_number": string | null,
    "meter_type": "prepaid" | "postpaid" | null,
    "iuc_number": string | null
  },
  "suggestions": [string],
  "needsClarification": boolean,
  "clarificationMessage": string | null
}

Examples:
- "I want to buy MTN airtime" -> {"intent": "airtime_purchase", "entities": {"network": "mtn"}}
- "Buy 2GB data for 08012345678" -> {"intent": "data_purchase", "entities": {"data_plan": "2GB", "phone": "08012345678"}}
- "Recharge my phone with 500" -> {"intent": "airtime_purchase", "entities": {"amount": 500}}
- "Pay electricity bill" -> {"intent": "electricity_purchase", "entities": {}}

Be precise. Never guess a value that is not in the message; use null and set needsClarification to true."""


class AIIntentPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    intent: str
    confidence: Any = 0.0
    entities: Dict[str, Any] = Field(default_factory=dict)
    suggestions: List[str] = Field(default_factory=list)
    needs_clarification: bool = Field(default=False, alias="needsClarification")
    clarification_message: Optional[str] = Field(default=None, alias="clarificationMessage")


class TelecomIntentParser:
    def __init__(self, llm: LLMRuntime | None = None, rule_parser: RuleBasedIntentParser | None = None) -> None:
        self.llm = llm or LLMRuntime()
        self.rule_parser = rule_parser or RuleBasedIntentParser()

    async def parse_telecom_intent(self, message: str, context: Mapping[str, Any] | None = None) -> TelecomIntent:
        """Resolve a free-text request into a validated intent.

        The AI call is attempted first; any failure along that path (no credentials,
        transport error, non-JSON output, wrong shape) switches to the rule-based
        parser. Callers always get an intent back.
        """
        context = dict(context or {})
        model_requested = False
        try:
            payload = await self._parse_with_ai(message, context)
            parsed = TelecomIntent(
                intent=normalize_intent_type(payload.intent),
                confidence=payload.confidence,
                entities=payload.entities,
                suggestions=payload.suggestions,
                needs_clarification=payload.needs_clarification,
                clarification_message=payload.clarification_message,
                source="ai",
            )
            model_requested = payload.needs_clarification
        except Exception as exc:
            logger.warning("telecom_intent_ai_fallback", extra={"error": f"{type(exc).__name__}: {exc}"})
            parsed = self.rule_parser.parse(message)
        intent = self.validate_and_enhance(parsed, context, model_requested_clarification=model_requested)
        logger.info(
            "telecom_intent_parsed",
            extra={
                "intent": intent.intent.value,
                "source": intent.source,
                "confidence": intent.confidence,
                "needs_clarification": intent.needs_clarification,
            },
        )
        return intent

    async def _parse_with_ai(self, message: str, context: Mapping[str, Any]) -> AIIntentPayload:
        result = await self.llm.generate(
            system_prompt=INTENT_SYSTEM_PROMPT,
            user_prompt=f'User message: "{message}"',
            context=dict(context),
            response_format="json",
            temperature=0.1,
            max_tokens=300,
        )
        data = json.loads(result.text)
        return AIIntentPayload.model_validate(data)

    def validate_and_enhance(
        self,
        intent: TelecomIntent,
        context: Mapping[str, Any] | None = None,
        model_requested_clarification: bool = False,
    ) -> TelecomIntent:
        intent_type = intent.intent
        entities = validate_entities(intent.entities)
        if intent_type == IntentType.UNKNOWN and self._answers_pending_question(entities, context or {}):
            # A bare follow-up ("500", "08012345678") answers the question the previous turn asked.
            intent_type = _previous_intent(context or {})[0]
        entities = self.merge_context(intent_type, entities, context or {})

        missing_prompt = self.clarification_for(intent_type, entities)
        needs = intent_type == IntentType.UNKNOWN or missing_prompt is not None or model_requested_clarification
        message: Optional[str] = None
        if needs:
            message = missing_prompt or (intent.clarification_message if model_requested_clarification else None) or GENERIC_CLARIFICATION

        suggestions = list(intent.suggestions)
        if needs and not suggestions:
            suggestions = list(EXAMPLE_PHRASES.get(intent_type, []))

        return intent.model_copy(
            update={
                "intent": intent_type,
                "entities": entities,
                "needs_clarification": needs,
                "clarification_message": message,
                "suggestions": suggestions,
            }
        )

    def merge_context(self, intent_type: IntentType, entities: Dict[str, Any], context: Mapping[str, Any]) -> Dict[str, Any]:
        """Fill gaps from the previous turn and the user profile; extracted values always win.

        Purchase details (amount, plan, biller) only carry over while the previous turn of
        the same intent is still waiting on an answer. A completed turn lends identity facts only.
        """
        merged = dict(entities)
        previous = _previous_intent(context)
        if previous is not None:
            prev_type, prev_entities, pending = previous
            if pending and prev_type == intent_type:
                carry = prev_entities
            else:
                carry = {k: v for k, v in prev_entities.items() if k in IDENTITY_KEYS}
            for key, value in validate_entities(carry).items():
                merged.setdefault(key, value)

        profile = context.get("userProfile") or context.get("user_profile") or {}
        if isinstance(profile, Mapping):
            mapped = {PROFILE_KEYS[k]: v for k, v in profile.items() if k in PROFILE_KEYS}
            for key, value in validate_entities(mapped).items():
                merged.setdefault(key, value)
        return merged

    def clarification_for(self, intent_type: IntentType, entities: Mapping[str, Any]) -> Optional[str]:
        """The single question for the first unfilled slot, or None when nothing is missing."""
        slot = self._missing_slot(intent_type, entities)
        return slot[1] if slot else None

    def _missing_slot(self, intent_type: IntentType, entities: Mapping[str, Any]) -> Optional[Tuple[Tuple[str, ...], str]]:
        for keys, prompt in REQUIRED_SLOTS.get(intent_type, []):
            if not any(entities.get(k) for k in keys):
                return keys, prompt
        return None

    def _answers_pending_question(self, entities: Mapping[str, Any], context: Mapping[str, Any]) -> bool:
        previous = _previous_intent(context)
        if previous is None:
            return False
        prev_type, prev_entities, pending = previous
        if not pending or prev_type == IntentType.UNKNOWN:
            return False
        slot = self._missing_slot(prev_type, validate_entities(prev_entities))
        return slot is not None and any(entities.get(k) for k in slot[0])


def _previous_intent(context: Mapping[str, Any]) -> Optional[Tuple[IntentType, Dict[str, Any], bool]]:
    previous = context.get("previousIntent") or context.get("previous_intent")
    if previous is None:
        return None
    if isinstance(previous, TelecomIntent):
        return previous.intent, dict(previous.entities), previous.needs_clarification
    if isinstance(previous, Mapping):
        entities = previous.get("entities") or {}
        pending = bool(previous.get("needs_clarification") or previous.get("needsClarification"))
        return (
            normalize_intent_type(previous.get("intent")),
            dict(entities) if isinstance(entities, Mapping) else {},
            pending,
        )
    return None
