from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

from agents.entity_normalizer import BILLER_ALIASES, MOBILE_NETWORKS
from models.schemas import IntentType, TelecomIntent

RULE_CONFIDENCE = 0.5

# First match wins, so "recharge 1GB" stays an airtime request.
INTENT_PATTERNS: List[Tuple[IntentType, re.Pattern[str]]] = [
    (IntentType.AIRTIME_PURCHASE, re.compile(r"\b(airtime|recharge)\b")),
    (IntentType.DATA_PURCHASE, re.compile(r"\bdata\b|\d+(?:\.\d+)?\s*(?:gb|mb)\b|\b(?:gb|mb)\b")),
    (
        IntentType.ELECTRICITY_PURCHASE,
        re.compile(r"\b(electricity|meter|power|ikedc|ekedc|aedc|ibedc|phed|phedc|kedco|kaedco|jed)\b"),
    ),
    (IntentType.CABLE_PURCHASE, re.compile(r"\b(dstv|gotv|startimes|showmax|cable)\b")),
    (IntentType.BETTING_FUNDING, re.compile(r"\b(bet|betting|bet9ja|betking|betway|1xbet)\b")),
]

NETWORK_PATTERN = re.compile(r"\b(" + "|".join(re.escape(n) for n in MOBILE_NETWORKS) + r")\b")
PHONE_PATTERN = re.compile(r"(?<!\d)(?:\+?234|0)?[789][01]\d{8}(?!\d)")
DATA_PLAN_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(gb|mb)\b")
METER_PATTERN = re.compile(r"\bmeter(?:\s*(?:number|no\.?|num|#))?\s*(?:is|:)?\s*(\d{10,13})(?!\d)")
IUC_PATTERN = re.compile(r"\b(?:iuc|smart\s*card)(?:\s*(?:number|no\.?|num|#))?\s*(?:is|:)?\s*(\d{10,12})(?!\d)")
AMOUNT_PATTERN = re.compile(
    r"(?<![\w.])(?:₦|#|ngn\s?|n(?=\d))?(\d{1,3}(?:,\d{3})+|\d+)(?:\s*(?:naira|ngn|₦))?(?!\d)(?!\.\d)(?![a-z])"
)
BILLER_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in sorted(BILLER_ALIASES, key=len, reverse=True)) + r")\b"
)


class RuleBasedIntentParser:
    """Keyword and regex extractor used whenever the AI parser cannot answer."""

    def parse(self, message: str) -> TelecomIntent:
        lower = (message or "").lower()
        return TelecomIntent(
            intent=self._detect_intent(lower),
            confidence=RULE_CONFIDENCE,
            entities=self.extract_entities(lower),
            suggestions=[],
            needs_clarification=True,
            source="rules",
        )

    def _detect_intent(self, lower: str) -> IntentType:
        for intent, pattern in INTENT_PATTERNS:
            if pattern.search(lower):
                return intent
        return IntentType.UNKNOWN

    def extract_entities(self, lower: str) -> Dict[str, Any]:
        entities: Dict[str, Any] = {}
        scrubbed = lower

        # Identifiers are pulled out first and blanked so their digits never read as an amount.
        meter = METER_PATTERN.search(scrubbed)
        if meter:
            entities["meter_number"] = meter.group(1)
            scrubbed = _blank(scrubbed, meter.span())
        iuc = IUC_PATTERN.search(scrubbed)
        if iuc:
            entities["iuc_number"] = iuc.group(1)
            scrubbed = _blank(scrubbed, iuc.span())
        phone = PHONE_PATTERN.search(scrubbed)
        if phone:
            entities["phone"] = phone.group(0)
            scrubbed = _blank(scrubbed, phone.span())
        plan = DATA_PLAN_PATTERN.search(scrubbed)
        if plan:
            entities["data_plan"] = f"{plan.group(1)}{plan.group(2).upper()}"
            scrubbed = _blank(scrubbed, plan.span())
        network = NETWORK_PATTERN.search(scrubbed)
        if network:
            entities["network"] = network.group(1)
        biller = BILLER_PATTERN.search(scrubbed)
        if biller:
            entities["biller"] = BILLER_ALIASES[biller.group(1)]
        for pattern in (NETWORK_PATTERN, BILLER_PATTERN):
            scrubbed = pattern.sub(lambda m: " " * len(m.group(0)), scrubbed)

        amount = AMOUNT_PATTERN.search(scrubbed)
        if amount:
            entities["amount"] = int(amount.group(1).replace(",", ""))
        return entities


def _blank(text: str, span: Tuple[int, int]) -> str:
    start, end = span
    return text[:start] + " " * (end - start) + text[end:]
