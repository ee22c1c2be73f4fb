from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional

from models.schemas import IntentType

MOBILE_NETWORKS = ("mtn", "airtel", "glo", "9mobile")

# Common spellings and acronyms mapped to the biller keys used in the service-code tables.
BILLER_ALIASES: Dict[str, str] = {
    "ikeja": "ikeja",
    "ikedc": "ikeja",
    "eko": "eko",
    "ekedc": "eko",
    "abuja": "abuja",
    "aedc": "abuja",
    "ibadan": "ibadan",
    "ibedc": "ibadan",
    "portharcourt": "portharcourt",
    "port harcourt": "portharcourt",
    "phed": "portharcourt",
    "phedc": "portharcourt",
    "kano": "kano",
    "kedco": "kano",
    "kaduna": "kaduna",
    "kaedco": "kaduna",
    "jos": "jos",
    "jed": "jos",
    "dstv": "dstv",
    "gotv": "gotv",
    "startimes": "startimes",
    "showmax": "showmax",
    "bet9ja": "bet9ja",
    "betking": "betking",
    "betway": "betway",
    "1xbet": "1xbet",
}


def normalize_phone_number(raw: Any) -> Optional[str]:
    """Canonicalize a Nigerian phone number to the 234XXXXXXXXXX form.

    Returns None for anything that is not 10, 11 (leading 0) or 13 (leading 234) digits.
    """
    if raw is None:
        return None
    digits = re.sub(r"\D", "", str(raw))
    if len(digits) == 11 and digits.startswith("0"):
        return "234" + digits[1:]
    if len(digits) == 10:
        return "234" + digits
    if len(digits) == 13 and digits.startswith("234"):
        return digits
    return None


def normalize_network(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    value = str(raw).strip().lower()
    return value if value in MOBILE_NETWORKS else None


def normalize_amount(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.replace(",", "").replace("₦", "").strip()
    try:
        amount = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def normalize_biller(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    value = re.sub(r"[\s_-]+", " ", str(raw).strip().lower())
    for candidate in (value, value.replace(" ", "")):
        if candidate in BILLER_ALIASES:
            return BILLER_ALIASES[candidate]
    return None


def normalize_data_plan(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    value = re.sub(r"\s+", "", str(raw)).upper()
    return value or None


def normalize_digits(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    digits = re.sub(r"\D", "", str(raw))
    return digits or None


def normalize_intent_type(raw: Any) -> IntentType:
    try:
        return IntentType(str(raw).strip().lower())
    except ValueError:
        return IntentType.UNKNOWN


_NORMALIZERS = {
    "network": normalize_network,
    "amount": normalize_amount,
    "phone": normalize_phone_number,
    "data_plan": normalize_data_plan,
    "biller": normalize_biller,
    "meter_number": normalize_digits,
    "iuc_number": normalize_digits,
}


def validate_entities(entities: Dict[str, Any] | None) -> Dict[str, Any]:
    """Normalize known entities and drop the malformed ones.

    Unknown keys pass through untouched; null values are discarded.
    """
    validated: Dict[str, Any] = {}
    for key, value in dict(entities or {}).items():
        if value is None:
            continue
        normalizer = _NORMALIZERS.get(key)
        if normalizer is None:
            validated[key] = value
            continue
        normalized = normalizer(value)
        if normalized is not None:
            validated[key] = normalized
    return validated
