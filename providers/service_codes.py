from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

# provider id -> service type -> routing key (network or biller) -> provider's native code
_SERVICE_CODES = {
    "vtpass": {
        "airtime": {"mtn": "mtn", "airtel": "airtel", "glo": "glo", "9mobile": "etisalat"},
        "data": {"mtn": "mtn-data", "airtel": "airtel-data", "glo": "glo-data", "9mobile": "etisalat-data", "smile": "smile-direct"},
        "electricity": {
            "ikeja": "ikeja-electric",
            "eko": "eko-electric",
            "ibadan": "ibadan-electric",
            "abuja": "abuja-electric",
            "portharcourt": "portharcourt-electric",
            "kano": "kano-electric",
            "kaduna": "kaduna-electric",
            "jos": "jos-electric",
        },
        "cable": {"dstv": "dstv", "gotv": "gotv", "startimes": "startimes", "showmax": "showmax"},
        "betting": {"bet9ja": "bet9ja", "betking": "betking", "betway": "betway", "1xbet": "1xbet"},
    },
    "billspay": {
        "airtime": {"mtn": "MTN_AIRTIME", "airtel": "AIRTEL_AIRTIME", "glo": "GLO_AIRTIME", "9mobile": "9MOBILE_AIRTIME"},
        "data": {"mtn": "MTN_DATA", "airtel": "AIRTEL_DATA", "glo": "GLO_DATA", "9mobile": "9MOBILE_DATA"},
        "electricity": {"ikeja": "IKEDC_PREPAID", "eko": "EKEDC_PREPAID", "abuja": "AEDC_PREPAID", "ibadan": "IBEDC_PREPAID"},
    },
    "vtu": {
        "airtime": {"mtn": "MTN_AIRTIME_VTU", "airtel": "AIRTEL_AIRTIME_VTU", "glo": "GLO_AIRTIME_VTU", "9mobile": "9MOBILE_AIRTIME_VTU"},
        "data": {"mtn": "MTN_DATA_VTU", "airtel": "AIRTEL_DATA_VTU", "glo": "GLO_DATA_VTU", "9mobile": "9MOBILE_DATA_VTU"},
    },
}

SERVICE_CODES: Mapping[str, Mapping[str, Mapping[str, str]]] = MappingProxyType(
    {
        provider: MappingProxyType({service: MappingProxyType(codes) for service, codes in services.items()})
        for provider, services in _SERVICE_CODES.items()
    }
)

# Disco aliases accepted by the meter verification endpoint.
ELECTRICITY_SERVICE_IDS: Mapping[str, str] = MappingProxyType(
    {
        "ikeja": "ikeja-electric",
        "eko": "eko-electric",
        "ibadan": "ibadan-electric",
        "abuja": "abuja-electric",
        "ph": "portharcourt-electric",
        "portharcourt": "portharcourt-electric",
        "kano": "kano-electric",
        "kaduna": "kaduna-electric",
        "jos": "jos-electric",
    }
)
DEFAULT_ELECTRICITY_SERVICE_ID = "ikeja-electric"


def lookup_service_code(provider_id: str, service_type: str, routing_key: Optional[str]) -> Optional[str]:
    if not routing_key:
        return None
    return SERVICE_CODES.get(provider_id, {}).get(service_type, {}).get(routing_key)


def electricity_service_id(disco: Optional[str]) -> str:
    return ELECTRICITY_SERVICE_IDS.get(str(disco or "").strip().lower(), DEFAULT_ELECTRICITY_SERVICE_ID)
