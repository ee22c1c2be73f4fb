from .schemas import (
    AIPurchaseResult,
    AttemptOutcome,
    AvailabilityReport,
    IntentType,
    MeterType,
    Network,
    ProviderAttempt,
    ProviderAvailability,
    ProviderPricing,
    ProviderStatus,
    ResponseStatus,
    ServiceRequest,
    ServiceResponse,
    ServiceType,
    TelecomIntent,
    TransactionRecord,
)

__all__ = [
    "AIPurchaseResult",
    "AttemptOutcome",
    "AvailabilityReport",
    "IntentType",
    "MeterType",
    "Network",
    "ProviderAttempt",
    "ProviderAvailability",
    "ProviderPricing",
    "ProviderStatus",
    "ResponseStatus",
    "ServiceRequest",
    "ServiceResponse",
    "ServiceType",
    "TelecomIntent",
    "TransactionRecord",
]
