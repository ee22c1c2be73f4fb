from .base import (
    MeterVerificationError,
    ProviderClient,
    ProviderError,
    ProviderNotFoundError,
    PurchaseOutcome,
    TelecomError,
    TransactionNotFoundError,
    WebhookEvent,
    WebhookProcessingError,
)
from .registry import ProviderDescriptor, ProviderRegistry

__all__ = [
    "MeterVerificationError",
    "ProviderClient",
    "ProviderDescriptor",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderRegistry",
    "PurchaseOutcome",
    "TelecomError",
    "TransactionNotFoundError",
    "WebhookEvent",
    "WebhookProcessingError",
]
