from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceType(str, Enum):
    AIRTIME = "airtime"
    DATA = "data"
    ELECTRICITY = "electricity"
    CABLE = "cable"
    BETTING = "betting"


class Network(str, Enum):
    MTN = "mtn"
    AIRTEL = "airtel"
    GLO = "glo"
    NINE_MOBILE = "9mobile"
    SMILE = "smile"


class MeterType(str, Enum):
    PREPAID = "prepaid"
    POSTPAID = "postpaid"


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    CLARIFICATION_NEEDED = "clarification_needed"
    INVALID_INTENT = "invalid_intent"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    ERROR = "error"


class IntentType(str, Enum):
    AIRTIME_PURCHASE = "airtime_purchase"
    DATA_PURCHASE = "data_purchase"
    ELECTRICITY_PURCHASE = "electricity_purchase"
    CABLE_PURCHASE = "cable_purchase"
    BETTING_FUNDING = "betting_funding"
    UNKNOWN = "unknown"


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ServiceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service_type: ServiceType = Field(alias="serviceType")
    network: Optional[Network] = None
    amount: float
    phone: Optional[str] = None
    variation: Optional[str] = None
    meter_number: Optional[str] = Field(default=None, alias="meterNumber")
    meter_type: Optional[MeterType] = Field(default=None, alias="meterType")
    iuc_number: Optional[str] = Field(default=None, alias="iucNumber")
    biller: Optional[str] = None
    additional_params: Dict[str, Any] = Field(default_factory=dict, alias="additionalParams")

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: float) -> float:
        if not math.isfinite(value) or value < 0:
            raise ValueError("amount must be a finite, non-negative number")
        return value

    @model_validator(mode="after")
    def _check_shape(self) -> "ServiceRequest":
        if self.amount == 0 and not self.variation:
            raise ValueError("amount must be greater than 0 unless a variation is given")
        if self.service_type in {ServiceType.AIRTIME, ServiceType.DATA} and self.network is None:
            raise ValueError(f"network is required for {self.service_type.value}")
        return self

    @property
    def routing_key(self) -> Optional[str]:
        """Key used to look up a provider's native service code."""
        if self.service_type in {ServiceType.AIRTIME, ServiceType.DATA}:
            return self.network.value if self.network else None
        return self.biller

    @property
    def target_label(self) -> str:
        if self.network is not None:
            return self.network.value
        return self.biller or "unspecified"

    def missing_target(self) -> Optional[str]:
        if self.service_type == ServiceType.ELECTRICITY:
            return None if self.meter_number else "meter_number"
        if self.service_type == ServiceType.CABLE:
            return None if self.iuc_number else "iuc_number"
        return None if self.phone else "phone"


class ProviderAttempt(BaseModel):
    provider_id: str
    outcome: AttemptOutcome
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ServiceResponse(BaseModel):
    success: bool
    provider: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: float = 0
    commission: float = 0
    status: ResponseStatus
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)
    error: Optional[str] = None
    attempts: List[ProviderAttempt] = Field(default_factory=list)

    @model_validator(mode="after")
    def _success_is_consistent(self) -> "ServiceResponse":
        if self.success and (self.status != ResponseStatus.SUCCESS or not self.provider):
            raise ValueError("a successful response needs status=success and a provider")
        return self


class TelecomIntent(BaseModel):
    intent: IntentType = IntentType.UNKNOWN
    confidence: float = 0.0
    entities: Dict[str, Any] = Field(default_factory=dict)
    suggestions: List[str] = Field(default_factory=list)
    needs_clarification: bool = False
    clarification_message: Optional[str] = None
    source: str = "ai"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(number):
            return 0.0
        return max(0.0, min(1.0, number))


class ProviderPricing(BaseModel):
    provider: str
    provider_name: str
    commission: Optional[float] = None
    pricing: Optional[Dict[str, Any]] = None
    status: str = "available"
    error: Optional[str] = None


class ProviderAvailability(BaseModel):
    provider: str
    provider_name: str
    available: bool
    last_checked: datetime = Field(default_factory=_utcnow)
    error: Optional[str] = None


class AvailabilityReport(BaseModel):
    service_type: str
    network: Optional[str] = None
    availability: List[ProviderAvailability] = Field(default_factory=list)
    overall_status: str = "unavailable"


class TransactionRecord(BaseModel):
    reference: str
    user_id: str
    service_type: ServiceType
    network: Optional[str] = None
    biller: Optional[str] = None
    amount: float
    commission: float = 0
    phone: Optional[str] = None
    meter_number: Optional[str] = None
    provider: Optional[str] = None
    provider_transaction_id: Optional[str] = None
    status: ResponseStatus
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class AIPurchaseResult(BaseModel):
    status: ResponseStatus
    message: str
    intent: Optional[TelecomIntent] = None
    suggestions: List[str] = Field(default_factory=list)
    transaction: Optional[ServiceResponse] = None
