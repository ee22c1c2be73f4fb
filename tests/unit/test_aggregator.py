from __future__ import annotations

import asyncio
import json

import pytest

from agents.aggregator import ALL_FAILED_MESSAGE, TelecomAggregator
from compliance.audit_logger import AuditLogger
from models.schemas import AttemptOutcome, ResponseStatus, ServiceRequest, ServiceType
from providers.base import (
    MeterVerificationError,
    ProviderClient,
    ProviderError,
    ProviderNotFoundError,
    PurchaseOutcome,
    TransactionNotFoundError,
    WebhookEvent,
)
from providers.registry import ProviderRegistry
from settings import Settings


class FakeClient(ProviderClient):
    def __init__(self, provider_id, fail=None, delay=0.0, available=True, known=(), verifies=False):
        self.provider_id = provider_id
        self.fail = fail
        self.delay = delay
        self.available = available
        self.known = set(known)
        self.verifies = verifies
        self.purchases = []

    async def purchase_service(self, service_code, amount, phone, variation=None, meta=None):
        self.purchases.append(service_code)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ProviderError(self.fail)
        return PurchaseOutcome(transaction_id=f"{self.provider_id}-TX1", amount=amount)

    async def query_transaction(self, transaction_id):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ProviderError(self.fail)
        if transaction_id in self.known:
            return {"transaction_id": transaction_id, "status": "delivered"}
        return None

    async def get_pricing(self, service_code, amount=None):
        if self.fail:
            raise ProviderError(self.fail)
        return {"service_code": service_code, "variations": [{"variation_id": "1gb", "data_plan": "1GB", "amount": 900}]}

    async def get_availability(self, service_code):
        if self.fail:
            raise ProviderError(self.fail)
        return self.available

    async def handle_webhook(self, event):
        if self.delay:
            await asyncio.sleep(self.delay)
        return {"transaction_id": event.payload["id"], "status": "delivered"}

    def supports_meter_verification(self):
        return self.verifies

    async def verify_meter_number(self, service_code, meter_number, meter_type):
        if self.fail:
            raise ProviderError(self.fail)
        return {"meter_number": meter_number, "customer_name": "ADA OBI", "verified": True}


def _aggregator(tmp_path, clients, **overrides) -> TelecomAggregator:
    base = dict(telecom_provider_order="vtpass,billspay,vtu", telecom_provider_timeout_seconds=1.0)
    base.update(overrides)
    settings = Settings(**base)
    registry = ProviderRegistry.from_settings(settings, clients=clients)
    return TelecomAggregator(registry, settings, AuditLogger(str(tmp_path / "audit.jsonl")))


def _airtime(amount=500.0, network="mtn") -> ServiceRequest:
    return ServiceRequest(service_type=ServiceType.AIRTIME, network=network, amount=amount, phone="2348012345678")


def _clients(**kwargs):
    clients = {pid: FakeClient(pid) for pid in ("vtpass", "billspay", "vtu")}
    clients.update(kwargs)
    return clients


def test_falls_back_to_next_provider_and_stops_at_first_success(tmp_path):
    clients = _clients(vtpass=FakeClient("vtpass", fail="upstream down"))
    aggregator = _aggregator(tmp_path, clients)

    response = asyncio.run(aggregator.purchase_service(_airtime()))

    assert response.success is True
    assert response.provider == "billspay"
    assert response.transaction_id == "billspay-TX1"
    assert response.commission == 15.0
    assert [(a.provider_id, a.outcome) for a in response.attempts] == [
        ("vtpass", AttemptOutcome.FAILED),
        ("billspay", AttemptOutcome.SUCCESS),
    ]
    assert response.attempts[0].error == "upstream down"
    assert clients["billspay"].purchases == ["MTN_AIRTIME"]
    assert clients["vtu"].purchases == []

    lines = (tmp_path / "audit.jsonl").read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["outcome"] for line in lines] == ["failed", "success"]


def test_all_providers_failing_returns_aggregate_failure(tmp_path):
    clients = {pid: FakeClient(pid, fail=f"{pid} broke") for pid in ("vtpass", "billspay", "vtu")}
    response = asyncio.run(_aggregator(tmp_path, clients).purchase_service(_airtime()))

    assert response.success is False
    assert response.status == ResponseStatus.FAILED
    assert response.message == ALL_FAILED_MESSAGE
    assert response.error == "vtu broke"
    assert len(response.attempts) == 3


def test_no_candidates_fails_without_attempts(tmp_path):
    aggregator = _aggregator(tmp_path, _clients(), telecom_enable_vtpass=False)
    request = ServiceRequest(service_type=ServiceType.CABLE, amount=6000, biller="dstv", iuc_number="7012345678")

    response = asyncio.run(aggregator.purchase_service(request))

    assert response.success is False
    assert response.message == "No providers available for cable on dstv"
    assert response.attempts == []


def test_missing_service_code_is_a_failed_attempt(tmp_path):
    clients = _clients(vtpass=FakeClient("vtpass", fail="smile is down"))
    request = ServiceRequest(service_type=ServiceType.DATA, network="smile", amount=1000, phone="2348012345678")

    response = asyncio.run(_aggregator(tmp_path, clients).purchase_service(request))

    assert response.success is False
    assert [a.provider_id for a in response.attempts] == ["vtpass", "billspay", "vtu"]
    assert "no service code" in response.attempts[1].error
    assert clients["billspay"].purchases == []


def test_slow_provider_times_out_and_next_one_is_tried(tmp_path):
    clients = _clients(vtpass=FakeClient("vtpass", delay=1.0))
    aggregator = _aggregator(tmp_path, clients, telecom_provider_timeout_seconds=0.05)

    response = asyncio.run(aggregator.purchase_service(_airtime()))

    assert response.provider == "billspay"
    assert "timed out" in response.attempts[0].error


def test_pricing_keeps_other_providers_when_one_fails(tmp_path):
    clients = _clients(billspay=FakeClient("billspay", fail="pricing offline"))
    entries = asyncio.run(_aggregator(tmp_path, clients).get_pricing(ServiceType.DATA, "mtn"))

    assert [e.provider for e in entries] == ["vtpass", "billspay", "vtu"]
    assert [e.status for e in entries] == ["available", "unavailable", "available"]
    assert entries[1].error == "pricing offline"
    assert entries[0].commission == 0.035


def test_quote_variation_uses_first_listing(tmp_path):
    aggregator = _aggregator(tmp_path, _clients(vtpass=FakeClient("vtpass", fail="down")))
    assert asyncio.run(aggregator.quote_variation(ServiceType.DATA, "mtn", "1gb")) == 900.0
    assert asyncio.run(aggregator.quote_variation(ServiceType.DATA, "mtn", "50GB")) is None


def test_availability_overall_status(tmp_path):
    clients = _clients(
        vtpass=FakeClient("vtpass", available=False),
        billspay=FakeClient("billspay", fail="offline"),
        vtu=FakeClient("vtu", available=True),
    )
    report = asyncio.run(_aggregator(tmp_path, clients).get_availability(ServiceType.AIRTIME, "glo"))
    assert report.overall_status == "available"
    assert [a.available for a in report.availability] == [False, False, True]

    clients = {pid: FakeClient(pid, fail="offline") for pid in ("vtpass", "billspay", "vtu")}
    report = asyncio.run(_aggregator(tmp_path, clients).get_availability(ServiceType.AIRTIME, "glo"))
    assert report.overall_status == "unavailable"


def test_query_transaction_direct_and_scan(tmp_path):
    clients = _clients(
        vtpass=FakeClient("vtpass", fail="requery broken"),
        vtu=FakeClient("vtu", known={"VTU-9"}),
    )
    aggregator = _aggregator(tmp_path, clients)

    found = asyncio.run(aggregator.query_transaction("VTU-9"))
    assert found["provider"] == "vtu"

    with pytest.raises(ProviderNotFoundError):
        asyncio.run(aggregator.query_transaction("VTU-9", provider_id="nope"))
    with pytest.raises(TransactionNotFoundError):
        asyncio.run(aggregator.query_transaction("VTU-9", provider_id="billspay"))
    with pytest.raises(TransactionNotFoundError, match="not found in any provider"):
        asyncio.run(aggregator.query_transaction("UNKNOWN"))


def test_meter_verification_uses_capable_providers(tmp_path):
    clients = _clients(vtpass=FakeClient("vtpass", verifies=True))
    result = asyncio.run(_aggregator(tmp_path, clients).verify_meter("ikeja-electric", "45012345678"))
    assert result["provider"] == "vtpass"
    assert result["customer_name"] == "ADA OBI"

    clients = _clients(vtpass=FakeClient("vtpass", verifies=True, fail="bad meter"))
    with pytest.raises(MeterVerificationError):
        asyncio.run(_aggregator(tmp_path, clients).verify_meter("ikeja-electric", "45012345678"))


def test_webhook_dispatch(tmp_path):
    aggregator = _aggregator(tmp_path, _clients())
    assert asyncio.run(aggregator.dispatch_webhook("unknown", WebhookEvent(payload={"id": "X"}))) is None
    update = asyncio.run(aggregator.dispatch_webhook("vtu", WebhookEvent(payload={"id": "VTU-1"})))
    assert update == {"provider": "vtu", "transaction_id": "VTU-1", "status": "delivered"}


def test_direct_lookup_and_webhook_respect_call_timeout(tmp_path):
    clients = _clients(vtu=FakeClient("vtu", delay=1.0, known={"VTU-9"}))
    aggregator = _aggregator(tmp_path, clients, telecom_provider_timeout_seconds=0.05)

    with pytest.raises(ProviderError, match="vtu timed out"):
        asyncio.run(aggregator.query_transaction("VTU-9", provider_id="vtu"))
    with pytest.raises(ProviderError, match="vtu timed out"):
        asyncio.run(aggregator.dispatch_webhook("vtu", WebhookEvent(payload={"id": "VTU-1"})))
