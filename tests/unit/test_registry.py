from __future__ import annotations

from models.schemas import ProviderStatus, ServiceType
from providers.registry import ProviderDescriptor, ProviderRegistry
from providers.vtu import VTUClient
from settings import Settings


def _settings(**overrides) -> Settings:
    base = dict(vtpass_api_key="", billspay_api_key="", vtu_api_key="")
    base.update(overrides)
    return Settings(**base)


def _ids(descriptors):
    return [d.id for d in descriptors]


def test_default_order_and_service_coverage():
    registry = ProviderRegistry.from_settings(_settings(telecom_provider_order="vtpass,billspay,vtu"))
    assert _ids(registry.providers_for(ServiceType.AIRTIME)) == ["vtpass", "billspay", "vtu"]
    assert _ids(registry.providers_for(ServiceType.ELECTRICITY)) == ["vtpass", "billspay"]
    assert _ids(registry.providers_for("cable")) == ["vtpass"]


def test_configured_order_sets_priority():
    registry = ProviderRegistry.from_settings(_settings(telecom_provider_order="vtu, billspay ,vtpass"))
    assert _ids(registry.providers_for(ServiceType.DATA)) == ["vtu", "billspay", "vtpass"]
    assert registry.get("vtu").priority == 1


def test_unlisted_provider_keeps_default_priority_and_sorts_after_listed():
    registry = ProviderRegistry.from_settings(_settings(telecom_provider_order="vtu"))
    # vtu is listed first (priority 1); vtpass ties at its default priority 1 but is unlisted.
    assert _ids(registry.providers_for(ServiceType.AIRTIME)) == ["vtu", "vtpass", "billspay"]
    assert registry.get("vtpass").priority == 1
    assert registry.get("billspay").priority == 2


def test_ties_fall_back_to_provider_id():
    client = VTUClient(_settings())
    descriptors = tuple(
        ProviderDescriptor(
            id=provider_id,
            name=provider_id,
            priority=1,
            services=frozenset({ServiceType.AIRTIME}),
            commission=0.01,
            status=ProviderStatus.ACTIVE,
            client=client,
        )
        for provider_id in ("zeta", "alpha", "mid")
    )
    registry = ProviderRegistry(descriptors)
    assert _ids(registry.providers_for(ServiceType.AIRTIME)) == ["alpha", "mid", "zeta"]


def test_disabled_and_maintenance_providers_are_not_candidates():
    registry = ProviderRegistry.from_settings(
        _settings(telecom_enable_vtu=False, telecom_maintenance_providers="vtpass")
    )
    assert registry.get("vtu") is None
    assert registry.get("VTPass").status == ProviderStatus.MAINTENANCE
    assert _ids(registry.providers_for(ServiceType.AIRTIME)) == ["billspay"]

    snapshot = registry.snapshot()
    assert snapshot["total_providers"] == 2
    assert snapshot["active_providers"] == 1
    vtpass = next(p for p in snapshot["providers"] if p["id"] == "vtpass")
    assert vtpass["status"] == "maintenance"
    assert "betting" in vtpass["services"]


def test_injected_clients_replace_defaults():
    fake = VTUClient(_settings())
    registry = ProviderRegistry.from_settings(_settings(), clients={"vtu": fake})
    assert registry.get("vtu").client is fake
