from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from models.schemas import ProviderStatus, ServiceType
from providers.base import ProviderClient
from providers.billspay import BillsPayClient
from providers.vtpass import VTPassClient
from providers.vtu import VTUClient
from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)

ALL_SERVICES = frozenset(ServiceType)


@dataclass(frozen=True)
class ProviderDescriptor:
    id: str
    name: str
    priority: int
    services: FrozenSet[ServiceType]
    commission: float
    status: ProviderStatus
    client: ProviderClient
    order_index: int = 0

    @property
    def active(self) -> bool:
        return self.status == ProviderStatus.ACTIVE

    def sort_key(self) -> Tuple[int, int, str]:
        return (self.priority, self.order_index, self.id)


@dataclass(frozen=True)
class _Blueprint:
    id: str
    name: str
    priority: int
    services: FrozenSet[ServiceType]
    commission: float
    enable_flag: str


BLUEPRINTS: Tuple[_Blueprint, ...] = (
    _Blueprint("vtpass", "VTPass", 1, ALL_SERVICES, 0.035, "telecom_enable_vtpass"),
    _Blueprint(
        "billspay",
        "BillsPay",
        2,
        frozenset({ServiceType.AIRTIME, ServiceType.DATA, ServiceType.ELECTRICITY}),
        0.03,
        "telecom_enable_billspay",
    ),
    _Blueprint("vtu", "VTU.ng", 3, frozenset({ServiceType.AIRTIME, ServiceType.DATA}), 0.04, "telecom_enable_vtu"),
)

CLIENT_FACTORIES = {
    "vtpass": VTPassClient,
    "billspay": BillsPayClient,
    "vtu": VTUClient,
}


def _csv(raw: str) -> List[str]:
    return [part.strip().lower() for part in str(raw or "").split(",") if part.strip()]


class ProviderRegistry:
    """Read-only set of provider descriptors, built once at startup.

    A provider listed in TELECOM_PROVIDER_ORDER takes its priority from its
    position there (first is 1); an unlisted one keeps its default priority.
    Candidates for a service are the active providers that offer it, ordered
    by (priority, position in the order string, id), unlisted providers
    sorting after listed ones at equal priority.
    """

    def __init__(self, descriptors: Tuple[ProviderDescriptor, ...]) -> None:
        ordered = tuple(sorted(descriptors, key=ProviderDescriptor.sort_key))
        self._descriptors = ordered
        self._by_id: Mapping[str, ProviderDescriptor] = MappingProxyType({d.id: d for d in ordered})

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        clients: Optional[Mapping[str, ProviderClient]] = None,
    ) -> "ProviderRegistry":
        settings = settings or SETTINGS
        clients = dict(clients or {})
        order = _csv(settings.telecom_provider_order)
        maintenance = set(_csv(settings.telecom_maintenance_providers))
        descriptors: List[ProviderDescriptor] = []
        for blueprint in BLUEPRINTS:
            if not getattr(settings, blueprint.enable_flag):
                logger.info("provider_disabled", extra={"provider": blueprint.id})
                continue
            client = clients.get(blueprint.id) or CLIENT_FACTORIES[blueprint.id](settings)
            listed = blueprint.id in order
            order_index = order.index(blueprint.id) if listed else len(order)
            descriptors.append(
                ProviderDescriptor(
                    id=blueprint.id,
                    name=blueprint.name,
                    priority=order_index + 1 if listed else blueprint.priority,
                    services=blueprint.services,
                    commission=blueprint.commission,
                    status=ProviderStatus.MAINTENANCE if blueprint.id in maintenance else ProviderStatus.ACTIVE,
                    client=client,
                    order_index=order_index,
                )
            )
        registry = cls(tuple(descriptors))
        logger.info("provider_registry_built", extra={"providers": [d.id for d in registry.all()]})
        return registry

    def providers_for(self, service_type: ServiceType | str) -> List[ProviderDescriptor]:
        service = ServiceType(service_type)
        return [d for d in self._descriptors if d.active and service in d.services]

    def get(self, provider_id: str) -> Optional[ProviderDescriptor]:
        return self._by_id.get(str(provider_id or "").strip().lower())

    def all(self) -> Tuple[ProviderDescriptor, ...]:
        return self._descriptors

    def snapshot(self) -> Dict[str, object]:
        providers = [
            {
                "id": d.id,
                "name": d.name,
                "priority": d.priority,
                "status": d.status.value,
                "commission": d.commission,
                "services": sorted(s.value for s in d.services),
            }
            for d in self._descriptors
        ]
        return {
            "total_providers": len(providers),
            "active_providers": sum(1 for d in self._descriptors if d.active),
            "providers": providers,
        }
