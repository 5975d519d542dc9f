"""Dependency closure over registry entries.

The closure is a fixed-rule expansion, not a generic graph walk:

    ipfs, docker, mongo, redis, ganache  -> nothing
    market             -> ganache of every chain the market serves
    sms                -> ipfs, ganache
    resultproxy        -> ipfs, ganache, its mongo
    blockchainadapter  -> ganache, market (from marketApiUrl), its mongo
    core               -> ganache, sms, resultproxy, blockchainadapter (from
                          the peer URLs), its mongo, docker
    worker             -> docker (from dockerHost), core (from coreUrl)
    hub client         -> docker, ipfs, the hub's market, resultproxy and sms

Expansion is depth-first and memoized on ``(type, name)``; an entry added to
the result is never expanded again. The requested entry itself is not part
of its dependency set.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from devnet.core.constants import ORDERED_SERVICE_TYPES, ServiceType
from devnet.core.exceptions import MissingPeerError
from devnet.core.logging import get_logger
from devnet.schemas.inventory import InventoryEntry, WorkerEntry
from devnet.services.config_registry import ConfigRegistry
from devnet.services.hub_topology import HubTopologyTable

if TYPE_CHECKING:
    from devnet.schemas.services import ServiceConfigBase

__all__ = ["DependencyClosureEngine", "DependencySet"]

logger = get_logger(__name__)

_Key = tuple[ServiceType, str]


class DependencySet:
    """Entries grouped in service-type order, deduplicated by name.

    A worker request also carries the requested worker descriptor, which
    counts in ``len()`` and closes ``to_list()``.
    """

    def __init__(self) -> None:
        self._groups: dict[ServiceType, dict[str, InventoryEntry]] = {
            t: {} for t in ORDERED_SERVICE_TYPES
        }
        self._count = 0
        self.worker: WorkerEntry | None = None

    def add(self, entry: InventoryEntry) -> bool:
        """Add ``entry``; return False if an entry of that name is present."""
        group = self._groups[entry.type]
        if entry.name in group:
            return False
        group[entry.name] = entry
        self._count += 1
        return True

    def set_worker(self, worker: WorkerEntry) -> None:
        if self.worker is None:
            self._count += 1
        self.worker = worker

    def __contains__(self, name: object) -> bool:
        if self.worker is not None and self.worker.name == name:
            return True
        return any(name in group for group in self._groups.values())

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[InventoryEntry]:
        for group in self._groups.values():
            yield from group.values()

    def of_type(self, service_type: ServiceType) -> list[InventoryEntry]:
        return list(self._groups[service_type].values())

    def names(self) -> list[str]:
        return [e.name for e in self.to_list()]

    def to_list(self) -> list[InventoryEntry | WorkerEntry]:
        """Flatten the set, type order first, worker descriptor last."""
        items: list[InventoryEntry | WorkerEntry] = list(self)
        if self.worker is not None:
            items.append(self.worker)
        return items


class DependencyClosureEngine:
    """Computes the services a registry entry or a worker needs to run."""

    def __init__(self, registry: ConfigRegistry, hubs: HubTopologyTable) -> None:
        self._registry = registry
        self._hubs = hubs

    def resolve_name(self, name: str) -> DependencySet:
        """Return the dependencies of the entry registered under ``name``.

        Raises:
            UnknownConfigError: If ``name`` is not registered
            MissingPeerError: If a required peer is not registered
        """
        entry = self._registry.get(name)
        result = DependencySet()
        self._expand(entry.type, entry.name, entry.resolved, result, {(entry.type, entry.name)})
        logger.debug(f"Resolved {len(result)} dependencies for '{name}'")
        return result

    def resolve_worker(self, worker: WorkerEntry) -> DependencySet:
        """Return the dependencies of a worker, descriptor included."""
        result = DependencySet()
        result.set_worker(worker)
        self._expand(ServiceType.WORKER, worker.name, worker.resolved, result, set())
        logger.debug(f"Resolved {len(result)} dependencies for '{worker.name}'")
        return result

    def resolve_hub_client(self, hub: str) -> DependencySet:
        """Return the services an SDK client of ``hub`` talks to.

        The set holds docker, ipfs, the hub's market, result proxy and sms,
        plus their own dependencies.

        Raises:
            UnknownHubError: If ``hub`` is not registered
            MissingPeerError: If one of those services is not registered
        """
        record = self._hubs.get(hub)
        roots = [
            self._singleton(ServiceType.DOCKER, hub),
            self._singleton(ServiceType.IPFS, hub),
        ]
        for service_type in (ServiceType.MARKET, ServiceType.RESULTPROXY, ServiceType.SMS):
            name = record.get_slot(str(service_type))
            if not isinstance(name, str):
                raise MissingPeerError(str(service_type), hub=hub)
            roots.append(self._registry.get(name, service_type))

        result = DependencySet()
        visited: set[_Key] = set()
        for entry in roots:
            key = (entry.type, entry.name)
            if key in visited:
                continue
            visited.add(key)
            result.add(entry)
            self._expand(entry.type, entry.name, entry.resolved, result, visited)
        logger.debug(f"Resolved {len(result)} client dependencies for hub '{hub}'")
        return result

    def _expand(
        self,
        service_type: ServiceType,
        name: str,
        resolved: ServiceConfigBase,
        result: DependencySet,
        visited: set[_Key],
    ) -> None:
        for dep in self._direct(service_type, name, resolved):
            key = (dep.type, dep.name)
            if key in visited:
                continue
            visited.add(key)
            result.add(dep)
            self._expand(dep.type, dep.name, dep.resolved, result, visited)

    def _direct(
        self, service_type: ServiceType, name: str, resolved: ServiceConfigBase
    ) -> list[InventoryEntry]:
        hub = getattr(resolved, "hub", None)
        match service_type:
            case (
                ServiceType.IPFS
                | ServiceType.DOCKER
                | ServiceType.MONGO
                | ServiceType.REDIS
                | ServiceType.GANACHE
            ):
                return []
            case ServiceType.MARKET:
                chains = resolved.api.chains  # type: ignore[attr-defined]
                return [self._ganache(alias, name) for alias in chains]
            case ServiceType.SMS:
                return [self._singleton(ServiceType.IPFS, name), self._ganache(hub, name)]
            case ServiceType.RESULTPROXY:
                return [
                    self._singleton(ServiceType.IPFS, name),
                    self._ganache(hub, name),
                    self._peer(ServiceType.MONGO, resolved.mongo_host, name, hub),  # type: ignore[attr-defined]
                ]
            case ServiceType.BLOCKCHAINADAPTER:
                return [
                    self._ganache(hub, name),
                    self._peer(ServiceType.MARKET, resolved.market_api_url, name, hub),  # type: ignore[attr-defined]
                    self._peer(ServiceType.MONGO, resolved.mongo_host, name, hub),  # type: ignore[attr-defined]
                ]
            case ServiceType.CORE:
                return [
                    self._ganache(hub, name),
                    self._peer(ServiceType.SMS, resolved.sms_url, name, hub),  # type: ignore[attr-defined]
                    self._peer(ServiceType.RESULTPROXY, resolved.result_proxy_url, name, hub),  # type: ignore[attr-defined]
                    self._peer(
                        ServiceType.BLOCKCHAINADAPTER,
                        resolved.blockchain_adapter_url,  # type: ignore[attr-defined]
                        name,
                        hub,
                    ),
                    self._peer(ServiceType.MONGO, resolved.mongo_host, name, hub),  # type: ignore[attr-defined]
                    # core has no functional docker dependency
                    self._singleton(ServiceType.DOCKER, name),
                ]
            case ServiceType.WORKER:
                return [
                    self._peer(ServiceType.DOCKER, resolved.docker_host, name, hub),  # type: ignore[attr-defined]
                    self._peer(ServiceType.CORE, resolved.core_url, name, hub),  # type: ignore[attr-defined]
                ]

    def _singleton(self, service_type: ServiceType, requester: str) -> InventoryEntry:
        entry = self._registry.singleton(service_type)
        if entry is None:
            raise MissingPeerError(str(service_type), name=requester)
        return entry

    def _ganache(self, hub: str | None, requester: str) -> InventoryEntry:
        if hub is None:
            raise MissingPeerError(str(ServiceType.GANACHE), name=requester)
        record = self._hubs.get(hub)
        return self._registry.get(record.chain_sim_name, ServiceType.GANACHE)

    def _peer(
        self,
        service_type: ServiceType,
        host: str | None,
        requester: str,
        hub: str | None,
    ) -> InventoryEntry:
        entry = self._registry.find_by_host(host)
        if entry is None or entry.type is not service_type:
            raise MissingPeerError(str(service_type), hub=hub, name=requester)
        return entry
