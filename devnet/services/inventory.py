"""Service inventory.

The ``Inventory`` owns the registry indices, the hub topology table, the
chain graph and the machine placement of one network, and exposes the
registration and query API over them.

Registration order:
    ganache -> ipfs/docker -> mongo/redis -> market
    -> sms/resultproxy/blockchainadapter -> core -> workers

Each registration validates everything it will create (entry, companion
database, hub slot, cross-service URLs) before touching any index, so a
failed call leaves the inventory unchanged.

Usage:
    inventory = Inventory(root_dir, "1337.standard", machines, placeholders, resolver)
    await inventory.add_ganache(ganache_config)
    await inventory.add_ipfs(ipfs_config)
    deps = inventory.dependencies_of("sms.1337.standard")
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from devnet.core.address import (
    normalize_host,
    placeholder_name,
    substitute_all,
)
from devnet.core.constants import (
    BACKFILL_FIELDS,
    MONGO_BACKED_TYPES,
    ServiceType,
)
from devnet.core.exceptions import (
    DuplicateHubError,
    DuplicateSingletonError,
    InvalidPlacementError,
    InventoryError,
    InventoryValidationError,
    MissingPeerError,
    UnknownConfigError,
)
from devnet.core.logging import get_logger, set_inventory_id
from devnet.schemas.inventory import InventoryEntry, PortRange, WorkerEntry
from devnet.schemas.services import (
    BlockchainAdapterConfig,
    CoreConfig,
    DeployConfig,
    DockerConfig,
    GanacheConfig,
    HubServiceConfig,
    IpfsConfig,
    MarketConfig,
    MongoConfig,
    RedisConfig,
    Repository,
    ResultProxyConfig,
    ServiceConfigBase,
    SmsConfig,
    parse_service_config,
)
from devnet.services.chain_graph import ChainGraph, ChainRecord
from devnet.services.config_registry import ConfigRegistry
from devnet.services.dependencies import DependencyClosureEngine, DependencySet
from devnet.services.hub_topology import HubRecord, HubTopologyTable, WorkersRecord
from devnet.services.placement import DEFAULT, Machine, PlacementResolver
from devnet.services.query import ConfigQuery, ConfigQueryResolver
from devnet.services.repository import RepositoryResolver
from devnet.services.service_types import ServiceHandle, implementation_for
from devnet.services.workers import SgxDriverMode, WorkerDescriptorFactory, worker_name

__all__ = ["Inventory"]

logger = get_logger(__name__)


class Inventory:
    """In-memory registry of the services of one network."""

    def __init__(
        self,
        root_dir: str,
        default_chain: str,
        machines: Iterable[Machine],
        placeholders: Mapping[str, str],
        resolver: RepositoryResolver | None = None,
        *,
        inventory_id: str | None = None,
    ) -> None:
        if not root_dir or not os.path.isabs(root_dir):
            raise InventoryValidationError(
                f"Inventory root directory must be absolute, got {root_dir!r}",
                details={"root_dir": root_dir},
            )
        if not default_chain:
            raise InventoryValidationError("Missing default chain name")

        # every binding must resolve
        for value in placeholders.values():
            substitute_all(value, placeholders)

        self.root_dir = root_dir
        self.default_chain = default_chain
        self.inventory_id = inventory_id or uuid.uuid4().hex[:8]
        set_inventory_id(self.inventory_id)

        self._resolver = resolver
        self._placement = PlacementResolver(machines, placeholders)
        self._registry = ConfigRegistry()
        self._hubs = HubTopologyTable()
        self._chains = ChainGraph(self._hubs)
        self._workers = WorkerDescriptorFactory(self._registry, self._hubs, self._placement)
        self._dependencies = DependencyClosureEngine(self._registry, self._hubs)
        self._query = ConfigQueryResolver(
            self._registry, self._hubs, self._chains, self._workers, default_chain
        )
        logger.info(
            f"Created inventory {self.inventory_id} (root={root_dir}, "
            f"machines={[m.name for m in self._placement.machines]})"
        )

    @property
    def placeholders(self) -> Mapping[str, str]:
        return self._placement.placeholders

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def _prepare_entry(
        self,
        name: str,
        config: ServiceConfigBase,
        *,
        shared: bool,
        parent: str | None = None,
    ) -> InventoryEntry:
        self._registry.check_name(name)
        self._check_placement(name, config)
        implementation = implementation_for(config.service_type)
        resolved = await implementation.deep_copy_config(
            config, True, self.placeholders, resolver=self._resolver
        )
        return InventoryEntry.create(name, config, resolved, shared=shared, parent=parent)

    def _check_placement(self, name: str, config: ServiceConfigBase) -> None:
        hostname, _ = config.host_port()
        if not hostname:
            return
        machine = placeholder_name(hostname)
        if machine is None:
            raise InvalidPlacementError(
                f"Hostname '{hostname}' of '{name}' must be a single machine placeholder",
                details={"name": name, "hostname": hostname},
            )
        self._placement.resolve_machine_name(machine)

    def _commit(self, entries: list[InventoryEntry]) -> None:
        self._registry.validate(entries)
        self._registry.commit(entries)
        for entry in entries:
            logger.info(f"Added {entry.type} '{entry.name}' at {entry.host}")

    async def _add_singleton(
        self, config: IpfsConfig | DockerConfig, name: str | None
    ) -> str:
        service_type = config.service_type
        if self._registry.singleton(service_type) is not None:
            raise DuplicateSingletonError(str(service_type))
        entry = await self._prepare_entry(name or str(service_type), config, shared=True)
        self._commit([entry])
        return entry.name

    async def add_ipfs(self, config: IpfsConfig, name: str | None = None) -> str:
        return await self._add_singleton(config, name)

    async def add_docker(self, config: DockerConfig, name: str | None = None) -> str:
        return await self._add_singleton(config, name)

    async def add_ganache(self, config: GanacheConfig, name: str | None = None) -> str:
        """Register a chain simulator and the hubs of its deploy sequence.

        Returns:
            The registry name (``ganache.<chainid>`` by default)

        Raises:
            DuplicateHubError: If one of its hub aliases already exists
        """
        name = name or f"{ServiceType.GANACHE}.{config.config.chainid}"
        entry = await self._prepare_entry(name, config, shared=True)
        records = self._hubs.prepare_chain_deployment(name, entry.resolved)  # type: ignore[arg-type]
        self._commit([entry])
        self._hubs.commit(records)
        return name

    async def _add_db(
        self, config: MongoConfig | RedisConfig, name: str | None
    ) -> str:
        service_type = config.service_type
        name = name or self._registry.next_name(service_type, f"{service_type}.shared")
        entry = await self._prepare_entry(name, config, shared=True)
        self._commit([entry])
        return name

    async def add_mongo(self, config: MongoConfig, name: str | None = None) -> str:
        return await self._add_db(config, name)

    async def add_redis(self, config: RedisConfig, name: str | None = None) -> str:
        return await self._add_db(config, name)

    async def add_market(self, config: MarketConfig, name: str | None = None) -> str:
        """Register a market and link it to every hub it serves.

        Raises:
            UnknownHubError: If a served hub is not registered
            DuplicateHubSlotError: If a served hub already has a market
            DuplicateHubError: If a hub is listed more than once
        """
        seen: set[str] = set()
        for alias in config.api.chains:
            if alias in seen:
                raise DuplicateHubError(alias)
            seen.add(alias)
        records = [self._hubs.get(alias) for alias in config.api.chains]
        for record in records:
            record.check_slot_free(str(ServiceType.MARKET))
        name = name or self._registry.next_name(ServiceType.MARKET)
        entry = await self._prepare_entry(name, config, shared=True)
        self._commit([entry])
        for record in records:
            record.set_slot(str(ServiceType.MARKET), name)
        return name

    async def add_sms(self, config: SmsConfig, name: str | None = None) -> str:
        return await self._add_hub_service(config, name, None)

    async def add_result_proxy(
        self, config: ResultProxyConfig, name: str | None = None, db_config: MongoConfig | None = None
    ) -> str:
        return await self._add_hub_service(config, name, db_config)

    async def add_blockchain_adapter(
        self,
        config: BlockchainAdapterConfig,
        name: str | None = None,
        db_config: MongoConfig | None = None,
    ) -> str:
        return await self._add_hub_service(config, name, db_config)

    async def add_core(
        self, config: CoreConfig, name: str | None = None, db_config: MongoConfig | None = None
    ) -> str:
        return await self._add_hub_service(config, name, db_config)

    async def _add_hub_service(
        self,
        config: HubServiceConfig,
        name: str | None,
        db_config: MongoConfig | None,
    ) -> str:
        service_type = config.service_type
        slot = str(service_type)
        record = self._hubs.get(config.hub)
        record.check_slot_free(slot)

        name = name or f"{service_type}.{config.hub}"
        entry = await self._prepare_entry(name, config, shared=False)

        batch: list[InventoryEntry] = []
        if db_config is not None:
            db_entry = await self._prepare_entry(
                f"{db_config.type}.{name}", db_config, shared=False, parent=name
            )
            declared = normalize_host(getattr(entry.resolved, "mongo_host", None))
            if declared != normalize_host(db_entry.host):
                raise InventoryValidationError(
                    f"Database address {db_entry.host} of '{name}' does not match "
                    f"its declared mongo host {declared}",
                    details={"name": name, "db_host": db_entry.host, "mongo_host": declared},
                )
            batch.append(db_entry)

        if service_type in MONGO_BACKED_TYPES:
            self._require_mongo(entry, batch)

        if service_type in BACKFILL_FIELDS:
            patch = self._backfill_patch(service_type, record)
            entry = entry.finalize(**patch)
            logger.debug(f"Backfilled {sorted(patch)} of '{name}'")

        batch.append(entry)
        self._registry.validate(batch)
        record.check_slot_free(slot)
        self._commit(batch)
        record.set_slot(slot, name)
        return name

    def _require_mongo(self, entry: InventoryEntry, batch: list[InventoryEntry]) -> None:
        mongo_host = normalize_host(getattr(entry.resolved, "mongo_host", None))
        for candidate in batch:
            if normalize_host(candidate.host) == mongo_host:
                return
        found = self._registry.find_by_host(mongo_host)
        if found is None or found.type is not ServiceType.MONGO:
            raise MissingPeerError(str(ServiceType.MONGO), hub=entry.hub, name=entry.name)

    def _backfill_patch(self, service_type: ServiceType, record: HubRecord) -> dict[str, str]:
        """Compute the cross-service URLs of a provisional entry."""

        def _slot_url(slot: ServiceType) -> str:
            peer = record.get_slot(str(slot))
            if not isinstance(peer, str):
                raise MissingPeerError(str(slot), hub=record.alias)
            return self._registry.get(peer, slot).url

        if service_type is ServiceType.BLOCKCHAINADAPTER:
            return {"market_api_url": _slot_url(ServiceType.MARKET)}

        ipfs = self._registry.singleton(ServiceType.IPFS)
        if ipfs is None:
            raise MissingPeerError(str(ServiceType.IPFS), hub=record.alias)
        return {
            "ipfs_host": ipfs.host,
            "sms_url": _slot_url(ServiceType.SMS),
            "result_proxy_url": _slot_url(ServiceType.RESULTPROXY),
            "blockchain_adapter_url": _slot_url(ServiceType.BLOCKCHAINADAPTER),
        }

    async def add_workers(
        self,
        hub: str,
        repository: Repository,
        directory: str,
        port_range: PortRange | dict[str, Any],
    ) -> None:
        """Assign a worker pool to ``hub``.

        Raises:
            UnknownHubError: If the hub is not registered
            DuplicateHubSlotError: If the hub already has a worker pool
            InvalidPortRangeError: If the port range is malformed
        """
        record = self._hubs.get(hub)
        record.check_slot_free("workers")
        port_range = PortRange.parse(port_range)
        package = await implementation_for(ServiceType.WORKER).resolve_package(
            repository, self.placeholders, self._resolver
        )
        workers = WorkersRecord(
            directory=substitute_all(directory, self.placeholders),
            port_range=port_range,
            repository=package,
        )
        record.set_slot("workers", workers)
        logger.info(
            f"Added workers to hub {hub} (ports {port_range.from_}-{port_range.to})"
        )

    async def add_config(
        self,
        config: ServiceConfigBase | dict[str, Any],
        name: str | None = None,
        db_config: MongoConfig | dict[str, Any] | None = None,
    ) -> str:
        """Register any non-worker config, dispatching on its type."""
        config = parse_service_config(config)
        if isinstance(db_config, dict):
            db_config = MongoConfig.model_validate(db_config)
        match config:
            case IpfsConfig():
                return await self.add_ipfs(config, name)
            case DockerConfig():
                return await self.add_docker(config, name)
            case MongoConfig():
                return await self.add_mongo(config, name)
            case RedisConfig():
                return await self.add_redis(config, name)
            case GanacheConfig():
                return await self.add_ganache(config, name)
            case MarketConfig():
                return await self.add_market(config, name)
            case SmsConfig():
                return await self.add_sms(config, name)
            case ResultProxyConfig():
                return await self.add_result_proxy(config, name, db_config)
            case BlockchainAdapterConfig():
                return await self.add_blockchain_adapter(config, name, db_config)
            case CoreConfig():
                return await self.add_core(config, name, db_config)
            case _:
                raise InventoryValidationError(
                    f"Cannot register a '{config.type}' config",
                    details={"type": config.type},
                )

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    def add_chain(self, name: str, hub: str) -> ChainRecord:
        return self._chains.add_chain(name, hub)

    def bridge_chains(self, token_chain: str, native_chain: str) -> None:
        self._chains.bridge_chains(token_chain, native_chain)

    def enterprise_swap_chains(self, chain1: str, chain2: str) -> None:
        self._chains.enterprise_swap_chains(chain1, chain2)

    def init_default_enterprise_swap(self) -> list[tuple[str, str]]:
        return self._chains.init_default_enterprise_swap()

    def has_chain(self, name: str) -> bool:
        return self._chains.has_chain(name)

    def get_chain(self, name: str) -> ChainRecord:
        return self._chains.get_chain(name)

    def chain_names(self) -> list[str]:
        return self._chains.chain_names()

    def chains(self) -> list[ChainRecord]:
        return self._chains.chains()

    def hub_alias_to_chain_name(self, hub: str) -> str | None:
        return self._chains.hub_alias_to_chain_name(hub)

    # ------------------------------------------------------------------
    # Registry queries
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[InventoryEntry]:
        return iter(self._registry)

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def get(self, name: str) -> InventoryEntry:
        return self._registry.get(name)

    def get_by_type(self, service_type: ServiceType | str) -> list[InventoryEntry]:
        return self._registry.get_by_type(service_type)

    def get_by_host(self, host_or_url: str) -> InventoryEntry:
        return self._registry.get_by_host(host_or_url)

    def find_by_host(self, host_or_url: str | None) -> InventoryEntry | None:
        return self._registry.find_by_host(host_or_url)

    def is_shared(self, name: str) -> bool:
        return self._registry.is_shared(name)

    def _singleton(self, service_type: ServiceType) -> InventoryEntry:
        entry = self._registry.singleton(service_type)
        if entry is None:
            raise UnknownConfigError(str(service_type), expected_type=str(service_type))
        return entry

    def ipfs_api_url(self) -> str:
        return self._singleton(ServiceType.IPFS).url

    def docker_url(self) -> str:
        return self._singleton(ServiceType.DOCKER).url

    def hub(self, alias: str) -> HubRecord:
        return self._hubs.get(alias)

    def hub_aliases(self) -> list[str]:
        return self._hubs.aliases()

    @property
    def default_hub_alias(self) -> str:
        return self._query.default_hub_alias

    def get_from_hub(self, service_type: ServiceType | str, hub: str) -> InventoryEntry:
        """Return the entry of ``service_type`` serving ``hub``.

        Raises:
            UnknownHubError: If the hub is not registered
            MissingPeerError: If the hub slot is empty
        """
        service_type = ServiceType(service_type)
        record = self._hubs.get(hub)
        if service_type is ServiceType.GANACHE:
            return self._registry.get(record.chain_sim_name, ServiceType.GANACHE)
        name = record.get_slot(str(service_type))
        if not isinstance(name, str):
            raise MissingPeerError(str(service_type), hub=hub)
        return self._registry.get(name, service_type)

    def hub_service_url(self, service_type: ServiceType | str, hub: str) -> str:
        return self.get_from_hub(service_type, hub).url

    def market_api_url_for_hub(self, hub: str) -> str:
        return self.hub_service_url(ServiceType.MARKET, hub)

    def get_hub_from_host(self, host_or_url: str) -> str | None:
        """Return the hub served by the entry at ``host_or_url``."""
        entry = self._registry.find_by_host(host_or_url)
        if entry is None:
            return None
        if entry.hub is not None:
            return entry.hub
        return self._hubs.hub_of_service(entry.name)

    def deploy_sequence_for_hub(self, hub: str) -> DeployConfig:
        record = self._hubs.get(hub)
        ganache = self._registry.get(record.chain_sim_name, ServiceType.GANACHE)
        for deploy in ganache.resolved.config.deploy_sequence:  # type: ignore[attr-defined]
            if deploy.name == record.deploy_name:
                return deploy
        raise InventoryError(f"Missing deploy config of hub {hub}", details={"hub": hub})

    def ganache_for_chain_id(self, chain_id: int) -> InventoryEntry:
        return self._query.ganache_for_chain_id(chain_id)

    def has_chain_id(self, chain_id: int) -> bool:
        return chain_id in self._hubs.chain_ids()

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def worker_name(self, hub: str, index: int) -> str:
        return worker_name(hub, index)

    def hub_of_worker(self, name: str) -> str:
        prefix, _, rest = name.partition(".")
        index, _, hub = rest.partition(".")
        if prefix != str(ServiceType.WORKER) or not index.isdigit() or not hub:
            raise UnknownConfigError(name, expected_type=str(ServiceType.WORKER))
        return hub

    def get_worker_config(
        self,
        hub: str,
        index: int,
        machine: str = DEFAULT,
        sgx_driver_mode: SgxDriverMode = "none",
    ) -> WorkerEntry:
        return self._workers.get_worker_config(hub, index, machine, sgx_driver_mode)

    # ------------------------------------------------------------------
    # Dependencies and config queries
    # ------------------------------------------------------------------

    def dependencies_of(self, name: str) -> DependencySet:
        return self._dependencies.resolve_name(name)

    def worker_dependencies_of(
        self,
        hub: str,
        index: int,
        sgx_driver_mode: SgxDriverMode = "none",
        machine: str = DEFAULT,
    ) -> DependencySet:
        worker = self._workers.get_worker_config(hub, index, machine, sgx_driver_mode)
        return self._dependencies.resolve_worker(worker)

    def hub_client_dependencies_of(self, hub: str) -> DependencySet:
        return self._dependencies.resolve_hub_client(hub)

    def guess_config(self, query: ConfigQuery | None = None, **kwargs: Any) -> InventoryEntry | WorkerEntry | None:
        return self._query.guess_config(query or ConfigQuery(**kwargs))

    def guess_hub_alias(self, query: ConfigQuery | None = None, **kwargs: Any) -> str:
        return self._query.guess_hub_alias(query or ConfigQuery(**kwargs))

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def _entry(self, entry_or_name: InventoryEntry | WorkerEntry | str) -> InventoryEntry | WorkerEntry:
        if isinstance(entry_or_name, str):
            return self._registry.get(entry_or_name)
        return entry_or_name

    def running_machine_name(self, entry_or_name: InventoryEntry | WorkerEntry | str) -> str:
        return self._placement.running_machine_name(self._entry(entry_or_name))

    def resolve_machine_name(self, name: str) -> str:
        return self._placement.resolve_machine_name(name)

    def is_local(self, entry_or_name: InventoryEntry | WorkerEntry | str) -> bool:
        return self._placement.is_local(self._entry(entry_or_name))

    def get_machine(self, name: str) -> Machine:
        return self._placement.get_machine(name)

    def is_local_machine_name(self, name: str) -> bool:
        return self._placement.is_local_machine_name(name)

    def is_local_master(self) -> bool:
        return self._placement.is_local_master()

    def machine_ports(self, machine_name: str) -> list[int]:
        return self._placement.machine_ports(machine_name, self._registry)

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    async def new_instance(self, entry_or_name: InventoryEntry | WorkerEntry | str) -> ServiceHandle:
        entry = self._entry(entry_or_name)
        implementation = implementation_for(entry.type)
        return await implementation.new_instance(entry.resolved, self)

    async def new_instances(
        self, entries_or_names: Iterable[InventoryEntry | WorkerEntry | str]
    ) -> list[ServiceHandle]:
        """Build handles for several entries concurrently."""
        return list(await asyncio.gather(*(self.new_instance(e) for e in entries_or_names)))
