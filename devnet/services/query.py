"""Loose config queries.

A query names a service directly, or describes it by type plus hub, chain
or chain id. Resolution order:

    1. ``name`` wins, no inference
    2. singleton kinds (ipfs, docker) resolve by type alone
    3. mongo/redis are ambiguous by type and resolve to nothing
    4. ganache resolves by chain id when one is given
    5. otherwise a hub is selected (explicit hub, then chain, then the
       default chain) and the type is looked up in its slots
"""

from __future__ import annotations

from dataclasses import dataclass

from devnet.core.constants import DB_TYPES, HUB_SERVICE_TYPES, SINGLETON_TYPES, ServiceType
from devnet.core.exceptions import (
    IncompatibleHubError,
    InvalidQueryError,
    MissingPeerError,
    UnknownChainError,
    UnknownConfigError,
)
from devnet.core.logging import get_logger
from devnet.schemas.inventory import InventoryEntry, WorkerEntry
from devnet.services.chain_graph import ChainGraph
from devnet.services.config_registry import ConfigRegistry
from devnet.services.hub_topology import HubTopologyTable
from devnet.services.placement import DEFAULT
from devnet.services.workers import SgxDriverMode, WorkerDescriptorFactory

__all__ = ["ConfigQuery", "ConfigQueryResolver"]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ConfigQuery:
    """Loosely specified service lookup."""

    name: str | None = None
    type: ServiceType | None = None
    hub: str | None = None
    chain: str | None = None
    chain_id: int | None = None
    worker_index: int | None = None
    machine: str | None = None
    sgx_driver_mode: SgxDriverMode = "none"


class ConfigQueryResolver:
    """Turns a ``ConfigQuery`` into exactly one registry entry."""

    def __init__(
        self,
        registry: ConfigRegistry,
        hubs: HubTopologyTable,
        chains: ChainGraph,
        workers: WorkerDescriptorFactory,
        default_chain: str,
    ) -> None:
        self._registry = registry
        self._hubs = hubs
        self._chains = chains
        self._workers = workers
        self._default_chain = default_chain

    @property
    def default_hub_alias(self) -> str:
        """Hub of the default chain.

        Raises:
            UnknownChainError: If the default chain is not registered
        """
        return self._chains.get_chain(self._default_chain).hub_alias

    def guess_config(self, query: ConfigQuery) -> InventoryEntry | WorkerEntry | None:
        """Resolve ``query`` into one entry.

        Returns:
            The matching entry, a worker descriptor for worker queries, or
            None for mongo/redis queries without a name

        Raises:
            InvalidQueryError: If the query has neither name nor type, or a
                worker query has no index
            UnknownConfigError: If no entry matches
            IncompatibleHubError: If the explicit hub disagrees with the chain
            UnknownHubError: If the selected hub is not registered
        """
        if query.name:
            return self._registry.get(query.name)
        if query.type is None:
            raise InvalidQueryError(
                "A config query needs a name or a type", details={"query": repr(query)}
            )
        service_type = ServiceType(query.type)

        if service_type in SINGLETON_TYPES:
            entry = self._registry.singleton(service_type)
            if entry is None:
                raise UnknownConfigError(str(service_type), expected_type=str(service_type))
            return entry
        if service_type in DB_TYPES:
            return None
        if service_type is ServiceType.GANACHE and query.chain_id is not None:
            return self.ganache_for_chain_id(query.chain_id)

        hub = self._select_hub(query, strict_chain=False)
        record = self._hubs.get(hub)

        if service_type is ServiceType.GANACHE:
            return self._registry.get(record.chain_sim_name, ServiceType.GANACHE)
        if service_type is ServiceType.WORKER:
            if query.worker_index is None:
                raise InvalidQueryError(
                    "A worker query needs a worker index", details={"hub": hub}
                )
            return self._workers.get_worker_config(
                hub, query.worker_index, query.machine or DEFAULT, query.sgx_driver_mode
            )

        assert service_type is ServiceType.MARKET or service_type in HUB_SERVICE_TYPES
        name = record.get_slot(str(service_type))
        if name is None:
            raise MissingPeerError(str(service_type), hub=hub)
        assert isinstance(name, str)
        return self._registry.get(name, service_type)

    def guess_hub_alias(self, query: ConfigQuery) -> str:
        """Resolve the hub half of a query.

        Raises:
            UnknownChainError: If the chain (or default chain) is unknown
            IncompatibleHubError: If the explicit hub disagrees with the chain
            UnknownHubError: If the selected hub is not registered
        """
        return self._select_hub(query, strict_chain=True)

    def ganache_for_chain_id(self, chain_id: int) -> InventoryEntry:
        for entry in self._registry.get_by_type(ServiceType.GANACHE):
            if entry.resolved.config.chainid == chain_id:  # type: ignore[attr-defined]
                return entry
        raise UnknownConfigError(f"chainid={chain_id}", expected_type=str(ServiceType.GANACHE))

    def _select_hub(self, query: ConfigQuery, *, strict_chain: bool) -> str:
        if query.hub:
            if query.chain:
                if self._chains.has_chain(query.chain):
                    expected = self._chains.get_chain(query.chain).hub_alias
                    if expected != query.hub:
                        raise IncompatibleHubError(query.hub, expected)
                elif strict_chain:
                    raise UnknownChainError(query.chain)
            self._hubs.get(query.hub)
            return query.hub
        if query.chain:
            return self._chains.get_chain(query.chain).hub_alias
        hub = self.default_hub_alias
        logger.debug(f"Using default chain {self._default_chain} (hub={hub})")
        return hub
