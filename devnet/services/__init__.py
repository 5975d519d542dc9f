"""Registry, topology and resolution services."""

from .chain_graph import ChainGraph, ChainRecord
from .config_registry import ConfigRegistry
from .dependencies import DependencyClosureEngine, DependencySet
from .hub_topology import Flavour, HubRecord, HubTopologyTable, WorkersRecord, hub_alias, parse_hub_alias
from .inventory import Inventory
from .loader import default_document, load_document, load_inventory
from .placement import Machine, PlacementResolver, build_placeholders
from .query import ConfigQuery, ConfigQueryResolver
from .repository import (
    GitHubRepositoryResolver,
    RepositoryResolver,
    RepositoryVersionCache,
    ResolvedRepository,
    StaticRepositoryResolver,
)
from .service_types import ServiceHandle, implementation_for
from .workers import WorkerDescriptorFactory, worker_name

__all__ = [
    "ChainGraph",
    "ChainRecord",
    "ConfigQuery",
    "ConfigQueryResolver",
    "ConfigRegistry",
    "DependencyClosureEngine",
    "DependencySet",
    "Flavour",
    "GitHubRepositoryResolver",
    "HubRecord",
    "HubTopologyTable",
    "Inventory",
    "Machine",
    "PlacementResolver",
    "RepositoryResolver",
    "RepositoryVersionCache",
    "ResolvedRepository",
    "ServiceHandle",
    "StaticRepositoryResolver",
    "WorkerDescriptorFactory",
    "WorkersRecord",
    "build_placeholders",
    "default_document",
    "hub_alias",
    "implementation_for",
    "load_document",
    "load_inventory",
    "parse_hub_alias",
    "worker_name",
]
