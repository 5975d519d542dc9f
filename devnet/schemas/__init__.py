"""Service config schemas and registry entry types."""

from devnet.schemas.inventory import (
    EntryState,
    InventoryEntry,
    PortRange,
    ResolvedPackage,
    WorkerEntry,
)
from devnet.schemas.services import (
    BlockchainAdapterConfig,
    CoreConfig,
    DeployConfig,
    DockerConfig,
    GanacheChainConfig,
    GanacheConfig,
    IpfsConfig,
    MarketApiConfig,
    MarketConfig,
    MarketDbConfig,
    MongoConfig,
    RedisConfig,
    RepositoryPackage,
    ResultProxyConfig,
    ServiceConfig,
    ServiceConfigBase,
    SmsConfig,
    WorkerConfig,
    parse_service_config,
)

__all__ = [
    "BlockchainAdapterConfig",
    "CoreConfig",
    "DeployConfig",
    "DockerConfig",
    "EntryState",
    "GanacheChainConfig",
    "GanacheConfig",
    "InventoryEntry",
    "IpfsConfig",
    "MarketApiConfig",
    "MarketConfig",
    "MarketDbConfig",
    "MongoConfig",
    "PortRange",
    "RedisConfig",
    "RepositoryPackage",
    "ResolvedPackage",
    "ResultProxyConfig",
    "ServiceConfig",
    "ServiceConfigBase",
    "SmsConfig",
    "WorkerConfig",
    "WorkerEntry",
    "parse_service_config",
]
