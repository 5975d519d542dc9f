"""Constants shared across the inventory.

The order of ``ServiceType`` members is the fixed total order used to group
registry entries and dependency sets: chain simulators first, then the
singleton leaves and databases, then the market, the hub-bound server tiers
and finally workers.
"""

from enum import Enum
from typing import Any


class ServiceType(str, Enum):
    """Kinds of managed services, in dependency order."""

    GANACHE = "ganache"
    IPFS = "ipfs"
    DOCKER = "docker"
    MONGO = "mongo"
    REDIS = "redis"
    MARKET = "market"
    SMS = "sms"
    RESULTPROXY = "resultproxy"
    BLOCKCHAINADAPTER = "blockchainadapter"
    CORE = "core"
    WORKER = "worker"

    def __str__(self) -> str:
        return self.value


ORDERED_SERVICE_TYPES: tuple[ServiceType, ...] = tuple(ServiceType)

# Server tiers bound to one hub alias
HUB_SERVICE_TYPES: frozenset[ServiceType] = frozenset(
    {
        ServiceType.SMS,
        ServiceType.RESULTPROXY,
        ServiceType.BLOCKCHAINADAPTER,
        ServiceType.CORE,
    }
)

# Hub services that require a mongo database
MONGO_BACKED_TYPES: frozenset[ServiceType] = frozenset(
    {
        ServiceType.RESULTPROXY,
        ServiceType.BLOCKCHAINADAPTER,
        ServiceType.CORE,
    }
)

SINGLETON_TYPES: frozenset[ServiceType] = frozenset({ServiceType.IPFS, ServiceType.DOCKER})

DB_TYPES: frozenset[ServiceType] = frozenset({ServiceType.MONGO, ServiceType.REDIS})

# Types whose resolved form receives cross-service URLs after insertion
BACKFILL_FIELDS: dict[ServiceType, frozenset[str]] = {
    ServiceType.BLOCKCHAINADAPTER: frozenset({"market_api_url"}),
    ServiceType.CORE: frozenset(
        {"ipfs_host", "result_proxy_url", "blockchain_adapter_url", "sms_url"}
    ),
}

# Hub slots, in the order they are expected to be populated
HUB_SLOTS: tuple[str, ...] = (
    "market",
    "sms",
    "resultproxy",
    "blockchainadapter",
    "core",
    "workers",
)

# Reserved global placeholders (bare variable names)
LOCAL_HOSTNAME_VAR = "localHostname"
DEFAULT_HOSTNAME_VAR = "defaultHostname"
VERSION_VAR = "version"
REPO_NAME_VAR = "repoName"

LOOPBACK_HOSTNAME = "localhost"

MASTER_MACHINE_NAME = "master"

# Wallet indices derived from the deployment mnemonic
DEFAULT_WALLET_INDEX: dict[str, int] = {
    "admin": 0,
    "workerpool": 1,
    "app": 2,
    "dataset": 3,
    "requester": 4,
    "worker": 5,
}

# Pinned versions used when no explicit version is configured
DEFAULT_VERSIONS: dict[ServiceType, str] = {
    ServiceType.MARKET: "v6.1.0",
    ServiceType.SMS: "v8.0.0",
    ServiceType.RESULTPROXY: "v8.0.0",
    ServiceType.BLOCKCHAINADAPTER: "v8.0.1",
    ServiceType.CORE: "v8.0.1",
    ServiceType.WORKER: "v8.0.0",
}

_GIT_ORG = "https://github.com/iExecBlockchainComputing"

DEFAULT_REPO_NAMES: dict[ServiceType, str] = {
    ServiceType.MARKET: "iexec-market-api",
    ServiceType.SMS: "iexec-sms",
    ServiceType.RESULTPROXY: "iexec-result-proxy",
    ServiceType.BLOCKCHAINADAPTER: "iexec-blockchain-adapter-api",
    ServiceType.CORE: "iexec-core",
    ServiceType.WORKER: "iexec-worker",
}

DEFAULT_GIT_URLS: dict[ServiceType, str] = {
    t: f"{_GIT_ORG}/{repo}.git" for t, repo in DEFAULT_REPO_NAMES.items()
}

# Port ranges used to fill missing ports of declarative documents.
# Hub services reserve `size` consecutive ports (service, management, db).
PORT_RANGE: dict[str, Any] = {
    "shared": {
        "ganache": {"from": 8545, "to": 8554},
        "ipfs": {
            "api": {"from": 5002, "to": 5002},
            "gateway": {"from": 13900, "to": 13900},
        },
        "docker": {"from": 5008, "to": 5008},
        "mongo": {"from": 13500, "to": 13599},
        "redis": {"from": 13600, "to": 13699},
        "market": {
            "api": {"from": 3000, "to": 3009},
            "mongo": {"from": 27020, "to": 27029},
            "redis": {"from": 27030, "to": 27039},
        },
    },
    "chains": {
        "sms": {"from": 13300, "to": 13399, "size": 2},
        "resultproxy": {"from": 13200, "to": 13299, "size": 3},
        "blockchainadapter": {"from": 13400, "to": 13499, "size": 3},
        "core": {"from": 13000, "to": 13099, "size": 3},
    },
    "workers": {"from": 13100, "to": 13199, "size": 1},
}
