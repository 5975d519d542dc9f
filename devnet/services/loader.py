"""Declarative inventory documents.

A document describes a whole network::

    {
        "vars": {"master": "127.0.0.1", "localHostname": "${master}",
                 "defaultHostname": "${master}"},
        "machines": {"node1": {...}},
        "shared": {"ganache.1337": {"type": "ganache", ...}, ...},
        "chains": {"1337.standard": {"hub": "1337.standard", "core": {...}}},
        "default": "1337.standard"
    }

``load_inventory`` fills the missing directories and ports, then registers
every service in the required order: shared services by type (ganache,
ipfs, docker, mongo, redis, market), then for each chain its worker pool and
its sms, result proxy, blockchain adapter and core.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

import yaml

from devnet.core.address import placeholder, substitute_all
from devnet.core.config import get_settings
from devnet.core.constants import (
    DEFAULT_HOSTNAME_VAR,
    DEFAULT_WALLET_INDEX,
    LOCAL_HOSTNAME_VAR,
    LOOPBACK_HOSTNAME,
    MASTER_MACHINE_NAME,
    ORDERED_SERVICE_TYPES,
    PORT_RANGE,
    ServiceType,
)
from devnet.core.exceptions import InventoryValidationError, InvalidPortRangeError
from devnet.core.logging import get_logger
from devnet.services.hub_topology import hub_alias
from devnet.services.inventory import Inventory
from devnet.services.placement import Machine
from devnet.services.repository import RepositoryResolver, StaticRepositoryResolver

__all__ = [
    "PortAllocator",
    "default_document",
    "load_document",
    "load_inventory",
]

logger = get_logger(__name__)

_SHAREABLE_TYPES = (
    ServiceType.GANACHE,
    ServiceType.IPFS,
    ServiceType.DOCKER,
    ServiceType.MONGO,
    ServiceType.REDIS,
    ServiceType.MARKET,
)

_FLAVOURS = ("standard", "enterprise", "native")


def load_document(path: str | Path) -> dict[str, Any]:
    """Read a JSON or YAML inventory document.

    Raises:
        InventoryValidationError: If the file does not hold a mapping
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        if path.suffix in (".yml", ".yaml"):
            document = yaml.safe_load(f)
        else:
            document = json.load(f)
    if not isinstance(document, dict):
        raise InventoryValidationError(
            f"Inventory document {path} must hold a mapping", details={"path": str(path)}
        )
    return document


def default_document(first_chain_id: int | None = None, count_chains: int | None = None) -> dict[str, Any]:
    """Generate the default topology.

    Each chain id gets one chain simulator deploying a standard, an
    enterprise and a native hub, and one chain per hub. One market per
    flavour serves every chain id.
    """
    settings = get_settings()
    first_chain_id = settings.first_chain_id if first_chain_id is None else first_chain_id
    count_chains = settings.count_chains if count_chains is None else count_chains
    if first_chain_id <= 0:
        raise InventoryValidationError(
            f"Invalid first chain id {first_chain_id}", details={"first_chain_id": first_chain_id}
        )
    if count_chains <= 0:
        raise InventoryValidationError(
            f"Invalid chain count {count_chains}", details={"count_chains": count_chains}
        )

    chain_ids = [first_chain_id + i for i in range(count_chains)]
    shared: dict[str, Any] = {}
    for flavour in _FLAVOURS:
        shared[f"market.{flavour}"] = {
            "type": "market",
            "watchers": "all",
            "api": {"chains": [hub_alias(c, flavour) for c in chain_ids]},
        }
    chains: dict[str, Any] = {}
    for chain_id in chain_ids:
        shared[f"ganache.{chain_id}"] = {
            "type": "ganache",
            "config": {
                "chainid": chain_id,
                "deploySequence": [
                    {
                        "name": "standard",
                        "asset": "Token",
                        "WorkerpoolAccountIndex": DEFAULT_WALLET_INDEX["workerpool"],
                    },
                    {
                        "name": "enterprise",
                        "asset": "Token",
                        "kyc": True,
                        "WorkerpoolAccountIndex": DEFAULT_WALLET_INDEX["workerpool"],
                    },
                    {
                        "name": "native",
                        "asset": "Native",
                        "WorkerpoolAccountIndex": DEFAULT_WALLET_INDEX["workerpool"],
                    },
                ],
            },
        }
        for flavour in _FLAVOURS:
            chains[f"{chain_id}.{flavour}"] = {"hub": hub_alias(chain_id, flavour)}

    return {
        "vars": {
            DEFAULT_HOSTNAME_VAR: placeholder(MASTER_MACHINE_NAME),
            LOCAL_HOSTNAME_VAR: placeholder(MASTER_MACHINE_NAME),
            MASTER_MACHINE_NAME: "127.0.0.1",
        },
        "machines": {},
        "shared": shared,
        "chains": chains,
        "default": f"{first_chain_id}.standard",
    }


class PortAllocator:
    """Tracks the loopback ports of a document and hands out free ones."""

    def __init__(self) -> None:
        self._ports: set[int] = set()
        workers = PORT_RANGE["workers"]
        self._reserved = range(workers["from"], workers["to"] + 1)

    def __contains__(self, port: object) -> bool:
        return port in self._ports

    def add(self, port: int | None, hostname: str | None = None) -> None:
        """Record a port declared by the document.

        Ports of services declared on a non-loopback hostname are ignored.

        Raises:
            InvalidPortRangeError: If the port is reserved to workers
            InventoryValidationError: If the port is declared twice
        """
        if hostname and hostname != LOOPBACK_HOSTNAME:
            return
        if port is None:
            return
        if port in self._reserved:
            raise InvalidPortRangeError(
                f"Unauthorized service port {port} (range=[{self._reserved.start}:"
                f"{self._reserved.stop - 1}] is reserved to worker services)",
                details={"port": port},
            )
        if port in self._ports:
            raise InventoryValidationError(f"Duplicate service port {port}", details={"port": port})
        self._ports.add(port)

    def allocate(self, port_range: dict[str, int]) -> int:
        """Reserve the first free slot of ``port_range`` and return its port.

        A slot is ``size`` consecutive ports, all of them free.
        """
        size = port_range.get("size", 1)
        port = port_range["from"]
        while port <= port_range["to"]:
            if all(p not in self._ports for p in range(port, port + size)):
                self.add(port)
                return port
            port += size
        raise InvalidPortRangeError(
            f"No free port in range {port_range['from']}-{port_range['to']}",
            details=dict(port_range),
        )


def _src_dir(root: str) -> str:
    return os.path.join(root, "src", placeholder("version"), placeholder("repoName"))


def _shared_run_dir(root: str, name: str) -> str:
    return os.path.join(root, "shared", "run", name)


def _shared_db_dir(root: str, name: str) -> str:
    return os.path.join(root, "shared", "db", name)


def _chain_run_dir(root: str, chain: str, service_type: str) -> str:
    return os.path.join(root, "chains", chain, "run", service_type)


def _chain_db_dir(root: str, chain: str, service_type: str) -> str:
    return os.path.join(root, "chains", chain, "db", service_type)


def _fill_files(config: dict[str, Any], run_dir: str, stem: str) -> None:
    config.setdefault("logFile", os.path.join(run_dir, f"{stem}.log"))
    config.setdefault("pidFile", os.path.join(run_dir, f"{stem}.pid"))


def _fill_shared(root: str, name: str, config: dict[str, Any], ports: PortAllocator) -> None:
    """Fill the directories of a shared service and record its ports."""
    service_type = config["type"]
    run_dir = _shared_run_dir(root, name)
    db_dir = _shared_db_dir(root, name)
    hostname = config.get("hostname")
    match service_type:
        case "ipfs":
            config.setdefault("directory", db_dir)
            config.setdefault("logFile", os.path.join(run_dir, "ipfs.log"))
            ports.add(config.get("apiPort"), hostname)
            ports.add(config.get("gatewayPort"), hostname)
        case "docker":
            ports.add(config.get("port"), hostname)
        case "market":
            config.setdefault("repository", _src_dir(root))
            config.setdefault("directory", run_dir)
            api = config.setdefault("api", {})
            ports.add(api.get("port"), api.get("hostname"))
            for db in ("mongo", "redis"):
                db_config = config.setdefault(db, {})
                db_config.setdefault("directory", os.path.join(db_dir, db))
                ports.add(db_config.get("port"), db_config.get("hostname"))
        case _:
            config.setdefault("directory", db_dir)
            _fill_files(config, run_dir, service_type)
            ports.add(config.get("port"), hostname)


def _fill_shared_ports(config: dict[str, Any], ports: PortAllocator) -> None:
    shared_ranges = PORT_RANGE["shared"]
    match config["type"]:
        case "ipfs":
            if config.get("apiPort") is None:
                config["apiPort"] = ports.allocate(shared_ranges["ipfs"]["api"])
            if config.get("gatewayPort") is None:
                config["gatewayPort"] = ports.allocate(shared_ranges["ipfs"]["gateway"])
        case "market":
            for key in ("api", "mongo", "redis"):
                if config[key].get("port") is None:
                    config[key]["port"] = ports.allocate(shared_ranges["market"][key])
        case service_type:
            if config.get("port") is None:
                config["port"] = ports.allocate(shared_ranges[service_type])


def _fill_hub_service(
    root: str,
    chain: str,
    hub: str,
    service_type: str,
    declared: dict[str, Any] | None,
    ports: PortAllocator,
) -> dict[str, Any]:
    config = copy.deepcopy(declared) if declared else {}
    config["type"] = service_type
    config["hub"] = hub
    if config.get("port") is None:
        config["port"] = ports.allocate(PORT_RANGE["chains"][service_type])
    run_dir = _chain_run_dir(root, chain, service_type)
    config.setdefault("repository", _src_dir(root))
    config.setdefault("springConfigLocation", run_dir)
    _fill_files(config, run_dir, service_type)
    if service_type == "sms":
        config.setdefault("dbDirectory", _chain_db_dir(root, chain, service_type))
    return config


def _companion_mongo(
    root: str, chain: str, config: dict[str, Any], inventory: Inventory
) -> dict[str, Any] | None:
    """Generate the private mongo of a hub service unless it uses a shared one.

    The generated database listens on ``port + 2``, next to the service.
    """
    mongo_host = config.get("mongoHost")
    if mongo_host:
        if inventory.find_by_host(substitute_all(mongo_host, inventory.placeholders)) is not None:
            if not config.get("mongoDBName"):
                raise InventoryValidationError(
                    f"Missing chains.{chain}.{config['type']}.mongoDBName property",
                    details={"chain": chain, "type": config["type"]},
                )
            return None
        unsolved_hostname, mongo_port = _split_unsolved_host(mongo_host)
    else:
        unsolved_hostname = config.get("hostname")
        mongo_port = config["port"] + 2
        host = unsolved_hostname or placeholder(DEFAULT_HOSTNAME_VAR)
        config["mongoHost"] = f"{host}:{mongo_port}"

    service_type = config["type"]
    run_dir = _chain_run_dir(root, chain, service_type)
    mongo: dict[str, Any] = {
        "type": "mongo",
        "port": mongo_port,
        "directory": os.path.join(_chain_db_dir(root, chain, service_type), "mongo"),
        "logFile": os.path.join(run_dir, "mongo.log"),
        "pidFile": os.path.join(run_dir, "mongo.pid"),
    }
    if unsolved_hostname:
        mongo["hostname"] = unsolved_hostname
    return mongo


def _split_unsolved_host(host: str) -> tuple[str | None, int]:
    hostname, _, port = host.rpartition(":")
    if not port.isdigit():
        raise InventoryValidationError(f"Invalid mongo host '{host}'", details={"host": host})
    return hostname or None, int(port)


async def load_inventory(
    document: dict[str, Any],
    resolver: RepositoryResolver | None = None,
    *,
    root_dir: str | None = None,
) -> Inventory:
    """Build an inventory from a declarative document.

    Args:
        document: Inventory document (left untouched)
        resolver: Repository resolver used for ``${version}``/``${repoName}``,
            pinned default versions when omitted
        root_dir: Root directory, defaults to ``settings.root_dir``

    Returns:
        The populated inventory

    Raises:
        InventoryError: On the first invalid declaration
    """
    document = copy.deepcopy(document)
    root = root_dir or get_settings().root_dir
    default_chain = document.get("default") or get_settings().default_chain
    variables: dict[str, str] = dict(document.get("vars") or default_document(1, 1)["vars"])

    machine_names = [MASTER_MACHINE_NAME, *(document.get("machines") or {})]
    machines = []
    for machine_name in dict.fromkeys(machine_names):
        if machine_name not in variables:
            raise InventoryValidationError(
                f"Missing network identity of machine '{machine_name}' in vars",
                details={"machine": machine_name},
            )
        machines.append(Machine(name=machine_name, network_identity=variables[machine_name]))

    inventory = Inventory(
        root, default_chain, machines, variables, resolver or StaticRepositoryResolver()
    )
    chains: dict[str, Any] = document.get("chains") or {}
    ports = PortAllocator()

    # explicit chain service ports first
    for chain in chains.values():
        for value in chain.values():
            if isinstance(value, dict):
                ports.add(value.get("port"), value.get("hostname"))

    shared: dict[str, dict[str, Any]] = dict(document.get("shared") or {})
    by_type: dict[str, list[str]] = {str(t): [] for t in ORDERED_SERVICE_TYPES}
    for name, config in shared.items():
        service_type = config.get("type")
        if service_type not in [str(t) for t in _SHAREABLE_TYPES]:
            raise InventoryValidationError(
                f"Type {service_type} cannot be shared", details={"name": name, "type": service_type}
            )
        by_type[service_type].append(name)
    for singleton in (ServiceType.IPFS, ServiceType.DOCKER):
        if not by_type[str(singleton)]:
            shared[str(singleton)] = {"type": str(singleton)}
            by_type[str(singleton)].append(str(singleton))

    ordered = [name for names in by_type.values() for name in names]
    for name in ordered:
        _fill_shared(root, name, shared[name], ports)
    for name in ordered:
        _fill_shared_ports(shared[name], ports)
    for name in ordered:
        await inventory.add_config(shared[name], name)

    workers_range = PORT_RANGE["workers"]
    max_workers = workers_range["to"] - workers_range["from"] + 1
    workers_per_chain = max_workers // max(len(chains), 1)

    for i, (chain_name, chain) in enumerate(chains.items()):
        hub = chain.get("hub")
        if not hub:
            raise InventoryValidationError(
                f"Missing chains.{chain_name}.hub property", details={"chain": chain_name}
            )
        inventory.add_chain(chain_name, hub)

        first_worker = workers_range["from"] + i * workers_per_chain
        await inventory.add_workers(
            hub,
            _src_dir(root),
            _chain_run_dir(root, chain_name, str(ServiceType.WORKER)),
            {
                "from": first_worker,
                "to": first_worker + workers_per_chain - 1,
                "size": workers_range["size"],
            },
        )

        deploy = inventory.deploy_sequence_for_hub(hub)
        wallet_index = getattr(deploy, "WorkerpoolAccountIndex", None)
        if wallet_index is None:
            wallet_index = DEFAULT_WALLET_INDEX["workerpool"]
        record = inventory.hub(hub)
        ipfs_host = inventory.get_by_type(ServiceType.IPFS)[0].host

        sms = _fill_hub_service(root, chain_name, hub, "sms", chain.get("sms"), ports)
        await inventory.add_config(sms)

        result_proxy = _fill_hub_service(
            root, chain_name, hub, "resultproxy", chain.get("resultproxy"), ports
        )
        result_proxy.setdefault("ipfsHost", ipfs_host)
        db = _companion_mongo(root, chain_name, result_proxy, inventory)
        await inventory.add_config(result_proxy, db_config=db)

        if record.market is not None:
            adapter = _fill_hub_service(
                root, chain_name, hub, "blockchainadapter", chain.get("blockchainadapter"), ports
            )
            adapter.setdefault("walletIndex", wallet_index)
            db = _companion_mongo(root, chain_name, adapter, inventory)
            await inventory.add_config(adapter, db_config=db)

            core = _fill_hub_service(root, chain_name, hub, "core", chain.get("core"), ports)
            core.setdefault("walletIndex", wallet_index)
            db = _companion_mongo(root, chain_name, core, inventory)
            await inventory.add_config(core, db_config=db)
        else:
            logger.warning(f"Hub {hub} has no market, skipping blockchain adapter and core")

    pairs = inventory.init_default_enterprise_swap()
    logger.info(
        f"Loaded inventory {inventory.inventory_id}: {len(inventory)} services, "
        f"{len(chains)} chains, {len(pairs)} enterprise swaps"
    )
    return inventory
