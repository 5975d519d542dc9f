"""Hub topology table.

A hub alias (``"<chainId>.<deployConfigName>"``) identifies one contract
deployment on one simulated chain. Registering a chain simulator creates one
``HubRecord`` per deploy-sequence entry. Each record then tracks which
registry entries serve the hub: market, sms, result proxy, blockchain
adapter, core and the worker pool. Every slot is populated at most once.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from devnet.core.constants import HUB_SLOTS
from devnet.core.exceptions import (
    DuplicateHubError,
    DuplicateHubSlotError,
    InvalidHubAliasError,
    InventoryValidationError,
    UnknownHubError,
)
from devnet.core.logging import get_logger
from devnet.schemas.inventory import PortRange, ResolvedPackage
from devnet.schemas.services import DeployConfig, GanacheConfig

__all__ = [
    "Flavour",
    "HubRecord",
    "HubTopologyTable",
    "WorkersRecord",
    "hub_alias",
    "parse_hub_alias",
]

logger = get_logger(__name__)

_HUB_ALIAS = re.compile(r"^(\d+)\.([-_0-9a-zA-Z]+)$")


class Flavour(str, Enum):
    """Hub classification."""

    STANDARD = "standard"
    ENTERPRISE = "enterprise"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def of(cls, deploy: DeployConfig) -> Flavour:
        """Enterprise iff the asset is token-backed and KYC-gated."""
        if deploy.asset == "Token" and deploy.kyc:
            return cls.ENTERPRISE
        return cls.STANDARD


def hub_alias(chain_id: int, deploy_name: str) -> str:
    """Build the hub alias of a deployment."""
    return f"{chain_id}.{deploy_name}"


def parse_hub_alias(alias: str) -> tuple[int, str]:
    """Split a hub alias into chain id and deploy config name.

    Raises:
        InvalidHubAliasError: If ``alias`` is not ``<chainId>.<name>``
    """
    match = _HUB_ALIAS.match(alias) if isinstance(alias, str) else None
    if match is None or int(match.group(1)) <= 0:
        raise InvalidHubAliasError(str(alias))
    return int(match.group(1)), match.group(2)


@dataclass(frozen=True, slots=True)
class WorkersRecord:
    """Worker pool assigned to one hub."""

    directory: str
    port_range: PortRange
    repository: ResolvedPackage


@dataclass(slots=True)
class HubRecord:
    """One contract deployment and the services bound to it.

    Attributes:
        alias: Hub alias
        chain_sim_name: Registry name of the chain simulator
        chain_id: Chain id of the simulator
        deploy_name: Deploy config name
        native: True if the deployment uses the chain native asset
        flavour: Enterprise or standard
    """

    alias: str
    chain_sim_name: str
    chain_id: int
    deploy_name: str
    native: bool
    flavour: Flavour
    market: str | None = None
    sms: str | None = None
    resultproxy: str | None = None
    blockchainadapter: str | None = None
    core: str | None = None
    workers: WorkersRecord | None = None

    @property
    def enterprise(self) -> bool:
        return self.flavour is Flavour.ENTERPRISE

    def get_slot(self, slot: str) -> str | WorkersRecord | None:
        if slot not in HUB_SLOTS:
            raise InventoryValidationError(f"Unknown hub slot '{slot}'", details={"slot": slot})
        return getattr(self, slot)

    def check_slot_free(self, slot: str) -> None:
        """Raise if ``slot`` is already populated.

        Raises:
            DuplicateHubSlotError: If the slot already holds a value
        """
        current = self.get_slot(slot)
        if current is not None:
            owner = current if isinstance(current, str) else current.directory
            raise DuplicateHubSlotError(self.alias, slot, current=owner)

    def set_slot(self, slot: str, value: str | WorkersRecord) -> None:
        self.check_slot_free(slot)
        setattr(self, slot, value)

    def service_names(self) -> list[str]:
        """Registry names held by the slots, in slot order."""
        names = []
        for slot in HUB_SLOTS:
            value = getattr(self, slot)
            if isinstance(value, str):
                names.append(value)
        return names


class HubTopologyTable:
    """Hub records keyed by hub alias, in registration order."""

    def __init__(self) -> None:
        self._hubs: dict[str, HubRecord] = {}

    def __contains__(self, alias: object) -> bool:
        return alias in self._hubs

    def __iter__(self) -> Iterator[HubRecord]:
        return iter(self._hubs.values())

    def __len__(self) -> int:
        return len(self._hubs)

    def prepare_chain_deployment(self, chain_sim_name: str, config: GanacheConfig) -> list[HubRecord]:
        """Build the hub records of a chain simulator without inserting them.

        Raises:
            DuplicateHubError: If one of the aliases is already registered
                or repeated within the deploy sequence
        """
        chain_id = config.config.chainid
        records: list[HubRecord] = []
        seen: set[str] = set()
        for deploy in config.config.deploy_sequence:
            alias = hub_alias(chain_id, deploy.name)
            if alias in self._hubs or alias in seen:
                raise DuplicateHubError(alias)
            seen.add(alias)
            records.append(
                HubRecord(
                    alias=alias,
                    chain_sim_name=chain_sim_name,
                    chain_id=chain_id,
                    deploy_name=deploy.name,
                    native=deploy.asset == "Native",
                    flavour=Flavour.of(deploy),
                )
            )
        return records

    def commit(self, records: list[HubRecord]) -> None:
        for record in records:
            self._hubs[record.alias] = record
            logger.debug(
                f"Registered hub {record.alias} (flavour={record.flavour}, native={record.native})"
            )

    def register_chain_deployment(self, chain_sim_name: str, config: GanacheConfig) -> list[str]:
        """Insert one hub record per deploy-sequence entry of ``config``.

        Args:
            chain_sim_name: Registry name of the chain simulator
            config: Chain simulator config

        Returns:
            The hub aliases created, in deploy-sequence order

        Raises:
            DuplicateHubError: If an alias is already registered; no record
                is inserted in that case
        """
        records = self.prepare_chain_deployment(chain_sim_name, config)
        self.commit(records)
        return [r.alias for r in records]

    def has_hub(self, alias: str) -> bool:
        return alias in self._hubs

    def get(self, alias: str) -> HubRecord:
        """Return the record of ``alias``.

        Raises:
            UnknownHubError: If the hub is not registered
        """
        record = self._hubs.get(alias)
        if record is None:
            raise UnknownHubError(alias)
        return record

    def aliases(self) -> list[str]:
        return list(self._hubs)

    def hubs_for_chain_id(self, chain_id: int) -> list[HubRecord]:
        return [h for h in self._hubs.values() if h.chain_id == chain_id]

    def chain_ids(self) -> list[int]:
        return list(dict.fromkeys(h.chain_id for h in self._hubs.values()))

    def hub_of_service(self, name: str) -> str | None:
        """Return the first hub whose slots hold ``name``."""
        for record in self._hubs.values():
            if name in record.service_names():
                return record.alias
        return None

    def hubs_of_service(self, name: str) -> list[str]:
        return [r.alias for r in self._hubs.values() if name in r.service_names()]
