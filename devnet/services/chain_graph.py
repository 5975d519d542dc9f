"""Named chains over the hub topology.

A chain is a user-facing name for one hub alias. Chains may be paired in two
symmetric relations:

    - bridge: a token-side chain and a native-side chain
    - enterprise swap: a standard and an enterprise chain (never native)
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace

from devnet.core.address import is_portable_name
from devnet.core.exceptions import (
    ChainAlreadyExistsError,
    ChainPairingConflictError,
    FlavourMismatchError,
    InvalidBridgeError,
    InvalidNameError,
    NativeChainSwapError,
    UnknownChainError,
)
from devnet.core.logging import get_logger
from devnet.services.hub_topology import Flavour, HubRecord, HubTopologyTable

__all__ = [
    "ChainGraph",
    "ChainRecord",
]

logger = get_logger(__name__)


@dataclass(slots=True)
class ChainRecord:
    """Named alias of a hub and its pairings."""

    name: str
    hub_alias: str
    bridged_chain_name: str | None = None
    enterprise_swap_chain_name: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "hubAlias": self.hub_alias,
            "bridgedChainName": self.bridged_chain_name,
            "enterpriseSwapChainName": self.enterprise_swap_chain_name,
        }


class ChainGraph:
    """Chain records keyed by name, in registration order."""

    def __init__(self, hubs: HubTopologyTable) -> None:
        self._hubs = hubs
        self._chains: dict[str, ChainRecord] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._chains

    def __iter__(self) -> Iterator[ChainRecord]:
        return (replace(c) for c in self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)

    def add_chain(self, name: str, hub: str) -> ChainRecord:
        """Register ``name`` as an alias of ``hub``.

        Raises:
            InvalidNameError: If ``name`` is not portable
            ChainAlreadyExistsError: If ``name`` is already registered
            UnknownHubError: If ``hub`` is not registered
        """
        if not is_portable_name(name):
            raise InvalidNameError(str(name))
        self._hubs.get(hub)
        if name in self._chains:
            raise ChainAlreadyExistsError(name)
        record = ChainRecord(name=name, hub_alias=hub)
        self._chains[name] = record
        logger.info(f"Added chain {name} (hub={hub})")
        return replace(record)

    def has_chain(self, name: str) -> bool:
        return name in self._chains

    def get_chain(self, name: str) -> ChainRecord:
        """Return a copy of the chain record.

        Raises:
            UnknownChainError: If ``name`` is not registered
        """
        return replace(self._record(name))

    def chain_names(self) -> list[str]:
        return list(self._chains)

    def chains(self) -> list[ChainRecord]:
        return list(self)

    def hub_of(self, name: str) -> HubRecord:
        return self._hubs.get(self._record(name).hub_alias)

    def hub_alias_to_chain_name(self, hub: str) -> str | None:
        """Return the first chain aliasing ``hub``."""
        for record in self._chains.values():
            if record.hub_alias == hub:
                return record.name
        return None

    def bridge_chains(self, token_chain: str, native_chain: str) -> None:
        """Pair a token-side chain with a native-side chain.

        Raises:
            UnknownChainError: If either chain is not registered
            InvalidBridgeError: If the sides do not match their asset kind
            ChainPairingConflictError: If either chain is bridged elsewhere
        """
        token = self._record(token_chain)
        native = self._record(native_chain)
        if token_chain == native_chain:
            raise InvalidBridgeError(
                f"Chain {token_chain} cannot be bridged to itself",
                details={"chain": token_chain},
            )
        if self._hubs.get(token.hub_alias).native:
            raise InvalidBridgeError(
                f"Invalid bridge token side {token_chain}, chain uses the native asset",
                details={"chain": token_chain},
            )
        if not self._hubs.get(native.hub_alias).native:
            raise InvalidBridgeError(
                f"Invalid bridge native side {native_chain}, chain uses a token asset",
                details={"chain": native_chain},
            )
        self._check_partner(token, "bridge", token.bridged_chain_name, native_chain)
        self._check_partner(native, "bridge", native.bridged_chain_name, token_chain)

        token.bridged_chain_name = native_chain
        native.bridged_chain_name = token_chain
        logger.info(f"Bridged chains {token_chain} <-> {native_chain}")

    def enterprise_swap_chains(self, chain1: str, chain2: str) -> None:
        """Pair a standard chain with an enterprise chain.

        Raises:
            UnknownChainError: If either chain is not registered
            NativeChainSwapError: If either chain uses the native asset
            FlavourMismatchError: If the chains are not one standard and one
                enterprise
            ChainPairingConflictError: If either chain is paired elsewhere
        """
        c1 = self._record(chain1)
        c2 = self._record(chain2)
        hub1 = self._hubs.get(c1.hub_alias)
        hub2 = self._hubs.get(c2.hub_alias)
        if hub1.native:
            raise NativeChainSwapError(chain1)
        if hub2.native:
            raise NativeChainSwapError(chain2)
        if {hub1.flavour, hub2.flavour} != {Flavour.STANDARD, Flavour.ENTERPRISE}:
            raise FlavourMismatchError(chain1, chain2)
        self._check_partner(c1, "enterprise swap", c1.enterprise_swap_chain_name, chain2)
        self._check_partner(c2, "enterprise swap", c2.enterprise_swap_chain_name, chain1)

        c1.enterprise_swap_chain_name = chain2
        c2.enterprise_swap_chain_name = chain1
        logger.info(f"Enterprise swap chains {chain1} <-> {chain2}")

    def init_default_enterprise_swap(self) -> list[tuple[str, str]]:
        """Pair standard and enterprise chains sharing a chain id.

        A chain id is paired only if exactly one standard and one enterprise
        non-native chain use it and neither is already paired.

        Returns:
            The (standard, enterprise) pairs created
        """
        by_chain_id: dict[int, dict[Flavour, list[ChainRecord]]] = {}
        for record in self._chains.values():
            hub = self._hubs.get(record.hub_alias)
            if hub.native:
                continue
            by_flavour = by_chain_id.setdefault(hub.chain_id, {})
            by_flavour.setdefault(hub.flavour, []).append(record)

        pairs: list[tuple[str, str]] = []
        for by_flavour in by_chain_id.values():
            standard = by_flavour.get(Flavour.STANDARD, [])
            enterprise = by_flavour.get(Flavour.ENTERPRISE, [])
            if len(standard) != 1 or len(enterprise) != 1:
                continue
            if standard[0].enterprise_swap_chain_name or enterprise[0].enterprise_swap_chain_name:
                continue
            self.enterprise_swap_chains(standard[0].name, enterprise[0].name)
            pairs.append((standard[0].name, enterprise[0].name))
        return pairs

    def _record(self, name: str) -> ChainRecord:
        record = self._chains.get(name)
        if record is None:
            raise UnknownChainError(name)
        return record

    @staticmethod
    def _check_partner(record: ChainRecord, relation: str, current: str | None, partner: str) -> None:
        if current is not None and current != partner:
            raise ChainPairingConflictError(record.name, relation, current)
