"""Name/type/host indices over registry entries.

The registry stores finalized ``InventoryEntry`` objects only. Insertion is
two-phase: ``validate`` checks a whole batch (an entry and its companion
database, for instance) against the indices and against itself, then
``commit`` inserts the batch. Nothing is inserted if validation fails.

Iteration follows the fixed service-type order, then insertion order within
a type.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from devnet.core.address import is_portable_name, normalize_host
from devnet.core.constants import ORDERED_SERVICE_TYPES, SINGLETON_TYPES, ServiceType
from devnet.core.exceptions import (
    DuplicateHostError,
    DuplicateNameError,
    DuplicateSingletonError,
    InvalidNameError,
    InventoryError,
    UnknownConfigError,
)
from devnet.core.logging import get_logger
from devnet.schemas.inventory import InventoryEntry

__all__ = ["ConfigRegistry"]

logger = get_logger(__name__)


class ConfigRegistry:
    """Registry entries indexed by name, type and resolved host."""

    def __init__(self) -> None:
        self._by_name: dict[str, InventoryEntry] = {}
        self._by_type: dict[ServiceType, dict[str, InventoryEntry]] = {
            t: {} for t in ORDERED_SERVICE_TYPES
        }
        self._by_host: dict[str, str] = {}
        self._shared: dict[str, InventoryEntry] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self) -> Iterator[InventoryEntry]:
        for entries in self._by_type.values():
            yield from entries.values()

    def names(self) -> list[str]:
        return [e.name for e in self]

    def next_name(self, service_type: ServiceType, prefix: str | None = None) -> str:
        """Return the first free ``<prefix>.<ordinal>`` name."""
        prefix = prefix or str(service_type)
        ordinal = 0
        while f"{prefix}.{ordinal}" in self._by_name:
            ordinal += 1
        return f"{prefix}.{ordinal}"

    def check_name(self, name: str) -> None:
        """Raise if ``name`` cannot be used for a new entry.

        Raises:
            InvalidNameError: If ``name`` is not filesystem-portable
            DuplicateNameError: If ``name`` is already registered
        """
        if not is_portable_name(name):
            raise InvalidNameError(str(name))
        if name in self._by_name:
            raise DuplicateNameError(name)

    def check_host(self, host: str) -> None:
        key = normalize_host(host) or host
        owner = self._by_host.get(key)
        if owner is not None:
            raise DuplicateHostError(key, owner=owner)

    def validate(self, entries: Iterable[InventoryEntry]) -> None:
        """Check a batch of new entries against the indices and each other.

        Raises:
            InventoryError: If an entry is still provisional
            InvalidNameError: If a name is not portable
            DuplicateNameError: If a name is taken
            DuplicateHostError: If a resolved address is taken
            DuplicateSingletonError: If a singleton kind is already present
        """
        names: set[str] = set()
        hosts: dict[str, str] = {}
        types: set[ServiceType] = set()
        for entry in entries:
            if not entry.is_finalized:
                raise InventoryError(
                    f"Entry '{entry.name}' must be finalized before insertion",
                    details={"name": entry.name},
                )
            self.check_name(entry.name)
            if entry.name in names:
                raise DuplicateNameError(entry.name)
            names.add(entry.name)

            self.check_host(entry.host)
            key = normalize_host(entry.host) or entry.host
            if key in hosts:
                raise DuplicateHostError(key, owner=hosts[key])
            hosts[key] = entry.name

            if entry.type in SINGLETON_TYPES:
                if self._by_type[entry.type] or entry.type in types:
                    raise DuplicateSingletonError(str(entry.type))
            types.add(entry.type)

    def commit(self, entries: Iterable[InventoryEntry]) -> None:
        """Insert entries already checked by ``validate``."""
        for entry in entries:
            self._by_name[entry.name] = entry
            self._by_type[entry.type][entry.name] = entry
            self._by_host[normalize_host(entry.host) or entry.host] = entry.name
            if entry.shared:
                self._shared[entry.name] = entry
            logger.debug(f"Indexed {entry.type} '{entry.name}' at {entry.host}")

    def add(self, entry: InventoryEntry) -> str:
        self.validate([entry])
        self.commit([entry])
        return entry.name

    def find(self, name: str) -> InventoryEntry | None:
        return self._by_name.get(name)

    def get(self, name: str, expected_type: ServiceType | None = None) -> InventoryEntry:
        """Return the entry registered under ``name``.

        Raises:
            UnknownConfigError: If no entry matches the name (and type)
        """
        entry = self._by_name.get(name)
        if entry is None or (expected_type is not None and entry.type is not expected_type):
            raise UnknownConfigError(
                name, expected_type=str(expected_type) if expected_type else None
            )
        return entry

    def get_by_type(self, service_type: ServiceType | str) -> list[InventoryEntry]:
        return list(self._by_type[ServiceType(service_type)].values())

    def singleton(self, service_type: ServiceType) -> InventoryEntry | None:
        entries = self._by_type[service_type]
        return next(iter(entries.values()), None)

    def find_by_host(self, host_or_url: str | None) -> InventoryEntry | None:
        key = normalize_host(host_or_url)
        if key is None:
            return None
        name = self._by_host.get(key)
        return self._by_name[name] if name is not None else None

    def get_by_host(self, host_or_url: str) -> InventoryEntry:
        """Return the entry whose resolved address matches ``host_or_url``.

        Accepts ``host:port`` strings and http(s) URLs.

        Raises:
            UnknownConfigError: If no entry is bound to that address
        """
        entry = self.find_by_host(host_or_url)
        if entry is None:
            raise UnknownConfigError(str(host_or_url))
        return entry

    def is_shared(self, name: str) -> bool:
        return name in self._shared

    def shared_names(self) -> list[str]:
        return list(self._shared)
