"""Registry entry types.

An ``InventoryEntry`` pairs the *unsolved* config (template, placeholders
kept) with the *resolved* config (fully concrete). Entries are immutable.
Entries of kinds whose resolved form needs peer URLs (blockchain adapter,
core) are created ``PROVISIONAL`` and become ``FINALIZED`` through
``finalize()``, which may only touch the fields listed in
``BACKFILL_FIELDS``. The registry only ever stores finalized entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from devnet.core.address import has_placeholders
from devnet.core.constants import BACKFILL_FIELDS, ServiceType
from devnet.core.exceptions import (
    InvalidPortRangeError,
    InventoryError,
    UnresolvedPlaceholderError,
)
from devnet.schemas.services import RepositoryPackage, ServiceConfigBase, WorkerConfig

__all__ = [
    "EntryState",
    "InventoryEntry",
    "PortRange",
    "ResolvedPackage",
    "WorkerEntry",
]


class EntryState(str, Enum):
    """Lifecycle of a registry entry."""

    PROVISIONAL = "provisional"
    FINALIZED = "finalized"


@dataclass(frozen=True, slots=True)
class InventoryEntry:
    """One registered service.

    Attributes:
        name: Unique entry name
        type: Service kind
        unsolved: Config as declared (placeholders kept)
        resolved: Concrete config (no placeholder left)
        shared: True if the entry is shared between hubs
        parent: Name of the owning entry for parent-linked databases
        state: Provisional until cross-service URLs are filled in
    """

    name: str
    type: ServiceType
    unsolved: ServiceConfigBase
    resolved: ServiceConfigBase
    shared: bool = False
    parent: str | None = None
    state: EntryState = EntryState.FINALIZED

    @classmethod
    def create(
        cls,
        name: str,
        unsolved: ServiceConfigBase,
        resolved: ServiceConfigBase,
        *,
        shared: bool = False,
        parent: str | None = None,
    ) -> InventoryEntry:
        """Create an entry, provisional if its kind needs a backfill."""
        service_type = unsolved.service_type
        state = EntryState.PROVISIONAL if service_type in BACKFILL_FIELDS else EntryState.FINALIZED
        entry = cls(
            name=name,
            type=service_type,
            unsolved=unsolved,
            resolved=resolved,
            shared=shared,
            parent=parent,
            state=state,
        )
        if state is EntryState.FINALIZED:
            entry._check_resolved()
        return entry

    @property
    def is_finalized(self) -> bool:
        return self.state is EntryState.FINALIZED

    @property
    def host(self) -> str:
        """Resolved ``host:port`` address."""
        return self.resolved.address()

    @property
    def unsolved_host(self) -> str:
        return self.unsolved.unsolved_address()

    @property
    def url(self) -> str:
        return "http://" + self.host

    @property
    def hub(self) -> str | None:
        return getattr(self.resolved, "hub", None)

    def finalize(self, **patch: Any) -> InventoryEntry:
        """Return the finalized entry with the cross-service fields filled in.

        Raises:
            InventoryError: If the entry is already finalized or the patch
                touches a field that is not re-openable
        """
        if self.state is EntryState.FINALIZED:
            raise InventoryError(
                f"Entry '{self.name}' is already finalized",
                details={"name": self.name},
            )
        allowed = BACKFILL_FIELDS.get(self.type, frozenset())
        forbidden = sorted(set(patch) - allowed)
        if forbidden:
            raise InventoryError(
                f"Fields {forbidden} of entry '{self.name}' cannot be backfilled",
                details={"name": self.name, "fields": forbidden},
            )
        resolved = self.resolved.model_copy(update=patch)
        entry = replace(self, resolved=resolved, state=EntryState.FINALIZED)
        entry._check_resolved()
        return entry

    def _check_resolved(self) -> None:
        dumped = self.resolved.model_dump()
        if has_placeholders(dumped):
            raise UnresolvedPlaceholderError(self.name, ["<resolved config>"])


@dataclass(frozen=True, slots=True)
class PortRange:
    """Inclusive port range assigned to a pool of workers."""

    from_: int
    to: int
    size: int = 1

    def __post_init__(self) -> None:
        for label, value in (("from", self.from_), ("to", self.to), ("size", self.size)):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidPortRangeError(
                    f"Invalid port range '{label}' value {value!r}",
                    details={"from": self.from_, "to": self.to, "size": self.size},
                )
        if self.to < self.from_:
            raise InvalidPortRangeError(
                f"Invalid port range {self.from_}-{self.to}",
                details={"from": self.from_, "to": self.to, "size": self.size},
            )

    @classmethod
    def parse(cls, value: PortRange | dict[str, Any]) -> PortRange:
        if isinstance(value, PortRange):
            return value
        try:
            return cls(
                from_=value.get("from", value.get("from_")),  # type: ignore[arg-type]
                to=value["to"],
                size=value.get("size", 1),
            )
        except (KeyError, AttributeError) as e:
            raise InvalidPortRangeError(
                f"Invalid port range {value!r}", details={"value": repr(value)}
            ) from e

    def contains(self, port: int) -> bool:
        return self.from_ <= port <= self.to

    def to_dict(self) -> dict[str, int]:
        return {"from": self.from_, "to": self.to, "size": self.size}


@dataclass(frozen=True, slots=True)
class ResolvedPackage:
    """Repository package before and after placeholder substitution."""

    unsolved: RepositoryPackage
    resolved: RepositoryPackage


@dataclass(frozen=True, slots=True)
class WorkerEntry:
    """Descriptor of one worker computed from its hub's worker pool."""

    name: str
    hub: str
    index: int
    unsolved: WorkerConfig
    resolved: WorkerConfig
    type: ServiceType = field(default=ServiceType.WORKER)

    @property
    def host(self) -> str:
        return self.resolved.address()
