"""Machine placement.

Every non-worker entry's unsolved hostname is a single placeholder naming the
machine that runs it (``${master}``, ``${node1}``...). Two reserved bindings
of the placeholder table name machines indirectly:

    - ``localHostname``: the machine the current process runs on
    - ``defaultHostname``: the machine new services bind to by default

Both are bound to a machine placeholder (``"${master}"``), and each machine
name is bound to its network identity (``"127.0.0.1"``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from devnet.core.address import is_portable_name, placeholder, placeholder_name, substitute_all
from devnet.core.constants import DEFAULT_HOSTNAME_VAR, LOCAL_HOSTNAME_VAR, MASTER_MACHINE_NAME
from devnet.core.exceptions import InvalidNameError, InvalidPlacementError, UnknownMachineError
from devnet.core.logging import get_logger
from devnet.schemas.inventory import InventoryEntry, WorkerEntry

__all__ = [
    "DEFAULT",
    "LOCAL",
    "Machine",
    "PlacementResolver",
    "build_placeholders",
]

logger = get_logger(__name__)

LOCAL = "local"
DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class Machine:
    """A machine of the network.

    Attributes:
        name: Machine name, used as placeholder variable
        network_identity: Address other machines reach it at
    """

    name: str
    network_identity: str


def build_placeholders(
    machines: Iterable[Machine],
    local: str = MASTER_MACHINE_NAME,
    default: str = MASTER_MACHINE_NAME,
    extra: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the global placeholder table of a machine set.

    Example:
        ``{"master": "127.0.0.1", "localHostname": "${master}",
        "defaultHostname": "${master}"}``
    """
    table = {m.name: m.network_identity for m in machines}
    table[LOCAL_HOSTNAME_VAR] = placeholder(local)
    table[DEFAULT_HOSTNAME_VAR] = placeholder(default)
    if extra:
        table.update(extra)
    return table


class PlacementResolver:
    """Maps entries and symbolic machine names onto the machine set."""

    def __init__(self, machines: Iterable[Machine], placeholders: Mapping[str, str]) -> None:
        self._machines: dict[str, Machine] = {}
        for machine in machines:
            if not is_portable_name(machine.name):
                raise InvalidNameError(machine.name)
            if machine.name in self._machines:
                raise InvalidPlacementError(
                    f"Duplicate machine name '{machine.name}'",
                    details={"machine": machine.name},
                )
            self._machines[machine.name] = machine
        self._placeholders = MappingProxyType(dict(placeholders))
        self._local = self._binding(LOCAL_HOSTNAME_VAR)
        self._default = self._binding(DEFAULT_HOSTNAME_VAR)

    def _binding(self, var: str) -> str:
        value = self._placeholders.get(var)
        machine = placeholder_name(value)
        if machine is None:
            raise InvalidPlacementError(
                f"Placeholder '{var}' must be bound to a machine placeholder, got {value!r}",
                details={"placeholder": var},
            )
        if machine not in self._machines:
            raise UnknownMachineError(machine)
        return machine

    @property
    def placeholders(self) -> Mapping[str, str]:
        return self._placeholders

    @property
    def local_machine_name(self) -> str:
        return self._local

    @property
    def default_machine_name(self) -> str:
        return self._default

    @property
    def machines(self) -> list[Machine]:
        return list(self._machines.values())

    def resolve_machine_name(self, name: str) -> str:
        """Expand ``local``/``default`` and check the machine exists.

        Raises:
            UnknownMachineError: If no machine has that name
        """
        if name in (LOCAL, LOCAL_HOSTNAME_VAR):
            return self._local
        if name in (DEFAULT, DEFAULT_HOSTNAME_VAR):
            return self._default
        if name not in self._machines:
            raise UnknownMachineError(name)
        return name

    def get_machine(self, name: str) -> Machine:
        return self._machines[self.resolve_machine_name(name)]

    def machine_hostnames(self, name: str) -> tuple[str, str]:
        """Return the (unsolved, resolved) hostname of a machine.

        ``local`` and ``default`` keep their symbolic placeholder in the
        unsolved form.
        """
        if name == LOCAL:
            unsolved = placeholder(LOCAL_HOSTNAME_VAR)
        elif name == DEFAULT:
            unsolved = placeholder(DEFAULT_HOSTNAME_VAR)
        else:
            unsolved = placeholder(self.resolve_machine_name(name))
        return unsolved, substitute_all(unsolved, self._placeholders)

    def running_machine_name(self, entry: InventoryEntry | WorkerEntry) -> str:
        """Return the machine name stored in the entry's unsolved hostname.

        May return the reserved names ``defaultHostname``/``localHostname``
        when that is literally what the entry declares.

        Raises:
            InvalidPlacementError: If the hostname is not a single placeholder
        """
        hostname, _ = entry.unsolved.host_port()
        if not hostname:
            hostname = self._placeholders[DEFAULT_HOSTNAME_VAR]
        name = placeholder_name(hostname)
        if name is None:
            raise InvalidPlacementError(
                f"Hostname '{hostname}' of '{entry.name}' is not a machine placeholder",
                details={"name": entry.name, "hostname": hostname},
            )
        return name

    def running_machine(self, entry: InventoryEntry | WorkerEntry) -> Machine:
        return self.get_machine(self.running_machine_name(entry))

    def is_local(self, entry: InventoryEntry | WorkerEntry) -> bool:
        """Return True if ``entry`` runs on the current machine."""
        return self.resolve_machine_name(self.running_machine_name(entry)) == self._local

    def is_local_machine_name(self, name: str) -> bool:
        return self.resolve_machine_name(name) == self._local

    def is_local_master(self) -> bool:
        return self._local == MASTER_MACHINE_NAME

    def machine_ports(self, name: str, entries: Iterable[InventoryEntry]) -> list[int]:
        """List the ports of the entries placed on machine ``name``."""
        machine = self.resolve_machine_name(name)
        ports = []
        for entry in entries:
            _, port = entry.resolved.host_port()
            if port is None:
                continue
            if self.resolve_machine_name(self.running_machine_name(entry)) == machine:
                ports.append(port)
        return ports
