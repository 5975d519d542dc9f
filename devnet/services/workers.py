"""Worker descriptors.

Workers are not registry entries. A hub owns a worker pool (directory, port
range, repository) and each worker is derived on demand from its index:

    - name: ``worker.<index>.<hub>``
    - port: ``portRange.from + index`` (must not exceed ``portRange.to``)
    - wallet index: ``5 + index``
    - files under ``<directory>/<name>/``
"""

from __future__ import annotations

import os
from typing import Literal

from devnet.core.constants import DEFAULT_WALLET_INDEX, ServiceType
from devnet.core.exceptions import (
    InventoryValidationError,
    MissingPeerError,
    WorkerIndexOutOfRangeError,
)
from devnet.schemas.inventory import WorkerEntry
from devnet.schemas.services import WorkerConfig
from devnet.services.config_registry import ConfigRegistry
from devnet.services.hub_topology import HubTopologyTable
from devnet.services.placement import DEFAULT, PlacementResolver

__all__ = ["WorkerDescriptorFactory", "worker_name"]

SgxDriverMode = Literal["none", "legacy", "native"]


def worker_name(hub: str, index: int) -> str:
    return f"worker.{index}.{hub}"


class WorkerDescriptorFactory:
    """Builds worker descriptors from the hub worker pools."""

    def __init__(
        self,
        registry: ConfigRegistry,
        hubs: HubTopologyTable,
        placement: PlacementResolver,
    ) -> None:
        self._registry = registry
        self._hubs = hubs
        self._placement = placement

    def get_worker_config(
        self,
        hub: str,
        index: int,
        machine: str = DEFAULT,
        sgx_driver_mode: SgxDriverMode = "none",
    ) -> WorkerEntry:
        """Derive the descriptor of worker ``index`` of ``hub``.

        Args:
            hub: Hub alias owning the worker pool
            index: Worker index, 0-based
            machine: Machine name, ``local`` or ``default``
            sgx_driver_mode: SGX driver mode of the worker

        Returns:
            The worker descriptor

        Raises:
            InventoryValidationError: If ``index`` is negative
            UnknownHubError: If the hub is not registered
            MissingPeerError: If the hub has no core or no worker pool, or
                docker is not registered
            WorkerIndexOutOfRangeError: If the worker port exceeds the range
            UnknownMachineError: If ``machine`` is not a known machine
        """
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise InventoryValidationError(
                f"Invalid worker index {index!r}", details={"hub": hub, "index": index}
            )
        record = self._hubs.get(hub)
        if record.core is None:
            raise MissingPeerError(str(ServiceType.CORE), hub=hub)
        if record.workers is None:
            raise MissingPeerError("workers", hub=hub)
        port_range = record.workers.port_range
        port = port_range.from_ + index
        if not port_range.contains(port):
            raise WorkerIndexOutOfRangeError(hub, index)

        docker = self._registry.singleton(ServiceType.DOCKER)
        if docker is None:
            raise MissingPeerError(str(ServiceType.DOCKER), hub=hub)
        core = self._registry.get(record.core, ServiceType.CORE)

        unsolved_hostname, resolved_hostname = self._placement.machine_hostnames(machine)

        name = worker_name(hub, index)
        worker_dir = os.path.join(record.workers.directory, name)
        common = {
            "type": "worker",
            "port": port,
            "name": name,
            "log_file": os.path.join(worker_dir, f"{name}.log"),
            "pid_file": os.path.join(worker_dir, f"{name}.pid"),
            "directory": os.path.join(worker_dir, "exec"),
            "core_url": core.url,
            "docker_host": docker.url,
            "spring_config_location": worker_dir,
            "wallet_index": DEFAULT_WALLET_INDEX["worker"] + index,
            "sgx_driver_mode": sgx_driver_mode,
        }
        unsolved = WorkerConfig.model_validate(
            {**common, "hostname": unsolved_hostname, "repository": record.workers.repository.unsolved}
        )
        resolved = WorkerConfig.model_validate(
            {**common, "hostname": resolved_hostname, "repository": record.workers.repository.resolved}
        )
        return WorkerEntry(name=name, hub=hub, index=index, unsolved=unsolved, resolved=resolved)
