"""Per-kind service implementations.

The registry treats concrete services through a uniform capability set:

    - ``type_name``: the service kind
    - ``deep_copy_config``: copy a declarative config, optionally
      substituting every placeholder (machine names, ``${version}``,
      ``${repoName}``)
    - ``new_instance``: turn a resolved config into a handle

``implementation_for`` selects the implementation with an exhaustive
``match`` over ``ServiceType``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from devnet.core.address import placeholder, substitute_value, to_url
from devnet.core.constants import DEFAULT_HOSTNAME_VAR, ServiceType
from devnet.core.exceptions import RepositoryResolutionError
from devnet.core.logging import get_logger
from devnet.schemas.inventory import ResolvedPackage
from devnet.schemas.services import (
    BlockchainAdapterConfig,
    CoreConfig,
    DockerConfig,
    GanacheConfig,
    IpfsConfig,
    MarketConfig,
    MongoConfig,
    RedisConfig,
    Repository,
    RepositoryPackage,
    ResultProxyConfig,
    ServiceConfigBase,
    SmsConfig,
    WorkerConfig,
)
from devnet.services.repository import RepositoryResolver, ResolvedRepository, to_package

if TYPE_CHECKING:
    from devnet.services.inventory import Inventory

__all__ = [
    "ServiceHandle",
    "ServiceImplementation",
    "implementation_for",
]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ServiceHandle:
    """Handle on a service built from its resolved config."""

    name: str
    type: ServiceType
    url: str
    config: ServiceConfigBase
    hub: str | None = None


@runtime_checkable
class ServiceImplementation(Protocol):
    """Capabilities the registry needs from a service kind."""

    type_name: ServiceType

    async def deep_copy_config(
        self,
        config: ServiceConfigBase,
        resolve_placeholders: bool,
        placeholders: Mapping[str, str],
        *,
        resolver: RepositoryResolver | None = None,
    ) -> ServiceConfigBase:
        """Return a copy of ``config``, fully substituted if requested.

        Raises:
            UnresolvedPlaceholderError: If a token has no binding
            RepositoryResolutionError: If the repository version is unknown
        """
        ...

    async def new_instance(self, resolved: ServiceConfigBase, inventory: Inventory) -> ServiceHandle:
        """Build a handle on the service described by ``resolved``."""
        ...


class _ServiceBase:
    type_name: ClassVar[ServiceType]
    config_class: ClassVar[type[ServiceConfigBase]]
    repository_backed: ClassVar[bool] = False

    def _set_default_hostname(self, data: dict[str, Any]) -> None:
        if not data.get("hostname"):
            data["hostname"] = placeholder(DEFAULT_HOSTNAME_VAR)

    async def resolve_repository(
        self,
        repository: Repository | None,
        placeholders: Mapping[str, str],
        resolver: RepositoryResolver | None,
    ) -> tuple[Repository, ResolvedRepository]:
        """Resolve a repository declaration into its concrete form.

        Returns:
            The substituted repository and the coordinates used to
            substitute it
        """
        if resolver is None:
            raise RepositoryResolutionError(
                f"A repository resolver is required to resolve '{self.type_name}' configs",
                details={"type": str(self.type_name)},
            )
        package = to_package(repository, self.type_name)
        coordinates = await resolver.resolve(package, self.type_name)
        table = {**placeholders, **coordinates.placeholders()}

        if isinstance(repository, str):
            return substitute_value(repository, table), coordinates

        data = substitute_value(package.model_dump(exclude_none=True), table)
        data.update(
            clone_repo=coordinates.clone_repo,
            commitish=coordinates.commitish,
            git_hub_repo_name=coordinates.repo_name,
        )
        return RepositoryPackage.model_validate(data), coordinates

    async def resolve_package(
        self,
        repository: Repository | None,
        placeholders: Mapping[str, str],
        resolver: RepositoryResolver | None,
    ) -> ResolvedPackage:
        unsolved = to_package(repository, self.type_name)
        resolved, _ = await self.resolve_repository(unsolved, placeholders, resolver)
        assert isinstance(resolved, RepositoryPackage)
        return ResolvedPackage(unsolved=unsolved, resolved=resolved)

    async def deep_copy_config(
        self,
        config: ServiceConfigBase,
        resolve_placeholders: bool,
        placeholders: Mapping[str, str],
        *,
        resolver: RepositoryResolver | None = None,
    ) -> ServiceConfigBase:
        if not isinstance(config, self.config_class):
            raise TypeError(f"Expecting a {self.type_name} config, got '{config.type}'")
        if not resolve_placeholders:
            return config.model_copy(deep=True)

        data = config.model_dump(exclude_none=True)
        self._set_default_hostname(data)
        table = dict(placeholders)

        if self.repository_backed:
            repository, coordinates = await self.resolve_repository(
                getattr(config, "repository", None), placeholders, resolver
            )
            table.update(coordinates.placeholders())
            if "repository" in data or getattr(config, "repository", None) is not None:
                data.pop("repository", None)
                resolved_data = substitute_value(data, table)
                resolved_data["repository"] = repository
                return self.config_class.model_validate(resolved_data)

        return self.config_class.model_validate(substitute_value(data, table))

    async def new_instance(self, resolved: ServiceConfigBase, inventory: Inventory) -> ServiceHandle:
        entry = inventory.get_by_host(resolved.address())
        logger.debug(f"New {self.type_name} instance for '{entry.name}'")
        return ServiceHandle(
            name=entry.name,
            type=self.type_name,
            url=to_url(entry.host),
            config=resolved,
            hub=getattr(resolved, "hub", None),
        )


class IpfsService(_ServiceBase):
    type_name = ServiceType.IPFS
    config_class = IpfsConfig


class DockerService(_ServiceBase):
    type_name = ServiceType.DOCKER
    config_class = DockerConfig


class MongoService(_ServiceBase):
    type_name = ServiceType.MONGO
    config_class = MongoConfig


class RedisService(_ServiceBase):
    type_name = ServiceType.REDIS
    config_class = RedisConfig


class GanacheService(_ServiceBase):
    type_name = ServiceType.GANACHE
    config_class = GanacheConfig


class MarketService(_ServiceBase):
    type_name = ServiceType.MARKET
    config_class = MarketConfig
    repository_backed = True

    def _set_default_hostname(self, data: dict[str, Any]) -> None:
        api = data.setdefault("api", {})
        if not api.get("hostname"):
            api["hostname"] = placeholder(DEFAULT_HOSTNAME_VAR)


class SmsService(_ServiceBase):
    type_name = ServiceType.SMS
    config_class = SmsConfig
    repository_backed = True


class ResultProxyService(_ServiceBase):
    type_name = ServiceType.RESULTPROXY
    config_class = ResultProxyConfig
    repository_backed = True


class BlockchainAdapterService(_ServiceBase):
    type_name = ServiceType.BLOCKCHAINADAPTER
    config_class = BlockchainAdapterConfig
    repository_backed = True


class CoreService(_ServiceBase):
    type_name = ServiceType.CORE
    config_class = CoreConfig
    repository_backed = True


class WorkerService(_ServiceBase):
    type_name = ServiceType.WORKER
    config_class = WorkerConfig
    repository_backed = True

    async def new_instance(self, resolved: ServiceConfigBase, inventory: Inventory) -> ServiceHandle:
        assert isinstance(resolved, WorkerConfig)
        return ServiceHandle(
            name=resolved.name,
            type=self.type_name,
            url=to_url(resolved.address()),
            config=resolved,
            hub=inventory.hub_of_worker(resolved.name),
        )


_IMPLEMENTATIONS: dict[ServiceType, _ServiceBase] = {}


def implementation_for(service_type: ServiceType | str) -> _ServiceBase:
    """Return the implementation of a service kind.

    Raises:
        ValueError: If ``service_type`` is not a known kind
    """
    service_type = ServiceType(service_type)
    cached = _IMPLEMENTATIONS.get(service_type)
    if cached is not None:
        return cached

    implementation: _ServiceBase
    match service_type:
        case ServiceType.IPFS:
            implementation = IpfsService()
        case ServiceType.DOCKER:
            implementation = DockerService()
        case ServiceType.MONGO:
            implementation = MongoService()
        case ServiceType.REDIS:
            implementation = RedisService()
        case ServiceType.GANACHE:
            implementation = GanacheService()
        case ServiceType.MARKET:
            implementation = MarketService()
        case ServiceType.SMS:
            implementation = SmsService()
        case ServiceType.RESULTPROXY:
            implementation = ResultProxyService()
        case ServiceType.BLOCKCHAINADAPTER:
            implementation = BlockchainAdapterService()
        case ServiceType.CORE:
            implementation = CoreService()
        case ServiceType.WORKER:
            implementation = WorkerService()

    _IMPLEMENTATIONS[service_type] = implementation
    return implementation
