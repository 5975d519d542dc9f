"""Pydantic schemas for declarative service configurations.

Every managed service kind has one frozen model; ``ServiceConfig`` is the
tagged union discriminated on ``type``. Field names are snake_case and the
models accept the camelCase keys used by declarative config documents
(``mongoHost``, ``apiPort``, ``deploySequence``...).

Module-level TypeAdapter:
    ``_service_config_adapter`` is built once at import time and used by
    ``parse_service_config`` for every document entry.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from devnet.core.address import format_host, placeholder
from devnet.core.constants import DEFAULT_HOSTNAME_VAR, ServiceType

Port = Annotated[int, Field(gt=0, le=65535)]


class ConfigModel(BaseModel):
    """Common model configuration for declarative configs."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )


class RepositoryPackage(ConfigModel):
    """Source repository of a repository-backed service.

    ``directory`` may hold ``${version}``/``${repoName}`` placeholders.
    ``clone_repo`` may carry a ``#<commitish>`` suffix.
    """

    directory: str | None = None
    clone_repo: str | None = None
    commitish: str | None = None
    git_hub_repo_name: str | None = None
    clone: Literal["ifmissing", "always", "never"] | None = None
    patch: bool | None = None


Repository = str | RepositoryPackage


class ServiceConfigBase(ConfigModel):
    """Fields shared by every service kind."""

    type: str
    hostname: str | None = None
    log_file: str | None = None
    pid_file: str | None = None

    @property
    def service_type(self) -> ServiceType:
        return ServiceType(self.type)

    def host_port(self) -> tuple[str | None, int | None]:
        """Return the (hostname, port) pair that addresses the service."""
        return self.hostname, getattr(self, "port", None)

    def address(self, default_hostname: str | None = None) -> str:
        """Format the ``host:port`` address of this config.

        Args:
            default_hostname: Token used when no hostname is configured.
                Omit it for resolved configs, which must be concrete.
        """
        hostname, port = self.host_port()
        return format_host(hostname, port, default_hostname)

    def unsolved_address(self) -> str:
        return self.address(placeholder(DEFAULT_HOSTNAME_VAR))


class IpfsConfig(ServiceConfigBase):
    type: Literal["ipfs"] = "ipfs"
    api_port: Port = 5002
    gateway_port: Port = 13900
    directory: str | None = None

    def host_port(self) -> tuple[str | None, int | None]:
        return self.hostname, self.api_port


class DockerConfig(ServiceConfigBase):
    type: Literal["docker"] = "docker"
    port: Port = 5008


class MongoConfig(ServiceConfigBase):
    type: Literal["mongo"] = "mongo"
    port: Port
    directory: str | None = None


class RedisConfig(ServiceConfigBase):
    type: Literal["redis"] = "redis"
    port: Port
    directory: str | None = None


class DeployConfig(ConfigModel):
    """One contract deployment on a simulated chain."""

    name: str = Field(..., min_length=1, pattern=r"^[-_0-9a-zA-Z]+$")
    asset: Literal["Token", "Native"] = "Token"
    kyc: bool = False


class GanacheChainConfig(ConfigModel):
    chainid: int = Field(..., gt=0)
    deploy_sequence: tuple[DeployConfig, ...] = ()


class GanacheConfig(ServiceConfigBase):
    type: Literal["ganache"] = "ganache"
    port: Port
    directory: str | None = None
    config: GanacheChainConfig


class MarketApiConfig(ConfigModel):
    hostname: str | None = None
    port: Port
    chains: tuple[str, ...] = ()


class MarketDbConfig(ConfigModel):
    """Database embedded in a market deployment (not a registry entry)."""

    hostname: str | None = None
    port: Port
    directory: str | None = None


class MarketConfig(ServiceConfigBase):
    type: Literal["market"] = "market"
    repository: Repository | None = None
    directory: str | None = None
    api: MarketApiConfig
    mongo: MarketDbConfig | None = None
    redis: MarketDbConfig | None = None
    watchers: str | tuple[str, ...] | None = None

    def host_port(self) -> tuple[str | None, int | None]:
        return self.api.hostname, self.api.port


class HubServiceConfig(ServiceConfigBase):
    """Server tier bound to one hub alias."""

    port: Port
    hub: str = Field(..., min_length=1)
    repository: Repository
    spring_config_location: str | None = None
    yml_config: dict[str, Any] = Field(default_factory=dict)


class SmsConfig(HubServiceConfig):
    type: Literal["sms"] = "sms"
    db_directory: str | None = None


class MongoBackedConfig(HubServiceConfig):
    mongo_host: str | None = None
    mongo_db_name: str | None = Field(default=None, alias="mongoDBName")


class ResultProxyConfig(MongoBackedConfig):
    type: Literal["resultproxy"] = "resultproxy"
    ipfs_host: str | None = None


class BlockchainAdapterConfig(MongoBackedConfig):
    type: Literal["blockchainadapter"] = "blockchainadapter"
    market_api_url: str | None = None
    wallet_index: int | None = Field(default=None, ge=0)


class CoreConfig(MongoBackedConfig):
    type: Literal["core"] = "core"
    ipfs_host: str | None = None
    sms_url: str | None = None
    result_proxy_url: str | None = None
    blockchain_adapter_url: str | None = None
    wallet_index: int | None = Field(default=None, ge=0)


class WorkerConfig(ServiceConfigBase):
    type: Literal["worker"] = "worker"
    port: Port
    name: str
    directory: str
    repository: Repository
    core_url: str
    docker_host: str
    wallet_index: int = Field(..., ge=0)
    sgx_driver_mode: Literal["none", "legacy", "native"] = "none"
    spring_config_location: str | None = None
    yml_config: dict[str, Any] = Field(default_factory=dict)


NonWorkerServiceConfig = Annotated[
    IpfsConfig
    | DockerConfig
    | MongoConfig
    | RedisConfig
    | GanacheConfig
    | MarketConfig
    | SmsConfig
    | ResultProxyConfig
    | BlockchainAdapterConfig
    | CoreConfig,
    Field(discriminator="type"),
]

ServiceConfig = Annotated[
    IpfsConfig
    | DockerConfig
    | MongoConfig
    | RedisConfig
    | GanacheConfig
    | MarketConfig
    | SmsConfig
    | ResultProxyConfig
    | BlockchainAdapterConfig
    | CoreConfig
    | WorkerConfig,
    Field(discriminator="type"),
]

_service_config_adapter: TypeAdapter[Any] = TypeAdapter(ServiceConfig)


def parse_service_config(data: dict[str, Any] | ServiceConfigBase) -> ServiceConfigBase:
    """Validate a declarative config mapping into its typed model.

    Raises:
        pydantic.ValidationError: If the mapping does not match any service kind
    """
    if isinstance(data, ServiceConfigBase):
        return data
    return _service_config_adapter.validate_python(data)
