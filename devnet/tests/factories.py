"""Test factories using factory_boy for generating service configs.

Usage:
    from devnet.tests.factories import SmsConfigFactory, populate_hub

    sms = SmsConfigFactory(hub="1337.standard", port=13300)
    await populate_hub(inventory)

Every hub service factory derives its ``mongo_host`` from its own port
(``port + 2``), the slot reserved for its private database.
"""

from __future__ import annotations

from typing import Any

import factory
from factory import LazyAttribute, LazyFunction

from devnet.schemas.services import (
    BlockchainAdapterConfig,
    CoreConfig,
    DeployConfig,
    DockerConfig,
    GanacheChainConfig,
    GanacheConfig,
    IpfsConfig,
    MarketApiConfig,
    MarketConfig,
    MongoConfig,
    RedisConfig,
    ResultProxyConfig,
    SmsConfig,
)
from devnet.services.inventory import Inventory

SRC_DIR = "/tmp/devnet-src/${version}/${repoName}"
DEFAULT_HUB = "1337.standard"


def ganache_config(chain_id: int = 1337, *deploys: dict[str, Any], port: int = 8545, **kwargs: Any) -> GanacheConfig:
    """Build a chain simulator config (one standard deployment by default)."""
    sequence = deploys or ({"name": "standard", "asset": "Token", "kyc": False},)
    return GanacheConfig(
        port=port,
        config=GanacheChainConfig(
            chainid=chain_id,
            deploy_sequence=tuple(DeployConfig(**d) for d in sequence),
        ),
        **kwargs,
    )


class IpfsConfigFactory(factory.Factory):
    class Meta:
        model = IpfsConfig

    api_port = 5002
    gateway_port = 13900


class DockerConfigFactory(factory.Factory):
    class Meta:
        model = DockerConfig

    port = 5008


class MongoConfigFactory(factory.Factory):
    class Meta:
        model = MongoConfig

    port = factory.Sequence(lambda n: 13500 + n)


class RedisConfigFactory(factory.Factory):
    class Meta:
        model = RedisConfig

    port = factory.Sequence(lambda n: 13600 + n)


class MarketConfigFactory(factory.Factory):
    class Meta:
        model = MarketConfig

    repository = SRC_DIR
    api = LazyFunction(lambda: MarketApiConfig(port=3000, chains=(DEFAULT_HUB,)))


class SmsConfigFactory(factory.Factory):
    class Meta:
        model = SmsConfig

    hub = DEFAULT_HUB
    port = 13300
    repository = SRC_DIR


class ResultProxyConfigFactory(factory.Factory):
    class Meta:
        model = ResultProxyConfig

    hub = DEFAULT_HUB
    port = 13200
    repository = SRC_DIR
    mongo_host = LazyAttribute(lambda o: "${master}:" + str(o.port + 2))


class BlockchainAdapterConfigFactory(factory.Factory):
    class Meta:
        model = BlockchainAdapterConfig

    hub = DEFAULT_HUB
    port = 13400
    repository = SRC_DIR
    wallet_index = 1
    mongo_host = LazyAttribute(lambda o: "${master}:" + str(o.port + 2))


class CoreConfigFactory(factory.Factory):
    class Meta:
        model = CoreConfig

    hub = DEFAULT_HUB
    port = 13000
    repository = SRC_DIR
    wallet_index = 1
    mongo_host = LazyAttribute(lambda o: "${master}:" + str(o.port + 2))


def companion_mongo(config: ResultProxyConfig | BlockchainAdapterConfig | CoreConfig) -> MongoConfig:
    """Private database listening on the service's declared mongo port."""
    assert config.mongo_host is not None
    return MongoConfig(port=int(config.mongo_host.rsplit(":", 1)[1]))


async def populate_hub(inventory: Inventory, *, with_core: bool = True) -> dict[str, str]:
    """Register a complete chain 1337 network in the required order.

    Returns:
        Registry names keyed by service type
    """
    names = {
        "ganache": await inventory.add_ganache(ganache_config()),
        "ipfs": await inventory.add_ipfs(IpfsConfigFactory()),
        "docker": await inventory.add_docker(DockerConfigFactory()),
        "market": await inventory.add_market(MarketConfigFactory()),
        "sms": await inventory.add_sms(SmsConfigFactory()),
    }
    result_proxy = ResultProxyConfigFactory()
    names["resultproxy"] = await inventory.add_result_proxy(
        result_proxy, db_config=companion_mongo(result_proxy)
    )
    adapter = BlockchainAdapterConfigFactory()
    names["blockchainadapter"] = await inventory.add_blockchain_adapter(
        adapter, db_config=companion_mongo(adapter)
    )
    if with_core:
        core = CoreConfigFactory()
        names["core"] = await inventory.add_core(core, db_config=companion_mongo(core))
    inventory.add_chain(DEFAULT_HUB, DEFAULT_HUB)
    return names
