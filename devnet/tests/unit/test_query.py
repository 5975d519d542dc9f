"""Unit tests for loose config queries."""

import pytest

from devnet.core.constants import ServiceType
from devnet.core.exceptions import (
    IncompatibleHubError,
    InvalidQueryError,
    MissingPeerError,
    UnknownChainError,
    UnknownConfigError,
    UnknownHubError,
)
from devnet.schemas.inventory import WorkerEntry
from devnet.schemas.services import MongoConfig
from devnet.services.query import ConfigQuery
from devnet.tests.factories import SRC_DIR, ganache_config, populate_hub

HUB = "1337.standard"


@pytest.fixture
async def queried(inventory):
    """Full 1337 hub plus a bare 1338 chain."""
    await populate_hub(inventory)
    await inventory.add_workers(HUB, SRC_DIR, "/tmp/workers", {"from": 13100, "to": 13109})
    await inventory.add_ganache(ganache_config(1338, port=8546))
    inventory.add_chain("1338.standard", "1338.standard")
    await inventory.add_mongo(MongoConfig(port=13500))
    return inventory


class TestGuessConfig:
    """Tests for guess_config."""

    @pytest.mark.asyncio
    async def test_name_wins(self, queried):
        """Test a name is looked up directly, ignoring other fields."""
        entry = queried.guess_config(name="docker", type=ServiceType.CORE, hub="1.x")
        assert entry.name == "docker"

    @pytest.mark.asyncio
    async def test_singleton_by_type(self, queried):
        """Test singletons resolve by type alone."""
        assert queried.guess_config(type="ipfs").name == "ipfs"

    @pytest.mark.asyncio
    async def test_databases_are_ambiguous(self, queried):
        """Test mongo and redis queries without a name resolve to nothing."""
        assert queried.guess_config(type=ServiceType.MONGO) is None
        assert queried.guess_config(type=ServiceType.REDIS, hub=HUB) is None

    @pytest.mark.asyncio
    async def test_ganache_by_chain_id(self, queried):
        """Test chain simulators resolve by chain id."""
        assert queried.guess_config(type="ganache", chain_id=1338).name == "ganache.1338"
        assert queried.ganache_for_chain_id(1337).name == "ganache.1337"
        with pytest.raises(UnknownConfigError):
            queried.guess_config(type="ganache", chain_id=5)

    @pytest.mark.asyncio
    async def test_ganache_by_chain(self, queried):
        """Test chain simulators resolve through the chain hub."""
        assert queried.guess_config(type="ganache", chain="1338.standard").name == "ganache.1338"

    @pytest.mark.asyncio
    async def test_default_chain(self, queried):
        """Test the default chain is used when no hub or chain is given."""
        assert queried.guess_config(type="sms").name == "sms.1337.standard"

    @pytest.mark.asyncio
    async def test_explicit_hub(self, queried):
        """Test an explicit hub selects its slot."""
        query = ConfigQuery(type=ServiceType.CORE, hub=HUB, chain=HUB)
        assert queried.guess_config(query).name == "core.1337.standard"

    @pytest.mark.asyncio
    async def test_incompatible_hub(self, queried):
        """Test the hub must agree with the chain."""
        with pytest.raises(IncompatibleHubError):
            queried.guess_config(type="core", hub=HUB, chain="1338.standard")

    @pytest.mark.asyncio
    async def test_unknown_chain_is_lenient_with_hub(self, queried):
        """Test an unknown chain does not block an explicit hub."""
        assert queried.guess_config(type="sms", hub=HUB, chain="nope").name == "sms.1337.standard"

    @pytest.mark.asyncio
    async def test_unknown_hub(self, queried):
        """Test the selected hub must be registered."""
        with pytest.raises(UnknownHubError):
            queried.guess_config(type="sms", hub="1.standard")

    @pytest.mark.asyncio
    async def test_empty_slot(self, queried):
        """Test an empty hub slot is a missing peer."""
        with pytest.raises(MissingPeerError):
            queried.guess_config(type="core", chain="1338.standard")

    @pytest.mark.asyncio
    async def test_worker(self, queried):
        """Test worker queries yield a descriptor."""
        worker = queried.guess_config(type="worker", worker_index=4, machine="node1")
        assert isinstance(worker, WorkerEntry)
        assert worker.name == "worker.4.1337.standard"
        assert worker.resolved.hostname == "10.0.0.2"

    @pytest.mark.asyncio
    async def test_worker_needs_index(self, queried):
        """Test worker queries require an index."""
        with pytest.raises(InvalidQueryError):
            queried.guess_config(type="worker")

    @pytest.mark.asyncio
    async def test_empty_query(self, queried):
        """Test a query needs a name or a type."""
        with pytest.raises(InvalidQueryError):
            queried.guess_config(hub=HUB)


class TestGuessHubAlias:
    """Tests for guess_hub_alias."""

    @pytest.mark.asyncio
    async def test_default(self, queried):
        """Test the default chain hub is returned."""
        assert queried.guess_hub_alias() == HUB

    @pytest.mark.asyncio
    async def test_chain(self, queried):
        """Test a chain resolves to its hub."""
        assert queried.guess_hub_alias(chain="1338.standard") == "1338.standard"

    @pytest.mark.asyncio
    async def test_unknown_chain_is_strict(self, queried):
        """Test an unknown chain is an error even with an explicit hub."""
        with pytest.raises(UnknownChainError):
            queried.guess_hub_alias(hub=HUB, chain="nope")

    @pytest.mark.asyncio
    async def test_default_chain_missing(self, inventory):
        """Test an inventory without its default chain cannot guess a hub."""
        await inventory.add_ganache(ganache_config())
        with pytest.raises(UnknownChainError):
            inventory.guess_hub_alias()
