"""Unit tests for the name/type/host registry indices."""

import pytest

from devnet.core.constants import ServiceType
from devnet.core.exceptions import (
    DuplicateHostError,
    DuplicateNameError,
    DuplicateSingletonError,
    InvalidNameError,
    InventoryError,
    UnknownConfigError,
)
from devnet.schemas.inventory import EntryState, InventoryEntry
from devnet.schemas.services import CoreConfig, DockerConfig, IpfsConfig, MongoConfig
from devnet.services.config_registry import ConfigRegistry


def _entry(name: str, config, hostname: str = "127.0.0.1", **kwargs) -> InventoryEntry:
    resolved = config.model_copy(update={"hostname": hostname})
    return InventoryEntry.create(name, config, resolved, **kwargs)


@pytest.fixture
def registry() -> ConfigRegistry:
    return ConfigRegistry()


class TestRegistryInsertion:
    """Tests for validate/commit."""

    def test_add_indexes_name_type_and_host(self, registry):
        """Test an inserted entry is reachable by every index."""
        registry.add(_entry("ipfs", IpfsConfig(), shared=True))
        assert "ipfs" in registry
        assert registry.get("ipfs").type is ServiceType.IPFS
        assert registry.get_by_type("ipfs")[0].name == "ipfs"
        assert registry.get_by_host("http://127.0.0.1:5002").name == "ipfs"
        assert registry.is_shared("ipfs")

    def test_duplicate_name_rejected(self, registry):
        """Test names are unique across kinds."""
        registry.add(_entry("db", MongoConfig(port=13500)))
        with pytest.raises(DuplicateNameError):
            registry.add(_entry("db", MongoConfig(port=13501)))

    def test_duplicate_host_rejected(self, registry):
        """Test resolved addresses are unique."""
        registry.add(_entry("mongo.a", MongoConfig(port=13500)))
        with pytest.raises(DuplicateHostError) as exc_info:
            registry.add(_entry("mongo.b", MongoConfig(port=13500)))
        assert exc_info.value.owner == "mongo.a"

    def test_same_port_on_other_machine_accepted(self, registry):
        """Test the host key includes the hostname."""
        registry.add(_entry("mongo.a", MongoConfig(port=13500)))
        registry.add(_entry("mongo.b", MongoConfig(port=13500), hostname="10.0.0.2"))
        assert len(registry) == 2

    def test_non_portable_name_rejected(self, registry):
        """Test names must be filesystem portable."""
        with pytest.raises(InvalidNameError):
            registry.add(_entry("my mongo", MongoConfig(port=13500)))

    def test_second_singleton_rejected(self, registry):
        """Test only one docker service may be registered."""
        registry.add(_entry("docker", DockerConfig()))
        with pytest.raises(DuplicateSingletonError):
            registry.add(_entry("docker.2", DockerConfig(port=5009)))

    def test_provisional_entry_rejected(self, registry):
        """Test the registry only stores finalized entries."""
        entry = _entry("core", CoreConfig(port=13000, hub="1337.standard", repository="/src"))
        assert entry.state is EntryState.PROVISIONAL
        with pytest.raises(InventoryError, match="finalized"):
            registry.add(entry)

    def test_batch_is_atomic(self, registry):
        """Test a failing batch inserts nothing."""
        batch = [
            _entry("mongo.a", MongoConfig(port=13500)),
            _entry("mongo.b", MongoConfig(port=13500)),
        ]
        with pytest.raises(DuplicateHostError):
            registry.validate(batch)
        assert len(registry) == 0

    def test_batch_checks_names_within_itself(self, registry):
        """Test duplicate names inside one batch are detected."""
        with pytest.raises(DuplicateNameError):
            registry.validate(
                [_entry("db", MongoConfig(port=13500)), _entry("db", MongoConfig(port=13501))]
            )


class TestRegistryLookup:
    """Tests for lookups and iteration order."""

    def test_iteration_follows_type_order(self, registry):
        """Test entries iterate by service type, then insertion."""
        registry.add(_entry("mongo.b", MongoConfig(port=13501)))
        registry.add(_entry("docker", DockerConfig()))
        registry.add(_entry("mongo.a", MongoConfig(port=13500)))
        registry.add(_entry("ipfs", IpfsConfig()))
        assert registry.names() == ["ipfs", "docker", "mongo.b", "mongo.a"]

    def test_get_with_wrong_type(self, registry):
        """Test a type mismatch reads as an unknown config."""
        registry.add(_entry("docker", DockerConfig()))
        with pytest.raises(UnknownConfigError):
            registry.get("docker", ServiceType.IPFS)

    def test_get_unknown(self, registry):
        """Test unknown names raise."""
        with pytest.raises(UnknownConfigError):
            registry.get("nope")
        assert registry.find("nope") is None

    def test_find_by_host_unknown(self, registry):
        """Test unknown or empty addresses find nothing."""
        assert registry.find_by_host("127.0.0.1:1") is None
        assert registry.find_by_host(None) is None
        with pytest.raises(UnknownConfigError):
            registry.get_by_host("127.0.0.1:1")

    def test_next_name(self, registry):
        """Test generated names take the first free ordinal."""
        assert registry.next_name(ServiceType.MONGO, "mongo.shared") == "mongo.shared.0"
        registry.add(_entry("mongo.shared.0", MongoConfig(port=13500)))
        assert registry.next_name(ServiceType.MONGO, "mongo.shared") == "mongo.shared.1"
        assert registry.next_name(ServiceType.MARKET) == "market.0"
