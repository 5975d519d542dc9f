"""Unit tests for machine placement."""

import pytest

from devnet.core.exceptions import InvalidNameError, InvalidPlacementError, UnknownMachineError
from devnet.services.placement import Machine, PlacementResolver, build_placeholders

MASTER = Machine(name="master", network_identity="127.0.0.1")
NODE1 = Machine(name="node1", network_identity="10.0.0.2")


@pytest.fixture
def placement() -> PlacementResolver:
    return PlacementResolver([MASTER, NODE1], build_placeholders([MASTER, NODE1], local="node1"))


class TestBuildPlaceholders:
    """Tests for build_placeholders."""

    def test_default_table(self):
        """Test machines and reserved bindings are present."""
        assert build_placeholders([MASTER]) == {
            "master": "127.0.0.1",
            "localHostname": "${master}",
            "defaultHostname": "${master}",
        }

    def test_extra_bindings(self):
        """Test extra bindings are merged in."""
        table = build_placeholders([MASTER], extra={"region": "eu"})
        assert table["region"] == "eu"


class TestPlacementResolver:
    """Tests for PlacementResolver."""

    def test_reserved_names(self, placement):
        """Test local and default expand to their machines."""
        assert placement.local_machine_name == "node1"
        assert placement.default_machine_name == "master"
        assert placement.resolve_machine_name("local") == "node1"
        assert placement.resolve_machine_name("localHostname") == "node1"
        assert placement.resolve_machine_name("default") == "master"
        assert placement.resolve_machine_name("defaultHostname") == "master"

    def test_unknown_machine(self, placement):
        """Test undeclared machines raise."""
        with pytest.raises(UnknownMachineError):
            placement.resolve_machine_name("node9")

    def test_machine_hostnames(self, placement):
        """Test symbolic names keep their placeholder in the unsolved form."""
        assert placement.machine_hostnames("default") == ("${defaultHostname}", "127.0.0.1")
        assert placement.machine_hostnames("local") == ("${localHostname}", "10.0.0.2")
        assert placement.machine_hostnames("master") == ("${master}", "127.0.0.1")

    def test_is_local(self, placement):
        """Test locality follows the localHostname binding."""
        assert placement.is_local_machine_name("node1")
        assert placement.is_local_machine_name("local")
        assert not placement.is_local_machine_name("default")
        assert not placement.is_local_master()
        assert placement.get_machine("local") == NODE1

    def test_literal_binding_rejected(self):
        """Test reserved bindings must be machine placeholders."""
        table = build_placeholders([MASTER])
        table["defaultHostname"] = "127.0.0.1"
        with pytest.raises(InvalidPlacementError):
            PlacementResolver([MASTER], table)

    def test_duplicate_machine_rejected(self):
        """Test machine names are unique."""
        with pytest.raises(InvalidPlacementError):
            PlacementResolver([MASTER, MASTER], build_placeholders([MASTER]))

    def test_non_portable_machine_rejected(self):
        """Test machine names must be portable."""
        machine = Machine(name="node 1", network_identity="10.0.0.2")
        with pytest.raises(InvalidNameError):
            PlacementResolver([MASTER, machine], build_placeholders([MASTER]))

    def test_placeholders_are_read_only(self, placement):
        """Test the placeholder table cannot be mutated."""
        with pytest.raises(TypeError):
            placement.placeholders["master"] = "10.0.0.1"


class TestRunningMachine:
    """Tests for running machine resolution on registered entries."""

    @pytest.mark.asyncio
    async def test_default_placement(self, inventory):
        """Test entries without hostname run on the default machine."""
        from devnet.tests.factories import IpfsConfigFactory

        await inventory.add_ipfs(IpfsConfigFactory())
        assert inventory.running_machine_name("ipfs") == "master"
        assert inventory.is_local("ipfs")
        assert inventory.is_local_master()
        assert inventory.get_machine("default").network_identity == "127.0.0.1"
        assert inventory.resolve_machine_name("local") == "master"
        assert inventory.is_local_machine_name("master")
