"""Unit tests for named chains, bridges and enterprise swaps."""

import pytest

from devnet.core.exceptions import (
    ChainAlreadyExistsError,
    ChainPairingConflictError,
    FlavourMismatchError,
    InvalidBridgeError,
    InvalidNameError,
    NativeChainSwapError,
    UnknownChainError,
    UnknownHubError,
)
from devnet.services.chain_graph import ChainGraph
from devnet.services.hub_topology import HubTopologyTable
from devnet.tests.factories import ganache_config

DEPLOYS = (
    {"name": "standard", "asset": "Token"},
    {"name": "enterprise", "asset": "Token", "kyc": True},
    {"name": "native", "asset": "Native"},
)


@pytest.fixture
def graph() -> ChainGraph:
    hubs = HubTopologyTable()
    hubs.register_chain_deployment("ganache.1337", ganache_config(1337, *DEPLOYS))
    hubs.register_chain_deployment("ganache.1338", ganache_config(1338, *DEPLOYS, port=8546))
    graph = ChainGraph(hubs)
    for chain_id in (1337, 1338):
        for flavour in ("standard", "enterprise", "native"):
            graph.add_chain(f"{chain_id}.{flavour}", f"{chain_id}.{flavour}")
    return graph


class TestAddChain:
    """Tests for chain registration."""

    def test_chain_aliases_hub(self, graph):
        """Test a chain records its hub and starts unpaired."""
        record = graph.get_chain("1337.standard")
        assert record.hub_alias == "1337.standard"
        assert record.bridged_chain_name is None
        assert record.enterprise_swap_chain_name is None

    def test_several_chains_per_hub(self, graph):
        """Test a hub may be aliased by several chains."""
        graph.add_chain("bellecour", "1337.native")
        assert graph.hub_of("bellecour").alias == "1337.native"
        assert graph.hub_alias_to_chain_name("1337.native") == "1337.native"

    def test_duplicate_chain(self, graph):
        """Test chain names are unique."""
        with pytest.raises(ChainAlreadyExistsError):
            graph.add_chain("1337.standard", "1338.standard")

    def test_unknown_hub(self, graph):
        """Test the hub must be registered."""
        with pytest.raises(UnknownHubError):
            graph.add_chain("mainnet", "1.standard")

    def test_invalid_name(self, graph):
        """Test chain names must be portable."""
        with pytest.raises(InvalidNameError):
            graph.add_chain("my chain", "1337.standard")

    def test_get_chain_returns_copy(self, graph):
        """Test callers cannot mutate stored records."""
        graph.get_chain("1337.standard").bridged_chain_name = "x"
        assert graph.get_chain("1337.standard").bridged_chain_name is None

    def test_unknown_chain(self, graph):
        """Test unknown chain names raise."""
        with pytest.raises(UnknownChainError):
            graph.get_chain("nope")

    def test_to_dict(self, graph):
        """Test records serialize with camelCase keys."""
        assert graph.get_chain("1337.native").to_dict() == {
            "hubAlias": "1337.native",
            "bridgedChainName": None,
            "enterpriseSwapChainName": None,
        }


class TestBridge:
    """Tests for token/native bridges."""

    def test_bridge_is_symmetric(self, graph):
        """Test both chains point at each other."""
        graph.bridge_chains("1337.standard", "1338.native")
        assert graph.get_chain("1337.standard").bridged_chain_name == "1338.native"
        assert graph.get_chain("1338.native").bridged_chain_name == "1337.standard"

    def test_bridge_is_idempotent(self, graph):
        """Test bridging the same pair twice is accepted."""
        graph.bridge_chains("1337.standard", "1338.native")
        graph.bridge_chains("1337.standard", "1338.native")
        assert graph.get_chain("1338.native").bridged_chain_name == "1337.standard"

    def test_bridge_conflict(self, graph):
        """Test a bridged chain cannot be bridged elsewhere."""
        graph.bridge_chains("1337.standard", "1338.native")
        with pytest.raises(ChainPairingConflictError) as exc_info:
            graph.bridge_chains("1337.enterprise", "1338.native")
        assert exc_info.value.partner == "1337.standard"
        assert graph.get_chain("1337.enterprise").bridged_chain_name is None

    @pytest.mark.parametrize(
        ("token", "native"),
        [
            ("1337.native", "1338.native"),
            ("1337.standard", "1338.standard"),
            ("1337.standard", "1337.standard"),
        ],
    )
    def test_bridge_sides(self, graph, token, native):
        """Test each side must match its asset kind."""
        with pytest.raises(InvalidBridgeError):
            graph.bridge_chains(token, native)

    def test_bridge_unknown_chain(self, graph):
        """Test both chains must exist."""
        with pytest.raises(UnknownChainError):
            graph.bridge_chains("1337.standard", "nope")


class TestEnterpriseSwap:
    """Tests for standard/enterprise swaps."""

    def test_swap_is_symmetric(self, graph):
        """Test both chains point at each other, in either argument order."""
        graph.enterprise_swap_chains("1337.enterprise", "1338.standard")
        assert graph.get_chain("1337.enterprise").enterprise_swap_chain_name == "1338.standard"
        assert graph.get_chain("1338.standard").enterprise_swap_chain_name == "1337.enterprise"

    def test_native_rejected(self, graph):
        """Test native chains cannot swap."""
        with pytest.raises(NativeChainSwapError):
            graph.enterprise_swap_chains("1337.native", "1337.enterprise")

    def test_same_flavour_rejected(self, graph):
        """Test a swap pairs one standard and one enterprise chain."""
        with pytest.raises(FlavourMismatchError):
            graph.enterprise_swap_chains("1337.standard", "1338.standard")

    def test_swap_conflict(self, graph):
        """Test a swapped chain cannot be swapped elsewhere."""
        graph.enterprise_swap_chains("1337.standard", "1337.enterprise")
        with pytest.raises(ChainPairingConflictError):
            graph.enterprise_swap_chains("1338.standard", "1337.enterprise")

    def test_default_swap_pairs_each_chain_id(self, graph):
        """Test default swaps pair standard and enterprise of one chain id."""
        pairs = graph.init_default_enterprise_swap()
        assert pairs == [
            ("1337.standard", "1337.enterprise"),
            ("1338.standard", "1338.enterprise"),
        ]
        assert graph.get_chain("1338.enterprise").enterprise_swap_chain_name == "1338.standard"

    def test_default_swap_skips_paired_chains(self, graph):
        """Test existing swaps are kept."""
        graph.enterprise_swap_chains("1337.standard", "1338.enterprise")
        assert graph.init_default_enterprise_swap() == []
        assert graph.get_chain("1337.enterprise").enterprise_swap_chain_name is None

    def test_default_swap_skips_ambiguous_chain_ids(self, graph):
        """Test a chain id with two standard chains is not paired."""
        graph.add_chain("1338.standard.bis", "1338.standard")
        assert graph.init_default_enterprise_swap() == [("1337.standard", "1337.enterprise")]
