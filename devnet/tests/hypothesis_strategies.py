"""Domain-specific Hypothesis strategies for property-based testing.

Usage:
    from devnet.tests.hypothesis_strategies import portable_names, placeholder_tables
    from hypothesis import given

    @given(table=placeholder_tables())
    def test_substitution(table):
        ...
"""

from __future__ import annotations

from hypothesis import strategies as st

from devnet.core.address import placeholder

# =============================================================================
# Names
# =============================================================================

_PORTABLE_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_."


def portable_names(min_size: int = 1, max_size: int = 20) -> st.SearchStrategy[str]:
    """POSIX portable filename strings."""
    return st.text(alphabet=_PORTABLE_ALPHABET, min_size=min_size, max_size=max_size)


def non_portable_names() -> st.SearchStrategy[str]:
    """Strings holding at least one character outside the portable set."""
    return st.builds(
        lambda head, bad, tail: head + bad + tail,
        portable_names(min_size=0, max_size=5),
        st.sampled_from([" ", "/", "$", "{", "}", ":", "é", "*"]),
        portable_names(min_size=0, max_size=5),
    )


def variable_names() -> st.SearchStrategy[str]:
    """Identifiers usable as placeholder variables."""
    return st.from_regex(r"[a-z][a-zA-Z0-9]{0,9}", fullmatch=True)


# =============================================================================
# Addresses
# =============================================================================


def ports() -> st.SearchStrategy[int]:
    return st.integers(min_value=1, max_value=65535)


def ipv4_addresses() -> st.SearchStrategy[str]:
    octet = st.integers(min_value=0, max_value=255)
    return st.tuples(octet, octet, octet, octet).map(lambda t: ".".join(map(str, t)))


# =============================================================================
# Placeholder tables
# =============================================================================


@st.composite
def placeholder_tables(draw: st.DrawFn) -> dict[str, str]:
    """Acyclic placeholder tables.

    Machine variables bind to concrete addresses; the two reserved
    variables bind to one of the machines.
    """
    names = draw(st.lists(variable_names(), min_size=1, max_size=4, unique=True))
    names = [n for n in names if n not in ("localHostname", "defaultHostname")] or ["master"]
    table = {name: draw(ipv4_addresses()) for name in names}
    table["localHostname"] = placeholder(draw(st.sampled_from(names)))
    table["defaultHostname"] = placeholder(draw(st.sampled_from(names)))
    return table


@st.composite
def templates(draw: st.DrawFn, table: dict[str, str]) -> str:
    """Strings mixing literal text with tokens bound in ``table``."""
    parts = draw(
        st.lists(
            st.one_of(
                st.text(alphabet="abc/-_.:0123456789", max_size=6),
                st.sampled_from(sorted(table)).map(placeholder),
            ),
            max_size=6,
        )
    )
    return "".join(parts)
