"""Address formatting and placeholder substitution.

Addresses are ``host:port`` strings. Config templates may contain ``${name}``
placeholders naming a machine (``${master}``), one of the two reserved
machine bindings (``${localHostname}``, ``${defaultHostname}``) or a
repository property (``${version}``, ``${repoName}``). The *unsolved* form
keeps the tokens, the *resolved* form is fully concrete.

Substitution is applied until a fixed point is reached; a binding may itself be a
placeholder expression (``localHostname`` -> ``${master}`` -> ``127.0.0.1``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

from devnet.core.constants import LOOPBACK_HOSTNAME
from devnet.core.exceptions import (
    InventoryValidationError,
    PlaceholderCycleError,
    UnresolvedPlaceholderError,
)

__all__ = [
    "PLACEHOLDER_PATTERN",
    "find_placeholders",
    "format_host",
    "has_placeholders",
    "is_portable_name",
    "normalize_host",
    "parse_host",
    "placeholder",
    "placeholder_name",
    "substitute",
    "substitute_all",
    "substitute_value",
    "to_url",
]

PLACEHOLDER_PATTERN = re.compile(r"\$\{(\w+)\}")
_SINGLE_PLACEHOLDER = re.compile(r"^\$\{(\w+)\}$")
_PORTABLE_NAME = re.compile(r"^[-._0-9a-zA-Z]+$")


def is_portable_name(name: str | None) -> bool:
    """Return True if ``name`` only uses POSIX portable filename characters."""
    if not name or not isinstance(name, str):
        return False
    return _PORTABLE_NAME.match(name) is not None


def placeholder(var: str) -> str:
    """Return the token form of a variable name (``master`` -> ``${master}``)."""
    return "${" + var + "}"


def placeholder_name(value: str | None) -> str | None:
    """Return the variable name if ``value`` is exactly one placeholder token."""
    if not value:
        return None
    match = _SINGLE_PLACEHOLDER.match(value)
    return match.group(1) if match else None


def find_placeholders(value: str) -> list[str]:
    """List the variable names referenced by ``value``, in order of appearance."""
    return PLACEHOLDER_PATTERN.findall(value)


def has_placeholders(value: Any) -> bool:
    """Return True if any string nested in ``value`` still holds token syntax."""
    if isinstance(value, str):
        return "${" in value
    if isinstance(value, Mapping):
        return any(has_placeholders(v) for v in value.values())
    if isinstance(value, list | tuple):
        return any(has_placeholders(v) for v in value)
    return False


def substitute(template: str, table: Mapping[str, str]) -> str:
    """Replace every known ``${key}`` of ``template`` once.

    Unknown tokens are left untouched.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        value = table.get(key)
        return value if value else match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def substitute_all(template: str, table: Mapping[str, str], *, strict: bool = True) -> str:
    """Substitute ``template`` until no known token remains.

    Args:
        template: String possibly holding ``${key}`` tokens
        table: Placeholder bindings keyed by bare variable name
        strict: Raise if a token without binding (or bound to an empty
            string) remains

    Returns:
        The substituted string

    Raises:
        PlaceholderCycleError: If bindings reference each other in a loop
        UnresolvedPlaceholderError: If ``strict`` and an unknown token remains
    """
    value = template
    for _ in range(len(table) + 1):
        if not any(table.get(key) for key in find_placeholders(value)):
            break
        value = substitute(value, table)
    else:
        raise PlaceholderCycleError(
            f"Placeholder substitution does not converge for '{template}'",
            details={"value": template},
        )

    if strict:
        remaining = find_placeholders(value)
        if remaining:
            raise UnresolvedPlaceholderError(template, remaining)
    return value


def substitute_value(value: Any, table: Mapping[str, str], *, strict: bool = True) -> Any:
    """Recursively substitute every string held by dicts/lists in ``value``."""
    if isinstance(value, str):
        return substitute_all(value, table, strict=strict)
    if isinstance(value, Mapping):
        return {k: substitute_value(v, table, strict=strict) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_value(v, table, strict=strict) for v in value]
    if isinstance(value, tuple):
        return tuple(substitute_value(v, table, strict=strict) for v in value)
    return value


def format_host(hostname: str | None, port: int | None, default_hostname: str | None = None) -> str:
    """Format a ``host:port`` address.

    Args:
        hostname: Configured hostname, possibly None
        port: Configured port, possibly None
        default_hostname: Token used in place of a missing hostname. When
            omitted, a missing hostname becomes the loopback name and the
            address must already be concrete.

    Returns:
        The ``hostname:port`` string (or ``hostname`` when port is None)

    Raises:
        InventoryValidationError: If the port is not a strictly positive integer
        UnresolvedPlaceholderError: If a concrete address still holds tokens
    """
    if not hostname:
        hostname = default_hostname if default_hostname else LOOPBACK_HOSTNAME

    if default_hostname is None and "${" in hostname:
        raise UnresolvedPlaceholderError(hostname, find_placeholders(hostname))

    if port is None:
        return hostname
    if isinstance(port, bool) or not isinstance(port, int) or port <= 0:
        raise InventoryValidationError(
            f"Invalid port {port!r}, expecting a strictly positive integer",
            details={"port": port},
        )
    return f"{hostname}:{port}"


def parse_host(host_or_url: str | None) -> tuple[str | None, int | None]:
    """Split a ``host:port`` string or an http(s) URL into hostname and port."""
    if not host_or_url:
        return None, None
    value = host_or_url.strip()
    if "://" not in value:
        value = "http://" + value
    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError:
        return None, None
    return parts.hostname, port


def normalize_host(host_or_url: str | None) -> str | None:
    """Return the ``host:port`` index key of a host string or URL."""
    hostname, port = parse_host(host_or_url)
    if not hostname:
        return None
    if port is None:
        return hostname
    return f"{hostname}:{port}"


def to_url(host: str) -> str:
    """Return the http URL of a ``host:port`` address."""
    if host.startswith(("http://", "https://")):
        return host
    return "http://" + host
