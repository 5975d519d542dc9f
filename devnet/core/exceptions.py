"""Consolidated exception hierarchy for the service inventory.

This module provides the exception hierarchy raised by the registry:
1. Conflict errors (duplicate names, addresses, hub slots, chain pairings)
2. Reference errors (unknown hub, chain, machine, missing peer service)
3. Validation errors (non-portable names, bad port ranges, invalid swaps)
4. Resolution errors (placeholders that cannot be substituted)

All errors are raised synchronously at the offending call and carry the
offending name/hub/chain in ``details``.
"""

from __future__ import annotations

from typing import Any


class InventoryError(Exception):
    """Base exception for all inventory errors."""

    default_message: str = "An unexpected inventory error occurred"
    default_error_code: str = "INVENTORY_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Conflict Errors
class ConflictError(InventoryError):
    default_message = "Inventory conflict"
    default_error_code = "CONFLICT"


class DuplicateNameError(ConflictError):
    default_message = "Duplicate service config name"
    default_error_code = "DUPLICATE_NAME"

    def __init__(self, name: str, **kwargs: Any) -> None:
        self.name = name
        details = kwargs.pop("details", {}) or {}
        details["name"] = name
        super().__init__(f"Duplicate service config name={name}", details=details, **kwargs)


class DuplicateHostError(ConflictError):
    default_message = "Duplicate service host"
    default_error_code = "DUPLICATE_HOST"

    def __init__(self, host: str, *, owner: str | None = None, **kwargs: Any) -> None:
        self.host = host
        self.owner = owner
        details = kwargs.pop("details", {}) or {}
        details["host"] = host
        if owner:
            details["owner"] = owner
        super().__init__(f"Duplicate service host={host}", details=details, **kwargs)


class DuplicateHubError(ConflictError):
    default_message = "Duplicate hub alias"
    default_error_code = "DUPLICATE_HUB"

    def __init__(self, hub: str, **kwargs: Any) -> None:
        self.hub = hub
        super().__init__(f"Duplicate hub {hub}", details={"hub": hub}, **kwargs)


class DuplicateHubSlotError(ConflictError):
    """Raised when a hub slot (sms, core, market, workers...) is already populated."""

    default_message = "Hub slot already populated"
    default_error_code = "DUPLICATE_HUB_SLOT"

    def __init__(self, hub: str, slot: str, *, current: str | None = None, **kwargs: Any) -> None:
        self.hub = hub
        self.slot = slot
        details: dict[str, Any] = {"hub": hub, "slot": slot}
        if current:
            details["current"] = current
        super().__init__(
            f"Hub '{hub}' already has a '{slot}' service ({current or 'set'})",
            details=details,
            **kwargs,
        )


class DuplicateSingletonError(ConflictError):
    default_message = "Singleton service already registered"
    default_error_code = "DUPLICATE_SINGLETON"

    def __init__(self, service_type: str, **kwargs: Any) -> None:
        self.service_type = service_type
        super().__init__(
            f"A '{service_type}' service is already registered",
            details={"type": service_type},
            **kwargs,
        )


class ChainAlreadyExistsError(ConflictError):
    default_message = "Chain already exists"
    default_error_code = "CHAIN_EXISTS"

    def __init__(self, chain: str, **kwargs: Any) -> None:
        self.chain = chain
        super().__init__(f"Chain {chain} already exists", details={"chain": chain}, **kwargs)


class ChainPairingConflictError(ConflictError):
    """Raised when a chain is already bridged or swapped with another chain."""

    default_message = "Chain already paired"
    default_error_code = "CHAIN_PAIRING_CONFLICT"

    def __init__(self, chain: str, relation: str, partner: str, **kwargs: Any) -> None:
        self.chain = chain
        self.relation = relation
        self.partner = partner
        super().__init__(
            f"Chain {chain} is already {relation} with chain {partner}",
            details={"chain": chain, "relation": relation, "partner": partner},
            **kwargs,
        )


class IncompatibleHubError(ConflictError):
    default_message = "Incompatible hub"
    default_error_code = "INCOMPATIBLE_HUB"

    def __init__(self, hub: str, expected: str, **kwargs: Any) -> None:
        self.hub = hub
        self.expected = expected
        super().__init__(
            f"Incompatible hub, got '{hub}', expecting '{expected}'",
            details={"hub": hub, "expected": expected},
            **kwargs,
        )


# Reference Errors
class InventoryReferenceError(InventoryError):
    default_message = "Unknown reference"
    default_error_code = "REFERENCE_ERROR"


class UnknownConfigError(InventoryReferenceError):
    default_message = "Unknown config"
    default_error_code = "UNKNOWN_CONFIG"

    def __init__(self, name: str, *, expected_type: str | None = None, **kwargs: Any) -> None:
        self.name = name
        details: dict[str, Any] = {"name": name}
        if expected_type:
            details["expected_type"] = expected_type
            message = f"Unknown {expected_type} config name '{name}'"
        else:
            message = f"Unknown config name '{name}'"
        super().__init__(message, details=details, **kwargs)


class UnknownHubError(InventoryReferenceError):
    default_message = "Unknown hub"
    default_error_code = "UNKNOWN_HUB"

    def __init__(self, hub: str, message: str | None = None, **kwargs: Any) -> None:
        self.hub = hub
        super().__init__(message or f"Unknown hub {hub}", details={"hub": hub}, **kwargs)


class UnknownChainError(InventoryReferenceError):
    default_message = "Unknown chain"
    default_error_code = "UNKNOWN_CHAIN"

    def __init__(self, chain: str, **kwargs: Any) -> None:
        self.chain = chain
        super().__init__(f"Unknown chain name '{chain}'", details={"chain": chain}, **kwargs)


class UnknownMachineError(InventoryReferenceError):
    default_message = "Unknown machine"
    default_error_code = "UNKNOWN_MACHINE"

    def __init__(self, machine: str, **kwargs: Any) -> None:
        self.machine = machine
        super().__init__(
            f"Unknown machine name '{machine}'", details={"machine": machine}, **kwargs
        )


class MissingPeerError(InventoryReferenceError):
    """Raised when a peer service required by a registration is not registered yet."""

    default_message = "Missing peer service"
    default_error_code = "MISSING_PEER"

    def __init__(
        self,
        peer: str,
        *,
        hub: str | None = None,
        name: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.peer = peer
        self.hub = hub
        details: dict[str, Any] = {"peer": peer}
        if hub:
            details["hub"] = hub
        if name:
            details["name"] = name
        where = f" in hub '{hub}'" if hub else ""
        super().__init__(f"Missing {peer} service{where}", details=details, **kwargs)


# Validation Errors
class InventoryValidationError(InventoryError):
    default_message = "Validation failed"
    default_error_code = "VALIDATION_ERROR"


class InvalidNameError(InventoryValidationError):
    default_message = "Invalid name"
    default_error_code = "INVALID_NAME"

    def __init__(self, name: str, **kwargs: Any) -> None:
        self.name = name
        super().__init__(
            f"Invalid name='{name}', only POSIX portable characters are allowed",
            details={"name": name},
            **kwargs,
        )


class InvalidHubAliasError(InventoryValidationError):
    default_message = "Invalid hub alias"
    default_error_code = "INVALID_HUB_ALIAS"

    def __init__(self, hub: str, **kwargs: Any) -> None:
        self.hub = hub
        super().__init__(
            f"Invalid hub alias '{hub}', expecting '<chainid>.<deployConfigName>'",
            details={"hub": hub},
            **kwargs,
        )


class InvalidPortRangeError(InventoryValidationError):
    default_message = "Invalid port range"
    default_error_code = "INVALID_PORT_RANGE"


class NativeChainSwapError(InventoryValidationError):
    default_message = "Native chains cannot take part in an enterprise swap"
    default_error_code = "NATIVE_CHAIN_SWAP"

    def __init__(self, chain: str, **kwargs: Any) -> None:
        self.chain = chain
        super().__init__(
            f"Invalid chain {chain}, native chains are not allowed",
            details={"chain": chain},
            **kwargs,
        )


class FlavourMismatchError(InventoryValidationError):
    default_message = "Enterprise swap requires one enterprise and one standard chain"
    default_error_code = "FLAVOUR_MISMATCH"

    def __init__(self, chain1: str, chain2: str, **kwargs: Any) -> None:
        super().__init__(
            f"Invalid chains '{chain1}' and '{chain2}', "
            "expecting one enterprise and one standard chain",
            details={"chains": [chain1, chain2]},
            **kwargs,
        )


class InvalidBridgeError(InventoryValidationError):
    default_message = "Invalid bridge"
    default_error_code = "INVALID_BRIDGE"


class WorkerIndexOutOfRangeError(InventoryValidationError):
    default_message = "Too many workers, port out of bounds"
    default_error_code = "WORKER_INDEX_OUT_OF_RANGE"

    def __init__(self, hub: str, index: int, **kwargs: Any) -> None:
        self.hub = hub
        self.index = index
        details = kwargs.pop("details", {}) or {}
        details.update({"hub": hub, "index": index})
        super().__init__(
            f"Worker index {index} is out of the port range of hub '{hub}'",
            details=details,
            **kwargs,
        )


class InvalidQueryError(InventoryValidationError):
    default_message = "Invalid config query"
    default_error_code = "INVALID_QUERY"


class InvalidPlacementError(InventoryValidationError):
    """Raised when an unsolved hostname is not a single machine placeholder."""

    default_message = "Invalid service placement"
    default_error_code = "INVALID_PLACEMENT"


# Resolution Errors
class ResolutionError(InventoryError):
    default_message = "Placeholder resolution failed"
    default_error_code = "RESOLUTION_ERROR"


class UnresolvedPlaceholderError(ResolutionError):
    default_message = "Unresolved placeholder"
    default_error_code = "UNRESOLVED_PLACEHOLDER"

    def __init__(self, value: str, tokens: list[str], **kwargs: Any) -> None:
        self.value = value
        self.tokens = tokens
        super().__init__(
            f"Unresolved placeholder(s) {', '.join(tokens)} in '{value}'",
            details={"value": value, "tokens": tokens},
            **kwargs,
        )


class PlaceholderCycleError(ResolutionError):
    default_message = "Placeholder substitution does not converge"
    default_error_code = "PLACEHOLDER_CYCLE"


class RepositoryResolutionError(ResolutionError):
    default_message = "Unable to resolve repository version"
    default_error_code = "REPOSITORY_RESOLUTION_ERROR"
