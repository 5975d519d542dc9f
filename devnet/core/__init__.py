"""Core infrastructure components."""

from devnet.core.config import Settings, get_settings
from devnet.core.exceptions import InventoryError
from devnet.core.logging import (
    get_inventory_id,
    get_logger,
    set_inventory_id,
    setup_logging,
)

__all__ = [
    "InventoryError",
    "Settings",
    "get_inventory_id",
    "get_logger",
    "get_settings",
    "set_inventory_id",
    "setup_logging",
]
