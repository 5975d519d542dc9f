"""Pytest configuration and shared fixtures.

This module provides shared test fixtures for all inventory tests:
- machines: Two-machine set (master on loopback, node1 on a LAN address)
- placeholders: Global placeholder table of that machine set
- resolver: Repository resolver pinned to the default versions (no I/O)
- inventory: Empty inventory rooted in a temporary directory

Hypothesis profiles: dev (default), ci (more examples, no deadline), fast.

Registration helpers and config factories live in devnet/tests/factories.py.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from hypothesis import HealthCheck, settings

from devnet.services.inventory import Inventory
from devnet.services.placement import Machine, build_placeholders
from devnet.services.repository import StaticRepositoryResolver

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

# Hypothesis profiles, selected with HYPOTHESIS_PROFILE (dev, ci, fast)
_HEALTH_CHECKS = [HealthCheck.function_scoped_fixture]
settings.register_profile("dev", max_examples=100, suppress_health_check=_HEALTH_CHECKS)
settings.register_profile(
    "ci", max_examples=300, deadline=None, suppress_health_check=_HEALTH_CHECKS
)
settings.register_profile("fast", max_examples=20, suppress_health_check=_HEALTH_CHECKS)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def reset_settings_cache(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None]:
    """Reset the settings cache and keep logs and env files out of the repo."""
    from devnet.core.config import get_settings

    for var in ("DEVNET_ROOT_DIR", "DEVNET_DEFAULT_CHAIN", "DEVNET_GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DEVNET_ENV_PATH", str(tmp_path / "missing.env"))
    monkeypatch.setenv("DEVNET_LOG_FILE_PATH", str(tmp_path / "logs" / "devnet.log"))

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def machines() -> list[Machine]:
    return [
        Machine(name="master", network_identity="127.0.0.1"),
        Machine(name="node1", network_identity="10.0.0.2"),
    ]


@pytest.fixture
def placeholders(machines: list[Machine]) -> dict[str, str]:
    return build_placeholders(machines)


@pytest.fixture
def resolver() -> StaticRepositoryResolver:
    return StaticRepositoryResolver()


@pytest.fixture
def inventory(
    tmp_path: Path,
    machines: list[Machine],
    placeholders: dict[str, str],
    resolver: StaticRepositoryResolver,
) -> Inventory:
    """Empty inventory whose default chain is 1337.standard."""
    return Inventory(
        str(tmp_path / "devnet"),
        "1337.standard",
        machines,
        placeholders,
        resolver,
        inventory_id="test",
    )
