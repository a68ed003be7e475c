"""Shared fixtures for Cubby tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cubby.events import EventBus
from cubby.fs.operations import StorageOperations
from cubby.fs.provisioner import UserStorageProvisioner
from cubby.fs.resolver import PathResolver

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Parent directory holding every owner's storage root."""
    d = tmp_path / "files"
    d.mkdir()
    return d


@pytest.fixture
def resolver(storage_dir: Path) -> PathResolver:
    return PathResolver(storage_dir)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def provisioner(resolver: PathResolver, event_bus: EventBus) -> UserStorageProvisioner:
    return UserStorageProvisioner(resolver, event_bus=event_bus)


@pytest.fixture
def ops(
    resolver: PathResolver,
    provisioner: UserStorageProvisioner,
    event_bus: EventBus,
) -> StorageOperations:
    """StorageOperations over a temporary storage directory."""
    return StorageOperations(resolver, provisioner, event_bus=event_bus)
