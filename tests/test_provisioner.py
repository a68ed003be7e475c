"""Tests for UserStorageProvisioner."""

from __future__ import annotations

import errno
import shutil
from typing import TYPE_CHECKING

import pytest

from cubby.events import EventBus, EventType, StorageEvent
from cubby.fs.exceptions import InvalidOwnerError, StorageIOError
from cubby.fs.locks import OwnerLocks
from cubby.fs.provisioner import DEFAULT_FOLDERS, UserStorageProvisioner

if TYPE_CHECKING:
    from pathlib import Path

    from cubby.fs.resolver import PathResolver


def _children(path: Path) -> list[str]:
    return sorted(p.name for p in path.iterdir())


class TestProvision:
    async def test_creates_root_with_default_folders(
        self, provisioner: UserStorageProvisioner, storage_dir: Path
    ):
        result = await provisioner.provision("u1")
        assert result.success is True
        assert result.created is True
        assert result.root == storage_dir / "u1"
        assert _children(storage_dir / "u1") == sorted(DEFAULT_FOLDERS)

    async def test_idempotent(self, provisioner: UserStorageProvisioner, storage_dir: Path):
        await provisioner.provision("u1")
        (storage_dir / "u1" / "Documents" / "keep.txt").write_text("x")

        again = await provisioner.provision("u1")
        assert again.success is True
        assert again.created is False
        assert (storage_dir / "u1" / "Documents" / "keep.txt").read_text() == "x"

    async def test_deleted_default_not_recreated(
        self, provisioner: UserStorageProvisioner, storage_dir: Path
    ):
        await provisioner.provision("u1")
        (storage_dir / "u1" / "Images").rmdir()
        await provisioner.provision("u1")
        assert not (storage_dir / "u1" / "Images").exists()

    async def test_custom_default_folders(self, resolver: PathResolver, storage_dir: Path):
        custom = UserStorageProvisioner(resolver, default_folders=["Inbox", "Archive"])
        await custom.provision("u1")
        assert _children(storage_dir / "u1") == ["Archive", "Inbox"]

    async def test_no_default_folders(self, resolver: PathResolver, storage_dir: Path):
        bare = UserStorageProvisioner(resolver, default_folders=())
        await bare.provision("u1")
        assert _children(storage_dir / "u1") == []

    def test_invalid_default_folder(self, resolver: PathResolver):
        with pytest.raises(ValueError, match="Invalid default folder"):
            UserStorageProvisioner(resolver, default_folders=["ok", "bad/name"])

    @pytest.mark.parametrize(
        "owner_id",
        [
            pytest.param("", id="empty"),
            pytest.param("../escape", id="dotdot"),
            pytest.param("a/b", id="slash"),
        ],
    )
    async def test_invalid_owner(
        self, provisioner: UserStorageProvisioner, storage_dir: Path, owner_id: str
    ):
        result = await provisioner.provision(owner_id)
        assert result.success is False
        assert isinstance(result.error, InvalidOwnerError)
        assert list(storage_dir.iterdir()) == []

    async def test_creates_missing_storage_dir(self, tmp_path: Path):
        from cubby.fs.resolver import PathResolver

        nested = tmp_path / "not" / "yet"
        result = await UserStorageProvisioner(PathResolver(nested)).provision("u1")
        assert result.success is True
        assert (nested / "u1").is_dir()

    async def test_disk_failure(
        self,
        provisioner: UserStorageProvisioner,
        monkeypatch: pytest.MonkeyPatch,
    ):
        def _boom(owner_id: str):
            raise PermissionError(errno.EACCES, "denied")

        monkeypatch.setattr(provisioner, "ensure_root", _boom)
        result = await provisioner.provision("u1")
        assert result.success is False
        assert result.message == "Failed to provision storage"
        assert isinstance(result.error, StorageIOError)

    async def test_emits_only_when_created(
        self, provisioner: UserStorageProvisioner, event_bus: EventBus
    ):
        seen: list[StorageEvent] = []

        async def _on(event: StorageEvent) -> None:
            seen.append(event)

        event_bus.register(EventType.USER_PROVISIONED, _on)
        await provisioner.provision("u1")
        await provisioner.provision("u1")
        assert seen == [StorageEvent(EventType.USER_PROVISIONED, "u1", "/")]


class TestDeprovision:
    async def test_removes_everything(
        self, provisioner: UserStorageProvisioner, storage_dir: Path
    ):
        await provisioner.provision("u1")
        (storage_dir / "u1" / "Documents" / "a.txt").write_text("x")

        result = await provisioner.deprovision("u1")
        assert result.success is True
        assert not (storage_dir / "u1").exists()

    async def test_missing_root_is_success(self, provisioner: UserStorageProvisioner):
        result = await provisioner.deprovision("ghost")
        assert result.success is True
        assert "No storage" in result.message

    async def test_other_owners_untouched(
        self, provisioner: UserStorageProvisioner, storage_dir: Path
    ):
        await provisioner.provision("u1")
        await provisioner.provision("u2")
        await provisioner.deprovision("u1")
        assert (storage_dir / "u2").is_dir()

    async def test_invalid_owner(self, provisioner: UserStorageProvisioner, storage_dir: Path):
        result = await provisioner.deprovision("..")
        assert result.success is False
        assert isinstance(result.error, InvalidOwnerError)
        assert storage_dir.is_dir()

    async def test_disk_failure(
        self,
        provisioner: UserStorageProvisioner,
        monkeypatch: pytest.MonkeyPatch,
    ):
        await provisioner.provision("u1")

        def _boom(path, *args, **kwargs):
            raise PermissionError(errno.EACCES, "denied")

        monkeypatch.setattr(shutil, "rmtree", _boom)
        result = await provisioner.deprovision("u1")
        assert result.success is False
        assert isinstance(result.error, StorageIOError)

    async def test_reprovision_after_deprovision(
        self, provisioner: UserStorageProvisioner, storage_dir: Path
    ):
        await provisioner.provision("u1")
        await provisioner.deprovision("u1")
        result = await provisioner.provision("u1")
        assert result.created is True
        assert _children(storage_dir / "u1") == sorted(DEFAULT_FOLDERS)

    async def test_lock_discarded(self, resolver: PathResolver):
        locks = OwnerLocks(enabled=True)
        prov = UserStorageProvisioner(resolver, locks=locks)
        await prov.provision("u1")
        async with locks.hold("u1"):
            pass
        await prov.deprovision("u1")
        assert "u1" not in locks._locks


class TestAccountEvents:
    async def test_user_created_provisions(
        self, provisioner: UserStorageProvisioner, event_bus: EventBus, storage_dir: Path
    ):
        provisioner.register(event_bus)
        await event_bus.emit(StorageEvent(EventType.USER_CREATED, "u1"))
        assert (storage_dir / "u1" / "Documents").is_dir()

    async def test_user_deleted_deprovisions(
        self, provisioner: UserStorageProvisioner, event_bus: EventBus, storage_dir: Path
    ):
        provisioner.register(event_bus)
        await provisioner.provision("u1")
        await event_bus.emit(StorageEvent(EventType.USER_DELETED, "u1"))
        assert not (storage_dir / "u1").exists()

    async def test_unrelated_events_ignored(
        self, provisioner: UserStorageProvisioner, storage_dir: Path
    ):
        await provisioner.on_account_event(StorageEvent(EventType.ITEM_CREATED, "u1", "/x"))
        assert list(storage_dir.iterdir()) == []

    async def test_failure_logged_not_raised(
        self, provisioner: UserStorageProvisioner, event_bus: EventBus, caplog
    ):
        provisioner.register(event_bus)
        await event_bus.emit(StorageEvent(EventType.USER_CREATED, "../evil"))
        assert any("did not complete" in r.getMessage() for r in caplog.records)
