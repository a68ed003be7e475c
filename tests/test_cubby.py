"""Tests for the Cubby sync facade and CubbyAsync wiring."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cubby import (
    Cubby,
    CubbyAsync,
    CubbySettings,
    EventType,
    ItemKind,
    NotFoundError,
    PathEscapeError,
    StorageEvent,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def cubby(tmp_path: Path) -> Iterator[Cubby]:
    c = Cubby(storage_dir=tmp_path / "files")
    yield c
    c.close()


class TestConstruction:
    def test_overrides_build_settings(self, tmp_path: Path):
        with Cubby(storage_dir=tmp_path / "s", default_folders=["Inbox"]) as c:
            assert c.settings.storage_dir == (tmp_path / "s").resolve()
            assert c.settings.default_folders == ["Inbox"]

    def test_settings_with_overrides(self, tmp_path: Path):
        base = CubbySettings(storage_dir=tmp_path / "s", max_upload_size=10)
        with Cubby(base, max_upload_size=20) as c:
            assert c.settings.max_upload_size == 20
            assert c.settings.storage_dir == base.storage_dir

    def test_serialize_enables_locks(self, tmp_path: Path):
        c = CubbyAsync(storage_dir=tmp_path, serialize_owner_writes=True)
        assert c.locks.enabled is True

    def test_closed_raises(self, tmp_path: Path):
        c = Cubby(storage_dir=tmp_path)
        c.close()
        c.close()
        with pytest.raises(RuntimeError, match="closed"):
            c.list_dir("u1", "/")


class TestSyncFacade:
    def test_full_lifecycle(self, cubby: Cubby):
        assert cubby.provision("u1").created is True

        folder = cubby.create_folder("u1", "/", "Projects")
        assert folder.success is True

        up = cubby.save_upload("u1", "/Projects", "plan.md", b"# plan")
        assert up.item.size == 6

        listing = cubby.list_dir("u1", "/")
        assert [i.name for i in listing.items] == ["Documents", "Downloads", "Images", "Projects"]

        assert cubby.rename("u1", "/Projects/plan.md", "roadmap.md").success
        assert cubby.copy("u1", "/Projects", "/Projects-copy").success
        assert cubby.move("u1", "/Projects-copy", "/Documents/Projects").success

        found = cubby.search("u1", "ROADMAP")
        assert [i.logical_path for i in found.items] == [
            "/Documents/Projects/roadmap.md",
            "/Projects/roadmap.md",
        ]

        assert cubby.read_for_download("u1", "/Projects/roadmap.md").content == b"# plan"
        assert cubby.info("u1", "/Projects").item.kind is ItemKind.FOLDER
        assert cubby.share("u1", "/Projects", "u2").success
        assert len(cubby.list_all("u1").items) == 7

        assert cubby.delete("u1", "/Projects").success
        gone = cubby.info("u1", "/Projects")
        assert isinstance(gone.error, NotFoundError)

        assert cubby.deprovision("u1").success
        assert not (cubby.settings.storage_dir / "u1").exists()

    def test_owners_are_isolated(self, cubby: Cubby):
        cubby.save_upload("alice", "/", "secret.txt", b"alice only")

        assert cubby.search("bob", "secret").items == []
        assert "secret.txt" not in [i.name for i in cubby.list_dir("bob", "/").items]

        stolen = cubby.read_for_download("bob", "/../alice/secret.txt")
        assert stolen.success is False
        assert isinstance(stolen.error, PathEscapeError)

    def test_account_events_drive_provisioning(self, cubby: Cubby):
        root = cubby.settings.storage_dir / "u9"
        cubby.user_created("u9")
        assert (root / "Documents").is_dir()
        cubby.user_deleted("u9")
        assert not root.exists()

    def test_envelope(self, cubby: Cubby):
        missing = cubby.read_for_download("u1", "/nope.txt")
        assert missing.to_envelope() == {
            "success": False,
            "error": "File not found: /nope.txt",
        }


class TestAsyncFacade:
    async def test_operations_emit_events(self, tmp_path: Path):
        seen: list[StorageEvent] = []

        async def _on(event: StorageEvent) -> None:
            seen.append(event)

        async with CubbyAsync(storage_dir=tmp_path) as c:
            for et in (EventType.USER_PROVISIONED, EventType.ITEM_CREATED, EventType.ITEM_DELETED):
                c.events.register(et, _on)

            await c.user_created("u1")
            await c.create_folder("u1", "/", "X")
            await c.delete("u1", "/X")

        assert [e.event_type for e in seen] == [
            EventType.USER_PROVISIONED,
            EventType.ITEM_CREATED,
            EventType.ITEM_DELETED,
        ]

    async def test_upload_limit_from_settings(self, tmp_path: Path):
        c = CubbyAsync(storage_dir=tmp_path, max_upload_size=3)
        result = await c.save_upload("u1", "/", "a.bin", b"four")
        assert result.success is False
        assert "too large" in result.message
