"""Tests for per-owner write serialisation."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from cubby.fs.locks import OwnerLocks
from cubby.fs.operations import StorageOperations

if TYPE_CHECKING:
    from cubby.fs.resolver import PathResolver


class TestOwnerLocks:
    async def test_disabled_is_noop(self) -> None:
        locks = OwnerLocks()
        async with locks.hold("u1"):
            assert locks.is_locked("u1") is False

    async def test_enabled_holds(self) -> None:
        locks = OwnerLocks(enabled=True)
        async with locks.hold("u1"):
            assert locks.is_locked("u1") is True
            assert locks.is_locked("u2") is False
        assert locks.is_locked("u1") is False

    async def test_serialises_same_owner(self) -> None:
        locks = OwnerLocks(enabled=True)
        order: list[str] = []

        async def worker(tag: str) -> None:
            async with locks.hold("u1"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                order.append(f"{tag}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_different_owners_interleave(self) -> None:
        locks = OwnerLocks(enabled=True)
        order: list[str] = []

        async def worker(owner: str) -> None:
            async with locks.hold(owner):
                order.append(f"{owner}-in")
                await asyncio.sleep(0.01)
                order.append(f"{owner}-out")

        await asyncio.gather(worker("u1"), worker("u2"))
        assert order[:2] == ["u1-in", "u2-in"]

    async def test_discard(self) -> None:
        locks = OwnerLocks(enabled=True)
        async with locks.hold("u1"):
            locks.discard("u1")
            assert locks.is_locked("u1") is True
        locks.discard("u1")
        assert locks.is_locked("u1") is False


class TestSerialisedOperations:
    async def test_concurrent_uploads_all_land(self, resolver: PathResolver) -> None:
        ops = StorageOperations(resolver, locks=OwnerLocks(enabled=True))
        results = await asyncio.gather(
            *(ops.save_upload("u1", "/", "a.txt", str(i).encode()) for i in range(10))
        )
        assert all(r.success for r in results)
        assert len({r.item.logical_path for r in results}) == 10
        assert sum(not r.renamed for r in results) == 1

    async def test_concurrent_folder_creation(self, resolver: PathResolver) -> None:
        ops = StorageOperations(resolver, locks=OwnerLocks(enabled=True))
        results = await asyncio.gather(*(ops.create_folder("u1", "/", "X") for _ in range(5)))
        assert all(r.success for r in results)
        assert sum(r.message.startswith("Created") for r in results) == 1
