"""UserStorageProvisioner — creates and destroys per-owner storage roots."""

from __future__ import annotations

import asyncio
import logging
import shutil
from typing import TYPE_CHECKING

from cubby.events import EventType, StorageEvent

from .exceptions import CubbyError, StorageIOError
from .locks import OwnerLocks
from .types import ProvisionResult
from .utils import validate_name

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from cubby.events import EventBus

    from .resolver import PathResolver

logger = logging.getLogger(__name__)

DEFAULT_FOLDERS = ("Documents", "Images", "Downloads")


class UserStorageProvisioner:
    """Owns the lifecycle of ``{storage_dir}/{owner_id}``.

    ``provision`` is idempotent: the root and its default folders are
    created only when the root itself is absent, so a user who deletes
    ``Images`` does not get it back on the next access.
    ``deprovision`` treats an already-missing root as success.
    """

    def __init__(
        self,
        resolver: PathResolver,
        *,
        default_folders: Iterable[str] = DEFAULT_FOLDERS,
        event_bus: EventBus | None = None,
        locks: OwnerLocks | None = None,
    ) -> None:
        self.resolver = resolver
        self.default_folders = tuple(default_folders)
        self._event_bus = event_bus
        self._locks = locks or OwnerLocks()

        for name in self.default_folders:
            valid, error = validate_name(name)
            if not valid:
                raise ValueError(f"Invalid default folder {name!r}: {error}")

    # ------------------------------------------------------------------
    # Sync primitives (run on worker threads)
    # ------------------------------------------------------------------

    def ensure_root(self, owner_id: str) -> tuple[Path, bool]:
        """Create the owner's root and default folders if absent.

        Returns ``(root, created)``.  Raises ``OSError`` on disk failures.
        """
        root = self.resolver.root_for(owner_id)
        if root.is_dir():
            return root, False

        root.parent.mkdir(parents=True, exist_ok=True)
        try:
            root.mkdir()
        except FileExistsError:
            # Another request created it between the probe and mkdir
            if root.is_dir():
                return root, False
            raise

        for name in self.default_folders:
            (root / name).mkdir(exist_ok=True)

        logger.info("Provisioned storage root for %s at %s", owner_id, root)
        return root, True

    @staticmethod
    def _remove_root(root: Path) -> bool:
        if root.is_symlink():
            root.unlink()
            return True
        try:
            shutil.rmtree(root)
        except FileNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def provision(self, owner_id: str) -> ProvisionResult:
        """Create the owner's storage root if it does not exist."""
        try:
            root, created = await asyncio.to_thread(self.ensure_root, owner_id)
        except CubbyError as e:
            return ProvisionResult(success=False, message=str(e), error=e, owner_id=owner_id)
        except OSError as e:
            logger.error("Failed to provision storage for %s", owner_id, exc_info=True)
            return ProvisionResult(
                success=False,
                message="Failed to provision storage",
                error=StorageIOError(f"Failed to provision storage: {e}"),
                owner_id=owner_id,
            )

        if created and self._event_bus is not None:
            await self._event_bus.emit(
                StorageEvent(event_type=EventType.USER_PROVISIONED, owner_id=owner_id, path="/")
            )

        return ProvisionResult(
            success=True,
            message=(
                f"Provisioned storage for {owner_id}"
                if created
                else f"Storage already provisioned for {owner_id}"
            ),
            owner_id=owner_id,
            root=root,
            created=created,
        )

    async def deprovision(self, owner_id: str) -> ProvisionResult:
        """Recursively delete the owner's storage root. Missing root is success."""
        try:
            root = self.resolver.root_for(owner_id)
        except CubbyError as e:
            return ProvisionResult(success=False, message=str(e), error=e, owner_id=owner_id)

        try:
            async with self._locks.hold(owner_id):
                removed = await asyncio.to_thread(self._remove_root, root)
        except OSError as e:
            logger.error("Failed to deprovision storage for %s", owner_id, exc_info=True)
            return ProvisionResult(
                success=False,
                message="Failed to remove storage",
                error=StorageIOError(f"Failed to remove storage: {e}"),
                owner_id=owner_id,
                root=root,
            )
        self._locks.discard(owner_id)

        if removed:
            logger.info("Removed storage root for %s", owner_id)
        if self._event_bus is not None:
            await self._event_bus.emit(
                StorageEvent(event_type=EventType.USER_DEPROVISIONED, owner_id=owner_id, path="/")
            )

        return ProvisionResult(
            success=True,
            message=(
                f"Removed storage for {owner_id}"
                if removed
                else f"No storage to remove for {owner_id}"
            ),
            owner_id=owner_id,
            root=root,
        )

    # ------------------------------------------------------------------
    # Account directory hook
    # ------------------------------------------------------------------

    async def on_account_event(self, event: StorageEvent) -> None:
        """EventBus handler for ``USER_CREATED`` / ``USER_DELETED``."""
        if event.event_type is EventType.USER_CREATED:
            result = await self.provision(event.owner_id)
        elif event.event_type is EventType.USER_DELETED:
            result = await self.deprovision(event.owner_id)
        else:
            return
        if not result.success:
            logger.warning(
                "%s for %s did not complete: %s",
                event.event_type.value,
                event.owner_id,
                result.message,
            )

    def register(self, event_bus: EventBus) -> None:
        """Subscribe to account lifecycle events on *event_bus*."""
        event_bus.register(EventType.USER_CREATED, self.on_account_event)
        event_bus.register(EventType.USER_DELETED, self.on_account_event)
