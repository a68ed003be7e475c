"""CubbyAsync — async facade wiring settings, resolver, provisioner, and storage."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cubby.config import CubbySettings, get_settings
from cubby.events import EventBus, EventType, StorageEvent
from cubby.fs.locks import OwnerLocks
from cubby.fs.operations import StorageOperations
from cubby.fs.provisioner import UserStorageProvisioner
from cubby.fs.resolver import PathResolver

if TYPE_CHECKING:
    from cubby.fs.types import (
        CopyResult,
        DeleteResult,
        DownloadResult,
        FolderResult,
        InfoResult,
        ListResult,
        MoveResult,
        ProvisionResult,
        SearchResult,
        ShareResult,
        UploadResult,
    )

logger = logging.getLogger(__name__)


class CubbyAsync:
    """Async entry point for the presentation and account collaborators.

    Every call takes the owner id supplied by the session layer; the
    facade trusts it and scopes all paths to that owner's root.

    Usage::

        cubby = CubbyAsync(storage_dir="/srv/cubby")
        await cubby.provision("u-42")
        await cubby.save_upload("u-42", "/Documents", "report.pdf", data)
        listing = await cubby.list_dir("u-42", "/Documents")
    """

    def __init__(
        self,
        settings: CubbySettings | None = None,
        *,
        event_bus: EventBus | None = None,
        **overrides: Any,
    ) -> None:
        if settings is None:
            settings = CubbySettings(**overrides) if overrides else get_settings()
        elif overrides:
            settings = CubbySettings(**{**settings.model_dump(), **overrides})
        self.settings = settings

        self.events = event_bus or EventBus()
        self.locks = OwnerLocks(enabled=settings.serialize_owner_writes)
        self.resolver = PathResolver(
            settings.storage_dir, follow_symlinks=settings.follow_symlinks
        )
        self.provisioner = UserStorageProvisioner(
            self.resolver,
            default_folders=settings.default_folders,
            event_bus=self.events,
            locks=self.locks,
        )
        self.provisioner.register(self.events)
        self.storage = StorageOperations(
            self.resolver,
            self.provisioner,
            max_upload_size=settings.max_upload_size,
            event_bus=self.events,
            locks=self.locks,
        )
        logger.debug("Cubby storage at %s", settings.storage_dir)

    async def __aenter__(self) -> CubbyAsync:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        pass

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    async def provision(self, owner_id: str) -> ProvisionResult:
        """Create the owner's storage root and default folders if absent."""
        return await self.provisioner.provision(owner_id)

    async def deprovision(self, owner_id: str) -> ProvisionResult:
        """Delete the owner's storage root."""
        return await self.provisioner.deprovision(owner_id)

    async def user_created(self, owner_id: str) -> None:
        """Publish ``USER_CREATED`` for the account directory collaborator."""
        await self.events.emit(StorageEvent(event_type=EventType.USER_CREATED, owner_id=owner_id))

    async def user_deleted(self, owner_id: str) -> None:
        """Publish ``USER_DELETED`` for the account directory collaborator."""
        await self.events.emit(StorageEvent(event_type=EventType.USER_DELETED, owner_id=owner_id))

    # ------------------------------------------------------------------
    # Storage operations
    # ------------------------------------------------------------------

    async def list_dir(self, owner_id: str, dir_path: str = "/") -> ListResult:
        return await self.storage.list_dir(owner_id, dir_path)

    async def search(self, owner_id: str, query: str) -> SearchResult:
        return await self.storage.search(owner_id, query)

    async def list_all(self, owner_id: str) -> SearchResult:
        return await self.storage.list_all(owner_id)

    async def info(self, owner_id: str, path: str) -> InfoResult:
        return await self.storage.info(owner_id, path)

    async def create_folder(self, owner_id: str, dir_path: str, name: str) -> FolderResult:
        return await self.storage.create_folder(owner_id, dir_path, name)

    async def delete(self, owner_id: str, item_path: str) -> DeleteResult:
        return await self.storage.delete(owner_id, item_path)

    async def rename(self, owner_id: str, item_path: str, new_name: str) -> MoveResult:
        return await self.storage.rename(owner_id, item_path, new_name)

    async def copy(self, owner_id: str, src_path: str, dst_path: str) -> CopyResult:
        return await self.storage.copy(owner_id, src_path, dst_path)

    async def move(self, owner_id: str, src_path: str, dst_path: str) -> MoveResult:
        return await self.storage.move(owner_id, src_path, dst_path)

    async def save_upload(
        self, owner_id: str, dir_path: str, name: str, content: bytes
    ) -> UploadResult:
        return await self.storage.save_upload(owner_id, dir_path, name, content)

    async def read_for_download(self, owner_id: str, file_path: str) -> DownloadResult:
        return await self.storage.read_for_download(owner_id, file_path)

    async def share(self, owner_id: str, path: str, target: str) -> ShareResult:
        return await self.storage.share(owner_id, path, target)
