"""StorageOperations — owner-scoped file operations on local disk.

Every public method resolves all of its path arguments through the
``PathResolver`` before touching the disk, so a rejected path never
leaves a partial mutation behind.  Blocking filesystem work runs on the
default thread pool via ``asyncio.to_thread``.

Failures are returned, not raised: ``CubbyError`` subclasses become
typed failures as-is, unexpected ``OSError``s are logged with context
and wrapped in ``StorageIOError`` behind a generic message.
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
import os
import shutil
import stat as stat_module
import tempfile
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from cubby.events import EventType, StorageEvent

from .exceptions import (
    CubbyError,
    InvalidNameError,
    InvalidPathError,
    NameConflictError,
    NotAFileError,
    NotAFolderError,
    NotFoundError,
    StorageIOError,
    UploadTooLargeError,
)
from .locks import OwnerLocks
from .metadata import build_item, stat_item
from .provisioner import UserStorageProvisioner
from .types import (
    CopyResult,
    DeleteResult,
    DownloadResult,
    FolderResult,
    InfoResult,
    Item,
    ItemKind,
    ListResult,
    MoveResult,
    OperationResult,
    SearchResult,
    ShareResult,
    UploadResult,
)
from .utils import (
    TEMP_PREFIX,
    TEMP_SUFFIX,
    deconflict_name,
    is_descendant,
    is_temp_name,
    join_path,
    split_path,
    validate_name,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from cubby.events import EventBus

    from .resolver import PathResolver

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_SIZE = 100 * 1024 * 1024  # 100MB

_R = TypeVar("_R", bound=OperationResult)

# (physical path, logical path, stat) of one directory entry
_Entry = tuple[Path, str, os.stat_result]


def _ignore_symlinks(directory: str, names: list[str]) -> set[str]:
    """``shutil.copytree`` ignore hook: never copy symlinks."""
    return {n for n in names if os.path.islink(os.path.join(directory, n))}


def _require_name(name: str) -> None:
    valid, error = validate_name(name)
    if not valid:
        raise InvalidNameError(error)


def _require_exists(physical: Path, logical: str) -> os.stat_result:
    try:
        return physical.lstat()
    except FileNotFoundError:
        raise NotFoundError(f"Item not found: {logical}") from None


def _same_entry(a: Path, b: Path) -> bool:
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


def _discard(path: Path) -> None:
    with contextlib.suppress(OSError):
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()


def _remove_entry(physical: Path) -> ItemKind:
    """Remove a file, symlink, or folder tree. Symlinks are never followed."""
    st = physical.lstat()
    if stat_module.S_ISDIR(st.st_mode):
        shutil.rmtree(physical)
        return ItemKind.FOLDER
    physical.unlink()
    return ItemKind.FILE


def _copy_entry(src: Path, dst: Path) -> None:
    """Copy *src* to a staged sibling of *dst*, then rename it into place.

    Folders are copied recursively with symlinks skipped; files keep
    their timestamps (``copy2``).  A failed copy leaves nothing at *dst*.
    """
    parent = dst.parent
    if src.is_dir():
        staging = Path(tempfile.mkdtemp(dir=parent, prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX))
        try:
            payload = staging / "payload"
            shutil.copytree(src, payload, ignore=_ignore_symlinks)
            payload.rename(dst)
        finally:
            _discard(staging)
        return

    fd, tmp_name = tempfile.mkstemp(dir=parent, prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX)
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        shutil.copy2(src, tmp)
        tmp.replace(dst)
    except BaseException:
        _discard(tmp)
        raise


def _ensure_parent(physical: Path, logical: str) -> None:
    parent = physical.parent
    if parent.exists() and not parent.is_dir():
        raise NotAFolderError(f"Parent is not a folder: {split_path(logical)[0]}")
    parent.mkdir(parents=True, exist_ok=True)


class StorageOperations:
    """List, search, create, rename, copy, move, delete, upload, download.

    All methods take the owner id first; the owner's storage root is
    created on demand (self-healing) by the read paths and by operations
    that need a target folder to exist.
    """

    def __init__(
        self,
        resolver: PathResolver,
        provisioner: UserStorageProvisioner | None = None,
        *,
        max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
        event_bus: EventBus | None = None,
        locks: OwnerLocks | None = None,
    ) -> None:
        self.resolver = resolver
        self._event_bus = event_bus
        self._locks = locks or OwnerLocks()
        self.provisioner = provisioner or UserStorageProvisioner(
            resolver, event_bus=event_bus, locks=self._locks
        )
        self.max_upload_size = max_upload_size

        self._stamp_lock = threading.Lock()
        self._last_stamp = 0

    # =========================================================================
    # Internals
    # =========================================================================

    def _next_stamp(self) -> int:
        """Upload instant in milliseconds, strictly increasing per process."""
        with self._stamp_lock:
            stamp = max(int(time.time() * 1000), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def _fail(
        self,
        result_cls: type[_R],
        action: str,
        owner_id: str,
        path: str,
        exc: Exception,
        /,
        **fields: Any,
    ) -> _R:
        """Turn an exception into a failed result of *result_cls*."""
        if isinstance(exc, CubbyError):
            logger.debug("%s rejected for %s:%s: %s", action, owner_id, path, exc)
            return result_cls(success=False, message=str(exc), error=exc, **fields)
        logger.error("Failed to %s for %s:%s", action, owner_id, path, exc_info=exc)
        return result_cls(
            success=False,
            message=f"Failed to {action}",
            error=StorageIOError(f"Failed to {action}: {exc}"),
            **fields,
        )

    async def _emit(
        self,
        event_type: EventType,
        owner_id: str,
        path: str,
        old_path: str | None = None,
    ) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.emit(
            StorageEvent(event_type=event_type, owner_id=owner_id, path=path, old_path=old_path)
        )

    def _symlink_allowed(self, owner_id: str, physical: Path) -> bool:
        return self.resolver.follow_symlinks and self.resolver.is_contained(owner_id, physical)

    def _scan_dir(self, owner_id: str, directory: Path, logical: str) -> list[_Entry]:
        """Immediate children of *directory*, sorted by name.

        Raises ``OSError`` if the directory itself cannot be read;
        entries that vanish or cannot be stat'ed are skipped.
        """
        entries: list[_Entry] = []
        with os.scandir(directory) as it:
            for entry in it:
                if is_temp_name(entry.name):
                    continue
                entry_path = Path(entry.path)
                try:
                    if entry.is_symlink() and not self._symlink_allowed(owner_id, entry_path):
                        logger.debug("Skipping symlink %s:%s/%s", owner_id, logical, entry.name)
                        continue
                    st = entry.stat()
                except OSError:
                    continue
                entries.append((entry_path, join_path(logical, entry.name), st))
        entries.sort(key=lambda e: e[0].name.lower())
        return entries

    def _walk(self, owner_id: str, match: Callable[[str], bool]) -> list[Item]:
        """Depth-first, pre-order walk of the owner's whole root.

        Iterative with an explicit stack; directories already visited
        (by device and inode) are not entered again, which breaks
        symlink cycles when symlinks are followed.  A subtree that
        cannot be read is logged and skipped.
        """
        root, _ = self.provisioner.ensure_root(owner_id)
        root_st = root.stat()
        visited = {(root_st.st_dev, root_st.st_ino)}

        results: list[Item] = []
        stack: list[_Entry] = list(reversed(self._scan_dir(owner_id, root, "/")))
        while stack:
            physical, logical, st = stack.pop()
            if match(physical.name):
                results.append(build_item(owner_id, logical, st))

            if not stat_module.S_ISDIR(st.st_mode):
                continue
            key = (st.st_dev, st.st_ino)
            if key in visited:
                logger.debug("Skipping already visited folder %s:%s", owner_id, logical)
                continue
            visited.add(key)

            try:
                children = self._scan_dir(owner_id, physical, logical)
            except OSError:
                logger.warning(
                    "Skipping unreadable folder %s:%s", owner_id, logical, exc_info=True
                )
                continue
            stack.extend(reversed(children))

        return results

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def list_dir(self, owner_id: str, dir_path: str = "/") -> ListResult:
        """List immediate children of *dir_path*, creating it if missing."""
        try:
            logical = self.resolver.normalize(dir_path)
            directory = self.resolver.resolve(owner_id, logical)

            def _list() -> list[Item]:
                self.provisioner.ensure_root(owner_id)
                if directory.exists() and not directory.is_dir():
                    raise NotAFolderError(f"Not a folder: {logical}")
                directory.mkdir(parents=True, exist_ok=True)
                return [
                    build_item(owner_id, child_logical, st)
                    for _, child_logical, st in self._scan_dir(owner_id, directory, logical)
                ]

            items = await asyncio.to_thread(_list)
        except (CubbyError, OSError) as e:
            return self._fail(ListResult, "load items", owner_id, dir_path, e, path=dir_path)

        items.sort(key=lambda x: (not x.is_folder, x.name.lower()))
        return ListResult(
            success=True,
            message=f"Listed {len(items)} items in {logical}",
            items=items,
            path=logical,
        )

    async def search(self, owner_id: str, query: str) -> SearchResult:
        """Find every entry whose name contains *query*, case-insensitively."""
        if not query:
            return SearchResult(success=True, message="Empty query", query="")

        needle = query.lower()
        try:
            self.resolver.root_for(owner_id)
            items = await asyncio.to_thread(self._walk, owner_id, lambda n: needle in n.lower())
        except (CubbyError, OSError) as e:
            return self._fail(SearchResult, "search items", owner_id, "/", e, query=query)

        return SearchResult(
            success=True,
            message=f"Found {len(items)} items matching {query!r}",
            items=items,
            query=query,
        )

    async def list_all(self, owner_id: str) -> SearchResult:
        """Every file and folder in the owner's root, depth-first."""
        try:
            self.resolver.root_for(owner_id)
            items = await asyncio.to_thread(self._walk, owner_id, lambda _: True)
        except (CubbyError, OSError) as e:
            return self._fail(SearchResult, "list user files", owner_id, "/", e)

        return SearchResult(success=True, message=f"Found {len(items)} items", items=items)

    async def info(self, owner_id: str, path: str) -> InfoResult:
        """Metadata of a single file or folder."""
        try:
            logical = self.resolver.normalize(path)
            if logical == "/":
                raise InvalidPathError("The storage root has no item metadata")
            physical = self.resolver.resolve(owner_id, logical)

            def _info() -> Item:
                _require_exists(physical, logical)
                return stat_item(owner_id, logical, physical)

            item = await asyncio.to_thread(_info)
        except (CubbyError, OSError) as e:
            return self._fail(InfoResult, "read item", owner_id, path, e)

        return InfoResult(success=True, message=f"Found {logical}", item=item)

    async def read_for_download(self, owner_id: str, file_path: str) -> DownloadResult:
        """Return the raw bytes of a file."""
        try:
            logical = self.resolver.normalize(file_path)
            physical = self.resolver.resolve(owner_id, logical)

            def _read() -> tuple[bytes, Item]:
                if not physical.exists():
                    raise NotFoundError(f"File not found: {logical}")
                if not physical.is_file():
                    raise NotAFileError(f"Not a file: {logical}")
                content = physical.read_bytes()
                return content, stat_item(owner_id, logical, physical)

            content, item = await asyncio.to_thread(_read)
        except (CubbyError, OSError) as e:
            return self._fail(DownloadResult, "download file", owner_id, file_path, e)

        return DownloadResult(
            success=True,
            message=f"Read {len(content):,} bytes from {logical}",
            content=content,
            item=item,
        )

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def create_folder(self, owner_id: str, dir_path: str, name: str) -> FolderResult:
        """Create ``dir_path/name`` and any missing parents. Idempotent."""
        try:
            _require_name(name)
            logical = join_path(self.resolver.normalize(dir_path), name)
            target = self.resolver.resolve(owner_id, logical)

            def _mkdir() -> tuple[Item, bool]:
                self.provisioner.ensure_root(owner_id)
                if target.exists() and not target.is_dir():
                    raise NameConflictError(f"A file already exists at {logical}")
                created = not target.exists()
                _ensure_parent(target, logical)
                target.mkdir(exist_ok=True)
                return stat_item(owner_id, logical, target), created

            async with self._locks.hold(owner_id):
                item, created = await asyncio.to_thread(_mkdir)
        except (CubbyError, OSError) as e:
            return self._fail(FolderResult, "create folder", owner_id, f"{dir_path}/{name}", e)

        if created:
            await self._emit(EventType.ITEM_CREATED, owner_id, logical)
        return FolderResult(
            success=True,
            message=f"Created folder: {logical}" if created else f"Folder already exists: {logical}",
            item=item,
        )

    async def delete(self, owner_id: str, item_path: str) -> DeleteResult:
        """Delete a file, or a folder and everything beneath it."""
        try:
            logical = self.resolver.normalize(item_path)
            if logical == "/":
                raise InvalidPathError("Cannot delete the storage root")
            target = self.resolver.resolve(owner_id, logical)

            def _delete() -> ItemKind:
                _require_exists(target, logical)
                return _remove_entry(target)

            async with self._locks.hold(owner_id):
                kind = await asyncio.to_thread(_delete)
        except (CubbyError, OSError) as e:
            return self._fail(DeleteResult, "delete item", owner_id, item_path, e)

        await self._emit(EventType.ITEM_DELETED, owner_id, logical)
        return DeleteResult(success=True, message=f"Deleted: {logical}", path=logical, kind=kind)

    async def rename(self, owner_id: str, item_path: str, new_name: str) -> MoveResult:
        """Give an item a new name within the same parent folder."""
        try:
            _require_name(new_name)
            logical = self.resolver.normalize(item_path)
            if logical == "/":
                raise InvalidPathError("Cannot rename the storage root")
            parent, _ = split_path(logical)
            new_logical = join_path(parent, new_name)
            src = self.resolver.resolve(owner_id, logical)
            dst = self.resolver.resolve(owner_id, new_logical)

            def _rename() -> Item:
                _require_exists(src, logical)
                if new_logical != logical:
                    # Case-only renames see the source itself on case-insensitive disks
                    if os.path.lexists(dst) and not _same_entry(src, dst):
                        raise NameConflictError(f"Name already in use: {new_logical}")
                    src.rename(dst)
                return stat_item(owner_id, new_logical, dst)

            async with self._locks.hold(owner_id):
                item = await asyncio.to_thread(_rename)
        except (CubbyError, OSError) as e:
            return self._fail(MoveResult, "rename item", owner_id, item_path, e)

        if new_logical != logical:
            await self._emit(EventType.ITEM_MOVED, owner_id, new_logical, old_path=logical)
        return MoveResult(
            success=True,
            message=f"Renamed {logical} to {new_logical}",
            old_path=logical,
            new_path=new_logical,
            item=item,
        )

    async def move(self, owner_id: str, src_path: str, dst_path: str) -> MoveResult:
        """Move an item to *dst_path*, creating destination parents."""
        try:
            src_logical = self.resolver.normalize(src_path)
            dst_logical = self.resolver.normalize(dst_path)
            if src_logical == "/":
                raise InvalidPathError("Cannot move the storage root")
            if dst_logical == "/":
                raise InvalidPathError("Cannot move onto the storage root")
            if src_logical != dst_logical and is_descendant(dst_logical, src_logical):
                raise InvalidPathError(f"Cannot move {src_logical} into itself")
            src = self.resolver.resolve(owner_id, src_logical)
            dst = self.resolver.resolve(owner_id, dst_logical)

            def _move() -> Item:
                _require_exists(src, src_logical)
                if src_logical == dst_logical:
                    return stat_item(owner_id, dst_logical, dst)
                if os.path.lexists(dst):
                    raise NameConflictError(f"Destination already exists: {dst_logical}")
                _ensure_parent(dst, dst_logical)
                try:
                    src.rename(dst)
                except OSError as e:
                    if e.errno != errno.EXDEV:
                        raise
                    logger.debug("Cross-device move %s -> %s, copying", src_logical, dst_logical)
                    _copy_entry(src, dst)
                    _remove_entry(src)
                return stat_item(owner_id, dst_logical, dst)

            async with self._locks.hold(owner_id):
                item = await asyncio.to_thread(_move)
        except (CubbyError, OSError) as e:
            return self._fail(MoveResult, "move item", owner_id, src_path, e)

        if src_logical != dst_logical:
            await self._emit(EventType.ITEM_MOVED, owner_id, dst_logical, old_path=src_logical)
        return MoveResult(
            success=True,
            message=f"Moved {src_logical} to {dst_logical}",
            old_path=src_logical,
            new_path=dst_logical,
            item=item,
        )

    async def copy(self, owner_id: str, src_path: str, dst_path: str) -> CopyResult:
        """Copy a file or folder tree to *dst_path*, creating destination parents."""
        try:
            src_logical = self.resolver.normalize(src_path)
            dst_logical = self.resolver.normalize(dst_path)
            if src_logical == "/":
                raise InvalidPathError("Cannot copy the storage root")
            if dst_logical == "/":
                raise InvalidPathError("Cannot copy onto the storage root")
            if src_logical != dst_logical and is_descendant(dst_logical, src_logical):
                raise InvalidPathError(f"Cannot copy {src_logical} into itself")
            src = self.resolver.resolve(owner_id, src_logical)
            dst = self.resolver.resolve(owner_id, dst_logical)

            def _copy() -> Item:
                _require_exists(src, src_logical)
                if os.path.lexists(dst):
                    raise NameConflictError(f"Destination already exists: {dst_logical}")
                _ensure_parent(dst, dst_logical)
                _copy_entry(src, dst)
                return stat_item(owner_id, dst_logical, dst)

            async with self._locks.hold(owner_id):
                item = await asyncio.to_thread(_copy)
        except (CubbyError, OSError) as e:
            return self._fail(CopyResult, "copy item", owner_id, src_path, e)

        await self._emit(EventType.ITEM_COPIED, owner_id, dst_logical, old_path=src_logical)
        return CopyResult(
            success=True,
            message=f"Copied {src_logical} to {dst_logical}",
            src_path=src_logical,
            dst_path=dst_logical,
            item=item,
        )

    async def save_upload(
        self,
        owner_id: str,
        dir_path: str,
        name: str,
        content: bytes,
    ) -> UploadResult:
        """Write *content* as ``dir_path/name``. Atomic via tempfile + replace.

        An existing entry with the same name is never overwritten: the
        new file gets ``_{millis}`` inserted before its extension.
        """
        try:
            _require_name(name)
            if len(content) > self.max_upload_size:
                raise UploadTooLargeError(
                    f"File too large ({len(content):,} bytes, "
                    f"limit {self.max_upload_size:,}): {name}"
                )
            dir_logical = self.resolver.normalize(dir_path)
            directory = self.resolver.resolve(owner_id, dir_logical)
            self.resolver.resolve(owner_id, join_path(dir_logical, name))

            def _write() -> tuple[Item, bool]:
                self.provisioner.ensure_root(owner_id)
                if directory.exists() and not directory.is_dir():
                    raise NotAFolderError(f"Not a folder: {dir_logical}")
                directory.mkdir(parents=True, exist_ok=True)

                final_name = name
                while os.path.lexists(directory / final_name):
                    final_name = deconflict_name(name, self._next_stamp())
                target = directory / final_name

                fd, tmp_name = tempfile.mkstemp(
                    dir=directory, prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX
                )
                tmp = Path(tmp_name)
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(content)
                    tmp.replace(target)
                except BaseException:
                    _discard(tmp)
                    raise

                logical = join_path(dir_logical, final_name)
                return stat_item(owner_id, logical, target), final_name != name

            async with self._locks.hold(owner_id):
                item, renamed = await asyncio.to_thread(_write)
        except (CubbyError, OSError) as e:
            return self._fail(UploadResult, "upload file", owner_id, f"{dir_path}/{name}", e)

        await self._emit(EventType.ITEM_WRITTEN, owner_id, item.logical_path)
        return UploadResult(
            success=True,
            message=(
                f"Uploaded {name} as {item.logical_path}"
                if renamed
                else f"Uploaded {item.logical_path}"
            ),
            item=item,
            renamed=renamed,
        )

    # =========================================================================
    # Sharing (not enforced)
    # =========================================================================

    async def share(self, owner_id: str, path: str, target: str) -> ShareResult:
        """Acknowledge a share request.

        Sharing is not enforced: the item is checked to exist and the
        request is logged, but no other owner gains access.
        """
        try:
            if not target or not target.strip():
                raise InvalidNameError("Share target must not be empty")
            logical = self.resolver.normalize(path)
            physical = self.resolver.resolve(owner_id, logical)
            await asyncio.to_thread(_require_exists, physical, logical)
        except (CubbyError, OSError) as e:
            return self._fail(ShareResult, "share item", owner_id, path, e)

        logger.info("Share requested by %s for %s with %s (not enforced)", owner_id, logical, target)
        return ShareResult(
            success=True,
            message=f"Share request recorded for {logical}",
            path=logical,
            target=target,
        )
