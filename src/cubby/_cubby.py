"""Cubby — synchronous wrapper around CubbyAsync."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any

from cubby._cubby_async import CubbyAsync

if TYPE_CHECKING:
    from cubby.config import CubbySettings
    from cubby.events import EventBus
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


class Cubby:
    """Synchronous API backed by a private event loop in a background thread.

    For callers that are not async themselves (WSGI views, scripts,
    admin tooling).  Each call blocks until the underlying operation
    finishes; there is no cancellation.

    Usage::

        with Cubby(storage_dir="/srv/cubby") as cubby:
            cubby.provision("u-42")
            cubby.create_folder("u-42", "/", "Projects")
            items = cubby.list_dir("u-42", "/").items
    """

    def __init__(
        self,
        settings: CubbySettings | None = None,
        *,
        event_bus: EventBus | None = None,
        **overrides: Any,
    ) -> None:
        self._closed = False
        self._async = CubbyAsync(settings, event_bus=event_bus, **overrides)

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        if self._closed:
            coro.close()
            raise RuntimeError("Cubby is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    @property
    def settings(self) -> CubbySettings:
        return self._async.settings

    @property
    def events(self) -> EventBus:
        return self._async.events

    def close(self) -> None:
        """Stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self._loop.close()

    def __enter__(self) -> Cubby:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    def provision(self, owner_id: str) -> ProvisionResult:
        return self._run(self._async.provision(owner_id))

    def deprovision(self, owner_id: str) -> ProvisionResult:
        return self._run(self._async.deprovision(owner_id))

    def user_created(self, owner_id: str) -> None:
        self._run(self._async.user_created(owner_id))

    def user_deleted(self, owner_id: str) -> None:
        self._run(self._async.user_deleted(owner_id))

    # ------------------------------------------------------------------
    # Storage operations (sync)
    # ------------------------------------------------------------------

    def list_dir(self, owner_id: str, dir_path: str = "/") -> ListResult:
        return self._run(self._async.list_dir(owner_id, dir_path))

    def search(self, owner_id: str, query: str) -> SearchResult:
        return self._run(self._async.search(owner_id, query))

    def list_all(self, owner_id: str) -> SearchResult:
        return self._run(self._async.list_all(owner_id))

    def info(self, owner_id: str, path: str) -> InfoResult:
        return self._run(self._async.info(owner_id, path))

    def create_folder(self, owner_id: str, dir_path: str, name: str) -> FolderResult:
        return self._run(self._async.create_folder(owner_id, dir_path, name))

    def delete(self, owner_id: str, item_path: str) -> DeleteResult:
        return self._run(self._async.delete(owner_id, item_path))

    def rename(self, owner_id: str, item_path: str, new_name: str) -> MoveResult:
        return self._run(self._async.rename(owner_id, item_path, new_name))

    def copy(self, owner_id: str, src_path: str, dst_path: str) -> CopyResult:
        return self._run(self._async.copy(owner_id, src_path, dst_path))

    def move(self, owner_id: str, src_path: str, dst_path: str) -> MoveResult:
        return self._run(self._async.move(owner_id, src_path, dst_path))

    def save_upload(self, owner_id: str, dir_path: str, name: str, content: bytes) -> UploadResult:
        return self._run(self._async.save_upload(owner_id, dir_path, name, content))

    def read_for_download(self, owner_id: str, file_path: str) -> DownloadResult:
        return self._run(self._async.read_for_download(owner_id, file_path))

    def share(self, owner_id: str, path: str, target: str) -> ShareResult:
        return self._run(self._async.share(owner_id, path, target))
