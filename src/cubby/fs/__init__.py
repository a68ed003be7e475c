"""Storage layer — path resolution, item metadata, operations, provisioning."""

from cubby.fs.exceptions import (
    CubbyError,
    InvalidNameError,
    InvalidOwnerError,
    InvalidPathError,
    NameConflictError,
    NotAFileError,
    NotAFolderError,
    NotFoundError,
    PathEscapeError,
    StorageIOError,
    UploadTooLargeError,
)
from cubby.fs.locks import OwnerLocks
from cubby.fs.metadata import build_item, item_id, stat_item
from cubby.fs.operations import StorageOperations
from cubby.fs.provisioner import DEFAULT_FOLDERS, UserStorageProvisioner
from cubby.fs.resolver import PathResolver
from cubby.fs.types import (
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
    ProvisionResult,
    SearchResult,
    ShareResult,
    UploadResult,
)

__all__ = [
    "DEFAULT_FOLDERS",
    "CopyResult",
    "CubbyError",
    "DeleteResult",
    "DownloadResult",
    "FolderResult",
    "InfoResult",
    "InvalidNameError",
    "InvalidOwnerError",
    "InvalidPathError",
    "Item",
    "ItemKind",
    "ListResult",
    "MoveResult",
    "NameConflictError",
    "NotAFileError",
    "NotAFolderError",
    "NotFoundError",
    "OperationResult",
    "OwnerLocks",
    "PathEscapeError",
    "PathResolver",
    "ProvisionResult",
    "SearchResult",
    "ShareResult",
    "StorageIOError",
    "StorageOperations",
    "UploadResult",
    "UploadTooLargeError",
    "UserStorageProvisioner",
    "build_item",
    "item_id",
    "stat_item",
]
